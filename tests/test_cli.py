"""
Tests for the optisettle CLI (argument parsing and offline proof tooling).
"""

import json

import pytest


@pytest.fixture
def tx_file(tmp_path):
    path = tmp_path / "batch.json"
    path.write_text(json.dumps({
        "transactions": [
            {"sender": "0xA", "recipient": "0xB", "amount": "10"},
            {"sender": "0xB", "recipient": "0xC", "amount": "2.5"},
            {"sender": "0xC", "recipient": "0xA", "amount": "1"},
        ]
    }))
    return str(path)


class TestParser:
    def test_subcommands(self):
        from optisettle.cli import build_parser

        parser = build_parser()
        args = parser.parse_args(["-o", "json", "proof", "batch.json", "2"])
        assert args.command == "proof"
        assert args.index == 2
        assert args.output == "json"

        args = parser.parse_args(["serve", "--port", "9000"])
        assert args.port == 9000
        assert args.host is None

    def test_no_command_exits(self):
        from optisettle.cli import main

        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 1


class TestProofTooling:
    def test_root(self, tx_file, capsys):
        from optisettle.cli import main
        from optisettle.merkle.tree import compute_root
        from optisettle.protocol.models import Transaction

        main(["-o", "json", "root", tx_file])
        out = json.loads(capsys.readouterr().out)

        expected = compute_root([
            Transaction("0xa", "0xb", "10"),
            Transaction("0xb", "0xc", "2.5"),
            Transaction("0xc", "0xa", "1"),
        ])
        assert out["root"] == expected
        assert out["leafCount"] == 3

    def test_proof_then_verify(self, tx_file, capsys):
        from optisettle.cli import main

        main(["-o", "json", "proof", tx_file, "2"])
        proof = json.loads(capsys.readouterr().out)

        main([
            "verify-proof",
            "--transaction", json.dumps(proof["transaction"]),
            "--proof", json.dumps(proof["proof"]),
            "--root", proof["root"],
        ])
        assert capsys.readouterr().out.strip() == "VALID"

    def test_verify_invalid_exits_1(self, tx_file, capsys):
        from optisettle.cli import main

        main(["-o", "json", "proof", tx_file, "0"])
        proof = json.loads(capsys.readouterr().out)

        with pytest.raises(SystemExit) as exc_info:
            main([
                "verify-proof",
                "--transaction", json.dumps({"sender": "0xa", "recipient": "0xb", "amount": "11"}),
                "--proof", json.dumps(proof["proof"]),
                "--root", proof["root"],
            ])
        assert exc_info.value.code == 1
        assert "INVALID" in capsys.readouterr().out

    def test_bad_index_reports_error(self, tx_file, capsys):
        from optisettle.cli import main

        with pytest.raises(SystemExit) as exc_info:
            main(["proof", tx_file, "7"])
        assert exc_info.value.code == 2
        assert "index_out_of_range" in capsys.readouterr().err

    def test_missing_file(self, tmp_path, capsys):
        from optisettle.cli import main

        with pytest.raises(SystemExit) as exc_info:
            main(["root", str(tmp_path / "nope.json")])
        assert exc_info.value.code == 2
