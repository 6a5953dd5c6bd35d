"""
optisettle CLI.

Commands:
    optisettle serve [--host H] [--port P]         Start the HTTP gateway
    optisettle root FILE                           Commitment root of a transaction file
    optisettle proof FILE INDEX                    Inclusion proof for one transaction
    optisettle verify-proof --transaction JSON --proof JSON --root ROOT
                                                   Check a proof offline (exit 1 if invalid)

FILE is a JSON array of ``{"sender", "recipient", "amount"}`` objects, or an
object with a ``transactions`` key holding that array.
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any, Dict, List

from optisettle.merkle.tree import CommitmentTree, hash_transaction
from optisettle.protocol.errors import SettlementError, ValidationError
from optisettle.protocol.models import Transaction


def cmd_serve(args) -> None:
    """Start the HTTP gateway."""
    from optisettle.core.settings import get_settings
    from optisettle.gateway import run
    from optisettle.utils.logging import configure_logging

    settings = get_settings()
    configure_logging(settings.runtime.log_level)
    run(settings, host=args.host, port=args.port)


def cmd_root(args) -> None:
    """Print the commitment root of a transaction file."""
    transactions = _load_transactions(args.file)
    tree = CommitmentTree.build(transactions)
    result = {
        "root": tree.root,
        "leafCount": tree.leaf_count,
        "depth": tree.depth,
        "leaves": tree.leaves(),
    }
    if args.output == "json":
        print(json.dumps(result, indent=2))
        return

    print(f"Root:        {result['root']}")
    print(f"Leaves:      {result['leafCount']}")
    print(f"Depth:       {result['depth']}")
    print()
    print(f"{'INDEX':<7} {'LEAF'}")
    print("-" * 75)
    for i, leaf in enumerate(result["leaves"]):
        print(f"{i:<7} {leaf}")


def cmd_proof(args) -> None:
    """Print the inclusion proof of one transaction in a file."""
    transactions = _load_transactions(args.file)
    tree = CommitmentTree.build(transactions)
    proof = tree.proof(args.index)
    result = {
        "index": args.index,
        "transaction": transactions[args.index].to_dict(),
        "leaf": tree.leaf(args.index),
        "proof": proof,
        "root": tree.root,
    }
    if args.output == "json":
        print(json.dumps(result, indent=2))
        return

    tx = result["transaction"]
    print(f"Transaction: {tx['sender']} -> {tx['recipient']} ({tx['amount']})")
    print(f"Leaf:        {result['leaf']}")
    print(f"Root:        {result['root']}")
    print("Proof:")
    if not proof:
        print("  (empty, single-leaf tree)")
    for i, sibling in enumerate(proof):
        print(f"  [{i}] {sibling}")


def cmd_verify_proof(args) -> None:
    """Verify a proof offline. Exits 1 when it does not verify."""
    tx = Transaction.from_dict(_parse_json(args.transaction, "--transaction"))
    proof = _parse_json(args.proof, "--proof")
    if not isinstance(proof, list):
        raise ValidationError("--proof must be a JSON array of hex digests")

    valid = CommitmentTree.verify(tx, proof, args.root)
    if args.output == "json":
        print(json.dumps({"valid": valid, "leaf": hash_transaction(tx), "root": args.root}, indent=2))
    else:
        print("VALID" if valid else "INVALID")
    if not valid:
        sys.exit(1)


# ===========================================================================
# Helpers
# ===========================================================================


def _parse_json(raw: str, what: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValidationError(f"{what} is not valid JSON: {e}")


def _load_transactions(path: str) -> List[Transaction]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise ValidationError(f"cannot read {path}: {e}")
    except json.JSONDecodeError as e:
        raise ValidationError(f"{path} is not valid JSON: {e}")

    if isinstance(data, dict):
        data = data.get("transactions")
    if not isinstance(data, list):
        raise ValidationError(f"{path} must hold a JSON array of transactions")
    return [Transaction.from_dict(item) for item in data]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="optisettle",
        description="Optimistic batching and settlement engine",
    )
    parser.add_argument(
        "--output", "-o",
        choices=["table", "json"],
        default="table",
        help="Output format (default: table)",
    )
    sub = parser.add_subparsers(dest="command")

    p_serve = sub.add_parser("serve", help="Start the HTTP gateway")
    p_serve.add_argument("--host", default=None, help="Bind host (default from settings)")
    p_serve.add_argument("--port", type=int, default=None, help="Bind port (default from settings)")
    p_serve.set_defaults(func=cmd_serve)

    p_root = sub.add_parser("root", help="Compute the commitment root of a transaction file")
    p_root.add_argument("file", help="JSON transaction file")
    p_root.set_defaults(func=cmd_root)

    p_proof = sub.add_parser("proof", help="Build an inclusion proof")
    p_proof.add_argument("file", help="JSON transaction file")
    p_proof.add_argument("index", type=int, help="Transaction index")
    p_proof.set_defaults(func=cmd_proof)

    p_verify = sub.add_parser("verify-proof", help="Verify an inclusion proof offline")
    p_verify.add_argument("--transaction", required=True, help="Transaction as a JSON object")
    p_verify.add_argument("--proof", required=True, help="Proof as a JSON array of hex digests")
    p_verify.add_argument("--root", required=True, help="Expected commitment root")
    p_verify.set_defaults(func=cmd_verify_proof)

    return parser


def main(argv: List[str] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    try:
        args.func(args)
    except SettlementError as e:
        print(f"Error [{e.code.value}]: {e.message}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
