"""
Tests for amount parsing and the transaction model.
"""

from decimal import Decimal

import pytest

from optisettle.protocol.errors import ValidationError
from optisettle.protocol.models import (
    MAX_AMOUNT_DECIMALS,
    Transaction,
    canonical_amount,
    parse_amount,
)


class TestParseAmount:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("10", Decimal("10")),
            (7, Decimal(7)),
            (0.1, Decimal("0.1")),
            ("0.000000000000000001", Decimal("1E-18")),
            ("999999999999999999999999999999", Decimal("999999999999999999999999999999")),
            ("1.000000000000000000000000", Decimal(1)),
        ],
    )
    def test_accepted(self, value, expected):
        assert parse_amount(value) == expected

    @pytest.mark.parametrize(
        "value",
        [
            "1e5000000",
            "1E+30",
            "1000000000000000000000000000000",
            "1E-19",
            "1e-5000000",
            "0.0000000000000000001",
            "-1",
            "NaN",
            "Infinity",
            "abc",
            True,
        ],
    )
    def test_rejected(self, value):
        with pytest.raises(ValidationError):
            parse_amount(value)

    def test_zero_with_extreme_exponent_is_zero(self):
        assert parse_amount("0E+5000000") == 0


class TestCanonicalAmount:
    @pytest.mark.parametrize(
        "amount, text",
        [
            (Decimal("10.50"), "10.5"),
            (Decimal("1E+2"), "100"),
            (Decimal("0.000"), "0"),
            (Decimal("999999999999999999999999999999.999999999999999999"),
             "999999999999999999999999999999.999999999999999999"),
        ],
    )
    def test_text_form(self, amount, text):
        assert canonical_amount(amount) == text


class TestTransaction:
    def test_out_of_range_amount_is_validation_error(self):
        with pytest.raises(ValidationError):
            Transaction("0xa", "0xb", "1e5000000")

    def test_max_scale_amount_hashes(self):
        from optisettle.merkle.tree import hash_transaction

        tx = Transaction("0xa", "0xb", Decimal(1).scaleb(-MAX_AMOUNT_DECIMALS))
        assert tx.to_dict()["amount"] == "0.000000000000000001"
        assert hash_transaction(tx).startswith("0x")
