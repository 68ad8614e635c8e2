from datetime import date
from decimal import Decimal

import pytest

from recon.posting import CREDIT, DEBIT, Posting


class TestPosting:
    def test_amount_converted_to_decimal(self):
        p = Posting("C1", 12.5, date(2024, 1, 1))
        assert p.amount == Decimal("12.5")
        assert p.side == CREDIT

    def test_identity_equality(self):
        """Two rows with identical fields are still two postings."""
        a = Posting("D1", Decimal("5"), date(2024, 1, 1), side=DEBIT)
        b = Posting("D1", Decimal("5"), date(2024, 1, 1), side=DEBIT)
        assert a != b
        assert len({a, b}) == 2

    def test_frozen(self):
        p = Posting("C1", Decimal("1"), date(2024, 1, 1))
        with pytest.raises(AttributeError):
            p.amount = Decimal("2")

    def test_rejects_empty_id(self):
        with pytest.raises(ValueError, match="id"):
            Posting("", Decimal("1"), date(2024, 1, 1))

    def test_rejects_unknown_side(self):
        with pytest.raises(ValueError, match="side"):
            Posting("C1", Decimal("1"), date(2024, 1, 1), side="refund")
