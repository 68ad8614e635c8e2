"""Posting — one ledger entry tagged as credit or debit.

Both ledgers are loaded into the same type; the side is a field, not a
subclass, so the matcher and the exporters handle every posting alike.

Example:

    Posting("INV-1", Decimal("100.00"), date(2024, 1, 1), side=CREDIT)
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal


CREDIT = "credit"
DEBIT = "debit"
SIDES = (CREDIT, DEBIT)


# eq=False: postings compare by identity. Ids are not unique, and two rows
# with identical fields are still two postings.
@dataclass(frozen=True, eq=False)
class Posting:
    """A single credit or debit entry.

    Attributes:
        id: Transaction number from the source extract. Non-empty, not unique.
        amount: Monetary amount. Converted to Decimal on construction.
        value_date: Calendar date the posting takes value.
        side: CREDIT or DEBIT.
    """

    id: str
    amount: Decimal
    value_date: date
    side: str = CREDIT

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Posting id must be a non-empty string")
        if self.side not in SIDES:
            raise ValueError(f"Unknown side {self.side!r}; expected one of {SIDES}")
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, "amount", Decimal(str(self.amount)))

    def __repr__(self) -> str:
        return f"Posting({self.side} {self.id} {self.amount} {self.value_date})"
