"""Shared fixtures and helpers for the recon test suite."""

from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from recon.posting import CREDIT, DEBIT, Posting


def _d(text: str) -> date:
    """ISO date string -> date."""
    return date.fromisoformat(text)


def _credit(id: str, amount, when: str) -> Posting:
    return Posting(id, Decimal(str(amount)), _d(when), side=CREDIT)


def _debit(id: str, amount, when: str) -> Posting:
    return Posting(id, Decimal(str(amount)), _d(when), side=DEBIT)


def _ids(postings) -> list[str]:
    return [p.id for p in postings]


def _write_csv(path: Path, lines: list[str]) -> Path:
    """Write raw CSV lines (no header) and return the path."""
    path.write_text("\n".join(lines) + "\n")
    return path


@pytest.fixture
def ledger_files(tmp_path):
    """Credit/debit extracts for a small, fully reconcilable run.

    C1 pairs exactly with D1; C2 + C3 aggregate into D2; C4 and D3 stay
    unmatched.
    """
    credits = _write_csv(
        tmp_path / "credits.csv",
        [
            "C1,1/2/2024,100.00",
            "C2,1/3/2024,60.00",
            'C3,1/4/2024,"1,040.00"',
            "C4,3/30/2024,-75.25",
        ],
    )
    debits = _write_csv(
        tmp_path / "debits.csv",
        [
            "D1,1/2/2024,100.00",
            "D2,1/5/2024,1100.00",
            "D3,1/6/2024,5000.00",
        ],
    )
    return credits, debits
