"""Bank-statement workbook cleaning.

Statement exports arrive as an .xlsx workbook with one sheet per side. Each
sheet has a banner above the data and a totals block below it; data rows
keep the transaction number, value date and amount in fixed columns. This
module cuts the banner and footer, keeps those three columns and writes
headerless CSV rows that :func:`recon.ledger.load_ledger` reads directly.

Usage:

    sides = clean_statement(Path("statement.xlsx"))
    write_rows_csv(sides[CREDIT], Path("credits.csv"))
    write_rows_csv(sides[DEBIT], Path("debits.csv"))
"""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any

import openpyxl
from openpyxl.utils import column_index_from_string

from .config import DEFAULT_DATE_FORMAT
from .ledger import parse_amount
from .posting import CREDIT, DEBIT

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatementLayout:
    """Where the data lives in a statement sheet.

    Attributes:
        header_rows: Banner rows above the data.
        footer_rows: Totals/signature rows below the data.
        id_column, date_column, amount_column: Column letters.
        credit_sheet, debit_sheet: Sheet name per side.
        date_format: Format used when a date cell holds a real date.
    """

    header_rows: int = 25
    footer_rows: int = 14
    id_column: str = "A"
    date_column: str = "Y"
    amount_column: str = "AL"
    credit_sheet: str = "Sheet1"
    debit_sheet: str = "Sheet2"
    date_format: str = DEFAULT_DATE_FORMAT

    def sheet_sides(self) -> dict[str, str]:
        return {self.credit_sheet: CREDIT, self.debit_sheet: DEBIT}


DEFAULT_LAYOUT = StatementLayout()


def _cell(row: tuple[Any, ...], letter: str) -> Any:
    idx = column_index_from_string(letter) - 1
    return row[idx] if idx < len(row) else None


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def format_plain_amount(amount: Decimal) -> str:
    """Shortest plain decimal form: 1500.00 -> "1500", 12.50 -> "12.5"."""
    return format(amount.normalize(), "f")


def _format_date(value: Any, date_format: str) -> str:
    if isinstance(value, (date, datetime)):
        return value.strftime(date_format)
    return str(value).strip()


def extract_rows(
    worksheet: Any, layout: StatementLayout = DEFAULT_LAYOUT
) -> list[list[str]]:
    """Return ``[id, date, amount]`` rows from one statement sheet."""
    rows = list(worksheet.iter_rows(values_only=True))
    end = len(rows) - layout.footer_rows
    body = rows[layout.header_rows : max(end, layout.header_rows)]

    out: list[list[str]] = []
    for row in body:
        raw_id = _cell(row, layout.id_column)
        raw_amount = _cell(row, layout.amount_column)
        if _is_blank(raw_id) or _is_blank(raw_amount):
            continue
        try:
            amount = parse_amount(raw_amount)
        except ValueError as e:
            log.warning(
                "%s: skipping row %s: %s", worksheet.title, str(raw_id).strip(), e
            )
            continue
        raw_date = _cell(row, layout.date_column)
        out.append(
            [
                str(raw_id).strip(),
                "" if raw_date is None else _format_date(raw_date, layout.date_format),
                format_plain_amount(amount),
            ]
        )
    return out


def clean_statement(
    path: Path, layout: StatementLayout = DEFAULT_LAYOUT
) -> dict[str, list[list[str]]]:
    """Extract credit and debit rows from a statement workbook.

    Sheets other than the layout's credit/debit sheets are ignored. A side
    whose sheet is missing comes back empty.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    try:
        wb = openpyxl.load_workbook(path, data_only=True)
    except Exception as e:
        raise ValueError(f"Cannot open {path} as a workbook: {e}") from e

    sides: dict[str, list[list[str]]] = {CREDIT: [], DEBIT: []}
    try:
        for sheet_name, side in layout.sheet_sides().items():
            if sheet_name not in wb.sheetnames:
                log.warning("%s: sheet %r not found", path.name, sheet_name)
                continue
            sides[side] = extract_rows(wb[sheet_name], layout)
            log.info(
                "%s: %d %s row(s) from %s",
                path.name,
                len(sides[side]),
                side,
                sheet_name,
            )
    finally:
        wb.close()
    return sides


def write_rows_csv(rows: list[list[str]], path: Path) -> Path:
    """Write headerless rows ready for the ledger loader."""
    path = Path(path)
    with open(path, "w", newline="") as f:
        writer = csv.writer(f, lineterminator="\n")
        writer.writerows(rows)
    return path
