"""Ledger loading — turn extract rows into Posting lists.

Rows are positional: ``(id, value date, amount, ...)``; extra fields are
ignored. Files are read through an in-memory DuckDB connection:

- ``.csv`` — headerless, every field read as text, ragged rows padded
  with nulls or truncated; unreadable lines are logged and skipped
- ``.parquet`` — first three columns

In-memory data (Polars DataFrame, list[dict], dict[str, list]) goes through
:func:`postings_from_frame`.

A row whose amount or date does not parse is logged and skipped; it never
fails the whole load.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Iterable, Sequence

import duckdb
import polars as pl

from .config import DEFAULT_DATE_FORMAT
from .posting import SIDES, Posting

log = logging.getLogger(__name__)

# Type alias for in-memory tabular input
TableData = Any  # pl.DataFrame | list[dict] | dict[str, list]

SUPPORTED_FILE_EXTENSIONS = {
    ".csv": "csv",
    ".parquet": "parquet",
}

LEDGER_COLUMNS = ["id", "date", "amount"]

# Ragged rows are padded or truncated; lines DuckDB still cannot read (bad
# encoding, broken quoting) land in reject_errors instead of failing the scan.
_READERS = {
    "csv": (
        "read_csv(?, header = false, all_varchar = true, null_padding = true, "
        "sample_size = -1, strict_mode = false, ignore_errors = true, "
        "store_rejects = true)"
    ),
    "parquet": "read_parquet(?)",
}


def parse_amount(raw: Any) -> Decimal:
    """Parse an amount into an unsigned Decimal magnitude.

    Strings may carry thousands separators and one leading minus sign:
    ``"-1,250.50"`` -> ``Decimal("1250.50")``. Numbers lose their sign too.
    """
    if isinstance(raw, bool) or raw is None:
        raise ValueError(f"Cannot parse amount: {raw!r}")
    if isinstance(raw, Decimal):
        value = raw.copy_abs()
    elif isinstance(raw, (int, float)):
        value = Decimal(str(raw)).copy_abs()
    else:
        text = str(raw).strip().replace(",", "")
        if text.startswith("-"):
            text = text[1:]
        try:
            value = Decimal(text)
        except InvalidOperation:
            raise ValueError(f"Cannot parse amount: {raw!r}") from None
    if not value.is_finite():
        raise ValueError(f"Amount is not finite: {raw!r}")
    return value


def parse_value_date(raw: Any, date_format: str = DEFAULT_DATE_FORMAT) -> date:
    """Parse a value date against one fixed pattern."""
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if raw is None:
        raise ValueError("Missing value date")
    return datetime.strptime(str(raw).strip(), date_format).date()


def _row_to_posting(row: Sequence[Any], side: str, date_format: str) -> Posting:
    if len(row) < 3:
        raise ValueError(f"expected 3 fields, got {len(row)}")
    raw_id, raw_date, raw_amount = row[0], row[1], row[2]
    posting_id = "" if raw_id is None else str(raw_id).strip()
    if not posting_id:
        raise ValueError("empty transaction id")
    amount = parse_amount(raw_amount)
    value_date = parse_value_date(raw_date, date_format)
    return Posting(posting_id, amount, value_date, side=side)


def postings_from_rows(
    rows: Iterable[Sequence[Any]],
    side: str,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> list[Posting]:
    """Convert positional rows to postings, skipping rows that fail to parse."""
    if side not in SIDES:
        raise ValueError(f"Unknown side {side!r}; expected one of {SIDES}")
    postings: list[Posting] = []
    skipped = 0
    for line_no, row in enumerate(rows, start=1):
        try:
            postings.append(_row_to_posting(row, side, date_format))
        except ValueError as e:
            skipped += 1
            label = row[0] if len(row) else "?"
            log.warning("Skipping %s row %d (%s): %s", side, line_no, label, e)
    if skipped:
        log.info("Loaded %d %s posting(s), skipped %d", len(postings), side, skipped)
    return postings


def coerce_to_frame(data: TableData) -> pl.DataFrame:
    """Convert supported tabular formats to a Polars DataFrame.

    Accepted formats:
    - pl.DataFrame: returned as-is
    - list[dict]: array of structs, e.g. [{"id": "C1", ...}, ...]
    - dict[str, list]: struct of arrays, e.g. {"id": ["C1", "C2"], ...}

    Raises TypeError for unsupported formats.
    """
    if isinstance(data, pl.DataFrame):
        return data
    if isinstance(data, (list, dict)):
        return pl.DataFrame(data)
    raise TypeError(
        f"Unsupported data type: {type(data).__name__}. "
        f"Expected DataFrame, list[dict], or dict[str, list]."
    )


def postings_from_frame(
    data: TableData,
    side: str,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> list[Posting]:
    """Convert a frame to postings.

    Uses the ``id``, ``date`` and ``amount`` columns when all are present,
    otherwise the first three columns in order.
    """
    df = coerce_to_frame(data)
    if set(LEDGER_COLUMNS) <= set(df.columns):
        df = df.select(LEDGER_COLUMNS)
    else:
        df = df.select(df.columns[:3])
    return postings_from_rows(df.rows(), side, date_format)


def ledger_format(path: Path) -> str:
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_FILE_EXTENSIONS:
        raise ValueError(f"Unsupported file extension: {suffix}")
    return SUPPORTED_FILE_EXTENSIONS[suffix]


def read_rows(path: Path) -> list[tuple]:
    """Read raw positional rows from a ledger file."""
    path = Path(path)
    fmt = ledger_format(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    if path.stat().st_size == 0:
        return []
    conn = duckdb.connect(":memory:")
    try:
        rows = conn.execute(f"SELECT * FROM {_READERS[fmt]}", [str(path)]).fetchall()
        if fmt == "csv":
            _log_rejects(conn, path)
    except duckdb.Error as e:
        raise ValueError(f"Cannot read {path}: {e}") from e
    finally:
        conn.close()
    return rows


def _log_rejects(conn: duckdb.DuckDBPyConnection, path: Path) -> None:
    rejects = conn.execute(
        "SELECT line, error_type, error_message FROM reject_errors ORDER BY line"
    ).fetchall()
    for line_no, error_type, message in rejects:
        log.warning("Skipping %s line %s (%s): %s", path.name, line_no, error_type, message)


def load_ledger(
    path: Path,
    side: str,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> list[Posting]:
    """Load one side of the reconciliation from a file."""
    rows = read_rows(path)
    postings = postings_from_rows(rows, side, date_format)
    log.info("Read %d %s posting(s) from %s", len(postings), side, path)
    return postings
