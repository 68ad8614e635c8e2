"""Write reconciliation results to files.

- CSV: one block of rows per match group, blank row between blocks
- Excel: one sheet per result category
- DuckDB: one table per result category plus ``_run_meta``

Usage:

    paths = write_outputs(Path("out"), result)
    export_workbook(Path("recon.xlsx"), result)
    export_database(Path("recon.db"), result, {"days": 7, "threshold": "1000"})
"""

from __future__ import annotations

import csv
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Sequence

import duckdb
import polars as pl

from .matcher import ReconResult
from .posting import Posting
from .report import format_amount

log = logging.getLogger(__name__)

CSV_HEADER = ["Transaction No", "Value", "Type"]

MATCHED_CSV = "matched_transactions.csv"
UNMATCHED_CREDITS_CSV = "unmatched_credits.csv"
UNMATCHED_DEBITS_CSV = "unmatched_debits.csv"
ABANDONED_CREDITS_CSV = "abandoned_credits.csv"

RESULT_TABLES = ["matched", "unmatched_credits", "unmatched_debits", "abandoned_credits"]
RUN_META_TABLE = "_run_meta"

_MATCHED_SCHEMA = {
    "group_no": pl.Int64,
    "kind": pl.Utf8,
    "position": pl.Int64,
    "side": pl.Utf8,
    "id": pl.Utf8,
    "amount": pl.Utf8,
    "value_date": pl.Date,
}

_LEFTOVER_SCHEMA = {
    "side": pl.Utf8,
    "id": pl.Utf8,
    "amount": pl.Utf8,
    "value_date": pl.Date,
}

_SHEET_TITLES = {
    "matched": "Matched",
    "unmatched_credits": "Unmatched Credits",
    "unmatched_debits": "Unmatched Debits",
    "abandoned_credits": "Abandoned Credits",
}


# --- CSV ---


def write_groups_csv(path: Path, groups: Iterable[Sequence[Posting]]) -> Path:
    """Write posting blocks, each followed by an empty separator row."""
    path = Path(path)
    with open(path, "w", newline="") as f:
        writer = csv.writer(f, lineterminator="\n")
        writer.writerow(CSV_HEADER)
        for group in groups:
            for p in group:
                writer.writerow([p.id, format_amount(p.amount), p.side])
            writer.writerow([])
    return path


def write_outputs(out_dir: Path, result: ReconResult) -> list[Path]:
    """Write the matched/unmatched/abandoned CSV files into out_dir."""
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    paths = [
        write_groups_csv(
            out_dir / MATCHED_CSV, [g.postings for g in result.match_groups]
        ),
        write_groups_csv(out_dir / UNMATCHED_CREDITS_CSV, [result.unmatched_credits]),
        write_groups_csv(out_dir / UNMATCHED_DEBITS_CSV, [result.unmatched_debits]),
        write_groups_csv(out_dir / ABANDONED_CREDITS_CSV, [result.abandoned_credits]),
    ]
    for p in paths:
        log.info("Wrote %s", p)
    return paths


# --- Frames ---


def _leftover_rows(postings: Iterable[Posting]) -> list[dict[str, Any]]:
    return [
        {
            "side": p.side,
            "id": p.id,
            "amount": format_amount(p.amount),
            "value_date": p.value_date,
        }
        for p in postings
    ]


def result_frames(result: ReconResult) -> dict[str, pl.DataFrame]:
    """Return one DataFrame per result category, keyed by table name.

    Amounts are kept as two-decimal strings so no precision is lost on the
    way to Excel or DuckDB.
    """
    matched_rows: list[dict[str, Any]] = []
    for group_no, group in enumerate(result.match_groups, start=1):
        for position, p in enumerate(group.postings, start=1):
            matched_rows.append(
                {
                    "group_no": group_no,
                    "kind": group.kind,
                    "position": position,
                    "side": p.side,
                    "id": p.id,
                    "amount": format_amount(p.amount),
                    "value_date": p.value_date,
                }
            )
    return {
        "matched": pl.DataFrame(matched_rows, schema=_MATCHED_SCHEMA),
        "unmatched_credits": pl.DataFrame(
            _leftover_rows(result.unmatched_credits), schema=_LEFTOVER_SCHEMA
        ),
        "unmatched_debits": pl.DataFrame(
            _leftover_rows(result.unmatched_debits), schema=_LEFTOVER_SCHEMA
        ),
        "abandoned_credits": pl.DataFrame(
            _leftover_rows(result.abandoned_credits), schema=_LEFTOVER_SCHEMA
        ),
    }


# --- Excel ---


def export_workbook(path: Path, result: ReconResult) -> Path:
    """Write reconciliation results to a multi-sheet Excel workbook."""
    from openpyxl import Workbook

    path = Path(path)
    wb = Workbook()
    for i, (name, df) in enumerate(result_frames(result).items()):
        ws = wb.active if i == 0 else wb.create_sheet()
        ws.title = _SHEET_TITLES[name]
        ws.append(df.columns)
        for row in df.iter_rows():
            ws.append(list(row))

    wb.save(str(path))
    log.info("Wrote %s", path)
    return path


# --- DuckDB ---


def _write_table(
    conn: duckdb.DuckDBPyConnection, df: pl.DataFrame, table_name: str
) -> None:
    """Write a result frame with amounts cast to DECIMAL(18, 2)."""
    conn.execute(f'DROP TABLE IF EXISTS "{table_name}"')
    conn.register("_df", df)
    try:
        conn.execute(
            f'CREATE TABLE "{table_name}" AS '
            "SELECT * REPLACE (CAST(amount AS DECIMAL(18, 2)) AS amount) FROM _df"
        )
    finally:
        conn.unregister("_df")


def export_database(
    path: Path, result: ReconResult, params: dict[str, Any] | None = None
) -> Path:
    """Persist a reconciliation run as a DuckDB database file.

    Overwrites result tables if the file already exists.
    """
    path = Path(path)
    meta = {
        "created_at_utc": datetime.now(timezone.utc).isoformat(),
        "params": json.dumps(params or {}, default=str),
        "summary": json.dumps(result.summary()),
    }
    conn = duckdb.connect(str(path))
    try:
        for name, df in result_frames(result).items():
            _write_table(conn, df, name)
        conn.execute(f"DROP TABLE IF EXISTS {RUN_META_TABLE}")
        conn.execute(f"CREATE TABLE {RUN_META_TABLE} (key VARCHAR, value VARCHAR)")
        conn.executemany(
            f"INSERT INTO {RUN_META_TABLE} VALUES (?, ?)", list(meta.items())
        )
    finally:
        conn.close()
    log.info("Wrote %s", path)
    return path


def _meta_json(meta: dict[str, str], key: str) -> dict[str, Any]:
    """Parse a JSON blob from run meta."""
    raw = meta.get(key)
    if not raw:
        return {}
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return {}


def read_run_summary(path: Path) -> dict[str, Any]:
    """Read back run metadata and table row counts from a run database.

    Raises ValueError if the file is not a run database.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    try:
        conn = duckdb.connect(str(path), read_only=True)
    except duckdb.Error as e:
        raise ValueError(f"Cannot open {path} as a DuckDB database: {e}") from e
    try:
        tables = {
            r[0]
            for r in conn.execute(
                "SELECT table_name FROM duckdb_tables() WHERE internal = false"
            ).fetchall()
        }
        if RUN_META_TABLE not in tables:
            raise ValueError(f"{path} has no run metadata")
        meta = dict(conn.execute(f"SELECT key, value FROM {RUN_META_TABLE}").fetchall())
        counts = {
            name: conn.execute(f'SELECT COUNT(*) FROM "{name}"').fetchone()[0]
            for name in RESULT_TABLES
            if name in tables
        }
    finally:
        conn.close()
    return {
        "created_at_utc": meta.get("created_at_utc"),
        "params": _meta_json(meta, "params"),
        "summary": _meta_json(meta, "summary"),
        "row_counts": counts,
    }
