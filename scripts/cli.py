"""CLI entry point for ledger reconciliation.

Usage:
    # Reconcile two headerless CSV extracts (id, value date, amount)
    recon run -c credits.csv -d debits.csv --days 7 -t 1000

    # Also keep the run as a workbook and a DuckDB database
    recon run -c credits.csv -d debits.csv --xlsx recon.xlsx --db recon.db

    # Split a bank-statement workbook into credits.csv / debits.csv
    recon clean statement.xlsx -o data/

    # Inspect a stored run
    recon show recon.db
"""

import logging
import sys
from dataclasses import replace
from pathlib import Path

import click
from dotenv import find_dotenv, load_dotenv

# Load .env by walking upward from the CWD, so RECON_* defaults apply.
_dotenv_path = find_dotenv(usecwd=True)
if _dotenv_path:
    load_dotenv(_dotenv_path)

from recon.config import ParameterError, load_settings, parse_days, parse_threshold
from recon.export import (
    export_database,
    export_workbook,
    read_run_summary,
    write_outputs,
)
from recon.ledger import load_ledger
from recon.matcher import reconcile
from recon.posting import CREDIT, DEBIT
from recon.report import build_report
from recon.statement import DEFAULT_LAYOUT, clean_statement, write_rows_csv

log = logging.getLogger(__name__)


def _configure_logging(quiet: bool) -> None:
    level = logging.WARNING if quiet else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )


def _confirm_overwrite(path: Path | None, force: bool) -> None:
    if path is not None and path.exists() and not force:
        click.confirm(
            f"{path} already exists and will be overwritten. Continue?",
            abort=True,
        )


@click.group()
def main():
    """Recon — reconcile a credit ledger against a debit ledger."""


@main.command()
@click.option(
    "--credits",
    "-c",
    "credits_path",
    type=click.Path(path_type=Path, dir_okay=False),
    required=True,
    help="Credit extract (.csv or .parquet)",
)
@click.option(
    "--debits",
    "-d",
    "debits_path",
    type=click.Path(path_type=Path, dir_okay=False),
    required=True,
    help="Debit extract (.csv or .parquet)",
)
@click.option("--days", default=None, help="Date window in days (default: 7)")
@click.option(
    "--threshold",
    "-t",
    default=None,
    help="Largest unexplained difference for an aggregate match (default: 1000.00)",
)
@click.option(
    "--date-format",
    default=None,
    help="strptime pattern for value dates (default: %m/%d/%Y)",
)
@click.option(
    "--output-dir",
    "-o",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Directory for the CSV outputs (default: current directory)",
)
@click.option(
    "--xlsx",
    "xlsx_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Also write an Excel workbook",
)
@click.option(
    "--db",
    "db_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Also write a DuckDB run database",
)
@click.option(
    "--symmetric-window",
    is_flag=True,
    help="Limit credits dated before the debit too (absolute day gap)",
)
@click.option(
    "--refund-failed",
    is_flag=True,
    help="Return credits of a failed aggregate attempt to the pool",
)
@click.option("--no-csv", is_flag=True, help="Do not write the CSV outputs")
@click.option("--quiet", "-q", is_flag=True, help="Suppress progress output")
@click.option(
    "--force",
    "-f",
    is_flag=True,
    help="Overwrite workbook/database files without prompting",
)
def run(
    credits_path: Path,
    debits_path: Path,
    days: str | None,
    threshold: str | None,
    date_format: str | None,
    output_dir: Path | None,
    xlsx_path: Path | None,
    db_path: Path | None,
    symmetric_window: bool,
    refund_failed: bool,
    no_csv: bool,
    quiet: bool,
    force: bool,
):
    """Reconcile credits against debits and print the report."""
    _configure_logging(quiet)

    try:
        settings = load_settings()
        if days is not None:
            settings = replace(settings, days=parse_days(days))
        if threshold is not None:
            settings = replace(settings, threshold=parse_threshold(threshold))
    except ParameterError as e:
        raise click.ClickException(str(e))
    if date_format:
        settings = replace(settings, date_format=date_format)

    _confirm_overwrite(xlsx_path, force)
    _confirm_overwrite(db_path, force)

    try:
        credits = load_ledger(credits_path, CREDIT, settings.date_format)
        debits = load_ledger(debits_path, DEBIT, settings.date_format)
    except (OSError, ValueError) as e:
        raise click.ClickException(str(e))

    log.info("Days: %d", settings.days)
    log.info("Threshold: %s", settings.threshold)

    result = reconcile(
        credits,
        debits,
        settings.days,
        settings.threshold,
        symmetric_window=symmetric_window,
        refund_failed=refund_failed,
    )

    click.echo(
        build_report(
            result.match_groups, result.unmatched_credits, result.unmatched_debits
        )
    )

    if not no_csv:
        write_outputs(output_dir or Path.cwd(), result)
    if xlsx_path is not None:
        export_workbook(xlsx_path, result)
    if db_path is not None:
        if db_path.exists():
            db_path.unlink()
        export_database(
            db_path,
            result,
            {
                "credits": str(credits_path),
                "debits": str(debits_path),
                "days": settings.days,
                "threshold": str(settings.threshold),
                "date_format": settings.date_format,
                "symmetric_window": symmetric_window,
                "refund_failed": refund_failed,
            },
        )


@main.command()
@click.argument("statement", type=click.Path(path_type=Path, dir_okay=False))
@click.option(
    "--output-dir",
    "-o",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Directory for credits.csv and debits.csv (default: current directory)",
)
@click.option(
    "--header-rows",
    default=DEFAULT_LAYOUT.header_rows,
    type=click.IntRange(min=0),
    help=f"Banner rows above the data (default: {DEFAULT_LAYOUT.header_rows})",
)
@click.option(
    "--footer-rows",
    default=DEFAULT_LAYOUT.footer_rows,
    type=click.IntRange(min=0),
    help=f"Footer rows below the data (default: {DEFAULT_LAYOUT.footer_rows})",
)
def clean(
    statement: Path, output_dir: Path | None, header_rows: int, footer_rows: int
):
    """Split a statement workbook into credits.csv and debits.csv."""
    _configure_logging(quiet=False)

    layout = replace(DEFAULT_LAYOUT, header_rows=header_rows, footer_rows=footer_rows)
    try:
        sides = clean_statement(statement, layout)
    except (OSError, ValueError) as e:
        raise click.ClickException(str(e))

    out_dir = output_dir or Path.cwd()
    out_dir.mkdir(parents=True, exist_ok=True)
    for side, filename in ((CREDIT, "credits.csv"), (DEBIT, "debits.csv")):
        path = write_rows_csv(sides[side], out_dir / filename)
        click.echo(f"  wrote  {path}  ({len(sides[side])} rows)")


@main.command()
@click.argument("target", type=click.Path(path_type=Path, dir_okay=False))
def show(target: Path):
    """Show parameters and row counts of a stored run database.

    \b
    Example:
        recon show recon.db
    """
    try:
        info = read_run_summary(target)
    except (OSError, ValueError) as e:
        raise click.ClickException(str(e))

    click.echo(f"Run: {target}\n")
    click.echo(f"Created: {info.get('created_at_utc') or '(unknown)'}")

    params = info["params"]
    if params:
        click.echo("\nParameters:")
        for key in sorted(params):
            click.echo(f"  {key}: {params[key]}")

    summary = info["summary"]
    if summary:
        click.echo("\nSummary:")
        for key, value in summary.items():
            click.echo(f"  {key}: {value}")

    click.echo("\nTables:")
    for name, count in info["row_counts"].items():
        click.echo(f"  {name}: {count} rows")


if __name__ == "__main__":
    main()
