"""recon — credit/debit ledger reconciliation."""

from .posting import CREDIT, DEBIT, Posting
from .config import ParameterError, Settings, check_params, load_settings
from .matcher import (
    AGGREGATE,
    EXACT,
    MatchGroup,
    ReconResult,
    reconcile,
    within_window,
)
from .report import build_report
from .ledger import load_ledger, postings_from_frame, postings_from_rows
from .statement import StatementLayout, clean_statement
from .export import (
    export_database,
    export_workbook,
    result_frames,
    write_groups_csv,
    write_outputs,
)

__all__ = [
    # Data model
    "CREDIT",
    "DEBIT",
    "Posting",
    # Settings
    "ParameterError",
    "Settings",
    "check_params",
    "load_settings",
    # Matcher
    "AGGREGATE",
    "EXACT",
    "MatchGroup",
    "ReconResult",
    "reconcile",
    "within_window",
    # Report
    "build_report",
    # Loading
    "load_ledger",
    "postings_from_frame",
    "postings_from_rows",
    # Statement cleaning
    "StatementLayout",
    "clean_statement",
    # Export
    "export_database",
    "export_workbook",
    "result_frames",
    "write_groups_csv",
    "write_outputs",
]
