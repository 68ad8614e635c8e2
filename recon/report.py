"""Plain-text reconciliation report.

The layout is parsed by downstream tools, so headings, field order and the
two-decimal amounts are fixed:

    Matched Transactions:
    Credit: C1 (100.00) - Debit: D1 (100.00)
    Credits: C2, C3 - Debit: D2 (Difference: 0.00)

    Unmatched Credit Transactions:
    None

    Unmatched Debit Transactions:
    D3, 42.00
"""

from decimal import Decimal
from typing import Iterable

from .matcher import EXACT, MatchGroup
from .posting import Posting


MATCHED_HEADING = "Matched Transactions:"
UNMATCHED_CREDITS_HEADING = "Unmatched Credit Transactions:"
UNMATCHED_DEBITS_HEADING = "Unmatched Debit Transactions:"
EMPTY_SECTION = "None"


def format_amount(value: Decimal) -> str:
    return f"{value:.2f}"


def render_group(group: MatchGroup) -> str:
    """One report line for a match group."""
    if group.kind == EXACT:
        c = group.credits[0]
        d = group.debit
        return (
            f"Credit: {c.id} ({format_amount(c.amount)}) - "
            f"Debit: {d.id} ({format_amount(d.amount)})"
        )
    credit_ids = ", ".join(c.id for c in group.credits)
    return (
        f"Credits: {credit_ids} - Debit: {group.debit.id} "
        f"(Difference: {format_amount(group.difference)})"
    )


def render_leftovers(postings: Iterable[Posting]) -> list[str]:
    lines = [f"{p.id}, {format_amount(p.amount)}" for p in postings]
    return lines or [EMPTY_SECTION]


def build_report(
    match_groups: Iterable[MatchGroup],
    unmatched_credits: Iterable[Posting],
    unmatched_debits: Iterable[Posting],
) -> str:
    """Render match groups and leftovers as the three-section text report."""
    lines = [MATCHED_HEADING]
    lines.extend(render_group(g) for g in match_groups)
    lines.append("")
    lines.append(UNMATCHED_CREDITS_HEADING)
    lines.extend(render_leftovers(unmatched_credits))
    lines.append("")
    lines.append(UNMATCHED_DEBITS_HEADING)
    lines.extend(render_leftovers(unmatched_debits))
    return "\n".join(lines) + "\n"
