"""Matcher — pair credits with debits.

Two greedy passes over in-memory posting lists:

1. **Exact** — credits, oldest first (ties: largest amount first), each
   take the first debit in input order with the same amount inside the
   date window.
2. **Aggregate** — each remaining debit, in input order, sweeps the
   remaining credit pool and takes every credit that still fits under the
   unexplained balance and sits inside the date window. The group is kept
   when the balance ends within ``threshold`` of zero.

Credits taken by a failed aggregate attempt are not returned to the pool
(unless ``refund_failed=True``); they are reported as ``abandoned_credits``.

The date window is directional: ``credit.value_date - debit.value_date``,
truncated to whole days toward zero, must be ``<= days``. A credit dated
before the debit is always inside the window. ``symmetric_window=True``
compares the absolute gap instead.

Usage:

    result = reconcile(credits, debits, days=7, threshold=Decimal("1000"))
    for group in result.match_groups:
        ...
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from typing import Any, Iterable

from .config import check_params
from .posting import Posting

log = logging.getLogger(__name__)

EXACT = "exact"
AGGREGATE = "aggregate"

_ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class MatchGroup:
    """Postings reconciled as one economic event.

    An exact group has one credit of the same amount as the debit. An
    aggregate group has zero or more credits whose total is within the
    threshold of the debit amount.
    """

    kind: str
    debit: Posting
    credits: tuple[Posting, ...] = ()

    @property
    def postings(self) -> tuple[Posting, ...]:
        """Postings in output order: (credit, debit) or (debit, *credits)."""
        if self.kind == EXACT:
            return (self.credits[0], self.debit)
        return (self.debit, *self.credits)

    @property
    def credit_total(self) -> Decimal:
        return sum((c.amount for c in self.credits), Decimal(0))

    @property
    def difference(self) -> Decimal:
        """Debit amount left unexplained by the credits."""
        return self.debit.amount - self.credit_total

    def __len__(self) -> int:
        return 1 + len(self.credits)


@dataclass
class ReconResult:
    """Outcome of one reconciliation call."""

    match_groups: list[MatchGroup] = field(default_factory=list)
    unmatched_credits: list[Posting] = field(default_factory=list)
    unmatched_debits: list[Posting] = field(default_factory=list)
    # Consumed by an aggregate attempt that failed the tolerance check.
    abandoned_credits: list[Posting] = field(default_factory=list)

    @property
    def exact_groups(self) -> list[MatchGroup]:
        return [g for g in self.match_groups if g.kind == EXACT]

    @property
    def aggregate_groups(self) -> list[MatchGroup]:
        return [g for g in self.match_groups if g.kind == AGGREGATE]

    def posting_count(self) -> int:
        """Total postings held across groups and leftover lists."""
        return (
            sum(len(g) for g in self.match_groups)
            + len(self.unmatched_credits)
            + len(self.unmatched_debits)
            + len(self.abandoned_credits)
        )

    def summary(self) -> dict[str, Any]:
        return {
            "exact_matches": len(self.exact_groups),
            "aggregate_matches": len(self.aggregate_groups),
            "unmatched_credits": len(self.unmatched_credits),
            "unmatched_debits": len(self.unmatched_debits),
            "abandoned_credits": len(self.abandoned_credits),
        }


def day_gap(credit: Posting, debit: Posting) -> int:
    """Whole days from debit to credit, truncated toward zero."""
    return int((credit.value_date - debit.value_date) / _ONE_DAY)


def within_window(
    credit: Posting, debit: Posting, days: int, symmetric: bool = False
) -> bool:
    """Return True if the credit is close enough in time to the debit."""
    gap = day_gap(credit, debit)
    if symmetric:
        gap = abs(gap)
    return gap <= days


def exact_order(credits: Iterable[Posting]) -> list[Posting]:
    """Credits in phase-1 order: oldest first, larger amount first on ties.

    The sort is stable, so fully tied credits keep their input order.
    """
    return sorted(credits, key=lambda c: (c.value_date, -c.amount))


def _match_exact(
    credits: list[Posting],
    debits: list[Posting],
    days: int,
    symmetric: bool,
) -> tuple[list[MatchGroup], list[Posting], list[Posting]]:
    """Phase 1. Returns (groups, remaining credits, remaining debits)."""
    groups: list[MatchGroup] = []
    remaining_credits: list[Posting] = []
    remaining_debits = list(debits)

    for c in credits:
        hit = None
        for j, d in enumerate(remaining_debits):
            if c.amount == d.amount and within_window(c, d, days, symmetric):
                hit = j
                break
        if hit is None:
            remaining_credits.append(c)
            continue
        d = remaining_debits.pop(hit)
        groups.append(MatchGroup(EXACT, d, (c,)))
        log.debug("Exact: credit %s <-> debit %s (%s)", c.id, d.id, c.amount)

    return groups, remaining_credits, remaining_debits


def _match_aggregate(
    pool: list[Posting],
    debits: list[Posting],
    days: int,
    threshold: Decimal,
    symmetric: bool,
    refund_failed: bool,
) -> tuple[list[MatchGroup], list[Posting], list[Posting], list[Posting]]:
    """Phase 2. Returns (groups, unmatched credits, unmatched debits, abandoned)."""
    groups: list[MatchGroup] = []
    unmatched_debits: list[Posting] = []
    abandoned: list[Posting] = []

    for d in debits:
        remaining = d.amount
        taken: list[Posting] = []
        kept: list[Posting] = []
        for c in pool:
            if c.amount <= remaining and within_window(c, d, days, symmetric):
                remaining -= c.amount
                taken.append(c)
            else:
                kept.append(c)

        if -threshold <= remaining <= threshold:
            groups.append(MatchGroup(AGGREGATE, d, tuple(taken)))
            pool = kept
            log.debug(
                "Aggregate: debit %s <- %d credit(s), difference %s",
                d.id,
                len(taken),
                remaining,
            )
            continue

        unmatched_debits.append(d)
        if refund_failed:
            # pool is left as it was, so the credits keep their positions
            continue
        pool = kept
        abandoned.extend(taken)
        if taken:
            log.debug(
                "Aggregate failed: debit %s consumed %d credit(s), difference %s",
                d.id,
                len(taken),
                remaining,
            )

    return groups, pool, unmatched_debits, abandoned


def reconcile(
    credits: Iterable[Posting],
    debits: Iterable[Posting],
    days: int,
    threshold: Decimal,
    *,
    symmetric_window: bool = False,
    refund_failed: bool = False,
) -> ReconResult:
    """Reconcile credit postings against debit postings.

    Args:
        credits: Credit postings, any order (phase 1 sorts them).
        debits: Debit postings in input order; the order decides which debit
            wins when several are eligible.
        days: Date window size, >= 0.
        threshold: Largest unexplained difference accepted for an aggregate
            group, >= 0.
        symmetric_window: Compare the absolute day gap instead of the
            directional one.
        refund_failed: Return credits taken by a failed aggregate attempt to
            the pool instead of abandoning them.

    Raises ParameterError for negative or malformed days/threshold.
    Inputs are never mutated.
    """
    days, threshold = check_params(days, threshold)
    credits = list(credits)
    debits = list(debits)

    exact, pool, open_debits = _match_exact(
        exact_order(credits), debits, days, symmetric_window
    )
    aggregate, unmatched_credits, unmatched_debits, abandoned = _match_aggregate(
        pool, open_debits, days, threshold, symmetric_window, refund_failed
    )

    result = ReconResult(
        match_groups=exact + aggregate,
        unmatched_credits=unmatched_credits,
        unmatched_debits=unmatched_debits,
        abandoned_credits=abandoned,
    )
    log.info(
        "Reconciled %d credit(s) against %d debit(s): "
        "%d exact, %d aggregate, %d unmatched credit(s), "
        "%d unmatched debit(s), %d abandoned credit(s)",
        len(credits),
        len(debits),
        len(exact),
        len(aggregate),
        len(unmatched_credits),
        len(unmatched_debits),
        len(abandoned),
    )
    return result
