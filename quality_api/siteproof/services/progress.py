"""
Progress statistics for ITP inspections.

Pure functions: no I/O, no clock, no randomness. Statuses are the lower-case
display values ``passed`` / ``failed`` / ``na`` / ``pending``.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

from siteproof.schemas.inspection import ProgressStats

VERDICT_TO_STATUS = {"PASS": "passed", "FAIL": "failed", "N/A": "na"}
STATUSES = ("passed", "failed", "na", "pending")


# PUBLIC_INTERFACE
def status_for(verdict: Optional[str]) -> str:
    """Map a stored verdict to its display status; anything unrecognised is pending."""
    return VERDICT_TO_STATUS.get(verdict or "", "pending")


def _percentage(completed: int, total: int) -> int:
    # round-half-up in integers so 2/3 -> 67 and 1/8 -> 13
    if total == 0:
        return 0
    return (200 * completed + total) // (2 * total)


# PUBLIC_INTERFACE
def summarize(statuses: Iterable[str]) -> ProgressStats:
    """
    Count already-classified statuses.

    Parameters:
        statuses: one status per item
    Returns:
        ProgressStats with completed = passed + failed + na
    """
    counts = dict.fromkeys(STATUSES, 0)
    for status in statuses:
        counts[status if status in counts else "pending"] += 1
    total = sum(counts.values())
    completed = counts["passed"] + counts["failed"] + counts["na"]
    return ProgressStats(
        total=total,
        completed=completed,
        passed=counts["passed"],
        failed=counts["failed"],
        na=counts["na"],
        pending=counts["pending"],
        percentage=_percentage(completed, total),
    )


# PUBLIC_INTERFACE
def compute_stats(items: Iterable[Any], records: Iterable[Any]) -> ProgressStats:
    """
    Compute progress for ``items`` from their conformance ``records``.

    Items and records may be ORM rows or read models; only ``id`` / ``item_id`` /
    ``result_pass_fail`` are used. Records whose item is not in ``items`` are
    ignored, and an item without a record or verdict counts as pending.
    """
    verdicts = {record.item_id: record.result_pass_fail for record in records}
    return summarize(status_for(verdicts.get(item.id)) for item in items)
