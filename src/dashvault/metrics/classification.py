"""Bug classification aggregation.

Pure functions over already-fetched work items. Nothing here performs
I/O; the data-access layer supplies the items.
"""

from __future__ import annotations

import re
from collections import Counter
from typing import Any, Iterable

from dashvault.services.tracker.models import WorkItem
from dashvault.shared.constants import Environment

_ENVIRONMENT_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    (Environment.DEPLOY, re.compile(r"deploy", re.IGNORECASE)),
    (Environment.PROD, re.compile(r"\bprod", re.IGNORECASE)),
    (Environment.SIT, re.compile(r"\bsit\b", re.IGNORECASE)),
    (Environment.UAT, re.compile(r"\buat\b", re.IGNORECASE)),
)


def extract_environment(bug_type: str | None) -> str:
    """Map a free-text bug type to an environment bucket.

    Example:
        >>> extract_environment("Production Issue")
        'Prod'
        >>> extract_environment(None)
        'Unclassified'
    """
    if not bug_type or not bug_type.strip():
        return Environment.UNCLASSIFIED
    for environment, pattern in _ENVIRONMENT_PATTERNS:
        if pattern.search(bug_type):
            return environment
    return Environment.OTHER


def percentage(part: int, total: int) -> float:
    """``part`` as a percentage of ``total``, rounded to one decimal."""
    if total <= 0:
        return 0.0
    return round(part / total * 100, 1)


def classification_rate(classified: int, total: int) -> float:
    """Share of classified bugs as a percentage rounded to one decimal."""
    return percentage(max(0, classified), total)


def _bug_summary(item: WorkItem) -> dict[str, Any]:
    return {
        "id": item.id,
        "title": item.title,
        "state": item.state,
        "severity": item.severity,
        "assignee": item.assignee,
        "bug_type": item.bug_type,
    }


def summarize_bugs(
    items: Iterable[WorkItem],
    *,
    include_bugs: bool = True,
    environment: str | None = None,
) -> dict[str, Any]:
    """Aggregate bugs into classification statistics.

    Args:
        items: Work items; non-bugs are ignored
        include_bugs: Attach per-bug summaries to each environment bucket
        environment: Keep only the bugs classified into this environment

    Returns:
        ``total_bugs``, ``unclassified``, ``bug_types`` and
        ``environment_breakdown`` (``{env: {"count", "bugs"}}``), plus
        ``classified`` when per-bug detail was included.
    """
    bugs = [item for item in items if item.is_bug]
    if environment is not None:
        bugs = [bug for bug in bugs if extract_environment(bug.bug_type) == environment]
    bug_types: Counter[str] = Counter()
    breakdown: dict[str, dict[str, Any]] = {}

    for bug in bugs:
        bucket_name = extract_environment(bug.bug_type)
        bucket = breakdown.setdefault(bucket_name, {"count": 0, "bugs": []})
        bucket["count"] += 1
        if include_bugs:
            bucket["bugs"].append(_bug_summary(bug))
        if bug.bug_type:
            bug_types[bug.bug_type] += 1

    unclassified = breakdown.get(Environment.UNCLASSIFIED, {}).get("count", 0)
    summary: dict[str, Any] = {
        "total_bugs": len(bugs),
        "unclassified": unclassified,
        "bug_types": dict(sorted(bug_types.items())),
        "environment_breakdown": breakdown,
    }
    if include_bugs:
        summary["classified"] = len(bugs) - unclassified
    return summary
