# File: civicvoice/services/aggregation.py
"""Chart-ready read models: category distribution, daily counts, top voted."""

from collections import Counter
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, List, Mapping, Optional, Tuple

from civicvoice.models.issue import IssueCategory, IssueStatus

RANGE_DAYS = {
    "7d": 7, "7days": 7,
    "15d": 15,
    "30d": 30, "30days": 30,
    "90d": 90, "90days": 90,
}


def range_to_dates(range_key: str, today: date) -> Tuple[Optional[date], date]:
    """
    Inclusive (start, end) calendar range for a range key. ``start`` is None
    for "all"; unknown keys fall back to seven days.
    """
    if range_key == "today":
        return today, today
    if range_key == "year":
        return today.replace(month=1, day=1), today
    if range_key in ("all", "all_time"):
        return None, today
    days = RANGE_DAYS.get(range_key, 7)
    return today - timedelta(days=days - 1), today


def utc_day(value) -> date:
    """Calendar day in UTC. Naive datetimes are taken as UTC already."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value


def count_by_category(issues: Iterable) -> Counter:
    return Counter(i.category for i in issues)


def category_distribution(counts: Mapping) -> List[dict]:
    """One row per category in declaration order, zero-filled."""
    return [{"category": c.value, "count": int(counts.get(c, 0))} for c in IssueCategory]


def temporal_series(issues: Iterable, start: date, end: date) -> List[dict]:
    if start > end:
        return []
    per_day = Counter()
    for issue in issues:
        day = utc_day(issue.created_at)
        if start <= day <= end:
            per_day[day] += 1
    series = []
    day = start
    while day <= end:
        series.append({"date": day.isoformat(), "count": per_day.get(day, 0)})
        day += timedelta(days=1)
    return series


def top_voted_key(issue):
    # votes desc, newest first on ties, id as the final tie-break
    return (-issue.votes, -issue.created_at.timestamp(), issue.id)


def top_voted(issues: Iterable, limit: Optional[int] = None) -> list:
    ranked = sorted(issues, key=top_voted_key)
    return ranked if limit is None else ranked[:limit]


def status_summary(issues: Iterable) -> dict:
    counts = Counter(i.status for i in issues)
    summary = {s.value: counts.get(s, 0) for s in IssueStatus}
    summary["total"] = sum(counts.values())
    return summary


def dashboard(
    issues: Iterable,
    start: Optional[date],
    end: date,
    selected_category: Optional[IssueCategory] = None,
    limit: int = 5,
) -> dict:
    """
    Analytics dashboard payload. The category chart always shows every
    category; the daily series and ranking follow the drill-down selection.
    """
    issues = list(issues)
    in_range = [i for i in issues if start is None or utc_day(i.created_at) >= start]
    drilled = in_range
    if selected_category is not None:
        drilled = [i for i in in_range if i.category == selected_category]
    if start is None:
        days = [utc_day(i.created_at) for i in drilled]
        start = min(days) if days else end
    return {
        "selected_category": selected_category.value if selected_category else None,
        "categories": category_distribution(count_by_category(in_range)),
        "temporal": temporal_series(drilled, start, end),
        "top_voted": top_voted(drilled, limit),
        "summary": status_summary(drilled),
    }
