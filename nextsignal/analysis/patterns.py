"""Report volume, timing and area statistics for the analytics agents.

Operates on raw store documents so that records with unknown categories or
severities still count. Pure functions — no I/O or external calls.
"""

from __future__ import annotations

from collections import OrderedDict
from typing import Any, Dict, List, Optional, Sequence

from nextsignal.models.analytics import CategorySummary, TimePatterns
from nextsignal.models.reports import Location
from nextsignal.utils.date_utils import parse_timestamp
from nextsignal.utils.geo_utils import distance_meters

_SEVERITY_WEIGHTS = {"low": 1, "medium": 2, "high": 3}
_UNKNOWN_SEVERITY_WEIGHT = 2


def average_severity(docs: Sequence[Dict[str, Any]]) -> float:
    """Mean severity weight (low=1, medium=2, high=3, unknown=2); 0.0 when empty."""
    if not docs:
        return 0.0
    total = sum(
        _SEVERITY_WEIGHTS.get(str(d.get("severity", "")).lower(), _UNKNOWN_SEVERITY_WEIGHT)
        for d in docs
    )
    return total / len(docs)


def summarize_categories(
    reports: Sequence[Dict[str, Any]],
    events: Sequence[Dict[str, Any]],
) -> List[CategorySummary]:
    """Per-category report/event counts and mean report severity.

    Only categories that appear among the reports are summarised, in order of
    first appearance.
    """
    reports_by_category: "OrderedDict[str, List[Dict[str, Any]]]" = OrderedDict()
    for doc in reports:
        reports_by_category.setdefault(str(doc.get("category")), []).append(doc)

    event_counts: Dict[str, int] = {}
    for doc in events:
        key = str(doc.get("category"))
        event_counts[key] = event_counts.get(key, 0) + 1

    return [
        CategorySummary(
            category=category,
            report_count=len(docs),
            event_count=event_counts.get(category, 0),
            avg_severity=average_severity(docs),
        )
        for category, docs in reports_by_category.items()
    ]


def analyze_time_patterns(reports: Sequence[Dict[str, Any]]) -> TimePatterns:
    """Hour-of-day and weekday histograms of report timestamps in UTC.

    Documents without a parseable timestamp are ignored. Ties for the peak go
    to the earliest hour/day.
    """
    hourly = [0] * 24
    daily = [0] * 7
    for doc in reports:
        ts = parse_timestamp(doc.get("timestamp"))
        if ts is None:
            continue
        hourly[ts.hour] += 1
        daily[ts.weekday()] += 1

    return TimePatterns(
        peak_hour=hourly.index(max(hourly)),
        peak_day=daily.index(max(daily)),
        hourly_distribution=hourly,
        daily_distribution=daily,
    )


def filter_by_area(
    docs: Sequence[Dict[str, Any]],
    area: Optional[Dict[str, Any]],
) -> List[Dict[str, Any]]:
    """Keep documents whose location lies inside ``area``.

    ``area`` applies only when it has numeric ``lat``, ``lng`` and ``radius``
    (metres); otherwise every document is returned unchanged.
    """
    if not isinstance(area, dict):
        return list(docs)
    try:
        lat, lng, radius = float(area["lat"]), float(area["lng"]), float(area["radius"])
    except (KeyError, TypeError, ValueError):
        return list(docs)

    kept = []
    for doc in docs:
        location = Location.from_dict(doc.get("location"))
        if location is None:
            continue
        if distance_meters(lat, lng, location.lat, location.lng) <= radius:
            kept.append(doc)
    return kept
