"""NextSignal analysis package.

Pure analytical functions only — no I/O, no API calls, no side effects.
"""

from nextsignal.analysis.grouping import group_by_proximity_and_category
from nextsignal.analysis.patterns import (
    analyze_time_patterns,
    average_severity,
    filter_by_area,
    summarize_categories,
)

__all__ = [
    "group_by_proximity_and_category",
    "analyze_time_patterns",
    "average_severity",
    "filter_by_area",
    "summarize_categories",
]
