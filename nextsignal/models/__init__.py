"""NextSignal data models package.

All component input/output schemas are defined here as typed dataclasses.
Store documents are converted at the edges with from_dict()/to_dict().
"""

from nextsignal.models.analytics import (
    AnalyticsRequest,
    CategorySummary,
    Prediction,
    SentimentRecord,
    SentimentSummary,
    TimePatterns,
)
from nextsignal.models.fusion import (
    EVENT_SOURCE,
    Event,
    FusionResult,
    GroupingMethod,
    ReportGroup,
    SynthesisMethod,
    idempotency_key,
)
from nextsignal.models.pipeline import FusionContext, PhaseRecord
from nextsignal.models.reports import (
    Category,
    Location,
    MediaAnalysisRecord,
    MediaItem,
    MediaRequest,
    Report,
    ReportStatus,
    Severity,
    Urgency,
    max_severity,
    severity_rank,
)

__all__ = [
    # reports
    "Category",
    "Location",
    "MediaAnalysisRecord",
    "MediaItem",
    "MediaRequest",
    "Report",
    "ReportStatus",
    "Severity",
    "Urgency",
    "max_severity",
    "severity_rank",
    # fusion
    "EVENT_SOURCE",
    "Event",
    "FusionResult",
    "GroupingMethod",
    "ReportGroup",
    "SynthesisMethod",
    "idempotency_key",
    # analytics
    "AnalyticsRequest",
    "CategorySummary",
    "Prediction",
    "SentimentRecord",
    "SentimentSummary",
    "TimePatterns",
    # pipeline
    "FusionContext",
    "PhaseRecord",
]
