"""Fusion data models for NextSignal.

Defines the transient report groups produced by the grouping step, the
synthesized Event records persisted by the fusion run, and the run result.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from nextsignal.models.reports import (
    Category,
    Location,
    Report,
    Severity,
    Urgency,
    max_severity,
)

# Every event carries this source tag, whichever synthesis path produced it
EVENT_SOURCE = "ai_synthesis"


class SynthesisMethod:
    """Which synthesis path produced an Event."""

    LLM = "llm"
    FALLBACK_PARSE = "fallback_parse"       # model answered, answer unusable
    FALLBACK_SERVICE = "fallback_service"   # model call failed or timed out


class GroupingMethod:
    """Which grouping path produced a set of ReportGroups."""

    LLM = "llm"
    FALLBACK = "proximity_fallback"


def idempotency_key(report_ids: Iterable[str]) -> str:
    """SHA-256 hex digest of the sorted, comma-joined report ids."""
    joined = ",".join(sorted(report_ids))
    return hashlib.sha256(joined.encode("utf-8")).hexdigest()


@dataclass
class ReportGroup:
    """A set of related reports from one candidate set; never persisted on its own."""

    group_id: str
    reports: List[Report]
    primary_category: Category
    common_location: Location

    def __post_init__(self) -> None:
        if not self.reports:
            raise ValueError(f"ReportGroup {self.group_id} must contain at least one report")

    @property
    def report_ids(self) -> List[str]:
        return [r.id for r in self.reports]

    @property
    def max_severity(self) -> Severity:
        return max_severity(r.severity for r in self.reports)


@dataclass
class Event:
    """A synthesized summary of one ReportGroup.

    Created exactly once per group per fusion run and never mutated afterwards
    by the pipeline.
    """

    id: str
    title: str
    description: str
    category: Category
    severity: Severity
    location: Location
    report_ids: List[str]
    confidence: float
    urgency: Urgency
    timestamp: datetime
    synthesis_method: str = SynthesisMethod.LLM
    affected_area: str = ""
    recommendations: str = ""
    estimated_impact: str = ""
    action_required: bool = True
    is_active: bool = True
    source: str = EVENT_SOURCE

    @property
    def report_count(self) -> int:
        return len(self.report_ids)

    @property
    def idempotency_key(self) -> str:
        return idempotency_key(self.report_ids)

    def to_dict(self) -> Dict[str, Any]:
        """Store/wire representation with camelCase keys."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "category": self.category.value,
            "severity": self.severity.value,
            "location": self.location.to_dict(),
            "reportCount": self.report_count,
            "reportIds": list(self.report_ids),
            "confidence": self.confidence,
            "urgency": self.urgency.value,
            "affectedArea": self.affected_area,
            "recommendations": self.recommendations,
            "estimatedImpact": self.estimated_impact,
            "actionRequired": self.action_required,
            "isActive": self.is_active,
            "timestamp": self.timestamp,
            "source": self.source,
            "aiGenerated": True,
            "synthesisMethod": self.synthesis_method,
            "idempotencyKey": self.idempotency_key,
        }


@dataclass
class FusionResult:
    """Outcome of one fusion run."""

    run_id: str
    events: List[Event] = field(default_factory=list)
    report_count: int = 0      # candidates inside the radius
    fetched_count: int = 0     # reports returned by the time-window query
    groups: List[ReportGroup] = field(default_factory=list)
    grouping_method: Optional[str] = None
    cancelled: bool = False
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "events": [e.to_dict() for e in self.events],
            "reportCount": self.report_count,
        }
