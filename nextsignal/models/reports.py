"""Report data models for NextSignal.

Defines the citizen report schema, its enumerations, and the severity ordinal
used for every max/monotonicity comparison in the pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from nextsignal.utils.date_utils import parse_timestamp


class Category(str, Enum):
    """Report and event categories."""

    TRAFFIC = "traffic"
    SAFETY = "safety"
    INFRASTRUCTURE = "infrastructure"
    ENVIRONMENT = "environment"
    EVENTS = "events"
    EMERGENCY = "emergency"

    @classmethod
    def parse(cls, value: Any) -> Optional["Category"]:
        """Return the matching Category, or None if value is not a known category."""
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


class Severity(str, Enum):
    """Severity levels, totally ordered low < medium < high."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def parse(cls, value: Any) -> Optional["Severity"]:
        """Return the matching Severity, or None if value is not a known level."""
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


class Urgency(str, Enum):
    """How soon an event needs attention."""

    IMMEDIATE = "immediate"
    HOURS = "hours"
    DAYS = "days"
    ROUTINE = "routine"

    @classmethod
    def parse(cls, value: Any) -> Optional["Urgency"]:
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


class ReportStatus(str, Enum):
    """Moderation state; mutated only by the external moderation workflow."""

    PENDING = "pending"
    VERIFIED = "verified"
    DISMISSED = "dismissed"


_SEVERITY_RANK: Dict[Severity, int] = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
}


def severity_rank(severity: Severity) -> int:
    """Ordinal of a severity level (low=1, medium=2, high=3)."""
    return _SEVERITY_RANK[severity]


def max_severity(severities: Iterable[Severity]) -> Severity:
    """Return the highest severity in the iterable (LOW for an empty iterable)."""
    highest = Severity.LOW
    for severity in severities:
        if severity.rank > highest.rank:
            highest = severity
    return highest


@dataclass(frozen=True)
class Location:
    """A WGS84 point in decimal degrees."""

    lat: float
    lng: float
    address: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> Optional["Location"]:
        """Parse a ``{"lat", "lng"}`` mapping; returns None if either value is unusable."""
        if not isinstance(data, dict):
            return None
        try:
            lat = float(data["lat"])
            lng = float(data["lng"])
        except (KeyError, TypeError, ValueError):
            return None
        if not (-90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0):
            return None
        return cls(lat=lat, lng=lng, address=str(data.get("address") or ""))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"lat": self.lat, "lng": self.lng}
        if self.address:
            data["address"] = self.address
        return data


@dataclass
class MediaItem:
    """One uploaded media attachment awaiting analysis."""

    url: str
    media_type: str   # MIME type, e.g. "image/jpeg" or "video/mp4"

    @property
    def is_image(self) -> bool:
        return self.media_type.lower().startswith("image/")

    @property
    def is_video(self) -> bool:
        return self.media_type.lower().startswith("video/")


@dataclass
class MediaAnalysisRecord:
    """Result of analysing one media item, paired with its source URL and type.

    ``analysis`` holds either the structured finding or an ``{"error": ...}``
    placeholder.
    """

    media_url: str
    media_type: str
    analysis: Dict[str, Any]
    timestamp: datetime

    @property
    def failed(self) -> bool:
        return "error" in self.analysis

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mediaUrl": self.media_url,
            "mediaType": self.media_type,
            "analysis": dict(self.analysis),
            "timestamp": self.timestamp,
        }


@dataclass
class Report:
    """A single citizen-submitted observation."""

    id: str
    category: Category
    severity: Severity
    title: str
    description: str
    location: Location
    timestamp: datetime
    status: ReportStatus = ReportStatus.PENDING
    media_analysis: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, report_id: str, data: Dict[str, Any]) -> "Report":
        """Build a Report from a store document.

        Unknown categories fall back to infrastructure and unknown severities to
        medium, mirroring how the submission form defaults them.

        Raises:
            ValueError: If the document has no usable location or timestamp.
        """
        location = Location.from_dict(data.get("location"))
        if location is None:
            raise ValueError(f"report {report_id} has no usable location")
        timestamp = parse_timestamp(data.get("timestamp"))
        if timestamp is None:
            raise ValueError(f"report {report_id} has no usable timestamp")
        status = data.get("status", ReportStatus.PENDING.value)
        try:
            parsed_status = ReportStatus(status)
        except ValueError:
            parsed_status = ReportStatus.PENDING
        return cls(
            id=str(report_id),
            category=Category.parse(data.get("category")) or Category.INFRASTRUCTURE,
            severity=Severity.parse(data.get("severity")) or Severity.MEDIUM,
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            location=location,
            timestamp=timestamp,
            status=parsed_status,
            media_analysis=list(data.get("mediaAnalysis") or []),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category.value,
            "severity": self.severity.value,
            "title": self.title,
            "description": self.description,
            "location": self.location.to_dict(),
            "timestamp": self.timestamp,
            "status": self.status.value,
            "mediaAnalysis": list(self.media_analysis),
        }


@dataclass
class MediaRequest:
    """Media items attached to one report, queued for analysis."""

    report_id: str
    items: List[MediaItem] = field(default_factory=list)
