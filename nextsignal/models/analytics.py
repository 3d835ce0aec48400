"""Prediction and sentiment data models for NextSignal."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass
class CategorySummary:
    """Report/event volume and mean severity for one category."""

    category: str
    report_count: int = 0
    event_count: int = 0
    avg_severity: float = 0.0   # low=1, medium=2, high=3

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "reportCount": self.report_count,
            "eventCount": self.event_count,
            "avgSeverity": self.avg_severity,
        }


@dataclass
class TimePatterns:
    """Hour-of-day and weekday histograms of report timestamps (UTC)."""

    peak_hour: int = 0
    peak_day: int = 0           # 0 = Monday
    hourly_distribution: List[int] = field(default_factory=lambda: [0] * 24)
    daily_distribution: List[int] = field(default_factory=lambda: [0] * 7)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "peakHour": self.peak_hour,
            "peakDay": self.peak_day,
            "hourlyDistribution": list(self.hourly_distribution),
            "dailyDistribution": list(self.daily_distribution),
        }


@dataclass
class Prediction:
    """A forward-looking risk statement for city management."""

    title: str
    description: str
    category: str
    risk: str                   # low | medium | high
    confidence: float
    time_frame: str
    likelihood: float
    impact: str = ""
    preventive_actions: str = ""
    monitoring_points: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "risk": self.risk,
            "confidence": self.confidence,
            "timeFrame": self.time_frame,
            "likelihood": self.likelihood,
            "impact": self.impact,
            "preventiveActions": self.preventive_actions,
            "monitoringPoints": list(self.monitoring_points),
        }


@dataclass
class SentimentRecord:
    """Sentiment score for one piece of citizen text."""

    id: str
    source_id: str
    source_type: str
    score: float                # -1.0 .. 1.0
    magnitude: float            # >= 0.0
    text: str
    timestamp: datetime
    location: Optional[Dict[str, Any]] = None
    original_timestamp: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "sourceId": self.source_id,
            "sourceType": self.source_type,
            "score": self.score,
            "magnitude": self.magnitude,
            "location": self.location,
            "timestamp": self.timestamp,
            "originalTimestamp": self.original_timestamp,
            "text": self.text,
        }


@dataclass
class SentimentSummary:
    """Area mood roll-up returned by the sentiment boundary."""

    sentiment_count: int
    average_score: float
    mood_category: str         # positive | neutral | negative
    records: List[SentimentRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sentimentCount": self.sentiment_count,
            "averageScore": self.average_score,
            "moodCategory": self.mood_category,
        }


@dataclass
class AnalyticsRequest:
    """Parameters of one prediction or sentiment run.

    ``area`` is echoed into stored records. When it carries ``lat``, ``lng``
    and ``radius`` (metres), only records inside that circle are analysed.
    """

    time_window_s: int
    area: Optional[Dict[str, Any]] = None
    analysis_type: str = "pattern_detection"
    sources: List[str] = field(default_factory=lambda: ["reports"])
