"""PredictionAgent — forward-looking risk statements from recent activity.

Summarises recent reports and events per category and by time of day, asks
the LLM for predictions, and falls back to a single volume-based prediction
when the model cannot be used. Every run is recorded in the ``analytics``
collection.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from config.settings import PipelineConfig
from nextsignal.agents.base import BaseAgent
from nextsignal.analysis.patterns import (
    analyze_time_patterns,
    filter_by_area,
    summarize_categories,
)
from nextsignal.clients.llm_client import LLMClient, clamp_confidence
from nextsignal.clients.structured_call import structured_llm_call
from nextsignal.errors import SchemaError
from nextsignal.io.persistence import to_jsonable
from nextsignal.io.store import Store
from nextsignal.models.analytics import (
    AnalyticsRequest,
    CategorySummary,
    Prediction,
    TimePatterns,
)
from nextsignal.utils.date_utils import cutoff_time, utc_now

logger = logging.getLogger(__name__)

ANALYTICS_COLLECTION = "analytics"

_RISK_LEVELS = ("low", "medium", "high")

_SYSTEM_PROMPT = (
    "You are an urban analytics assistant. You turn recent city incident "
    "statistics into concrete, actionable predictions for city management."
)

_PROMPT_TEMPLATE = """Analyze these city data patterns and generate predictions for urban management.

Data Summary:
- Total Reports: {report_count}
- Total Events: {event_count}
- Category Breakdown: {categories}
- Time Patterns (UTC; peakDay 0 = Monday): {patterns}

Generate predictions in JSON format:
[
  {{
    "title": "Prediction title",
    "description": "Detailed prediction description",
    "category": "affected category",
    "risk": "low|medium|high",
    "confidence": 0.85,
    "timeFrame": "next 24 hours|next week|next month",
    "likelihood": 0.75,
    "impact": "description of potential impact",
    "preventiveActions": "recommended preventive measures",
    "monitoringPoints": ["key indicators to watch"]
  }}
]

Focus on actionable insights for city management."""


def build_prediction_prompt(
    report_count: int,
    event_count: int,
    summary: Sequence[CategorySummary],
    patterns: TimePatterns,
) -> str:
    return _PROMPT_TEMPLATE.format(
        report_count=report_count,
        event_count=event_count,
        categories=json.dumps([s.to_dict() for s in summary]),
        patterns=json.dumps(patterns.to_dict()),
    )


def fallback_predictions(
    summary: Sequence[CategorySummary],
    min_reports: int = 5,
    confidence: float = 0.7,
    likelihood: float = 0.6,
) -> List[Prediction]:
    """Volume-based prediction for the busiest category.

    Emits one prediction when the category with the most reports has more
    than ``min_reports`` of them; otherwise nothing.
    """
    if not summary:
        return []
    busiest = summary[0]
    for item in summary[1:]:
        if item.report_count > busiest.report_count:
            busiest = item
    if busiest.report_count <= min_reports:
        return []
    return [
        Prediction(
            title=f"Increased {busiest.category} incidents expected",
            description=(
                f"Based on recent patterns, expect continued {busiest.category} issues"
            ),
            category=busiest.category,
            risk="high" if busiest.avg_severity > 2 else "medium",
            confidence=confidence,
            time_frame="next week",
            likelihood=likelihood,
            impact="Moderate disruption possible",
            preventive_actions="Increase monitoring and response capacity",
            monitoring_points=["Report frequency", "Severity trends"],
        )
    ]


def _validate_predictions(parsed: Any, default_confidence: float) -> List[Prediction]:
    if isinstance(parsed, dict) and isinstance(parsed.get("predictions"), list):
        parsed = parsed["predictions"]
    if not isinstance(parsed, list):
        raise SchemaError(f"expected a JSON array of predictions, got {type(parsed).__name__}")

    predictions: List[Prediction] = []
    for index, item in enumerate(parsed):
        if not isinstance(item, dict):
            raise SchemaError(f"prediction {index} is not an object")
        title = item.get("title")
        if not isinstance(title, str) or not title.strip():
            raise SchemaError(f"prediction {index} has no title")
        risk = str(item.get("risk", "")).strip().lower()
        points = item.get("monitoringPoints")
        predictions.append(
            Prediction(
                title=title.strip(),
                description=str(item.get("description") or ""),
                category=str(item.get("category") or ""),
                risk=risk if risk in _RISK_LEVELS else "medium",
                confidence=clamp_confidence(item.get("confidence"), default_confidence),
                time_frame=str(item.get("timeFrame") or "next week"),
                likelihood=clamp_confidence(item.get("likelihood"), default_confidence),
                impact=str(item.get("impact") or ""),
                preventive_actions=str(item.get("preventiveActions") or ""),
                monitoring_points=(
                    [str(p) for p in points] if isinstance(points, list) else []
                ),
            )
        )
    return predictions


class PredictionAgent(BaseAgent):
    """Generate predictions for an area from its recent reports and events.

    Args:
        config: Pipeline configuration (window, caps, fallback constants).
        store: Document store holding ``reports`` and ``events``.
        llm_client: LLM client; built from config when omitted.
    """

    name = "PredictionAgent"
    version = "1.0.0"

    def __init__(
        self,
        config: PipelineConfig,
        store: Store,
        llm_client: Optional[LLMClient] = None,
    ) -> None:
        self.config = config
        self.store = store
        self.llm = llm_client if llm_client is not None else config.llm_client()

    def _recent(self, collection: str, window_s: int, limit: int) -> List[Dict[str, Any]]:
        return self.store.query(
            collection,
            filters=[("timestamp", ">=", cutoff_time(window_s))],
            order_by="timestamp",
            descending=True,
            limit=limit,
        )

    def run(self, context: AnalyticsRequest) -> List[Prediction]:
        """Produce and record predictions.

        Raises:
            StoreError: If the store cannot be read or the analytics record
                cannot be written.
        """
        cfg = self.config
        window = context.time_window_s
        reports = filter_by_area(
            self._recent("reports", window, cfg.prediction_max_reports), context.area
        )
        events = filter_by_area(
            self._recent("events", window, cfg.prediction_max_events), context.area
        )

        summary = summarize_categories(reports, events)
        patterns = analyze_time_patterns(reports)

        outcome = structured_llm_call(
            self.llm,
            _SYSTEM_PROMPT,
            build_prediction_prompt(len(reports), len(events), summary, patterns),
            validate=lambda parsed: _validate_predictions(parsed, cfg.default_llm_confidence),
            fallback=lambda failure, raw: fallback_predictions(
                summary,
                min_reports=cfg.prediction_fallback_min_reports,
                confidence=cfg.prediction_fallback_confidence,
                likelihood=cfg.prediction_fallback_likelihood,
            ),
            max_tokens=cfg.llm_max_tokens,
            temperature=cfg.llm_temperature,
            label="PredictionAgent",
        )
        predictions = outcome.value

        self.store.insert(
            ANALYTICS_COLLECTION,
            {
                "timestamp": utc_now(),
                "analysisType": context.analysis_type,
                "dataPoints": len(reports) + len(events),
                "predictions": [p.to_dict() for p in predictions],
                "categorySummary": [s.to_dict() for s in summary],
                "timePatterns": patterns.to_dict(),
                "area": to_jsonable(context.area),
                "timeWindow": window,
                "generatedBy": "ai_analytics",
                "usedFallback": outcome.used_fallback,
            },
        )
        logger.info(
            "PredictionAgent: %d reports, %d events -> %d predictions (fallback=%s)",
            len(reports), len(events), len(predictions), outcome.used_fallback,
        )
        return predictions
