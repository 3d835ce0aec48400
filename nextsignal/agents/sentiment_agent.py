"""SentimentAgent — area mood from recent citizen text."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional, Tuple

from config.settings import PipelineConfig
from nextsignal.agents.base import BaseAgent
from nextsignal.analysis.patterns import filter_by_area
from nextsignal.clients.llm_client import LLMClient
from nextsignal.clients.structured_call import structured_llm_call
from nextsignal.errors import SchemaError
from nextsignal.io.store import Store
from nextsignal.models.analytics import AnalyticsRequest, SentimentRecord, SentimentSummary
from nextsignal.models.reports import Location
from nextsignal.utils.date_utils import cutoff_time, parse_timestamp, utc_now

logger = logging.getLogger(__name__)

SENTIMENT_COLLECTION = "sentiment"

SUPPORTED_SOURCES = ("reports",)

_SYSTEM_PROMPT = (
    "You score the sentiment of short citizen messages about their city. "
    "score ranges from -1.0 (very negative) to 1.0 (very positive); magnitude "
    "is the overall emotional strength, 0.0 or greater."
)

_PROMPT_TEMPLATE = """Score the sentiment of this citizen report.

Text:
{text}

Respond with JSON: {{"score": -0.4, "magnitude": 0.8}}"""


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value == value


def _validate_score(parsed: Any) -> Tuple[float, float]:
    if not isinstance(parsed, dict):
        raise SchemaError(f"expected a JSON object, got {type(parsed).__name__}")
    score = parsed.get("score")
    if not _is_number(score):
        raise SchemaError(f"score must be a number, got {score!r}")
    magnitude = parsed.get("magnitude", 0.0)
    if not _is_number(magnitude):
        magnitude = 0.0
    return min(max(float(score), -1.0), 1.0), max(float(magnitude), 0.0)


def mood_category(average: float, positive: float = 0.1, negative: float = -0.1) -> str:
    """Map an average score to "positive", "negative" or "neutral"."""
    if average > positive:
        return "positive"
    if average < negative:
        return "negative"
    return "neutral"


class SentimentAgent(BaseAgent):
    """Score recent reports and summarise the area mood.

    Items whose scoring fails are skipped, not defaulted.

    Args:
        config: Pipeline configuration.
        store: Document store holding ``reports``; records go to ``sentiment``.
        llm_client: LLM client; built from config when omitted.
    """

    name = "SentimentAgent"
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

    def _collect_texts(self, request: AnalyticsRequest) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        for source in request.sources:
            if source not in SUPPORTED_SOURCES:
                logger.warning("SentimentAgent: ignoring unsupported source %r", source)

        if "reports" in request.sources:
            docs = self.store.query(
                "reports",
                filters=[("timestamp", ">=", cutoff_time(request.time_window_s))],
                limit=self.config.sentiment_max_items,
            )
            for doc in filter_by_area(docs, request.area):
                text = f"{doc.get('title') or ''} {doc.get('description') or ''}".strip()
                if not text:
                    continue
                items.append(
                    {
                        "id": doc["id"],
                        "type": "report",
                        "text": text,
                        "location": doc.get("location"),
                        "timestamp": doc.get("timestamp"),
                    }
                )
        return items

    def score_text(self, text: str) -> Optional[Tuple[float, float]]:
        """(score, magnitude) for ``text``, or None when scoring failed."""
        outcome = structured_llm_call(
            self.llm,
            _SYSTEM_PROMPT,
            _PROMPT_TEMPLATE.format(text=text),
            validate=_validate_score,
            fallback=lambda failure, raw: None,
            max_tokens=self.config.llm_min_max_tokens,
            temperature=self.config.llm_temperature,
            label="SentimentAgent",
        )
        return outcome.value

    def run(self, context: AnalyticsRequest) -> SentimentSummary:
        """Score, store and summarise.

        Raises:
            StoreError: If reports cannot be read or a record cannot be written.
        """
        cfg = self.config
        records: List[SentimentRecord] = []
        for item in self._collect_texts(context):
            scored = self.score_text(item["text"])
            if scored is None:
                logger.warning("SentimentAgent: could not score %s %s", item["type"], item["id"])
                continue
            score, magnitude = scored
            location = Location.from_dict(item["location"])
            records.append(
                SentimentRecord(
                    id=str(uuid.uuid4()),
                    source_id=item["id"],
                    source_type=item["type"],
                    score=score,
                    magnitude=magnitude,
                    text=item["text"][: cfg.sentiment_text_excerpt],
                    timestamp=utc_now(),
                    location=location.to_dict() if location else None,
                    original_timestamp=parse_timestamp(item["timestamp"]),
                )
            )

        for record in records:
            self.store.insert(SENTIMENT_COLLECTION, record.to_dict(), doc_id=record.id)

        average = sum(r.score for r in records) / len(records) if records else 0.0
        summary = SentimentSummary(
            sentiment_count=len(records),
            average_score=average,
            mood_category=mood_category(
                average,
                positive=cfg.sentiment_positive_threshold,
                negative=cfg.sentiment_negative_threshold,
            ),
            records=records,
        )
        logger.info(
            "SentimentAgent: %d item(s) scored, average %.3f (%s)",
            summary.sentiment_count, average, summary.mood_category,
        )
        return summary
