"""MediaAnalysisAgent — classify uploaded images and videos.

Images are downloaded and sent inline to the vision model. Videos get a
text-only prompt: no frames are extracted, so a video finding reflects the
report context rather than the footage itself. This is a known limitation.

Each item is analysed independently. A failure on one item becomes an
``{"error": ...}`` placeholder for that item only, and the agent always returns
exactly one record per input item, in input order.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Sequence

from config.settings import PipelineConfig
from nextsignal.agents.base import BaseAgent
from nextsignal.clients.llm_client import ImageInput, LLMClient, clamp_confidence
from nextsignal.clients.media_client import MediaClient, MediaFetchError
from nextsignal.clients.structured_call import CallFailure, structured_llm_call
from nextsignal.errors import SchemaError
from nextsignal.models.reports import (
    Category,
    MediaAnalysisRecord,
    MediaItem,
    Severity,
    Urgency,
)
from nextsignal.utils.date_utils import utc_now

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = (
    "You inspect media submitted with citizen reports and classify city "
    "infrastructure and safety issues."
)

_RESPONSE_SHAPE = """{
  "category": "traffic|safety|infrastructure|environment|events|emergency",
  "severity": "low|medium|high",
  "description": "string",
  "impact": "string",
  "recommendations": "string",
  "confidence": 0.0,
  "detectedObjects": ["array of objects/issues seen"],
  "urgency": "immediate|hours|days|routine"
}"""

IMAGE_PROMPT = f"""Analyze this image for city infrastructure and safety issues. Provide:
1. Category (traffic, safety, infrastructure, environment, events, emergency)
2. Severity (low, medium, high)
3. Description of what you see
4. Potential impact on citizens
5. Recommended actions
6. Confidence score (0-1)

Format your response as JSON with these fields:
{_RESPONSE_SHAPE}"""


def build_video_prompt(media_type: str) -> str:
    """Text-only prompt for a video; the footage is never sent."""
    return (
        f"A citizen attached a video ({media_type}) to a report about a city issue.\n"
        "The footage itself is not available to you. Provide a conservative preliminary\n"
        f"analysis in JSON format:\n{_RESPONSE_SHAPE}"
    )


def _validate_analysis(parsed: Any, default_confidence: float) -> Dict[str, Any]:
    """Normalize a finding; unknown enum values fall back to conservative defaults.

    Raises:
        SchemaError: If the answer is not a JSON object.
    """
    if not isinstance(parsed, dict):
        raise SchemaError(f"expected a JSON object, got {type(parsed).__name__}")
    objects = parsed.get("detectedObjects")
    return {
        "category": (Category.parse(parsed.get("category")) or Category.INFRASTRUCTURE).value,
        "severity": (Severity.parse(parsed.get("severity")) or Severity.MEDIUM).value,
        "description": str(parsed.get("description") or ""),
        "impact": str(parsed.get("impact") or ""),
        "recommendations": str(parsed.get("recommendations") or ""),
        "confidence": clamp_confidence(parsed.get("confidence"), default_confidence),
        "detectedObjects": [str(o) for o in objects] if isinstance(objects, list) else [],
        "urgency": (Urgency.parse(parsed.get("urgency")) or Urgency.ROUTINE).value,
    }


class MediaAnalysisAgent(BaseAgent):
    """Analyse every media item attached to one report.

    Args:
        config: Pipeline configuration.
        llm_client: LLM client; built from config when omitted.
        media_client: HTTP downloader for image bytes; built from config when
            omitted.
    """

    name = "MediaAnalysisAgent"
    version = "1.0.0"

    def __init__(
        self,
        config: PipelineConfig,
        llm_client: Optional[LLMClient] = None,
        media_client: Optional[MediaClient] = None,
    ) -> None:
        self.config = config
        self.llm = llm_client if llm_client is not None else config.llm_client()
        self.media = media_client if media_client is not None else MediaClient(
            request_timeout=config.media_fetch_timeout,
            max_bytes=config.media_max_bytes,
        )

    # ── Per-type analysis ─────────────────────────────────────────────────────

    def _image_fallback(self, failure: str, raw: Optional[str]) -> Dict[str, Any]:
        if failure == CallFailure.SERVICE_ERROR:
            return {"error": "Image analysis service unavailable"}
        return {
            "category": Category.INFRASTRUCTURE.value,
            "severity": Severity.MEDIUM.value,
            "description": raw or "",
            "impact": "Analysis completed",
            "recommendations": "Review findings",
            "confidence": self.config.image_fallback_confidence,
            "detectedObjects": [],
            "urgency": Urgency.ROUTINE.value,
        }

    def _video_fallback(self, failure: str, raw: Optional[str]) -> Dict[str, Any]:
        if failure == CallFailure.SERVICE_ERROR:
            return {"error": "Video analysis service unavailable"}
        return {
            "category": Category.INFRASTRUCTURE.value,
            "severity": Severity.MEDIUM.value,
            "description": "Video content analyzed",
            "impact": "Under review",
            "recommendations": "Manual review recommended",
            "confidence": self.config.video_fallback_confidence,
            "detectedObjects": ["video content"],
            "urgency": Urgency.ROUTINE.value,
        }

    def analyze_image(self, item: MediaItem) -> Dict[str, Any]:
        try:
            data = self.media.fetch_bytes(item.url)
        except MediaFetchError as exc:
            logger.warning("MediaAnalysisAgent: could not fetch %s: %s", item.url, exc)
            return {"error": str(exc)}

        outcome = structured_llm_call(
            self.llm,
            _SYSTEM_PROMPT,
            IMAGE_PROMPT,
            validate=lambda parsed: _validate_analysis(parsed, self.config.default_llm_confidence),
            fallback=self._image_fallback,
            images=[ImageInput(data=data, mime_type=item.media_type)],
            max_tokens=self.config.llm_max_tokens,
            temperature=self.config.llm_temperature,
            label="MediaAnalysisAgent[image]",
        )
        return outcome.value

    def analyze_video(self, item: MediaItem) -> Dict[str, Any]:
        outcome = structured_llm_call(
            self.llm,
            _SYSTEM_PROMPT,
            build_video_prompt(item.media_type),
            validate=lambda parsed: _validate_analysis(parsed, self.config.default_llm_confidence),
            fallback=self._video_fallback,
            max_tokens=self.config.llm_max_tokens,
            temperature=self.config.llm_temperature,
            label="MediaAnalysisAgent[video]",
        )
        return outcome.value

    def analyze_item(self, item: MediaItem) -> MediaAnalysisRecord:
        """Analyse one item; every failure becomes an error placeholder."""
        try:
            if item.is_image:
                analysis = self.analyze_image(item)
            elif item.is_video:
                analysis = self.analyze_video(item)
            else:
                analysis = {"error": f"Unsupported media type: {item.media_type}"}
        except Exception as exc:
            # One bad item must not sink the rest of the report's media
            logger.exception("MediaAnalysisAgent: analysis of %s failed: %s", item.url, exc)
            analysis = {"error": str(exc) or exc.__class__.__name__}
        return MediaAnalysisRecord(
            media_url=item.url,
            media_type=item.media_type,
            analysis=analysis,
            timestamp=utc_now(),
        )

    def analyze(self, items: Sequence[MediaItem]) -> List[MediaAnalysisRecord]:
        """Analyse items concurrently; results are paired with inputs by index."""
        if not items:
            return []
        workers = min(self.config.media_max_workers, len(items))
        if workers <= 1:
            return [self.analyze_item(item) for item in items]
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="media") as pool:
            return list(pool.map(self.analyze_item, items))

    def run(self, context: Any) -> List[MediaAnalysisRecord]:
        """Analyse the items of a MediaRequest."""
        records = self.analyze(context.items)
        failed = sum(1 for r in records if r.failed)
        logger.info(
            "MediaAnalysisAgent: report %s — %d item(s) analysed, %d failed",
            context.report_id, len(records), failed,
        )
        return records
