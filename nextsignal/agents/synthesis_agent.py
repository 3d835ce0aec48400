"""SynthesisAgent — reduce each report group to one Event.

For every group the LLM is asked for a unified summary. The answer is used
verbatim after schema repair, with one override: the event severity is never
lower than the highest severity among the group's reports. When the call
fails the event is built deterministically from the group itself.

Groups are independent, so they are synthesized concurrently; results are
collected by group index, giving exactly one Event per group.
"""

from __future__ import annotations

import logging
import uuid
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional

from config.settings import PipelineConfig
from nextsignal.agents.base import BaseAgent
from nextsignal.clients.llm_client import LLMClient, clamp_confidence
from nextsignal.clients.structured_call import CallFailure, structured_llm_call
from nextsignal.errors import SchemaError
from nextsignal.models.fusion import Event, ReportGroup, SynthesisMethod
from nextsignal.models.reports import Category, Severity, Urgency
from nextsignal.utils.date_utils import format_for_prompt, utc_now

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = (
    "You are an analyst for a city operations centre. You merge related citizen "
    "reports into one clear, actionable event summary for city management."
)

_PROMPT_TEMPLATE = """Synthesize these related city reports into a single comprehensive event summary.
Provide clear, actionable information for city management.

Reports:
{reports}

Create a JSON response with:
{{
  "title": "Clear, concise event title",
  "description": "Comprehensive description combining all reports",
  "category": "traffic|safety|infrastructure|environment|events|emergency",
  "severity": "highest severity level from reports (low|medium|high)",
  "confidence": "confidence in synthesis (0-1)",
  "affectedArea": "description of affected area",
  "recommendations": "actionable recommendations",
  "estimatedImpact": "number of people/area affected",
  "urgency": "immediate|hours|days|routine",
  "actionRequired": true
}}"""


def build_synthesis_prompt(group: ReportGroup) -> str:
    """Title, description, category, severity and time of every report in the group."""
    blocks = [
        f"Title: {r.title}\nDescription: {r.description}\n"
        f"Category: {r.category.value}\nSeverity: {r.severity.value}\n"
        f"Time: {format_for_prompt(r.timestamp)}"
        for r in group.reports
    ]
    return _PROMPT_TEMPLATE.format(reports="\n\n---\n\n".join(blocks))


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return "; ".join(str(v) for v in value if v is not None)
    return str(value)


def _required_text(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise SchemaError(f"synthesis response needs a non-empty string {key!r}")
    return value.strip()


def _as_bool(value: Any, default: bool = True) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "yes", "1"):
            return True
        if lowered in ("false", "no", "0"):
            return False
    return default


class SynthesisAgent(BaseAgent):
    """Turn ReportGroups into Events.

    Args:
        config: Pipeline configuration (fallback confidences, worker count).
        llm_client: LLM client; built from config when omitted.
    """

    name = "SynthesisAgent"
    version = "1.0.0"

    def __init__(self, config: PipelineConfig, llm_client: Optional[LLMClient] = None) -> None:
        self.config = config
        self.llm = llm_client if llm_client is not None else config.llm_client()

    def _validate(self, parsed: Any, group: ReportGroup) -> Event:
        """Build an Event from the model's JSON object, repairing soft fields.

        Raises:
            SchemaError: If the answer is not an object or lacks a title or
                description.
        """
        if not isinstance(parsed, dict):
            raise SchemaError(f"expected a JSON object, got {type(parsed).__name__}")

        title = _required_text(parsed, "title")
        description = _required_text(parsed, "description")

        floor = group.max_severity
        severity = Severity.parse(parsed.get("severity")) or floor
        if severity.rank < floor.rank:
            logger.info(
                "SynthesisAgent: raising severity %s -> %s for group %s",
                severity.value, floor.value, group.group_id,
            )
            severity = floor

        return self._event(
            group,
            title=title,
            description=description,
            category=Category.parse(parsed.get("category")) or group.primary_category,
            severity=severity,
            confidence=clamp_confidence(
                parsed.get("confidence"), self.config.default_llm_confidence
            ),
            urgency=Urgency.parse(parsed.get("urgency")) or Urgency.ROUTINE,
            method=SynthesisMethod.LLM,
            affected_area=_text(parsed.get("affectedArea")),
            recommendations=_text(parsed.get("recommendations")),
            estimated_impact=_text(parsed.get("estimatedImpact")),
            action_required=_as_bool(parsed.get("actionRequired")),
        )

    def _fallback(self, group: ReportGroup, failure: str) -> Event:
        """Deterministic event for a group whose synthesis call failed.

        An unusable answer gets the parse-fallback confidence; a failed or
        timed-out call gets the service-fallback confidence.
        """
        if failure == CallFailure.SERVICE_ERROR:
            confidence = self.config.synthesis_fallback_confidence
            method = SynthesisMethod.FALLBACK_SERVICE
        else:
            confidence = self.config.parse_fallback_confidence
            method = SynthesisMethod.FALLBACK_PARSE

        category = group.primary_category.value
        count = len(group.reports)
        return self._event(
            group,
            title=f"{category} issue in area",
            description=f"{count} reports about {category} issues",
            category=group.primary_category,
            severity=group.max_severity,
            confidence=confidence,
            urgency=Urgency.ROUTINE,
            method=method,
            affected_area="Local area",
            recommendations="Investigation required",
            estimated_impact=f"{count} reports",
            action_required=True,
        )

    @staticmethod
    def _event(group: ReportGroup, method: str, **fields: Any) -> Event:
        return Event(
            id=str(uuid.uuid4()),
            location=group.common_location,
            report_ids=list(group.report_ids),
            timestamp=utc_now(),
            synthesis_method=method,
            **fields,
        )

    def synthesize_group(self, group: ReportGroup) -> Event:
        """Produce the Event for one group. Never raises for AI failures."""
        outcome = structured_llm_call(
            self.llm,
            _SYSTEM_PROMPT,
            build_synthesis_prompt(group),
            validate=lambda parsed: self._validate(parsed, group),
            fallback=lambda failure, raw: self._fallback(group, failure),
            max_tokens=self.config.llm_max_tokens,
            temperature=self.config.llm_temperature,
            label=f"SynthesisAgent[{group.group_id}]",
        )
        return outcome.value

    def synthesize_all(self, groups: List[ReportGroup]) -> List[Event]:
        """Synthesize every group concurrently; output order matches ``groups``."""
        if not groups:
            return []
        workers = min(self.config.synthesis_max_workers, len(groups))
        if workers <= 1:
            return [self.synthesize_group(g) for g in groups]
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="synthesis") as pool:
            return list(pool.map(self.synthesize_group, groups))

    def run(self, context: Any) -> List[Event]:
        events = self.synthesize_all(context.groups)
        fallbacks = sum(1 for e in events if e.synthesis_method != SynthesisMethod.LLM)
        if fallbacks:
            context.add_warning(f"{fallbacks} of {len(events)} events used fallback synthesis")
        logger.info(
            "SynthesisAgent: %d groups -> %d events (%d fallback)",
            len(context.groups), len(events), fallbacks,
        )
        context.events = events
        return events
