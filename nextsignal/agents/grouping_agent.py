"""GroupingAgent — partition candidate reports into related groups.

Asks the LLM to cluster the candidate set and accepts its answer only when it
is a complete, duplicate-free partition of exactly the candidate ids. Any
other outcome (service error, unparseable text, schema violation, unknown or
missing ids) discards the AI answer and falls back to deterministic
proximity/category grouping over the full candidate set. The two groupings
are never mixed.
"""

from __future__ import annotations

import logging
import uuid
from collections import Counter
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from config.defaults import PROMPT_COORDINATE_PRECISION
from config.settings import PipelineConfig
from nextsignal.agents.base import BaseAgent
from nextsignal.analysis.grouping import group_by_proximity_and_category
from nextsignal.clients.llm_client import LLMClient
from nextsignal.clients.structured_call import structured_llm_call
from nextsignal.errors import SchemaError
from nextsignal.models.fusion import GroupingMethod, ReportGroup
from nextsignal.models.reports import Category, Location, Report
from nextsignal.utils.geo_utils import centroid

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = (
    "You are an analyst for a city operations centre. You cluster citizen "
    "reports that describe the same incident or closely related issues."
)

_PROMPT_TEMPLATE = """Group these city reports by similarity. Reports about the same incident or very similar issues should be grouped together.
Consider location proximity, category, and content similarity.
Every report ID must appear in exactly one group. Use only the IDs listed below.

Reports:
{reports}

Return a JSON array of groups, where each group contains report IDs:
[
  {{"groupId": "group1", "reportIds": ["id1", "id2"], "primaryCategory": "traffic", "commonLocation": {{"lat": 12.34, "lng": 56.78}}}},
  {{"groupId": "group2", "reportIds": ["id3"], "primaryCategory": "safety", "commonLocation": {{"lat": 12.35, "lng": 56.79}}}}
]"""


def build_grouping_prompt(
    reports: Sequence[Report], precision: int = PROMPT_COORDINATE_PRECISION
) -> str:
    """One line per report: id, category, title, description and rounded coordinates."""
    lines = [
        f"ID: {r.id}, Category: {r.category.value}, Title: {r.title}, "
        f"Description: {r.description}, "
        f"Location: {r.location.lat:.{precision}f},{r.location.lng:.{precision}f}"
        for r in reports
    ]
    return _PROMPT_TEMPLATE.format(reports="\n".join(lines))


def _most_common_category(members: Sequence[Report]) -> Category:
    # Counter.most_common keeps first-seen order on ties
    return Counter(r.category for r in members).most_common(1)[0][0]


def _centroid_location(members: Sequence[Report]) -> Location:
    lat, lng = centroid((r.location.lat, r.location.lng) for r in members)
    return Location(lat=lat, lng=lng)


def validate_grouping(parsed: Any, reports: Sequence[Report]) -> List[ReportGroup]:
    """Turn the model's JSON into ReportGroups, or raise SchemaError.

    Rejected outright: a non-list answer, a group without a non-empty
    ``reportIds`` list, an id outside the candidate set, an id listed twice,
    or a candidate id missing from every group.

    Repaired in place: a missing or duplicate ``groupId`` is regenerated, an
    unknown ``primaryCategory`` becomes the members' most common category, and
    an unusable ``commonLocation`` becomes the members' centroid.
    """
    if isinstance(parsed, dict) and isinstance(parsed.get("groups"), list):
        parsed = parsed["groups"]
    if not isinstance(parsed, list):
        raise SchemaError(f"expected a JSON array of groups, got {type(parsed).__name__}")

    by_id: Dict[str, Report] = {r.id: r for r in reports}
    assigned: Set[str] = set()
    seen_group_ids: Set[str] = set()
    groups: List[ReportGroup] = []

    for index, item in enumerate(parsed):
        if not isinstance(item, dict):
            raise SchemaError(f"group {index} is not an object")
        raw_ids = item.get("reportIds")
        if not isinstance(raw_ids, list) or not raw_ids:
            raise SchemaError(f"group {index} has no reportIds list")

        members: List[Report] = []
        for raw_id in raw_ids:
            report_id = str(raw_id)
            if report_id not in by_id:
                raise SchemaError(f"group {index} references unknown report {report_id!r}")
            if report_id in assigned:
                raise SchemaError(f"report {report_id!r} appears in more than one group")
            assigned.add(report_id)
            members.append(by_id[report_id])

        group_id = item.get("groupId")
        group_id = str(group_id) if isinstance(group_id, (str, int)) else ""
        if not group_id or group_id in seen_group_ids:
            group_id = str(uuid.uuid4())
        seen_group_ids.add(group_id)

        groups.append(
            ReportGroup(
                group_id=group_id,
                reports=members,
                primary_category=(
                    Category.parse(item.get("primaryCategory")) or _most_common_category(members)
                ),
                common_location=(
                    Location.from_dict(item.get("commonLocation")) or _centroid_location(members)
                ),
            )
        )

    missing = [r.id for r in reports if r.id not in assigned]
    if missing:
        raise SchemaError(f"{len(missing)} report(s) missing from the grouping: {missing[:5]}")

    return groups


class GroupingAgent(BaseAgent):
    """Cluster candidate reports with the LLM, falling back to proximity grouping.

    Never raises for AI failures; the worst case is the deterministic grouping.

    Args:
        config: Pipeline configuration.
        llm_client: LLM client; built from config when omitted.
    """

    name = "GroupingAgent"
    version = "1.0.0"

    def __init__(self, config: PipelineConfig, llm_client: Optional[LLMClient] = None) -> None:
        self.config = config
        self.llm = llm_client if llm_client is not None else config.llm_client()

    def group(self, reports: Sequence[Report]) -> Tuple[List[ReportGroup], str]:
        """Partition ``reports``.

        Returns:
            (groups, method) where method is a GroupingMethod value.
        """
        if not reports:
            return [], GroupingMethod.LLM

        def _fallback(failure: str, raw: Optional[str]) -> List[ReportGroup]:
            return group_by_proximity_and_category(
                reports, radius_m=self.config.fallback_grouping_radius_m
            )

        outcome = structured_llm_call(
            self.llm,
            _SYSTEM_PROMPT,
            build_grouping_prompt(reports),
            validate=lambda parsed: validate_grouping(parsed, reports),
            fallback=_fallback,
            max_tokens=self.config.llm_max_tokens,
            temperature=self.config.llm_temperature,
            label="GroupingAgent",
        )
        method = GroupingMethod.FALLBACK if outcome.used_fallback else GroupingMethod.LLM
        logger.info(
            "GroupingAgent: %d reports -> %d groups (method=%s%s)",
            len(reports),
            len(outcome.value),
            method,
            f", reason={outcome.failure}" if outcome.used_fallback else "",
        )
        return outcome.value, method

    def run(self, context: Any) -> List[ReportGroup]:
        groups, method = self.group(context.candidates)
        context.groups = groups
        context.grouping_method = method
        if method == GroupingMethod.FALLBACK:
            context.add_warning("AI grouping unavailable; used proximity/category fallback")
        return groups
