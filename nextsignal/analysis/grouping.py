"""Deterministic proximity/category grouping for NextSignal.

Used whenever the AI grouping service is unavailable or its answer is
rejected. Pure functions: no I/O, no external calls.
"""

from __future__ import annotations

import logging
import uuid
from typing import Callable, List, Sequence, Set

from config.defaults import FALLBACK_GROUPING_RADIUS_M
from nextsignal.models.fusion import ReportGroup
from nextsignal.models.reports import Report
from nextsignal.utils.geo_utils import distance_meters

logger = logging.getLogger(__name__)


def _new_group_id() -> str:
    return str(uuid.uuid4())


def group_by_proximity_and_category(
    reports: Sequence[Report],
    radius_m: float = FALLBACK_GROUPING_RADIUS_M,
    id_factory: Callable[[], str] = _new_group_id,
) -> List[ReportGroup]:
    """Greedily partition reports into groups of same-category neighbours.

    Reports are visited in input order. Each unassigned report seeds a new
    group and pulls in every other unassigned report of the same category
    lying within ``radius_m`` of the seed. Membership is measured against the
    seed only, so this is a single greedy pass and not a transitive closure.

    Every input report lands in exactly one group. For a given input order the
    grouping is deterministic; only the generated group ids differ between
    calls unless ``id_factory`` is fixed.

    Args:
        reports: Candidate reports.
        radius_m: Maximum seed-to-member distance in metres (default 200).
        id_factory: Zero-argument callable producing group ids.

    Returns:
        List of ReportGroup objects in seed order. The seed's category and
        location become the group's primary category and common location.
    """
    if not reports:
        return []

    groups: List[ReportGroup] = []
    processed: Set[str] = set()

    for seed in reports:
        if seed.id in processed:
            continue
        processed.add(seed.id)
        members = [seed]

        for other in reports:
            if other.id in processed:
                continue
            if other.category != seed.category:
                continue
            distance = distance_meters(
                seed.location.lat, seed.location.lng,
                other.location.lat, other.location.lng,
            )
            if distance <= radius_m:
                members.append(other)
                processed.add(other.id)

        groups.append(
            ReportGroup(
                group_id=id_factory(),
                reports=members,
                primary_category=seed.category,
                common_location=seed.location,
            )
        )

    logger.debug(
        "Proximity grouping: %d reports -> %d groups (radius=%.0fm)",
        len(reports), len(groups), radius_m,
    )
    return groups
