"""NextSignal fusion orchestrator.

Turns the recent reports around a point into synthesized events:

  1. fetch     — reports newer than now - time window, newest first, capped
  2. filter    — keep reports within the radius of the center
  3. group     — GroupingAgent (LLM, proximity/category fallback)
  4. synthesize — SynthesisAgent, one Event per group, groups in parallel
  5. persist   — insert events one by one, checking for cancellation first

A run with no candidates stops after step 2 without touching the grouping,
synthesis or store-write paths.

Usage:
    from config.settings import PipelineConfig
    from nextsignal.io.store import JsonFileStore
    from nextsignal.pipeline import FusionOrchestrator

    orchestrator = FusionOrchestrator(PipelineConfig(), JsonFileStore("data/store"))
    result = orchestrator.run(lat=12.9716, lng=77.5946)
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime
from typing import Any, List, Optional

from config.settings import PipelineConfig
from nextsignal.agents.base import AgentStatus, BaseAgent
from nextsignal.agents.grouping_agent import GroupingAgent
from nextsignal.agents.synthesis_agent import SynthesisAgent
from nextsignal.clients.llm_client import LLMClient
from nextsignal.errors import InvalidInputError, PersistenceError, StoreError
from nextsignal.io.store import Store
from nextsignal.models.fusion import FusionResult
from nextsignal.models.pipeline import FusionContext, PhaseRecord
from nextsignal.models.reports import Location, Report
from nextsignal.utils.date_utils import cutoff_time, utc_now
from nextsignal.utils.geo_utils import distance_meters, validate_coordinates
from nextsignal.utils.logging_utils import get_run_logger

logger = logging.getLogger(__name__)

REPORTS_COLLECTION = "reports"
EVENTS_COLLECTION = "events"


def _make_run_id(lat: float, lng: float, now: Optional[datetime] = None) -> str:
    """Sortable run id: ``YYYYMMDD_HHMMSS_<lat>_<lng>`` (UTC, 4 decimals)."""
    stamp = (now or utc_now()).strftime("%Y%m%d_%H%M%S")
    return f"{stamp}_{lat:.4f}_{lng:.4f}"


def _positive(name: str, value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidInputError(f"{name} must be a number, got {value!r}", {name: value})
    if not number > 0:
        raise InvalidInputError(f"{name} must be positive, got {value!r}", {name: value})
    return number


def _run_phase(context: FusionContext, phase_name: str, agent: BaseAgent) -> Any:
    """Execute one agent and record its timing in the phase log.

    Agents recover from AI failures themselves, so an exception here is a
    defect; it is recorded and re-raised.
    """
    record: PhaseRecord = context.log_phase_start(phase_name)
    try:
        result = agent._run_timed(context)
    except Exception:
        context.log_phase_end(record, status=AgentStatus.FAILED)
        raise
    context.log_phase_end(record, status=AgentStatus.OK)
    return result


class FusionOrchestrator:
    """Runs fusion passes against one store.

    Args:
        config: Pipeline configuration.
        store: Document store holding ``reports``; events are written to ``events``.
        llm_client: Shared LLM client for the default agents; built from config
            when omitted.
        grouping_agent: Replacement grouping agent (tests).
        synthesis_agent: Replacement synthesis agent (tests).
    """

    def __init__(
        self,
        config: PipelineConfig,
        store: Store,
        llm_client: Optional[LLMClient] = None,
        grouping_agent: Optional[GroupingAgent] = None,
        synthesis_agent: Optional[SynthesisAgent] = None,
    ) -> None:
        self.config = config
        self.store = store
        if grouping_agent is None or synthesis_agent is None:
            llm = llm_client if llm_client is not None else config.llm_client()
            grouping_agent = grouping_agent or GroupingAgent(config, llm)
            synthesis_agent = synthesis_agent or SynthesisAgent(config, llm)
        self.grouping_agent = grouping_agent
        self.synthesis_agent = synthesis_agent

    # ── Steps ─────────────────────────────────────────────────────────────────

    def _fetch_candidates(self, context: FusionContext, now: datetime) -> List[Report]:
        log = get_run_logger("pipeline", context.run_id)
        cutoff = cutoff_time(context.time_window_s, now=now)
        try:
            docs = self.store.query(
                REPORTS_COLLECTION,
                filters=[("timestamp", ">=", cutoff)],
                order_by="timestamp",
                descending=True,
                limit=self.config.max_candidate_reports,
            )
        except StoreError:
            raise
        except Exception as exc:
            log.error("Report query failed: %s", exc)
            raise StoreError(f"Failed to read reports: {exc}") from exc

        context.fetched_count = len(docs)
        center = context.center
        candidates: List[Report] = []
        for doc in docs:
            doc_id = doc.get("id", "?")
            try:
                report = Report.from_dict(doc_id, doc)
            except ValueError as exc:
                log.warning("Skipping report %s: %s", doc_id, exc)
                context.add_warning(f"Skipped report {doc_id}: {exc}")
                continue
            distance = distance_meters(
                center.lat, center.lng, report.location.lat, report.location.lng
            )
            if distance <= context.radius_m:
                candidates.append(report)

        log.info(
            "Fetched %d report(s) since %s; %d within %.0fm",
            len(docs), cutoff.isoformat(), len(candidates), context.radius_m,
        )
        return candidates

    def _persist(self, context: FusionContext) -> None:
        """Insert events in order; stop early on cancellation.

        Raises:
            PersistenceError: On the first failed insert. Events inserted
                before it stay in the store and are listed on the error.
        """
        log = get_run_logger("pipeline", context.run_id)
        record = context.log_phase_start("persist")
        for event in context.events:
            if context.cancelled:
                log.warning(
                    "Cancelled after persisting %d of %d event(s)",
                    len(context.persisted_events), len(context.events),
                )
                context.log_phase_end(record, status=AgentStatus.CANCELLED)
                return
            try:
                self.store.insert(EVENTS_COLLECTION, event.to_dict(), doc_id=event.id)
            except Exception as exc:
                context.log_phase_end(record, status=AgentStatus.FAILED)
                log.error(
                    "Event %s could not be stored (%d already persisted): %s",
                    event.id, len(context.persisted_events), exc,
                )
                raise PersistenceError(
                    f"Failed to persist event {event.id}: {exc}",
                    persisted_events=context.persisted_events,
                    failed_event_id=event.id,
                    report_count=len(context.candidates),
                ) from exc
            context.persisted_events.append(event)
        context.log_phase_end(record, status=AgentStatus.OK)

    # ── Entry point ───────────────────────────────────────────────────────────

    def run(
        self,
        lat: float,
        lng: float,
        radius_m: Optional[float] = None,
        time_window_s: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
        now: Optional[datetime] = None,
    ) -> FusionResult:
        """Run one fusion pass around (lat, lng).

        Args:
            lat: Center latitude.
            lng: Center longitude.
            radius_m: Search radius in metres (default from config).
            time_window_s: Look-back window in seconds (default from config).
            cancel_event: Set by the caller to stop further event persistence.
            now: Reference instant for the time window (default: current time).

        Returns:
            FusionResult with the persisted events and the candidate count.

        Raises:
            InvalidInputError: Bad coordinates, radius or time window; raised
                before any store or AI call.
            StoreError: The report query failed.
            PersistenceError: An event insert failed part-way through.
        """
        try:
            lat = float(lat)
            lng = float(lng)
        except (TypeError, ValueError):
            raise InvalidInputError(
                f"location must have numeric lat and lng, got ({lat!r}, {lng!r})"
            )
        validate_coordinates(lat, lng)
        radius = _positive(
            "radius", self.config.fusion_radius_m if radius_m is None else radius_m
        )
        window = _positive(
            "timeWindow", self.config.time_window_s if time_window_s is None else time_window_s
        )

        started = time.monotonic()
        now = now or utc_now()
        context = FusionContext(
            config=self.config,
            run_id=_make_run_id(lat, lng, now),
            center=Location(lat=lat, lng=lng),
            radius_m=radius,
            time_window_s=window,
            cancel_event=cancel_event,
        )
        log = get_run_logger("pipeline", context.run_id)
        log.info("Fusion run started (radius=%.0fm, window=%.0fs)", radius, window)

        record = context.log_phase_start("fetch")
        try:
            context.candidates = self._fetch_candidates(context, now)
        except StoreError:
            context.log_phase_end(record, status=AgentStatus.FAILED)
            raise
        context.log_phase_end(record)

        if not context.candidates:
            log.info("No candidate reports in range; nothing to fuse")
            return self._finalise(context, started)

        if context.cancelled:
            log.warning("Cancelled before grouping")
            return self._finalise(context, started)

        _run_phase(context, "grouping", self.grouping_agent)
        _run_phase(context, "synthesis", self.synthesis_agent)
        self._persist(context)
        return self._finalise(context, started)

    def _finalise(self, context: FusionContext, started: float) -> FusionResult:
        log = get_run_logger("pipeline", context.run_id)
        result = FusionResult(
            run_id=context.run_id,
            events=list(context.persisted_events),
            report_count=len(context.candidates),
            fetched_count=context.fetched_count,
            groups=list(context.groups),
            grouping_method=context.grouping_method,
            cancelled=context.cancelled,
            warnings=list(context.warnings),
        )
        log.info(
            "Fusion run complete in %.1fs | candidates=%d | groups=%d | events=%d | "
            "warnings=%d%s",
            time.monotonic() - started,
            result.report_count,
            len(result.groups),
            len(result.events),
            len(result.warnings),
            " | CANCELLED" if result.cancelled else "",
        )
        return result


def run_fusion(
    config: PipelineConfig,
    store: Store,
    lat: float,
    lng: float,
    radius_m: Optional[float] = None,
    time_window_s: Optional[float] = None,
    llm_client: Optional[LLMClient] = None,
    cancel_event: Optional[threading.Event] = None,
) -> FusionResult:
    """Convenience wrapper: build a FusionOrchestrator and run it once."""
    orchestrator = FusionOrchestrator(config, store, llm_client=llm_client)
    return orchestrator.run(
        lat, lng, radius_m=radius_m, time_window_s=time_window_s, cancel_event=cancel_event
    )
