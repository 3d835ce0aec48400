"""Fusion run orchestration data models for NextSignal.

Defines FusionContext (state threaded through one fusion run) and PhaseRecord
(per-phase timing log).
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from config.settings import PipelineConfig
from nextsignal.models.fusion import Event, ReportGroup
from nextsignal.models.reports import Location, Report
from nextsignal.utils.date_utils import utc_now


@dataclass
class PhaseRecord:
    """Timing and status record for a single fusion phase."""

    phase_name: str
    start_time: datetime
    end_time: Optional[datetime] = None
    status: str = "OK"

    @property
    def elapsed_seconds(self) -> float:
        """Compute elapsed time in seconds."""
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()


@dataclass
class FusionContext:
    """Shared state for one fusion run.

    Each phase reads what earlier phases wrote and fills in its own field.
    Agents never talk to each other directly — everything flows through here.
    """

    config: PipelineConfig
    run_id: str
    center: Location
    radius_m: float
    time_window_s: float
    cancel_event: Optional[threading.Event] = None

    # ── Populated progressively ────────────────────────────────────────────────
    fetched_count: int = 0
    candidates: List[Report] = field(default_factory=list)
    groups: List[ReportGroup] = field(default_factory=list)
    grouping_method: Optional[str] = None
    events: List[Event] = field(default_factory=list)
    persisted_events: List[Event] = field(default_factory=list)

    # ── Run metadata ───────────────────────────────────────────────────────────
    phase_log: List[PhaseRecord] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def log_phase_start(self, phase_name: str) -> PhaseRecord:
        """Record the start of a fusion phase."""
        record = PhaseRecord(phase_name=phase_name, start_time=utc_now())
        self.phase_log.append(record)
        return record

    def log_phase_end(self, record: PhaseRecord, status: str = "OK") -> None:
        """Record the end of a fusion phase."""
        record.end_time = utc_now()
        record.status = status

    def add_warning(self, warning: str) -> None:
        self.warnings.append(warning)
