"""Callable boundaries for NextSignal.

Each public method of ``Handlers`` takes a JSON-like payload dict and returns
a JSON-serializable dict. Input is validated before any AI or store call.
Errors never escape: a NextSignalError becomes
``{"success": False, "error": {"kind", "message", ...}}`` and anything else is
logged with its traceback and reported with kind ``internal``.
"""

from __future__ import annotations

import functools
import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional

from config.settings import PipelineConfig
from nextsignal.agents.media_agent import MediaAnalysisAgent
from nextsignal.agents.prediction_agent import PredictionAgent
from nextsignal.agents.sentiment_agent import SentimentAgent
from nextsignal.clients.llm_client import LLMClient
from nextsignal.errors import (
    InvalidInputError,
    NextSignalError,
    NotFoundError,
    UnauthenticatedError,
)
from nextsignal.io.persistence import to_jsonable
from nextsignal.io.store import Store
from nextsignal.models.analytics import AnalyticsRequest
from nextsignal.models.reports import Location, MediaItem, MediaRequest
from nextsignal.pipeline import REPORTS_COLLECTION, FusionOrchestrator
from nextsignal.utils.date_utils import utc_now

logger = logging.getLogger(__name__)

# Called with the report location and category after media analysis completes
FusionTrigger = Callable[[Location, str], None]


def callable_endpoint(func: Callable[..., Dict[str, Any]]) -> Callable[..., Dict[str, Any]]:
    """Wrap a handler so it always returns a ``{"success": ...}`` payload."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Dict[str, Any]:
        try:
            result = func(*args, **kwargs)
        except NextSignalError as exc:
            logger.warning("%s rejected (%s): %s", func.__name__, exc.kind, exc.message)
            return {"success": False, "error": to_jsonable(exc.to_dict())}
        except Exception as exc:
            logger.exception("%s failed: %s", func.__name__, exc)
            return {
                "success": False,
                "error": {"kind": "internal", "message": str(exc) or exc.__class__.__name__},
            }
        payload: Dict[str, Any] = {"success": True}
        payload.update(to_jsonable(result))
        return payload

    return wrapper


# ── Payload validation ────────────────────────────────────────────────────────


def _require_mapping(payload: Any) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise InvalidInputError("request payload must be an object")
    return payload


def _parse_location(value: Any) -> Location:
    if not isinstance(value, dict) or "lat" not in value or "lng" not in value:
        raise InvalidInputError("location with lat and lng is required")
    location = Location.from_dict(value)
    if location is None:
        raise InvalidInputError(
            "location lat/lng must be numbers within WGS84 bounds",
            {"location": value},
        )
    return location


def _optional_positive(payload: Dict[str, Any], key: str, default: float) -> float:
    value = payload.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not value > 0:
        raise InvalidInputError(f"{key} must be a positive number, got {value!r}", {key: value})
    return value


def _parse_media_items(value: Any) -> List[MediaItem]:
    if not isinstance(value, list) or not value:
        raise InvalidInputError("mediaUrls must be a non-empty list")
    items = []
    for index, entry in enumerate(value):
        if not isinstance(entry, dict):
            raise InvalidInputError(f"mediaUrls[{index}] must be an object with url and type")
        url = entry.get("url")
        media_type = entry.get("type")
        if not isinstance(url, str) or not url.strip():
            raise InvalidInputError(f"mediaUrls[{index}].url is required")
        if not isinstance(media_type, str) or not media_type.strip():
            raise InvalidInputError(f"mediaUrls[{index}].type is required")
        items.append(MediaItem(url=url.strip(), media_type=media_type.strip()))
    return items


class Handlers:
    """The four callable operations, bound to one store and LLM client.

    Args:
        config: Pipeline configuration.
        store: Document store.
        llm_client: LLM client shared by every agent; built from config when
            omitted.
        orchestrator: Fusion orchestrator; built from the other arguments when
            omitted.
        media_agent: Media analysis agent; built when omitted.
        fusion_trigger: Called after media analysis with the report's location
            and category. Defaults to a background fusion run on a daemon
            thread; see join_background() and shutdown().
    """

    def __init__(
        self,
        config: PipelineConfig,
        store: Store,
        llm_client: Optional[LLMClient] = None,
        orchestrator: Optional[FusionOrchestrator] = None,
        media_agent: Optional[MediaAnalysisAgent] = None,
        fusion_trigger: Optional[FusionTrigger] = None,
    ) -> None:
        self.config = config
        self.store = store
        self.llm = llm_client if llm_client is not None else config.llm_client()
        self.orchestrator = orchestrator or FusionOrchestrator(config, store, llm_client=self.llm)
        self.media_agent = media_agent or MediaAnalysisAgent(config, llm_client=self.llm)
        self.prediction_agent = PredictionAgent(config, store, llm_client=self.llm)
        self.sentiment_agent = SentimentAgent(config, store, llm_client=self.llm)
        self.fusion_trigger: FusionTrigger = fusion_trigger or self._background_fusion
        self._shutdown = threading.Event()
        self._runs_lock = threading.Lock()
        self._background_runs: List[threading.Thread] = []

    # ── Fusion trigger ────────────────────────────────────────────────────────

    def _background_fusion(self, location: Location, category: str) -> None:
        """Start a fusion run on a daemon thread and keep its handle.

        Daemon threads die with the interpreter, so a host that exits right
        after a request must call join_background() or shutdown() first or a
        run may stop between event writes.
        """
        def _target() -> None:
            try:
                self.orchestrator.run(location.lat, location.lng, cancel_event=self._shutdown)
            except Exception as exc:
                logger.error(
                    "Background fusion for %s at %.4f,%.4f failed: %s",
                    category, location.lat, location.lng, exc,
                )

        thread = threading.Thread(target=_target, name="fusion-trigger", daemon=True)
        with self._runs_lock:
            self._background_runs = [t for t in self._background_runs if t.is_alive()]
            thread.start()
            self._background_runs.append(thread)
        logger.info(
            "Data fusion triggered for %s at %.4f,%.4f", category, location.lat, location.lng
        )

    def join_background(self, timeout: Optional[float] = None) -> bool:
        """Wait for background fusion runs started by this instance.

        Args:
            timeout: Overall limit in seconds; None waits indefinitely.

        Returns:
            True when no background run is still alive.
        """
        with self._runs_lock:
            runs = list(self._background_runs)
        deadline = None if timeout is None else time.monotonic() + timeout
        for thread in runs:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            thread.join(remaining)
        with self._runs_lock:
            self._background_runs = [t for t in self._background_runs if t.is_alive()]
            return not self._background_runs

    def shutdown(self, timeout: Optional[float] = None) -> bool:
        """Stop background runs before their next event write, then join them."""
        self._shutdown.set()
        return self.join_background(timeout)

    def _fire_fusion_trigger(self, report: Dict[str, Any]) -> None:
        location = Location.from_dict(report.get("location"))
        if location is None:
            logger.info("Report %s has no usable location; fusion not triggered", report.get("id"))
            return
        try:
            self.fusion_trigger(location, str(report.get("category") or ""))
        except Exception as exc:
            logger.error("Error triggering data fusion for report %s: %s", report.get("id"), exc)

    # ── Operations ────────────────────────────────────────────────────────────

    @callable_endpoint
    def analyze_media(self, payload: Any, auth: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Analyse a report's media, record the results, then trigger fusion.

        Payload: ``{"reportId": str, "mediaUrls": [{"url": str, "type": str}]}``.
        """
        if not auth:
            raise UnauthenticatedError("User must be authenticated")
        payload = _require_mapping(payload)
        report_id = payload.get("reportId")
        if not isinstance(report_id, str) or not report_id.strip():
            raise InvalidInputError("reportId is required")
        items = _parse_media_items(payload.get("mediaUrls"))

        report = self.store.get_by_id(REPORTS_COLLECTION, report_id)
        if report is None:
            raise NotFoundError(f"Report {report_id} does not exist", {"reportId": report_id})

        logger.info("Analyzing %d media item(s) for report %s", len(items), report_id)
        records = self.media_agent._run_timed(MediaRequest(report_id=report_id, items=items))
        results = [r.to_dict() for r in records]

        self.store.append(REPORTS_COLLECTION, report_id, "mediaAnalysis", results)
        self.store.update(
            REPORTS_COLLECTION,
            report_id,
            {"analysisStatus": "completed", "analyzedAt": utc_now()},
        )

        self._fire_fusion_trigger(report)
        return {"results": results}

    @callable_endpoint
    def synthesize_reports(
        self,
        payload: Any,
        cancel_event: Optional[threading.Event] = None,
    ) -> Dict[str, Any]:
        """Run one fusion pass.

        Payload: ``{"location": {"lat", "lng"}, "radius"?: metres, "timeWindow"?: seconds}``.
        Returns ``{"events": [...], "reportCount": n}``.
        """
        payload = _require_mapping(payload)
        location = _parse_location(payload.get("location"))
        radius = _optional_positive(payload, "radius", self.config.fusion_radius_m)
        window = _optional_positive(payload, "timeWindow", self.config.time_window_s)

        result = self.orchestrator.run(
            location.lat,
            location.lng,
            radius_m=radius,
            time_window_s=window,
            cancel_event=cancel_event,
        )
        response = result.to_dict()
        response["runId"] = result.run_id
        if result.cancelled:
            response["cancelled"] = True
        return response

    @callable_endpoint
    def generate_predictions(self, payload: Any) -> Dict[str, Any]:
        """Payload: ``{"area"?: {...}, "timeWindow"?: seconds, "analysisType"?: str}``."""
        payload = _require_mapping(payload or {})
        area = payload.get("area")
        if area is not None and not isinstance(area, dict):
            raise InvalidInputError("area must be an object")
        request = AnalyticsRequest(
            time_window_s=_optional_positive(
                payload, "timeWindow", self.config.prediction_time_window_s
            ),
            area=area,
            analysis_type=str(payload.get("analysisType") or "pattern_detection"),
        )
        predictions = self.prediction_agent._run_timed(request)
        return {"predictions": [p.to_dict() for p in predictions]}

    @callable_endpoint
    def analyze_sentiment(self, payload: Any) -> Dict[str, Any]:
        """Payload: ``{"area"?: {...}, "timeWindow"?: seconds, "sources"?: [str]}``."""
        payload = _require_mapping(payload or {})
        area = payload.get("area")
        if area is not None and not isinstance(area, dict):
            raise InvalidInputError("area must be an object")
        sources = payload.get("sources", ["reports"])
        if not isinstance(sources, list) or not all(isinstance(s, str) for s in sources):
            raise InvalidInputError("sources must be a list of strings")
        request = AnalyticsRequest(
            time_window_s=_optional_positive(
                payload, "timeWindow", self.config.sentiment_time_window_s
            ),
            area=area,
            sources=sources,
        )
        summary = self.sentiment_agent._run_timed(request)
        response = summary.to_dict()
        response["timeWindow"] = request.time_window_s
        response["area"] = area
        return response
