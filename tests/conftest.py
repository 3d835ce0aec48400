"""Shared pytest fixtures for NextSignal tests.

- mock_llm_client is a MagicMock(spec=LLMClient); tests set call.return_value
  or call.side_effect to script the model's raw text
- memory_store is a fresh InMemoryStore per test
- No real HTTP, LLM or Firestore calls are made in any test
"""

from __future__ import annotations

import itertools
from datetime import timedelta
from typing import Any, Dict, Optional
from unittest.mock import MagicMock

import pytest

# Bengaluru city centre; used as the fusion center throughout the suite
CENTER_LAT = 12.9716
CENTER_LNG = 77.5946

# Roughly one metre of latitude, in degrees
METRE_LAT = 1.0 / 111_195.0


# ── Configuration ────────────────────────────────────────────────────────────────

@pytest.fixture
def test_config():
    """PipelineConfig with explicit values and single-threaded workers."""
    from config.settings import PipelineConfig

    return PipelineConfig(
        fusion_radius_m=1000.0,
        time_window_s=3600,
        max_candidate_reports=100,
        fallback_grouping_radius_m=200.0,
        synthesis_max_workers=1,
        media_max_workers=1,
        llm_backend="ollama",
        log_level="WARNING",
        store_path="unused",
    )


# ── Mock clients ─────────────────────────────────────────────────────────────────

@pytest.fixture
def mock_llm_client():
    """Mock LLMClient whose call() returns None (service unavailable) by default."""
    from nextsignal.clients.llm_client import LLMClient

    client = MagicMock(spec=LLMClient)
    client.backend = "mock"
    client.call.return_value = None
    return client


@pytest.fixture
def mock_media_client():
    """Mock MediaClient that returns a few fake JPEG bytes for every URL."""
    from nextsignal.clients.media_client import MediaClient

    client = MagicMock(spec=MediaClient)
    client.fetch_bytes.return_value = b"\xff\xd8\xff\xe0fake-jpeg"
    return client


# ── Store ────────────────────────────────────────────────────────────────────────

@pytest.fixture
def memory_store():
    from nextsignal.io.store import InMemoryStore

    return InMemoryStore()


# ── Report factories ─────────────────────────────────────────────────────────────

@pytest.fixture
def make_report():
    """Factory for Report objects; ids default to r1, r2, ...

    Usage:
        report = make_report(category="safety", north_m=150)
    """
    from nextsignal.models.reports import Category, Location, Report, Severity
    from nextsignal.utils.date_utils import utc_now

    counter = itertools.count(1)

    def _make(
        report_id: Optional[str] = None,
        category: str = "traffic",
        severity: str = "medium",
        north_m: float = 0.0,
        lat: float = CENTER_LAT,
        lng: float = CENTER_LNG,
        minutes_ago: float = 5.0,
        title: str = "",
        description: str = "",
    ) -> Report:
        rid = report_id or f"r{next(counter)}"
        return Report(
            id=rid,
            category=Category(category),
            severity=Severity(severity),
            title=title or f"{category} report {rid}",
            description=description or f"Citizen describes a {category} problem",
            location=Location(lat=lat + north_m * METRE_LAT, lng=lng),
            timestamp=utc_now() - timedelta(minutes=minutes_ago),
        )

    return _make


@pytest.fixture
def report_doc():
    """Factory for raw report documents as stored in the ``reports`` collection."""
    from nextsignal.utils.date_utils import utc_now

    def _doc(
        category: str = "traffic",
        severity: str = "medium",
        north_m: float = 0.0,
        minutes_ago: float = 5.0,
        title: str = "Signal outage",
        description: str = "Traffic lights are off at the junction",
        **extra: Any,
    ) -> Dict[str, Any]:
        doc = {
            "category": category,
            "severity": severity,
            "title": title,
            "description": description,
            "location": {"lat": CENTER_LAT + north_m * METRE_LAT, "lng": CENTER_LNG},
            "timestamp": utc_now() - timedelta(minutes=minutes_ago),
            "status": "pending",
        }
        doc.update(extra)
        return doc

    return _doc
