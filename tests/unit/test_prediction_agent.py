"""Unit tests for nextsignal.agents.prediction_agent and analysis.patterns."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest

from nextsignal.agents.prediction_agent import (
    ANALYTICS_COLLECTION,
    PredictionAgent,
    fallback_predictions,
)
from nextsignal.analysis.patterns import (
    analyze_time_patterns,
    average_severity,
    filter_by_area,
    summarize_categories,
)
from nextsignal.models.analytics import AnalyticsRequest, CategorySummary


# ── analysis.patterns ────────────────────────────────────────────────────────────

class TestPatterns:
    def test_average_severity_weights(self):
        docs = [{"severity": "low"}, {"severity": "high"}, {"severity": "bogus"}]
        assert average_severity(docs) == pytest.approx(2.0)
        assert average_severity([]) == 0.0

    def test_summarize_categories_counts(self):
        reports = [
            {"category": "traffic", "severity": "high"},
            {"category": "safety", "severity": "low"},
            {"category": "traffic", "severity": "medium"},
        ]
        events = [{"category": "traffic"}, {"category": "environment"}]

        summary = summarize_categories(reports, events)

        assert [s.category for s in summary] == ["traffic", "safety"]
        assert summary[0].report_count == 2
        assert summary[0].event_count == 1
        assert summary[0].avg_severity == pytest.approx(2.5)
        assert summary[1].event_count == 0

    def test_time_patterns_peak(self):
        monday_9 = datetime(2024, 1, 15, 9, 30, tzinfo=timezone.utc)
        reports = [
            {"timestamp": monday_9},
            {"timestamp": monday_9 + timedelta(minutes=10)},
            {"timestamp": monday_9 + timedelta(days=1, hours=5)},
            {"timestamp": "garbage"},
        ]

        patterns = analyze_time_patterns(reports)

        assert patterns.peak_hour == 9
        assert patterns.peak_day == 0
        assert sum(patterns.hourly_distribution) == 3

    def test_filter_by_area(self):
        docs = [
            {"location": {"lat": 12.9716, "lng": 77.5946}},
            {"location": {"lat": 13.0827, "lng": 80.2707}},
            {"location": None},
        ]
        area = {"lat": 12.9716, "lng": 77.5946, "radius": 5000}
        assert filter_by_area(docs, area) == [docs[0]]
        assert filter_by_area(docs, {"name": "Bengaluru"}) == docs
        assert filter_by_area(docs, None) == docs


# ── fallback_predictions ─────────────────────────────────────────────────────────

class TestFallbackPredictions:
    def test_busiest_category_above_threshold(self):
        summary = [
            CategorySummary("traffic", report_count=6, avg_severity=2.5),
            CategorySummary("safety", report_count=9, avg_severity=1.5),
        ]
        predictions = fallback_predictions(summary, min_reports=5)

        assert len(predictions) == 1
        assert predictions[0].category == "safety"
        assert predictions[0].risk == "medium"
        assert predictions[0].confidence == pytest.approx(0.7)
        assert predictions[0].likelihood == pytest.approx(0.6)

    def test_high_risk_when_severity_above_two(self):
        predictions = fallback_predictions([CategorySummary("traffic", report_count=8, avg_severity=2.4)])
        assert predictions[0].risk == "high"

    def test_no_prediction_at_threshold(self):
        assert fallback_predictions([CategorySummary("traffic", report_count=5)]) == []
        assert fallback_predictions([]) == []


# ── PredictionAgent ──────────────────────────────────────────────────────────────

@pytest.fixture
def seeded_store(memory_store, report_doc):
    for i in range(7):
        memory_store.insert("reports", report_doc(category="traffic", severity="high", north_m=i))
    memory_store.insert("reports", report_doc(category="safety", severity="low"))
    memory_store.insert("reports", report_doc(category="safety", minutes_ago=60 * 24 * 30))
    memory_store.insert("events", report_doc(category="traffic"))
    return memory_store


class TestPredictionAgent:
    def test_llm_predictions_recorded(self, test_config, mock_llm_client, seeded_store):
        mock_llm_client.call.return_value = json.dumps(
            [{
                "title": "Evening gridlock on Outer Ring Road",
                "description": "Signal failures cluster after 6pm",
                "category": "traffic",
                "risk": "HIGH",
                "confidence": 0.8,
                "timeFrame": "next 24 hours",
                "likelihood": 0.7,
                "monitoringPoints": ["signal uptime"],
            }]
        )
        agent = PredictionAgent(test_config, seeded_store, mock_llm_client)

        predictions = agent.run(AnalyticsRequest(time_window_s=7 * 24 * 3600))

        assert [p.title for p in predictions] == ["Evening gridlock on Outer Ring Road"]
        assert predictions[0].risk == "high"
        records = seeded_store.query(ANALYTICS_COLLECTION)
        assert len(records) == 1
        assert records[0]["dataPoints"] == 9
        assert records[0]["generatedBy"] == "ai_analytics"
        assert records[0]["usedFallback"] is False
        prompt = mock_llm_client.call.call_args.args[1]
        assert "Total Reports: 8" in prompt

    def test_service_failure_uses_volume_fallback(self, test_config, mock_llm_client, seeded_store):
        mock_llm_client.call.return_value = None

        predictions = PredictionAgent(test_config, seeded_store, mock_llm_client).run(
            AnalyticsRequest(time_window_s=7 * 24 * 3600)
        )

        assert len(predictions) == 1
        assert predictions[0].category == "traffic"
        assert predictions[0].risk == "high"
        assert seeded_store.query(ANALYTICS_COLLECTION)[0]["usedFallback"] is True

    def test_schema_failure_uses_fallback(self, test_config, mock_llm_client, seeded_store):
        mock_llm_client.call.return_value = json.dumps({"predictions": "none"})
        predictions = PredictionAgent(test_config, seeded_store, mock_llm_client).run(
            AnalyticsRequest(time_window_s=7 * 24 * 3600)
        )
        assert predictions[0].title == "Increased traffic incidents expected"

    def test_area_filter_applied(self, test_config, mock_llm_client, seeded_store):
        mock_llm_client.call.return_value = None
        far_area = {"lat": 28.6139, "lng": 77.2090, "radius": 1000}

        predictions = PredictionAgent(test_config, seeded_store, mock_llm_client).run(
            AnalyticsRequest(time_window_s=7 * 24 * 3600, area=far_area)
        )

        assert predictions == []
        record = seeded_store.query(ANALYTICS_COLLECTION)[0]
        assert record["dataPoints"] == 0
        assert record["area"] == far_area
