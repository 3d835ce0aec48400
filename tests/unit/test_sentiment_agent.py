"""Unit tests for nextsignal.agents.sentiment_agent."""

from __future__ import annotations

import json

import pytest

from nextsignal.agents.sentiment_agent import (
    SENTIMENT_COLLECTION,
    SentimentAgent,
    _validate_score,
    mood_category,
)
from nextsignal.errors import SchemaError
from nextsignal.models.analytics import AnalyticsRequest

_DAY = 24 * 3600


class TestMoodCategory:
    @pytest.mark.parametrize(
        "average,expected",
        [(0.5, "positive"), (0.1, "neutral"), (0.0, "neutral"), (-0.1, "neutral"), (-0.4, "negative")],
    )
    def test_thresholds(self, average, expected):
        assert mood_category(average) == expected


class TestValidateScore:
    def test_clamped(self):
        assert _validate_score({"score": 3, "magnitude": -1}) == (1.0, 0.0)

    def test_missing_magnitude_defaults_zero(self):
        assert _validate_score({"score": -0.3}) == (-0.3, 0.0)

    @pytest.mark.parametrize("parsed", [{"score": "bad"}, {"magnitude": 1.0}, [0.2]])
    def test_unusable_rejected(self, parsed):
        with pytest.raises(SchemaError):
            _validate_score(parsed)


class TestSentimentAgent:
    def test_scores_stored_and_summarised(
        self, test_config, mock_llm_client, memory_store, report_doc
    ):
        memory_store.insert("reports", report_doc(title="Great new park", description="Lovely"))
        memory_store.insert("reports", report_doc(title="Garbage pile", description="Smells bad"))
        mock_llm_client.call.side_effect = [
            json.dumps({"score": 0.8, "magnitude": 0.9}),
            json.dumps({"score": -0.2, "magnitude": 0.4}),
        ]

        summary = SentimentAgent(test_config, memory_store, mock_llm_client).run(
            AnalyticsRequest(time_window_s=_DAY)
        )

        assert summary.sentiment_count == 2
        assert summary.average_score == pytest.approx(0.3)
        assert summary.mood_category == "positive"
        stored = memory_store.query(SENTIMENT_COLLECTION)
        assert len(stored) == 2
        assert {d["sourceType"] for d in stored} == {"report"}
        assert all(d["id"] for d in stored)

    def test_failed_items_skipped(self, test_config, mock_llm_client, memory_store, report_doc):
        memory_store.insert("reports", report_doc())
        memory_store.insert("reports", report_doc())
        mock_llm_client.call.side_effect = [None, json.dumps({"score": -0.6})]

        summary = SentimentAgent(test_config, memory_store, mock_llm_client).run(
            AnalyticsRequest(time_window_s=_DAY)
        )

        assert summary.sentiment_count == 1
        assert summary.average_score == pytest.approx(-0.6)
        assert summary.mood_category == "negative"

    def test_no_reports_is_neutral(self, test_config, mock_llm_client, memory_store):
        summary = SentimentAgent(test_config, memory_store, mock_llm_client).run(
            AnalyticsRequest(time_window_s=_DAY)
        )
        assert (summary.sentiment_count, summary.average_score, summary.mood_category) == (
            0, 0.0, "neutral",
        )
        mock_llm_client.call.assert_not_called()

    def test_old_reports_and_unsupported_sources_ignored(
        self, test_config, mock_llm_client, memory_store, report_doc
    ):
        memory_store.insert("reports", report_doc(minutes_ago=60 * 48))
        summary = SentimentAgent(test_config, memory_store, mock_llm_client).run(
            AnalyticsRequest(time_window_s=_DAY, sources=["reports", "social"])
        )
        assert summary.sentiment_count == 0

    def test_text_excerpt_truncated(self, mock_llm_client, memory_store, report_doc):
        from config.settings import PipelineConfig

        config = PipelineConfig(sentiment_text_excerpt=10, llm_backend="ollama")
        memory_store.insert("reports", report_doc(title="A" * 50, description=""))
        mock_llm_client.call.return_value = json.dumps({"score": 0.0})

        summary = SentimentAgent(config, memory_store, mock_llm_client).run(
            AnalyticsRequest(time_window_s=_DAY)
        )

        assert summary.records[0].text == "A" * 10
