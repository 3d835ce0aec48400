"""NextSignal — PipelineConfig and environment-based configuration loading.

All runtime configuration flows through PipelineConfig. No module-level globals,
no hard-coded values. API keys come exclusively from environment variables,
and are only read when a PipelineConfig is constructed.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from dotenv import load_dotenv

from config.defaults import (
    ANTHROPIC_MODEL,
    DEFAULT_FUSION_RADIUS_M,
    DEFAULT_LLM_CONFIDENCE,
    DEFAULT_LOG_LEVEL,
    DEFAULT_TIME_WINDOW_S,
    FALLBACK_GROUPING_RADIUS_M,
    IMAGE_FALLBACK_CONFIDENCE,
    LLM_BACKEND,
    LLM_DEFAULT_MAX_TOKENS,
    LLM_MIN_MAX_TOKENS,
    LLM_REQUEST_TIMEOUT,
    LLM_TEMPERATURE,
    MAX_CANDIDATE_REPORTS,
    MEDIA_FETCH_TIMEOUT,
    MEDIA_MAX_BYTES,
    MEDIA_MAX_WORKERS,
    OLLAMA_API_KEY,
    OLLAMA_HOST,
    OLLAMA_MODEL,
    OLLAMA_VISION_MODEL,
    PARSE_FALLBACK_CONFIDENCE,
    PREDICTION_FALLBACK_CONFIDENCE,
    PREDICTION_FALLBACK_LIKELIHOOD,
    PREDICTION_FALLBACK_MIN_REPORTS,
    PREDICTION_MAX_EVENTS,
    PREDICTION_MAX_REPORTS,
    PREDICTION_TIME_WINDOW_S,
    SENTIMENT_MAX_ITEMS,
    SENTIMENT_NEGATIVE_THRESHOLD,
    SENTIMENT_POSITIVE_THRESHOLD,
    SENTIMENT_TEXT_EXCERPT,
    SENTIMENT_TIME_WINDOW_S,
    STORE_PATH,
    SYNTHESIS_FALLBACK_CONFIDENCE,
    SYNTHESIS_MAX_WORKERS,
    VIDEO_FALLBACK_CONFIDENCE,
)

if TYPE_CHECKING:
    from nextsignal.clients.llm_client import LLMClient

# Load .env file if present; silently skip if missing
load_dotenv()


@dataclass
class PipelineConfig:
    """Single configuration object passed to every NextSignal component.

    All tuneable thresholds, API keys, model names, and store paths live here.
    Never read the environment from algorithm code — take a PipelineConfig.
    """

    # ── Fusion window ──────────────────────────────────────────────────────────
    fusion_radius_m: float = DEFAULT_FUSION_RADIUS_M
    time_window_s: int = DEFAULT_TIME_WINDOW_S
    max_candidate_reports: int = MAX_CANDIDATE_REPORTS
    fallback_grouping_radius_m: float = FALLBACK_GROUPING_RADIUS_M
    synthesis_max_workers: int = SYNTHESIS_MAX_WORKERS

    # ── Fallback confidences ───────────────────────────────────────────────────
    parse_fallback_confidence: float = PARSE_FALLBACK_CONFIDENCE
    synthesis_fallback_confidence: float = SYNTHESIS_FALLBACK_CONFIDENCE
    image_fallback_confidence: float = IMAGE_FALLBACK_CONFIDENCE
    video_fallback_confidence: float = VIDEO_FALLBACK_CONFIDENCE
    default_llm_confidence: float = DEFAULT_LLM_CONFIDENCE

    # ── LLM backend ───────────────────────────────────────────────────────────
    llm_backend: str = field(default_factory=lambda: os.getenv("LLM_BACKEND", LLM_BACKEND))
    anthropic_model: str = field(
        default_factory=lambda: os.getenv("ANTHROPIC_MODEL", ANTHROPIC_MODEL)
    )
    ollama_model: str = field(default_factory=lambda: os.getenv("OLLAMA_MODEL", OLLAMA_MODEL))
    ollama_vision_model: str = field(
        default_factory=lambda: os.getenv("OLLAMA_VISION_MODEL", OLLAMA_VISION_MODEL)
    )
    ollama_host: str = field(default_factory=lambda: os.getenv("OLLAMA_HOST", OLLAMA_HOST))
    ollama_api_key: str = field(
        default_factory=lambda: os.getenv("OLLAMA_API_KEY", OLLAMA_API_KEY)
    )
    llm_temperature: float = LLM_TEMPERATURE
    llm_max_tokens: int = LLM_DEFAULT_MAX_TOKENS
    llm_min_max_tokens: int = LLM_MIN_MAX_TOKENS
    llm_request_timeout: float = LLM_REQUEST_TIMEOUT

    # ── API credentials (from environment only) ────────────────────────────────
    anthropic_api_key: Optional[str] = field(
        default_factory=lambda: os.getenv("ANTHROPIC_API_KEY")
    )

    # ── Media analysis ─────────────────────────────────────────────────────────
    media_fetch_timeout: int = MEDIA_FETCH_TIMEOUT
    media_max_bytes: int = MEDIA_MAX_BYTES
    media_max_workers: int = MEDIA_MAX_WORKERS

    # ── Predictions and sentiment ──────────────────────────────────────────────
    prediction_time_window_s: int = PREDICTION_TIME_WINDOW_S
    prediction_max_reports: int = PREDICTION_MAX_REPORTS
    prediction_max_events: int = PREDICTION_MAX_EVENTS
    prediction_fallback_min_reports: int = PREDICTION_FALLBACK_MIN_REPORTS
    prediction_fallback_confidence: float = PREDICTION_FALLBACK_CONFIDENCE
    prediction_fallback_likelihood: float = PREDICTION_FALLBACK_LIKELIHOOD
    sentiment_time_window_s: int = SENTIMENT_TIME_WINDOW_S
    sentiment_max_items: int = SENTIMENT_MAX_ITEMS
    sentiment_positive_threshold: float = SENTIMENT_POSITIVE_THRESHOLD
    sentiment_negative_threshold: float = SENTIMENT_NEGATIVE_THRESHOLD
    sentiment_text_excerpt: int = SENTIMENT_TEXT_EXCERPT

    # ── Storage and logging ────────────────────────────────────────────────────
    store_path: str = field(default_factory=lambda: os.getenv("NEXTSIGNAL_STORE_PATH", STORE_PATH))
    firebase_credentials: Optional[str] = field(
        default_factory=lambda: os.getenv("FIREBASE_CREDENTIALS")
    )
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", DEFAULT_LOG_LEVEL))

    def __post_init__(self) -> None:
        if self.fusion_radius_m <= 0:
            raise ValueError(f"fusion_radius_m must be positive, got {self.fusion_radius_m}")
        if self.time_window_s <= 0:
            raise ValueError(f"time_window_s must be positive, got {self.time_window_s}")
        if self.max_candidate_reports <= 0:
            raise ValueError("max_candidate_reports must be positive")
        if self.synthesis_max_workers < 1:
            raise ValueError("synthesis_max_workers must be at least 1")
        for name in (
            "parse_fallback_confidence",
            "synthesis_fallback_confidence",
            "image_fallback_confidence",
            "video_fallback_confidence",
            "default_llm_confidence",
            "prediction_fallback_confidence",
            "prediction_fallback_likelihood",
        ):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be within [0, 1], got {value}")
        if self.sentiment_negative_threshold > self.sentiment_positive_threshold:
            raise ValueError("sentiment_negative_threshold must not exceed the positive threshold")

    def llm_client(self) -> "LLMClient":
        """Build the LLMClient described by this configuration."""
        from nextsignal.clients.llm_client import LLMClient

        return LLMClient(
            backend=self.llm_backend,
            anthropic_model=self.anthropic_model,
            ollama_model=self.ollama_model,
            ollama_vision_model=self.ollama_vision_model,
            ollama_host=self.ollama_host,
            ollama_api_key=self.ollama_api_key,
            anthropic_api_key=self.anthropic_api_key,
            request_timeout=self.llm_request_timeout,
            min_max_tokens=self.llm_min_max_tokens,
        )
