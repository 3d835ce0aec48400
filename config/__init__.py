"""NextSignal configuration package."""

from config.defaults import (
    DEFAULT_FUSION_RADIUS_M,
    DEFAULT_TIME_WINDOW_S,
    EARTH_RADIUS_M,
    FALLBACK_GROUPING_RADIUS_M,
    LLM_BACKEND,
    MAX_CANDIDATE_REPORTS,
    PARSE_FALLBACK_CONFIDENCE,
    SYNTHESIS_FALLBACK_CONFIDENCE,
)
from config.settings import PipelineConfig

__all__ = [
    "PipelineConfig",
    "EARTH_RADIUS_M",
    "FALLBACK_GROUPING_RADIUS_M",
    "DEFAULT_FUSION_RADIUS_M",
    "DEFAULT_TIME_WINDOW_S",
    "MAX_CANDIDATE_REPORTS",
    "PARSE_FALLBACK_CONFIDENCE",
    "SYNTHESIS_FALLBACK_CONFIDENCE",
    "LLM_BACKEND",
]
