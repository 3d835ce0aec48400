"""NextSignal — All default threshold values and configuration constants.

All tuneable values live here. Never hard-code magic numbers in source files.
Import constants from this module; override via PipelineConfig at runtime.
"""

# ── Geography ─────────────────────────────────────────────────────────────────
# Mean Earth radius used by the Haversine distance (metres)
EARTH_RADIUS_M: float = 6_371_000.0

# Maximum distance between two same-category reports for the fallback grouper
FALLBACK_GROUPING_RADIUS_M: float = 200.0

# Decimal places used when coordinates are written into LLM prompts
PROMPT_COORDINATE_PRECISION: int = 4

# ── Fusion window ─────────────────────────────────────────────────────────────
# Default search radius around the fusion centre point (metres)
DEFAULT_FUSION_RADIUS_M: float = 1000.0

# Default look-back window for candidate reports (seconds)
DEFAULT_TIME_WINDOW_S: int = 3600

# Maximum reports fetched from the store per fusion run
MAX_CANDIDATE_REPORTS: int = 100

# Concurrent event synthesis workers per fusion run
SYNTHESIS_MAX_WORKERS: int = 4

# ── Fallback confidences ──────────────────────────────────────────────────────
# Synthesis fallback when the model answered but the answer was unusable
PARSE_FALLBACK_CONFIDENCE: float = 0.6

# Synthesis fallback when the model call itself failed
SYNTHESIS_FALLBACK_CONFIDENCE: float = 0.7

# Media analysis fallbacks on unparseable model output
IMAGE_FALLBACK_CONFIDENCE: float = 0.8
VIDEO_FALLBACK_CONFIDENCE: float = 0.6

# Confidence substituted when the model omits or garbles its own confidence
DEFAULT_LLM_CONFIDENCE: float = 0.5

# ── LLM backends ──────────────────────────────────────────────────────────────
# Default active LLM backend: "anthropic" or "ollama"
LLM_BACKEND: str = "ollama"

# Anthropic model identifier
ANTHROPIC_MODEL: str = "claude-sonnet-4-6"

# Ollama text model identifier
OLLAMA_MODEL: str = "gemma3:27b"

# Ollama model used for image analysis (must accept images)
OLLAMA_VISION_MODEL: str = "llava:13b"

# Default Ollama server base URL
OLLAMA_HOST: str = "http://localhost:11434"

# Ollama Cloud API key for Bearer token authentication; empty disables the header
OLLAMA_API_KEY: str = ""

# Minimum max_tokens for structured extraction calls
LLM_MIN_MAX_TOKENS: int = 256

# Default temperature for LLM calls
LLM_TEMPERATURE: float = 0.1

# Default max_tokens for LLM calls unless overridden
LLM_DEFAULT_MAX_TOKENS: int = 2048

# Upper bound on a single LLM request (seconds); expiry is handled as a failure
LLM_REQUEST_TIMEOUT: float = 30.0

# ── Media analysis ────────────────────────────────────────────────────────────
# HTTP timeout for downloading an uploaded image (seconds)
MEDIA_FETCH_TIMEOUT: int = 15

# Largest image accepted for inline submission (bytes)
MEDIA_MAX_BYTES: int = 10 * 1024 * 1024

# Concurrent media analysis workers per report
MEDIA_MAX_WORKERS: int = 4

# ── Predictions ───────────────────────────────────────────────────────────────
# Default look-back window for pattern analysis (seconds)
PREDICTION_TIME_WINDOW_S: int = 7 * 24 * 3600

# Store read caps for pattern analysis
PREDICTION_MAX_REPORTS: int = 500
PREDICTION_MAX_EVENTS: int = 200

# Minimum reports in the busiest category before a fallback prediction is made
PREDICTION_FALLBACK_MIN_REPORTS: int = 5

# Confidence and likelihood attached to the volume-based fallback prediction
PREDICTION_FALLBACK_CONFIDENCE: float = 0.7
PREDICTION_FALLBACK_LIKELIHOOD: float = 0.6

# ── Sentiment ─────────────────────────────────────────────────────────────────
# Default look-back window for sentiment analysis (seconds)
SENTIMENT_TIME_WINDOW_S: int = 24 * 3600

# Maximum reports scored per sentiment run
SENTIMENT_MAX_ITEMS: int = 200

# Average score boundaries between negative / neutral / positive moods
SENTIMENT_POSITIVE_THRESHOLD: float = 0.1
SENTIMENT_NEGATIVE_THRESHOLD: float = -0.1

# Stored excerpt length for each scored text
SENTIMENT_TEXT_EXCERPT: int = 200

# ── Storage ───────────────────────────────────────────────────────────────────
# Default path of the JSON document store used by the CLI
STORE_PATH: str = "data/store"

# ── Logging ───────────────────────────────────────────────────────────────────
DEFAULT_LOG_LEVEL: str = "INFO"
