"""NextSignal clients package.

External-service clients only — no business logic in this layer.
"""

from nextsignal.clients.llm_client import ImageInput, LLMClient, clamp_confidence
from nextsignal.clients.media_client import MediaClient, MediaFetchError
from nextsignal.clients.structured_call import (
    CallFailure,
    StructuredCallResult,
    structured_llm_call,
)

__all__ = [
    "ImageInput",
    "LLMClient",
    "clamp_confidence",
    "MediaClient",
    "MediaFetchError",
    "CallFailure",
    "StructuredCallResult",
    "structured_llm_call",
]
