"""Structured AI call: prompt in, validated value or fallback out.

Grouping, synthesis, media analysis, predictions and sentiment all share one
protocol: ask the model for JSON, parse it leniently, validate its shape,
and substitute a deterministic fallback when any step fails. This module is
the single implementation of that protocol.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, Sequence, TypeVar

from nextsignal.clients.llm_client import (
    ImageInput,
    LLMClient,
    _safe_parse_llm_json,
    with_json_instruction,
)
from nextsignal.errors import SchemaError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CallFailure:
    """Reasons a structured call fell back."""

    NONE = ""
    SERVICE_ERROR = "service_error"   # network error, timeout, empty response
    PARSE_ERROR = "parse_error"       # no JSON value in the response text
    SCHEMA_ERROR = "schema_error"     # JSON present but failed validation


@dataclass
class StructuredCallResult(Generic[T]):
    """Value produced by structured_llm_call() plus how it was obtained."""

    value: T
    used_fallback: bool = False
    failure: str = CallFailure.NONE
    raw_text: Optional[str] = None
    detail: str = ""


def structured_llm_call(
    client: LLMClient,
    system: str,
    prompt: str,
    validate: Callable[[Any], T],
    fallback: Callable[[str, Optional[str]], T],
    images: Sequence[ImageInput] = (),
    max_tokens: int = 2048,
    temperature: float = 0.1,
    label: str = "structured call",
) -> StructuredCallResult[T]:
    """Call the model, validate its JSON answer, or fall back.

    Never raises for service, parse, or schema failures.

    Args:
        client: Configured LLMClient.
        system: System prompt (the JSON-only instruction is appended).
        prompt: User prompt, already built by the caller.
        validate: Converts the parsed JSON into the caller's type; raises
            SchemaError (or ValueError/TypeError/KeyError) when it does not fit.
        fallback: Called with (failure kind, raw response text or None) to
            produce a deterministic substitute.
        images: Optional inline images for vision calls.
        max_tokens: Generation budget.
        temperature: Sampling temperature.
        label: Short name used in log lines.

    Returns:
        StructuredCallResult carrying the validated or fallback value.
    """
    raw: Optional[str]
    try:
        raw = client.call(
            with_json_instruction(system),
            prompt,
            max_tokens=max_tokens,
            temperature=temperature,
            images=images,
        )
    except Exception as exc:
        logger.warning("%s: LLM call raised %s — using fallback", label, exc)
        raw = None

    if raw is None:
        logger.warning("%s: no response from LLM service — using fallback", label)
        return StructuredCallResult(
            value=fallback(CallFailure.SERVICE_ERROR, None),
            used_fallback=True,
            failure=CallFailure.SERVICE_ERROR,
        )

    parsed = _safe_parse_llm_json(raw)
    if parsed is None:
        logger.warning(
            "%s: response is not JSON — using fallback. Raw (first 200 chars): %.200s",
            label,
            raw,
        )
        return StructuredCallResult(
            value=fallback(CallFailure.PARSE_ERROR, raw),
            used_fallback=True,
            failure=CallFailure.PARSE_ERROR,
            raw_text=raw,
        )

    try:
        value = validate(parsed)
    except (SchemaError, ValueError, TypeError, KeyError) as exc:
        logger.warning("%s: response failed validation (%s) — using fallback", label, exc)
        return StructuredCallResult(
            value=fallback(CallFailure.SCHEMA_ERROR, raw),
            used_fallback=True,
            failure=CallFailure.SCHEMA_ERROR,
            raw_text=raw,
            detail=str(exc),
        )

    return StructuredCallResult(value=value, raw_text=raw)
