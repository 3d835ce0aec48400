"""Dual-backend LLM client for NextSignal.

Provides a backend-agnostic call() interface that dispatches to either the
Anthropic API or Ollama depending on PipelineConfig.llm_backend.

Component code must go through LLMClient — never import anthropic or ollama
directly.

Rules:
- Every request is bounded by request_timeout; expiry counts as a failed call.
- Retry once on an empty or failed response before giving up.
- Model output is free-form text; JSON is extracted defensively (strip fences,
  find boundaries, tolerate surrounding prose).
"""

from __future__ import annotations

import base64
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*")


@dataclass
class ImageInput:
    """Raw image bytes sent inline with a vision request."""

    data: bytes
    mime_type: str = "image/jpeg"

    @property
    def base64_data(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


def _safe_parse_llm_json(text: Optional[str]) -> Optional[Any]:
    """Defensively parse LLM JSON output.

    Strips markdown code fences, then tries the JSON value whose opening
    bracket appears first ("[" or "{"), falling back to the other kind.

    Args:
        text: Raw LLM output string.

    Returns:
        Parsed Python object (dict or list), or None on failure.
    """
    if not text:
        return None

    text = _FENCE_RE.sub("", text).strip().rstrip("`").strip()

    bounds = []
    for start_char, end_char in (("[", "]"), ("{", "}")):
        s = text.find(start_char)
        e = text.rfind(end_char)
        if s != -1 and e > s:
            bounds.append((s, e))
    bounds.sort()

    for s, e in bounds:
        try:
            return json.loads(text[s : e + 1])
        except json.JSONDecodeError:
            pass

    return None


class LLMClient:
    """Backend-agnostic LLM client.

    Dispatches to Anthropic or Ollama based on the configured backend.
    Handles request timeouts, retry on empty response, and inline images.

    Args:
        backend: LLM backend name ("anthropic" or "ollama").
        anthropic_model: Anthropic model ID (text and vision).
        ollama_model: Ollama model name for text-only calls.
        ollama_vision_model: Ollama model name for calls carrying images.
        ollama_host: Ollama server URL.
        ollama_api_key: Ollama Cloud API key for Bearer token auth; empty for
            local instances.
        anthropic_api_key: Anthropic API key (from environment).
        request_timeout: Seconds before a single request is abandoned.
        min_max_tokens: Floor applied to every max_tokens argument.
    """

    def __init__(
        self,
        backend: str = "ollama",
        anthropic_model: str = "claude-sonnet-4-6",
        ollama_model: str = "gemma3:27b",
        ollama_vision_model: str = "llava:13b",
        ollama_host: str = "http://localhost:11434",
        ollama_api_key: str = "",
        anthropic_api_key: Optional[str] = None,
        request_timeout: float = 30.0,
        min_max_tokens: int = 256,
    ) -> None:
        self.backend = backend.lower()
        self.anthropic_model = anthropic_model
        self.ollama_model = ollama_model
        self.ollama_vision_model = ollama_vision_model
        self.ollama_host = ollama_host
        self.ollama_api_key = ollama_api_key
        self.anthropic_api_key = anthropic_api_key
        self.request_timeout = request_timeout
        self.min_max_tokens = min_max_tokens
        self._anthropic_client: Optional[Any] = None
        self._ollama_client: Optional[Any] = None

    def _get_anthropic_client(self) -> Any:
        """Lazily initialize and return the Anthropic client."""
        if self._anthropic_client is None:
            try:
                import anthropic  # type: ignore[import]
            except ImportError:
                raise ImportError(
                    "anthropic package is required for the Anthropic backend. "
                    "Install with: pip install anthropic"
                )
            self._anthropic_client = anthropic.Anthropic(
                api_key=self.anthropic_api_key,
                timeout=self.request_timeout,
                max_retries=0,
            )
        return self._anthropic_client

    def _get_ollama_client(self) -> Any:
        """Lazily initialize and return the Ollama client.

        When ollama_api_key is set, passes an Authorization: Bearer header
        for Ollama Cloud authentication.
        """
        if self._ollama_client is None:
            try:
                import ollama  # type: ignore[import]
            except ImportError:
                raise ImportError(
                    "ollama package is required for the Ollama backend. "
                    "Install with: pip install ollama"
                )
            kwargs: dict = {"host": self.ollama_host, "timeout": self.request_timeout}
            if self.ollama_api_key:
                kwargs["headers"] = {"Authorization": f"Bearer {self.ollama_api_key}"}
            self._ollama_client = ollama.Client(**kwargs)
        return self._ollama_client

    def _call_anthropic(
        self,
        system: str,
        prompt: str,
        max_tokens: int,
        temperature: float,
        images: Sequence[ImageInput] = (),
    ) -> str:
        """Execute a call against the Anthropic Messages API.

        Images are sent as base64 content blocks ahead of the text prompt.
        """
        client = self._get_anthropic_client()
        content: List[dict] = [
            {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": image.mime_type,
                    "data": image.base64_data,
                },
            }
            for image in images
        ]
        content.append({"type": "text", "text": prompt})
        response = client.messages.create(
            model=self.anthropic_model,
            max_tokens=max_tokens,
            temperature=temperature,
            system=system,
            messages=[{"role": "user", "content": content}],
        )
        if response.content and len(response.content) > 0:
            return getattr(response.content[0], "text", "") or ""
        return ""

    def _call_ollama(
        self,
        system: str,
        prompt: str,
        max_tokens: int,
        temperature: float,
        images: Sequence[ImageInput] = (),
    ) -> str:
        """Execute a call against the Ollama chat API.

        Calls carrying images are routed to the vision model.
        """
        client = self._get_ollama_client()
        user_message: dict = {"role": "user", "content": prompt}
        if images:
            user_message["images"] = [image.base64_data for image in images]
        response = client.chat(
            model=self.ollama_vision_model if images else self.ollama_model,
            messages=[
                {"role": "system", "content": system},
                user_message,
            ],
            options={
                "num_predict": max_tokens,
                "temperature": temperature,
            },
        )
        if response and hasattr(response, "message") and response.message:
            return response.message.content or ""
        return ""

    def call(
        self,
        system: str,
        prompt: str,
        max_tokens: int = 2048,
        temperature: float = 0.1,
        images: Sequence[ImageInput] = (),
    ) -> Optional[str]:
        """Execute an LLM call with one retry on empty or failed response.

        The retry after an empty response doubles max_tokens.

        Args:
            system: System prompt string.
            prompt: User message/prompt string.
            max_tokens: Maximum tokens to generate (floored at min_max_tokens).
            temperature: Sampling temperature.
            images: Optional inline images for vision-capable models.

        Returns:
            Response text string, or None if both attempts fail or return empty.
        """
        max_tokens = max(max_tokens, self.min_max_tokens)

        for attempt in range(2):
            try:
                if self.backend == "anthropic":
                    result = self._call_anthropic(system, prompt, max_tokens, temperature, images)
                else:
                    result = self._call_ollama(system, prompt, max_tokens, temperature, images)

                if result and result.strip():
                    return result

                if attempt == 0:
                    logger.warning(
                        "LLM returned empty response on first attempt — retrying with "
                        "max_tokens=%d",
                        max_tokens * 2,
                    )
                    max_tokens = max_tokens * 2

            except ImportError:
                raise
            except Exception as exc:
                if attempt == 0:
                    logger.warning("LLM call failed (attempt 1): %s — retrying", exc)
                else:
                    logger.error("LLM call failed (attempt 2): %s", exc)
                    return None

        logger.error("LLM returned empty response after 2 attempts")
        return None


def with_json_instruction(system: str) -> str:
    """Append the JSON-only instruction to a system prompt."""
    return (
        system.rstrip()
        + "\n\nReturn only valid JSON. Do not include any explanation or markdown fences."
    )


def clamp_confidence(value: Any, default: float) -> float:
    """Coerce a model-reported confidence into [0, 1].

    Accepts numbers and numeric strings (optionally with a trailing "%").
    Anything else yields ``default``.
    """
    if isinstance(value, bool):
        return default
    if isinstance(value, str):
        text = value.strip()
        percent = text.endswith("%")
        try:
            value = float(text.rstrip("%").strip())
        except ValueError:
            return default
        if percent:
            value = value / 100.0
    if not isinstance(value, (int, float)) or value != value:
        return default
    return min(max(float(value), 0.0), 1.0)
