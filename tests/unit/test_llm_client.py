"""Unit tests for nextsignal.clients.llm_client.

Covers:
- _safe_parse_llm_json: valid JSON, fence stripping, boundary detection, edge cases
- clamp_confidence: numeric, string and percent coercion
- LLMClient.call: retry on empty, backend dispatch, image routing
- LLMClient backends: request timeout wiring, timeout failures
"""

from __future__ import annotations

import sys
from unittest.mock import MagicMock, patch

import pytest

from nextsignal.clients.llm_client import (
    ImageInput,
    LLMClient,
    _safe_parse_llm_json,
    clamp_confidence,
    with_json_instruction,
)


# ── _safe_parse_llm_json ─────────────────────────────────────────────────────────

class TestSafeParseLlmJson:
    def test_valid_json_object(self):
        """A clean JSON object must be parsed correctly."""
        result = _safe_parse_llm_json('{"confidence": 0.7, "title": "Pothole"}')
        assert result == {"confidence": 0.7, "title": "Pothole"}

    def test_valid_json_array(self):
        """A clean JSON array must be parsed correctly."""
        result = _safe_parse_llm_json('[{"groupId": "g1"}, {"groupId": "g2"}]')
        assert isinstance(result, list)
        assert len(result) == 2

    def test_object_containing_array_parsed_as_object(self):
        """The bracket that opens first wins, so an object with an array stays an object."""
        result = _safe_parse_llm_json('{"reportIds": ["a", "b"], "groupId": "g1"}')
        assert result == {"reportIds": ["a", "b"], "groupId": "g1"}

    def test_strips_markdown_json_fence(self):
        """```json code fences must be stripped before parsing."""
        text = '```json\n{"status": "ok"}\n```'
        assert _safe_parse_llm_json(text) == {"status": "ok"}

    def test_strips_plain_code_fence(self):
        """Plain ``` code fences (no language specifier) must be stripped."""
        assert _safe_parse_llm_json('```\n{"key": "value"}\n```') == {"key": "value"}

    def test_finds_object_boundary_after_prose(self):
        """Must locate the { boundary even with leading text."""
        result = _safe_parse_llm_json('Here is the result: {"confidence": 0.8} Hope it helps.')
        assert result == {"confidence": 0.8}

    def test_finds_array_boundary_after_prose(self):
        result = _safe_parse_llm_json('Groups: [{"reportIds": ["r1"]}]')
        assert result == [{"reportIds": ["r1"]}]

    def test_trailing_backtick_stripped(self):
        assert _safe_parse_llm_json('{"key": "value"}`') == {"key": "value"}

    def test_empty_string_returns_none(self):
        assert _safe_parse_llm_json("") is None

    def test_none_returns_none(self):
        assert _safe_parse_llm_json(None) is None

    def test_pure_garbage_returns_none(self):
        """Pure non-JSON text must return None."""
        assert _safe_parse_llm_json("not json") is None

    def test_broken_json_returns_none(self):
        assert _safe_parse_llm_json('{"title": "unterminated}') is None


# ── clamp_confidence ──────────────────────────────────────────────────────────────

class TestClampConfidence:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (0.85, 0.85),
            (1.7, 1.0),
            (-0.2, 0.0),
            (1, 1.0),
            ("0.9", 0.9),
            ("85%", 0.85),
        ],
    )
    def test_coerced_into_unit_interval(self, value, expected):
        assert clamp_confidence(value, 0.5) == pytest.approx(expected)

    @pytest.mark.parametrize("value", [None, "high", True, float("nan"), [0.9]])
    def test_unusable_values_use_default(self, value):
        assert clamp_confidence(value, 0.5) == 0.5


# ── ImageInput ───────────────────────────────────────────────────────────────────

class TestImageInput:
    def test_base64_encoding(self):
        assert ImageInput(data=b"abc").base64_data == "YWJj"


# ── LLMClient.call ────────────────────────────────────────────────────────────────

class TestLLMClientCall:
    def test_call_returns_response_text(self):
        """A successful backend call must return the response text."""
        client = LLMClient(backend="anthropic")

        with patch.object(client, "_call_anthropic", return_value="response text"):
            result = client.call("system", "prompt", max_tokens=512)

        assert result == "response text"

    def test_call_retries_once_on_empty_response(self):
        """Empty response on first attempt must trigger one retry."""
        client = LLMClient(backend="anthropic")

        with patch.object(
            client, "_call_anthropic", side_effect=["", "valid response on retry"]
        ) as mock_call:
            result = client.call("system", "prompt", max_tokens=256)

        assert result == "valid response on retry"
        assert mock_call.call_count == 2

    def test_call_retries_with_doubled_max_tokens(self):
        """Retry attempt must use doubled max_tokens."""
        client = LLMClient(backend="anthropic")
        received_tokens = []

        def _capture(system, prompt, max_tokens, temperature, images):
            received_tokens.append(max_tokens)
            return "" if len(received_tokens) == 1 else "ok"

        with patch.object(client, "_call_anthropic", side_effect=_capture):
            client.call("sys", "prompt", max_tokens=512)

        assert received_tokens == [512, 1024]

    def test_call_returns_none_after_two_empty_responses(self):
        client = LLMClient(backend="anthropic")

        with patch.object(client, "_call_anthropic", return_value="   "):
            assert client.call("system", "prompt") is None

    def test_call_enforces_min_max_tokens(self):
        """max_tokens below the configured floor must be raised to it."""
        client = LLMClient(backend="anthropic", min_max_tokens=256)
        received_tokens = []

        def _capture(system, prompt, max_tokens, temperature, images):
            received_tokens.append(max_tokens)
            return "ok"

        with patch.object(client, "_call_anthropic", side_effect=_capture):
            client.call("sys", "prompt", max_tokens=10)

        assert received_tokens == [256]

    def test_call_dispatches_to_ollama_backend(self):
        client = LLMClient(backend="ollama")

        with patch.object(client, "_call_ollama", return_value="ok") as mock_ollama:
            client.call("sys", "prompt")

        mock_ollama.assert_called_once()

    def test_call_dispatches_to_anthropic_backend(self):
        client = LLMClient(backend="ANTHROPIC")

        with patch.object(client, "_call_anthropic", return_value="ok") as mock_anthropic:
            client.call("sys", "prompt")

        mock_anthropic.assert_called_once()

    def test_call_exception_on_first_attempt_retried(self):
        """Exception on first attempt (e.g. a timeout) must be caught and retried."""
        client = LLMClient(backend="anthropic")

        with patch.object(
            client, "_call_anthropic",
            side_effect=[TimeoutError("request timed out"), "retry success"],
        ):
            assert client.call("sys", "prompt") == "retry success"

    def test_call_exception_on_both_attempts_returns_none(self):
        client = LLMClient(backend="anthropic")

        with patch.object(
            client, "_call_anthropic", side_effect=RuntimeError("permanent failure")
        ):
            assert client.call("sys", "prompt") is None

    def test_missing_backend_package_propagates(self):
        """A missing SDK is a deployment error, not a service failure."""
        client = LLMClient(backend="anthropic")

        with patch.object(client, "_call_anthropic", side_effect=ImportError("no anthropic")):
            with pytest.raises(ImportError):
                client.call("sys", "prompt")


class TestBackendRequests:
    def test_anthropic_images_sent_before_text(self):
        """Images become base64 content blocks ahead of the text block."""
        client = LLMClient(backend="anthropic", anthropic_model="test-model")
        sdk = MagicMock()
        sdk.messages.create.return_value = MagicMock(content=[MagicMock(text="ok")])
        client._anthropic_client = sdk

        result = client.call("sys", "describe", images=[ImageInput(b"abc", "image/png")])

        assert result == "ok"
        kwargs = sdk.messages.create.call_args.kwargs
        content = kwargs["messages"][0]["content"]
        assert content[0]["type"] == "image"
        assert content[0]["source"] == {"type": "base64", "media_type": "image/png", "data": "YWJj"}
        assert content[-1] == {"type": "text", "text": "describe"}
        assert kwargs["model"] == "test-model"
        assert kwargs["system"] == "sys"

    def test_ollama_routes_images_to_vision_model(self):
        client = LLMClient(backend="ollama", ollama_model="text", ollama_vision_model="vision")
        sdk = MagicMock()
        sdk.chat.return_value = MagicMock(message=MagicMock(content="ok"))
        client._ollama_client = sdk

        client.call("sys", "describe", images=[ImageInput(b"abc")])

        kwargs = sdk.chat.call_args.kwargs
        assert kwargs["model"] == "vision"
        assert kwargs["messages"][1]["images"] == ["YWJj"]

    def test_ollama_text_only_uses_text_model(self):
        client = LLMClient(backend="ollama", ollama_model="text", ollama_vision_model="vision")
        sdk = MagicMock()
        sdk.chat.return_value = MagicMock(message=MagicMock(content="ok"))
        client._ollama_client = sdk

        client.call("sys", "prompt")

        kwargs = sdk.chat.call_args.kwargs
        assert kwargs["model"] == "text"
        assert "images" not in kwargs["messages"][1]



# ── Backend construction and timeouts ────────────────────────────────────────────

def _fake_sdk(module_name: str, client_attr: str) -> MagicMock:
    """Module stand-in whose client class records its constructor kwargs."""
    module = MagicMock(name=module_name)
    getattr(module, client_attr).return_value = MagicMock(name=f"{module_name}.client")
    return module


class TestLLMClientTimeouts:
    def test_anthropic_client_bounded_by_request_timeout(self, monkeypatch):
        sdk = _fake_sdk("anthropic", "Anthropic")
        monkeypatch.setitem(sys.modules, "anthropic", sdk)
        client = LLMClient(backend="anthropic", anthropic_api_key="k", request_timeout=12.5)

        client._get_anthropic_client()

        sdk.Anthropic.assert_called_once_with(api_key="k", timeout=12.5, max_retries=0)

    def test_ollama_client_bounded_by_request_timeout(self, monkeypatch):
        sdk = _fake_sdk("ollama", "Client")
        monkeypatch.setitem(sys.modules, "ollama", sdk)
        client = LLMClient(backend="ollama", ollama_host="http://ollama:11434", request_timeout=7.0)

        client._get_ollama_client()

        sdk.Client.assert_called_once_with(host="http://ollama:11434", timeout=7.0)

    def test_ollama_api_key_sent_as_bearer_header(self, monkeypatch):
        sdk = _fake_sdk("ollama", "Client")
        monkeypatch.setitem(sys.modules, "ollama", sdk)
        client = LLMClient(backend="ollama", ollama_api_key="secret", request_timeout=7.0)

        client._get_ollama_client()

        assert sdk.Client.call_args.kwargs["headers"] == {"Authorization": "Bearer secret"}
        assert sdk.Client.call_args.kwargs["timeout"] == 7.0

    def test_backend_client_built_once(self, monkeypatch):
        sdk = _fake_sdk("ollama", "Client")
        sdk.Client.return_value.chat.return_value = MagicMock(message=MagicMock(content="ok"))
        monkeypatch.setitem(sys.modules, "ollama", sdk)
        client = LLMClient(backend="ollama")

        client.call("sys", "one")
        client.call("sys", "two")

        assert sdk.Client.call_count == 1

    def test_timeout_on_both_attempts_returns_none(self, monkeypatch):
        sdk = _fake_sdk("ollama", "Client")
        sdk.Client.return_value.chat.side_effect = TimeoutError("read timed out")
        monkeypatch.setitem(sys.modules, "ollama", sdk)
        client = LLMClient(backend="ollama", request_timeout=0.5)

        assert client.call("sys", "prompt") is None
        assert sdk.Client.return_value.chat.call_count == 2

    def test_timeout_then_success_retries(self, monkeypatch):
        sdk = _fake_sdk("anthropic", "Anthropic")
        sdk.Anthropic.return_value.messages.create.side_effect = [
            TimeoutError("read timed out"),
            MagicMock(content=[MagicMock(text='{"ok": true}')]),
        ]
        monkeypatch.setitem(sys.modules, "anthropic", sdk)
        client = LLMClient(backend="anthropic")

        assert client.call("sys", "prompt") == '{"ok": true}'


class TestWithJsonInstruction:
    def test_rule_appended_to_system_prompt(self):
        system = with_json_instruction("Be helpful.   ")
        assert system.startswith("Be helpful.\n\n")
        assert "Return only valid JSON" in system
