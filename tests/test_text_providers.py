"""Vendor clients against httpx mock transports."""

import json

import httpx
import pytest

from demo_worker.claude import ClaudeProvider
from demo_worker.config import WorkerConfig
from demo_worker.elevenlabs import ElevenLabsClient
from demo_worker.errors import ConfigurationError, EmptyResponseError, ProviderCallError
from demo_worker.gemini import GeminiProvider
from demo_worker.openai_chat import OpenAIProvider

CONFIG = WorkerConfig(
    openai_api_key="sk-test",
    gemini_api_key="g-test",
    anthropic_api_key="a-test",
    elevenlabs_api_key="el-test",
)

PARAMS = {"system_prompt": "be brief", "max_tokens": 100, "temperature": 0.5}


def transport(status: int, body=None, captured: list = None, content: bytes = None):
    def handler(request: httpx.Request) -> httpx.Response:
        if captured is not None:
            captured.append(request)
        if content is not None:
            return httpx.Response(status, content=content)
        return httpx.Response(status, json=body if body is not None else {})

    return httpx.MockTransport(handler)


class TestOpenAI:
    async def test_returns_first_choice(self):
        captured = []
        provider = OpenAIProvider(CONFIG, transport(200, {
            "choices": [{"message": {"content": "  Hello there.  "}}],
        }, captured))

        text = await provider.generate("explain", **PARAMS)

        assert text == "Hello there."
        request = captured[0]
        assert request.headers["Authorization"] == "Bearer sk-test"
        payload = json.loads(request.content)
        assert payload["messages"][0] == {"role": "system", "content": "be brief"}
        assert payload["max_tokens"] == 100

    async def test_non_200_raises_with_status(self):
        provider = OpenAIProvider(CONFIG, transport(429, {"error": "rate limited"}))

        with pytest.raises(ProviderCallError) as exc_info:
            await provider.generate("explain", **PARAMS)
        assert exc_info.value.status_code == 429

    async def test_no_choices_is_empty(self):
        provider = OpenAIProvider(CONFIG, transport(200, {"choices": []}))

        with pytest.raises(EmptyResponseError):
            await provider.generate("explain", **PARAMS)

    async def test_html_body_is_empty(self):
        provider = OpenAIProvider(CONFIG, transport(200, content=b"<html>gateway</html>"))

        with pytest.raises(EmptyResponseError, match="unparseable"):
            await provider.generate("explain", **PARAMS)

    async def test_malformed_choice_is_empty(self):
        provider = OpenAIProvider(CONFIG, transport(200, {"choices": ["not a dict"]}))

        with pytest.raises(EmptyResponseError):
            await provider.generate("explain", **PARAMS)

    def test_unconfigured_without_key(self):
        assert not OpenAIProvider(WorkerConfig()).is_configured()

    async def test_generate_without_key_is_a_configuration_error(self):
        with pytest.raises(ConfigurationError):
            await OpenAIProvider(WorkerConfig()).generate("explain", **PARAMS)


class TestGemini:
    async def test_joins_parts_and_passes_key_as_param(self):
        captured = []
        provider = GeminiProvider(CONFIG, transport(200, {
            "candidates": [{"content": {"parts": [{"text": "Part one. "}, {"text": "Part two."}]}}],
        }, captured))

        text = await provider.generate("explain", **PARAMS)

        assert text == "Part one. Part two."
        request = captured[0]
        assert request.url.params["key"] == "g-test"
        body = json.loads(request.content)
        assert body["systemInstruction"]["parts"][0]["text"] == "be brief"
        assert body["generationConfig"]["maxOutputTokens"] == 100

    async def test_no_candidates_is_empty(self):
        provider = GeminiProvider(CONFIG, transport(200, {"candidates": []}))

        with pytest.raises(EmptyResponseError):
            await provider.generate("explain", **PARAMS)

    async def test_html_body_is_empty(self):
        provider = GeminiProvider(CONFIG, transport(200, content=b"<html>gateway</html>"))

        with pytest.raises(EmptyResponseError):
            await provider.generate("explain", **PARAMS)

    async def test_server_error(self):
        provider = GeminiProvider(CONFIG, transport(503, {"error": "unavailable"}))

        with pytest.raises(ProviderCallError):
            await provider.generate("explain", **PARAMS)


class TestClaude:
    async def test_concatenates_text_blocks(self):
        captured = []
        provider = ClaudeProvider(CONFIG, transport(200, {
            "content": [{"type": "text", "text": "Narration."}],
        }, captured))

        text = await provider.generate("explain", **PARAMS)

        assert text == "Narration."
        request = captured[0]
        assert request.headers["x-api-key"] == "a-test"
        assert request.headers["anthropic-version"] == "2023-06-01"
        assert json.loads(request.content)["system"] == "be brief"

    async def test_blank_text_is_empty(self):
        provider = ClaudeProvider(CONFIG, transport(200, {"content": [{"type": "text", "text": "  "}]}))

        with pytest.raises(EmptyResponseError):
            await provider.generate("explain", **PARAMS)

    async def test_list_body_is_empty(self):
        provider = ClaudeProvider(CONFIG, transport(200, ["unexpected"]))

        with pytest.raises(EmptyResponseError):
            await provider.generate("explain", **PARAMS)


class TestElevenLabs:
    async def test_returns_audio_bytes(self):
        captured = []
        client = ElevenLabsClient(CONFIG, transport(200, captured=captured, content=b"ID3audio"))

        audio = await client.synthesize("Hello", "voice-1")

        assert audio == b"ID3audio"
        request = captured[0]
        assert request.url.path.endswith("/text-to-speech/voice-1")
        assert request.headers["xi-api-key"] == "el-test"

    async def test_error_status(self):
        client = ElevenLabsClient(CONFIG, transport(401, {"detail": "bad key"}))

        with pytest.raises(ProviderCallError) as exc_info:
            await client.synthesize("Hello", "voice-1")
        assert exc_info.value.status_code == 401

    async def test_empty_body(self):
        client = ElevenLabsClient(CONFIG, transport(200, content=b""))

        with pytest.raises(EmptyResponseError):
            await client.synthesize("Hello", "voice-1")

    async def test_missing_key(self):
        with pytest.raises(ConfigurationError):
            await ElevenLabsClient(WorkerConfig()).synthesize("Hello", "voice-1")
