"""
Gemini generateContent (REST) as a text provider.
"""

import logging
from typing import Optional

import httpx

from .config import WorkerConfig
from .errors import ConfigurationError, EmptyResponseError, ProviderCallError

logger = logging.getLogger(__name__)

API_BASE = "https://generativelanguage.googleapis.com/v1beta"


class GeminiProvider:
    name = "gemini"

    def __init__(self, config: WorkerConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._api_key = config.gemini_api_key
        self._model = config.gemini_model
        self._transport = transport

    def is_configured(self) -> bool:
        return bool(self._api_key)

    def _api_url(self) -> str:
        return f"{API_BASE}/models/{self._model}:generateContent"

    async def generate(
        self,
        prompt: str,
        *,
        system_prompt: str,
        max_tokens: int,
        temperature: float,
    ) -> str:
        if not self._api_key:
            raise ConfigurationError(f"{self.name} API key not set")

        body = {
            "systemInstruction": {"parts": [{"text": system_prompt}]},
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": temperature,
                "topK": 40,
                "topP": 0.95,
                "maxOutputTokens": max_tokens,
            },
        }

        try:
            async with httpx.AsyncClient(timeout=60, transport=self._transport) as client:
                resp = await client.post(
                    self._api_url(),
                    params={"key": self._api_key},
                    json=body,
                )
        except httpx.HTTPError as e:
            raise ProviderCallError(self.name, str(e)) from e

        if resp.status_code != 200:
            raise ProviderCallError(self.name, resp.text[:500], resp.status_code)

        try:
            return _extract_text(resp.json())
        except (ValueError, AttributeError, TypeError) as e:
            raise EmptyResponseError(self.name, f"unparseable response: {e}") from e


def _extract_text(data: dict) -> str:
    candidates = data.get("candidates") or []
    if not candidates:
        raise EmptyResponseError("gemini")
    parts = candidates[0].get("content", {}).get("parts") or []
    text = "".join(part.get("text", "") for part in parts)
    if not text.strip():
        raise EmptyResponseError("gemini")
    return text.strip()
