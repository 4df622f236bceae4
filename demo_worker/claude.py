"""
Anthropic Messages API as a text provider.
"""

import logging
from typing import Optional

import httpx

from .config import WorkerConfig
from .errors import ConfigurationError, EmptyResponseError, ProviderCallError

logger = logging.getLogger(__name__)

API_URL = "https://api.anthropic.com/v1/messages"
API_VERSION = "2023-06-01"


class ClaudeProvider:
    name = "anthropic"

    def __init__(self, config: WorkerConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._api_key = config.anthropic_api_key
        self._model = config.anthropic_model
        self._transport = transport

    def is_configured(self) -> bool:
        return bool(self._api_key)

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

        payload = {
            "model": self._model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "system": system_prompt,
            "messages": [{"role": "user", "content": prompt}],
        }
        headers = {
            "x-api-key": self._api_key,
            "anthropic-version": API_VERSION,
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient(timeout=60, transport=self._transport) as client:
                resp = await client.post(API_URL, headers=headers, json=payload)
        except httpx.HTTPError as e:
            raise ProviderCallError(self.name, str(e)) from e

        if resp.status_code != 200:
            raise ProviderCallError(self.name, resp.text[:500], resp.status_code)

        try:
            blocks = resp.json().get("content") or []
            text = "".join(b.get("text", "") for b in blocks if b.get("type", "text") == "text")
        except (ValueError, AttributeError, TypeError) as e:
            raise EmptyResponseError(self.name, f"unparseable response: {e}") from e
        if not text.strip():
            raise EmptyResponseError(self.name)
        return text.strip()
