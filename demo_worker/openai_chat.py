"""
OpenAI chat completions as a text provider.
"""

import logging
from typing import Optional

import httpx

from .config import WorkerConfig
from .errors import ConfigurationError, EmptyResponseError, ProviderCallError

logger = logging.getLogger(__name__)

API_URL = "https://api.openai.com/v1/chat/completions"


class OpenAIProvider:
    name = "openai"

    def __init__(self, config: WorkerConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._api_key = config.openai_api_key
        self._model = config.openai_model
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
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        headers = {
            "Authorization": f"Bearer {self._api_key}",
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
            choices = resp.json().get("choices") or []
            text = (choices[0].get("message", {}).get("content") or "") if choices else ""
        except (ValueError, AttributeError, TypeError) as e:
            raise EmptyResponseError(self.name, f"unparseable response: {e}") from e
        if not text.strip():
            raise EmptyResponseError(self.name)
        return text.strip()
