"""
ElevenLabs text-to-speech.
"""

import logging
from typing import Optional

import httpx

from .config import WorkerConfig
from .errors import ConfigurationError, EmptyResponseError, ProviderCallError

logger = logging.getLogger(__name__)

API_BASE = "https://api.elevenlabs.io/v1"

VOICE_SETTINGS = {"stability": 0.5, "similarity_boost": 0.5}


class ElevenLabsClient:
    name = "elevenlabs"

    def __init__(self, config: WorkerConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._api_key = config.elevenlabs_api_key
        self._model = config.elevenlabs_model
        self._transport = transport

    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def synthesize(self, text: str, voice_id: str) -> bytes:
        """Render ``text`` with ``voice_id`` and return MP3 bytes."""
        if not self._api_key:
            raise ConfigurationError("ELEVENLABS_API_KEY not set")

        headers = {
            "Accept": "audio/mpeg",
            "Content-Type": "application/json",
            "xi-api-key": self._api_key,
        }
        payload = {
            "text": text,
            "model_id": self._model,
            "voice_settings": VOICE_SETTINGS,
        }

        try:
            async with httpx.AsyncClient(timeout=120, transport=self._transport) as client:
                resp = await client.post(
                    f"{API_BASE}/text-to-speech/{voice_id}",
                    headers=headers,
                    json=payload,
                )
        except httpx.HTTPError as e:
            raise ProviderCallError(self.name, str(e)) from e

        if resp.status_code != 200:
            raise ProviderCallError(self.name, resp.text[:500], resp.status_code)
        if not resp.content:
            raise EmptyResponseError(self.name, "no audio returned")

        logger.info(f"ElevenLabs rendered {len(resp.content)} bytes with voice {voice_id}")
        return resp.content
