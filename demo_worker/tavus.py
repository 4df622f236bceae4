"""
Tavus integration: replica video renders and live conversations.

Video jobs are asynchronous on Tavus' side. ``create_video`` returns the job
id immediately; ``get_video`` reports a normalized status that callers poll.
"""

import logging
from typing import Optional

import httpx
from pydantic import BaseModel

from .config import WorkerConfig
from .errors import ConfigurationError, EmptyResponseError, ProviderCallError

logger = logging.getLogger(__name__)

API_BASE = "https://tavusapi.com/v2"

# Raw Tavus statuses → pending | completed | failed
_COMPLETED = {"completed", "ready"}
_FAILED = {"failed", "error", "deleted"}

CONVERSATION_PROPERTIES = {
    "max_call_duration": 1800,
    "participant_left_timeout": 120,
    "participant_absent_timeout": 300,
    "enable_recording": False,
}


class AvatarJobStatus(BaseModel):
    status: str  # pending | completed | failed
    raw_status: str = ""
    download_url: Optional[str] = None
    error: Optional[str] = None


def normalize_status(raw: str) -> str:
    value = (raw or "").strip().lower()
    if value in _COMPLETED:
        return "completed"
    if value in _FAILED:
        return "failed"
    return "pending"


class TavusClient:
    name = "tavus"

    def __init__(self, config: WorkerConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._api_key = config.tavus_api_key
        self.replica_id = config.tavus_replica_id
        self.background_url = config.avatar_background_url
        self.callback_url = config.conversation_callback_url
        self._transport = transport

    def is_configured(self) -> bool:
        return bool(self._api_key)

    def _headers(self) -> dict:
        if not self._api_key:
            raise ConfigurationError("TAVUS_API_KEY not set")
        return {"x-api-key": self._api_key, "Content-Type": "application/json"}

    async def _request(self, method: str, path: str, json: Optional[dict] = None, timeout: float = 30) -> dict:
        headers = self._headers()
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                resp = await client.request(method, f"{API_BASE}{path}", headers=headers, json=json)
        except httpx.HTTPError as e:
            raise ProviderCallError(self.name, str(e)) from e

        if resp.status_code >= 300:
            raise ProviderCallError(self.name, resp.text[:500], resp.status_code)
        if not resp.content:
            return {}
        try:
            data = resp.json()
        except ValueError as e:
            raise ProviderCallError(self.name, f"invalid JSON: {resp.text[:200]}", resp.status_code) from e
        if not isinstance(data, dict):
            raise ProviderCallError(self.name, f"unexpected response body: {resp.text[:200]}", resp.status_code)
        return data

    # ── Video renders ────────────────────────────────────────────────────

    async def create_video(self, script: str, audio_url: str) -> str:
        """Submit a replica render and return the Tavus video id."""
        payload = {
            "script": script,
            "replica_id": self.replica_id,
            "background_url": self.background_url,
            "voice_settings": {"audio_url": audio_url},
        }
        data = await self._request("POST", "/videos", json=payload)
        video_id = data.get("video_id")
        if not video_id:
            raise EmptyResponseError(self.name, f"no video_id in submit response: {data}")
        logger.info(f"Tavus video submitted: video_id={video_id}")
        return video_id

    async def get_video(self, video_id: str) -> AvatarJobStatus:
        data = await self._request("GET", f"/videos/{video_id}", timeout=15)
        raw = data.get("status", "")
        return AvatarJobStatus(
            status=normalize_status(raw),
            raw_status=raw,
            download_url=data.get("download_url") or data.get("hosted_url"),
            error=data.get("status_details") or data.get("error"),
        )

    # ── Conversations ────────────────────────────────────────────────────

    async def create_conversation(self, name: str, system_prompt: str) -> dict:
        """Start a live conversation; returns conversation_id and conversation_url."""
        payload = {
            "replica_id": self.replica_id,
            "conversation_name": name,
            "system_prompt": system_prompt,
            "properties": CONVERSATION_PROPERTIES,
        }
        if self.callback_url:
            payload["callback_url"] = self.callback_url
        data = await self._request("POST", "/conversations", json=payload)
        if not data.get("conversation_id"):
            raise EmptyResponseError(self.name, f"no conversation_id in response: {data}")
        return data

    async def end_conversation(self, conversation_id: str) -> None:
        await self._request("POST", f"/conversations/{conversation_id}/end")
        logger.info(f"Tavus conversation {conversation_id} ended")
