"""
GitHub REST client for repository scans.
"""

import logging
from typing import Optional

import httpx

from .errors import ProviderCallError

logger = logging.getLogger(__name__)

API_BASE = "https://api.github.com"
USER_AGENT = "ExplainMyTool-App"


class GitHubClient:
    name = "github"

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=30, transport=self._transport, follow_redirects=True)

    async def list_root(self, full_name: str, access_token: str) -> list[dict]:
        """Entries at the repository root (files and directories)."""
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": USER_AGENT,
        }
        try:
            async with self._client() as client:
                resp = await client.get(f"{API_BASE}/repos/{full_name}/contents", headers=headers)
        except httpx.HTTPError as e:
            raise ProviderCallError(self.name, str(e)) from e

        if resp.status_code != 200:
            raise ProviderCallError(
                self.name, f"Failed to fetch repository contents: {resp.text[:200]}", resp.status_code
            )
        data = resp.json()
        return data if isinstance(data, list) else []

    async def download(self, url: str, access_token: str) -> Optional[str]:
        """Raw file text, or None when the file cannot be fetched."""
        headers = {"Authorization": f"Bearer {access_token}", "User-Agent": USER_AGENT}
        try:
            async with self._client() as client:
                resp = await client.get(url, headers=headers)
        except httpx.HTTPError as e:
            logger.warning(f"GitHub download failed for {url}: {e}")
            return None
        if resp.status_code != 200:
            logger.warning(f"GitHub download {url} returned {resp.status_code}")
            return None
        return resp.text
