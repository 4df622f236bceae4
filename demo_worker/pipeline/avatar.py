"""
Step 3: The Avatar. Tavus replica render of the narration.

Submit, hand the job id to the caller, then poll at a fixed interval for a
bounded number of attempts:
  completed + URL  → return the URL
  failed           → AvatarJobFailedError
  budget exhausted → AvatarTimeoutError

A status query that errors counts as a spent attempt; polling carries on.
The generator never persists anything itself.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from ..errors import AvatarJobFailedError, AvatarTimeoutError, ProviderCallError
from ..tavus import TavusClient

logger = logging.getLogger(__name__)

OnSubmitted = Callable[[str], Awaitable[None]]


class AvatarVideoGenerator:
    def __init__(
        self,
        client: TavusClient,
        poll_interval: float = 10.0,
        max_attempts: int = 30,
    ):
        self._client = client
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts

    async def submit(self, script: str, audio_url: str) -> str:
        return await self._client.create_video(script, audio_url)

    async def wait(self, job_id: str) -> str:
        """Poll ``job_id`` until it resolves; returns the download URL."""
        for attempt in range(self.max_attempts):
            await asyncio.sleep(self.poll_interval)

            try:
                job = await self._client.get_video(job_id)
            except ProviderCallError as e:
                logger.warning(f"Tavus poll #{attempt + 1} for {job_id} errored: {e}")
                continue

            logger.info(f"Tavus poll #{attempt + 1}: {job_id} status={job.raw_status}")

            if job.status == "completed":
                if job.download_url:
                    return job.download_url
                # completed without a URL yet; keep polling
                continue
            if job.status == "failed":
                raise AvatarJobFailedError(
                    f"Tavus video {job_id} failed: {job.error or job.raw_status}"
                )

        raise AvatarTimeoutError(
            f"Tavus video {job_id} timed out after {self.max_attempts * self.poll_interval:g}s"
        )

    async def generate(
        self,
        script: str,
        audio_url: str,
        on_submitted: Optional[OnSubmitted] = None,
        existing_job_id: Optional[str] = None,
    ) -> str:
        """
        Submit (or resume) a render and wait for it.

        ``on_submitted`` runs before the first poll so the caller can record the
        job id durably. With ``existing_job_id`` nothing is submitted.
        """
        if existing_job_id:
            logger.info(f"Resuming Tavus video {existing_job_id}")
            job_id = existing_job_id
        else:
            job_id = await self.submit(script, audio_url)
            if on_submitted is not None:
                await on_submitted(job_id)
        return await self.wait(job_id)
