"""
Step 4: Combine. Pick the deliverable.

The avatar render already carries the narration, so it wins when present;
otherwise the narration audio is the deliverable. Code overlay and demo type
are accepted so a richer composer can slot in without touching callers.
"""

import logging
from typing import Optional

from .models import DemoType

logger = logging.getLogger(__name__)


class VideoComposer:
    async def compose(
        self,
        avatar_url: Optional[str],
        audio_url: str,
        code: str = "",
        include_code: bool = True,
        demo_type: DemoType = DemoType.WALKTHROUGH,
    ) -> str:
        if avatar_url:
            logger.info("Deliverable: avatar video")
            return avatar_url
        logger.info("Deliverable: narration audio")
        return audio_url
