"""
Step 2: The Voice. Narration text to a stored MP3.

Voice style picks one of three fixed ElevenLabs voices; anything unknown
falls back to the professional voice.
"""

import logging
from typing import Optional, Union

from ..elevenlabs import ElevenLabsClient
from .models import VoiceStyle
from .storage import audio_key

logger = logging.getLogger(__name__)

VOICE_IDS = {
    VoiceStyle.PROFESSIONAL: "pNInz6obpgDQGcFmaJgB",  # Adam
    VoiceStyle.CASUAL: "21m00Tcm4TlvDq8ikWAM",        # Rachel
    VoiceStyle.ENTHUSIASTIC: "AZnzlk1XvdvUeBnXmlld",  # Domi
}
DEFAULT_VOICE = VoiceStyle.PROFESSIONAL


def voice_for(style: Optional[Union[VoiceStyle, str]]) -> str:
    """Voice id for a style; unknown or missing styles map to professional."""
    try:
        return VOICE_IDS[VoiceStyle(style)]
    except ValueError:
        return VOICE_IDS[DEFAULT_VOICE]


class VoiceSynthesizer:
    def __init__(self, tts: ElevenLabsClient, storage):
        self._tts = tts
        self._storage = storage

    async def synthesize(
        self,
        project_id: str,
        attempt_id: str,
        script: str,
        voice_style: Optional[Union[VoiceStyle, str]] = None,
    ) -> str:
        """
        Render the narration and persist it.

        The object name includes the attempt id, so a retried run never
        overwrites audio an earlier attempt may still reference.

        Returns:
            Durable public URL of the audio.
        """
        voice_id = voice_for(voice_style)
        audio = await self._tts.synthesize(script, voice_id)
        url = await self._storage.store(audio_key(project_id, attempt_id), audio, "audio/mpeg")
        logger.info(f"[{project_id}] narration stored: {url}")
        return url
