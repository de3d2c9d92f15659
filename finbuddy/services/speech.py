"""
Text-to-Speech Client

Reads assistant replies aloud. The ElevenLabs endpoint returns MP3
bytes; callers get them base64-encoded so the audio travels inside a
JSON body, the way the web client plays it.

BOUNDARIES:
- No retries, no caching of generated audio.
- The key is loaded on first use, so the API starts without it and only
  speech requests fail when it is missing.
"""

import asyncio
import base64
from typing import Optional

import requests
import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from finbuddy.config import SpeechSettings, get_settings

logger = structlog.get_logger(__name__)


class SpeechServiceError(Exception):
    """Synthesis failed. status_code is the status to answer with."""

    def __init__(self, message: str, status_code: int = 500):
        self.status_code = status_code
        super().__init__(message)


class SpeechRequest(BaseModel):
    """Body of a text-to-speech call."""
    model_config = ConfigDict(populate_by_name=True)

    text: str = ""
    voice_id: Optional[str] = Field(default=None, alias="voiceId")


class SpeechService:
    """Thin client for the ElevenLabs text-to-speech endpoint."""

    route = "text-to-speech"

    def __init__(
        self,
        settings: Optional[SpeechSettings] = None,
        session: Optional[requests.Session] = None,
    ):
        self._settings = settings
        self._session = session or requests.Session()

    @property
    def settings(self) -> SpeechSettings:
        if self._settings is None:
            try:
                self._settings = get_settings().speech
            except ValidationError:
                raise SpeechServiceError("ELEVENLABS_API_KEY is not configured")
        return self._settings

    def _synthesize_sync(self, text: str, voice_id: Optional[str]) -> str:
        settings = self.settings
        voice = voice_id or settings.voice_id
        logger.info("speech_requested", voice_id=voice, characters=len(text))
        try:
            response = self._session.post(
                settings.speech_url(voice),
                json={
                    "text": text,
                    "model_id": settings.model_id,
                    "voice_settings": {
                        "stability": settings.stability,
                        "similarity_boost": settings.similarity_boost,
                        "style": 0.0,
                        "use_speaker_boost": True,
                    },
                },
                headers={"xi-api-key": settings.api_key, "Content-Type": "application/json"},
                timeout=settings.timeout_seconds,
            )
        except requests.RequestException as e:
            logger.error("speech_unreachable", error=str(e))
            raise SpeechServiceError(f"Text-to-speech unreachable: {e}")

        status = response.status_code
        if status == 401:
            raise SpeechServiceError("Invalid API key", status_code=401)
        if status == 429:
            raise SpeechServiceError("Rate limit exceeded. Please try again later.", status_code=429)
        if not 200 <= status < 300:
            logger.error("speech_error", status=status, body=(response.text or "")[:300])
            raise SpeechServiceError("ElevenLabs API error")

        logger.info("speech_generated", bytes=len(response.content))
        return base64.b64encode(response.content).decode("ascii")

    async def synthesize(self, text: str, voice_id: Optional[str] = None) -> str:
        """
        Convert text to speech.

        Returns:
            Base64-encoded MP3 audio

        Raises:
            SpeechServiceError: carrying 401, 429 or 500
        """
        return await asyncio.to_thread(self._synthesize_sync, text, voice_id)
