"""OpenAI Whisper HTTP transcription backend."""

import json
import asyncio
import logging
from typing import Optional

import aiohttp

from .base import AbstractTranscriptionBackend
from ..errors import RateLimited, TransportError, MalformedResponse

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://api.openai.com/v1/audio/transcriptions"


class WhisperAPIBackend(AbstractTranscriptionBackend):
    """Posts segment audio as multipart form data and decodes {"text": ...}."""

    service_name = "OpenAI Whisper"

    def __init__(self,
                 api_key: str,
                 model: str = "whisper-1",
                 endpoint: str = DEFAULT_ENDPOINT,
                 timeout_seconds: float = 60.0):
        """Initialize Whisper backend.

        Args:
            api_key: Bearer token for the API
            model: Model identifier sent with every request
            endpoint: Transcription endpoint URL
            timeout_seconds: Total per-request timeout
        """
        if not api_key:
            raise ValueError("Whisper API key is required")
        self.api_key = api_key
        self.model = model
        self.endpoint = endpoint
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session: Optional[aiohttp.ClientSession] = None

        logger.info(f"WhisperAPIBackend initialized with model: {model}")

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    def _build_form(self, audio_data: bytes, language: str) -> aiohttp.FormData:
        form = aiohttp.FormData()
        form.add_field("file", audio_data, filename="segment.wav", content_type="audio/wav")
        form.add_field("model", self.model)
        if language:
            form.add_field("language", language)
        return form

    async def transcribe(self, audio_data: bytes, language: str) -> str:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        logger.debug(f"Submitting {len(audio_data)} bytes to {self.endpoint} (language={language})")

        try:
            async with self._get_session().post(
                    self.endpoint, headers=headers, data=self._build_form(audio_data, language)) as response:
                body = await response.text()
                status = response.status
        except asyncio.TimeoutError as e:
            raise TransportError(f"Request timed out after {self.timeout.total}s") from e
        except aiohttp.ClientError as e:
            raise TransportError(str(e) or e.__class__.__name__) from e

        if status == 429:
            logger.warning("Whisper API rate limit / quota exceeded")
            raise RateLimited()
        if not 200 <= status < 300:
            logger.warning(f"Whisper API error {status}: {body[:200]}")
            raise TransportError(body or f"HTTP {status}")

        try:
            text = json.loads(body)["text"]
        except (ValueError, KeyError, TypeError) as e:
            raise MalformedResponse() from e
        if not isinstance(text, str):
            raise MalformedResponse()

        logger.debug(f"Whisper transcription: '{text[:80]}'")
        return text

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
