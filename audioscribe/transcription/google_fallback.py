"""Google Speech-to-Text fallback recognizer."""

import time
import asyncio
import logging
from pathlib import Path
from typing import Optional

from google.cloud import speech
from google.api_core import exceptions as gax_exceptions
from google.auth import exceptions as auth_exceptions
from google.oauth2 import service_account

from .base import AbstractFallbackRecognizer
from ..audio.encoding import CANONICAL_SAMPLE_RATE
from ..errors import FallbackUnavailable, RecognitionFailed

logger = logging.getLogger(__name__)


class GoogleSpeechFallback(AbstractFallbackRecognizer):
    """Google Speech-to-Text recognizer with a fixed locale."""

    service_name = "Google Speech-to-Text"

    def __init__(self,
                 credentials_path: Optional[str] = None,
                 locale: str = "en-US",
                 sample_rate: int = CANONICAL_SAMPLE_RATE,
                 enable_automatic_punctuation: bool = True,
                 timeout_seconds: float = 30.0):
        """Initialize Google Speech fallback.

        Args:
            credentials_path: Path to Google Cloud service account JSON file
            locale: Language code used for every request (e.g., 'en-US')
            enable_automatic_punctuation: Enable automatic punctuation
            timeout_seconds: Per-request deadline
        """
        super().__init__(locale)
        self.credentials_path = credentials_path
        self.timeout_seconds = timeout_seconds
        self.client: Optional[speech.SpeechClient] = None
        self.config = speech.RecognitionConfig(
            encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
            sample_rate_hertz=sample_rate,
            language_code=self.locale,
            enable_automatic_punctuation=enable_automatic_punctuation,
            model="latest_long",
        )

    def initialize(self) -> bool:
        """Build the Speech client. Returns False if the recognizer is unusable."""
        if not self.credentials_path or not Path(self.credentials_path).exists():
            logger.warning(f"Google credentials not found: {self.credentials_path}")
            return False
        try:
            logger.info(f"Loading Google credentials from: {self.credentials_path}")
            credentials = service_account.Credentials.from_service_account_file(self.credentials_path)
            self.client = speech.SpeechClient(credentials=credentials)
        except (ValueError, auth_exceptions.GoogleAuthError) as e:
            logger.error(f"Google Speech client could not be created: {e}")
            self.client = None
            return False
        logger.info(f"Google Speech fallback ready (project {credentials.project_id}, locale {self.locale})")
        return True

    async def recognize(self, audio_path: str) -> str:
        if self.client is None and not self.initialize():
            raise FallbackUnavailable(f"{self.service_name} is not configured for locale {self.locale}")

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._recognize_file, audio_path)

    def _recognize_file(self, audio_path: str) -> str:
        start_time = time.time()
        try:
            with open(audio_path, 'rb') as f:
                content = f.read()
        except OSError as e:
            raise RecognitionFailed(f"Cannot read segment audio: {e}") from e

        audio = speech.RecognitionAudio(content=content)
        try:
            response = self.client.recognize(config=self.config, audio=audio, timeout=self.timeout_seconds)
        except gax_exceptions.DeadlineExceeded as e:
            raise RecognitionFailed(f"Google Speech recognize timeout: {e}") from e
        except gax_exceptions.GoogleAPICallError as e:
            logger.error(f"Google STT API call error for {audio_path}: {e}")
            raise RecognitionFailed(f"Google Speech API error: {e}") from e

        processing_time = time.time() - start_time
        if not response.results:
            logger.debug(f"--- NO SPEECH DETECTED --- ({audio_path})")
            return ""

        # Long files come back as several consecutive results
        text = " ".join(
            result.alternatives[0].transcript.strip()
            for result in response.results if result.alternatives
        ).strip()
        logger.debug(f"Fallback transcription in {processing_time:.3f}s: '{text[:80]}'")
        return text

    def cleanup(self) -> None:
        self.client = None
