"""Abstract base classes for transcription backends and fallback recognizers."""

from abc import ABC, abstractmethod
import logging

logger = logging.getLogger(__name__)


class AbstractTranscriptionBackend(ABC):
    """Remote primary transcription backend."""

    service_name = "primary"

    @abstractmethod
    async def transcribe(self, audio_data: bytes, language: str) -> str:
        """Transcribe one segment of canonical-format audio.

        Args:
            audio_data: Complete WAV file contents
            language: ISO-639-1 language hint

        Returns:
            Transcribed text

        Raises:
            RateLimited: Backend reported a quota / rate limit
            TransportError: Non-2xx response or connection failure
            MalformedResponse: Response body could not be decoded
        """
        pass

    async def close(self) -> None:
        """Release network resources."""
        pass


class AbstractFallbackRecognizer(ABC):
    """Secondary recognizer used once the primary backend keeps failing."""

    service_name = "fallback"

    def __init__(self, locale: str = "en-US"):
        self.locale = locale

    @abstractmethod
    async def recognize(self, audio_path: str) -> str:
        """Produce the final transcription of a segment file.

        Raises:
            FallbackUnavailable: Recognizer cannot be used here
            RecognitionFailed: Recognition ran and failed
        """
        pass

    def cleanup(self) -> None:
        """Clean up recognizer resources."""
        pass
