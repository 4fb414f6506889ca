"""Transcription module for AudioScribe."""

from .base import AbstractTranscriptionBackend, AbstractFallbackRecognizer
from .whisper_backend import WhisperAPIBackend
from .google_fallback import GoogleSpeechFallback
from .publisher import TranscriptionPublisher
from .queue import TranscriptionQueue, QueueEntry

__all__ = [
    "AbstractTranscriptionBackend",
    "AbstractFallbackRecognizer",
    "WhisperAPIBackend",
    "GoogleSpeechFallback",
    "TranscriptionPublisher",
    "TranscriptionQueue",
    "QueueEntry",
]
