"""Data models for the AudioScribe application."""

from .audio import AudioStats
from .segment import SegmentStatus, TranscriptionSegment
from .session import RecordingSession, default_session_title
from .language import TranscriptionLanguage, SUPPORTED_LANGUAGES, find_language
from .events import (
    SampleBuffer,
    SegmentFinished,
    LevelUpdated,
    SignalKind,
    RecorderSignal,
    LifecycleKind,
    CaptureLifecycleEvent,
)

__all__ = [
    "AudioStats",
    "SegmentStatus",
    "TranscriptionSegment",
    "RecordingSession",
    "default_session_title",
    "TranscriptionLanguage",
    "SUPPORTED_LANGUAGES",
    "find_language",
    # Pub/sub events
    "SampleBuffer",
    "SegmentFinished",
    "LevelUpdated",
    "SignalKind",
    "RecorderSignal",
    "LifecycleKind",
    "CaptureLifecycleEvent",
]
