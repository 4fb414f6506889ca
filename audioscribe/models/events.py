"""Event models for the pub/sub recorder and transcription pipeline."""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


@dataclass
class SampleBuffer:
    """One buffer of raw samples read from the capture device."""
    data: bytes
    timestamp: float  # Unix timestamp when the buffer was read
    sequence_number: int
    level_db: float
    sample_rate: int = 16000
    channels: int = 1


@dataclass
class SegmentFinished:
    """A segment that passed finalize and is ready for transcription."""
    path: str
    session_id: str
    generation: int
    duration_seconds: float
    recovered: bool = False  # True if produced by startup recovery


@dataclass
class LevelUpdated:
    """Advisory input level in dBFS."""
    db: float
    timestamp: float = field(default_factory=time.time)


class SignalKind(Enum):
    PERMISSION_DENIED = "permission_denied"
    INSUFFICIENT_STORAGE = "insufficient_storage"
    DEVICE_DISCONNECTED = "device_disconnected"
    INTERRUPTED = "interrupted"
    RESUMED = "resumed"
    RESUME_FAILED = "resume_failed"
    CAPTURE_FAILED = "capture_failed"
    FINALIZE_FAILED = "finalize_failed"


@dataclass
class RecorderSignal:
    """User-visible recorder condition."""
    kind: SignalKind
    detail: Optional[str] = None
    timestamp: float = field(default_factory=time.time)


class LifecycleKind(Enum):
    INTERRUPTION_BEGAN = "interruption_began"
    INTERRUPTION_ENDED = "interruption_ended"
    DEVICE_LOST = "device_lost"


@dataclass
class CaptureLifecycleEvent:
    """Interruption or route change affecting the capture device."""
    kind: LifecycleKind
    detail: Optional[str] = None
