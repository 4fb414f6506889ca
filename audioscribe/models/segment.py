"""Transcription segment data model."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any, TYPE_CHECKING

from ..errors import InvalidSegmentTransition

if TYPE_CHECKING:
    from .session import RecordingSession


class SegmentStatus(Enum):
    """Transcription status of a segment."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SegmentStatus.COMPLETED, SegmentStatus.FAILED)


@dataclass(eq=False)
class TranscriptionSegment:
    """One bounded slice of captured audio and its transcription state."""
    audio_file_path: str
    session: Optional["RecordingSession"] = field(default=None, repr=False)
    segment_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: SegmentStatus = SegmentStatus.PENDING
    transcription_text: Optional[str] = None
    failure_reason: Optional[str] = None
    failure_count: int = 0
    duration_seconds: Optional[float] = None
    transcribed_by: Optional[str] = None  # "primary" | "fallback"
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def session_id(self) -> Optional[str]:
        return self.session.session_id if self.session else None

    def mark_in_progress(self) -> None:
        # failed -> in_progress is the requeue path
        if self.status not in (SegmentStatus.PENDING, SegmentStatus.FAILED):
            raise InvalidSegmentTransition(
                f"Segment {self.segment_id}: cannot start from {self.status.value}")
        self.status = SegmentStatus.IN_PROGRESS
        self.failure_reason = None

    def mark_completed(self, text: str, source: str = "primary") -> None:
        if self.status is not SegmentStatus.IN_PROGRESS:
            raise InvalidSegmentTransition(
                f"Segment {self.segment_id}: cannot complete from {self.status.value}")
        self.status = SegmentStatus.COMPLETED
        self.transcription_text = text
        self.transcribed_by = source
        self.failure_reason = None

    def mark_failed(self, reason: str) -> None:
        if self.status is not SegmentStatus.IN_PROGRESS:
            raise InvalidSegmentTransition(
                f"Segment {self.segment_id}: cannot fail from {self.status.value}")
        self.status = SegmentStatus.FAILED
        self.transcription_text = None
        self.transcribed_by = None
        self.failure_reason = reason

    def record_attempt_failure(self) -> None:
        self.failure_count += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "segment_id": self.segment_id,
            "session_id": self.session_id,
            "audio_file_path": self.audio_file_path,
            "status": self.status.value,
            "transcription_text": self.transcription_text,
            "failure_reason": self.failure_reason,
            "failure_count": self.failure_count,
            "duration_seconds": self.duration_seconds,
            "transcribed_by": self.transcribed_by,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any],
                  session: Optional["RecordingSession"] = None) -> "TranscriptionSegment":
        return cls(
            audio_file_path=data["audio_file_path"],
            session=session,
            segment_id=data["segment_id"],
            status=SegmentStatus(data["status"]),
            transcription_text=data.get("transcription_text"),
            failure_reason=data.get("failure_reason"),
            failure_count=data.get("failure_count", 0),
            duration_seconds=data.get("duration_seconds"),
            transcribed_by=data.get("transcribed_by"),
            created_at=datetime.fromisoformat(data["created_at"]),
        )
