"""Session-related data models."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Dict, Any

from .segment import TranscriptionSegment, SegmentStatus


def default_session_title(now: datetime = None) -> str:
    """Title used for sessions started without an explicit one."""
    now = now or datetime.now()
    return f"Session {now.strftime('%H:%M')}"


@dataclass(eq=False)
class RecordingSession:
    """A logical recording activity and its segments in recording order."""
    title: str = "Untitled"
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=datetime.now)
    segments: List[TranscriptionSegment] = field(default_factory=list)

    def add_segment(self, segment: TranscriptionSegment) -> None:
        segment.session = self
        self.segments.append(segment)

    def find_segment(self, segment_id: str):
        for segment in self.segments:
            if segment.segment_id == segment_id:
                return segment
        return None

    @property
    def transcript(self) -> str:
        """Completed segment texts joined in recording order."""
        return "\n".join(
            s.transcription_text for s in self.segments
            if s.status is SegmentStatus.COMPLETED and s.transcription_text
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "title": self.title,
            "created_at": self.created_at.isoformat(),
            "segments": [segment.to_dict() for segment in self.segments],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecordingSession":
        session = cls(
            title=data.get("title", "Untitled"),
            session_id=data["session_id"],
            created_at=datetime.fromisoformat(data["created_at"]),
        )
        for segment_data in data.get("segments", []):
            session.add_segment(TranscriptionSegment.from_dict(segment_data))
        return session
