"""Services layer for AudioScribe application logic."""

from .segment_rotation import SegmentRotationController, RecorderState
from .session_manager import SessionManager

__all__ = [
    "SegmentRotationController",
    "RecorderState",
    "SessionManager",
]
