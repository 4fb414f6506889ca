"""Storage for segment audio, session metadata and recovery state."""

from .file_manager import FileManager
from .recording_state import RecordingStateStore, RecordingStateSnapshot
from .repository import SessionRepository, JsonSessionRepository

__all__ = [
    'FileManager',
    'RecordingStateStore',
    'RecordingStateSnapshot',
    'SessionRepository',
    'JsonSessionRepository',
]
