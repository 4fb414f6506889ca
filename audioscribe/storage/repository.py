"""Persistence of sessions and their segments."""

import os
import json
import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Dict

from .file_manager import FileManager
from ..models.session import RecordingSession
from ..models.segment import TranscriptionSegment

logger = logging.getLogger(__name__)


class SessionRepository(ABC):
    """Durable store for sessions and segments."""

    @abstractmethod
    def save_session(self, session: RecordingSession) -> None:
        """Persist the session and all of its segments."""
        pass

    @abstractmethod
    def save_segment(self, segment: TranscriptionSegment) -> None:
        """Persist the current field values of one segment."""
        pass

    @abstractmethod
    def load_session(self, session_id: str) -> Optional[RecordingSession]:
        pass

    @abstractmethod
    def list_sessions(self) -> List[RecordingSession]:
        pass


class JsonSessionRepository(SessionRepository):
    """Stores each session as sessions/<session_id>/session.json.

    Sessions loaded or saved through the repository are cached so that every
    caller shares the same RecordingSession instance per id.
    """

    def __init__(self, file_manager: FileManager):
        self.file_manager = file_manager
        self._sessions: Dict[str, RecordingSession] = {}

    def _session_file(self, session_id: str):
        return self.file_manager.get_session_path(session_id) / "session.json"

    def save_session(self, session: RecordingSession) -> None:
        self._sessions[session.session_id] = session
        session_file = self._session_file(session.session_id)
        session_file.parent.mkdir(parents=True, exist_ok=True)

        tmp_file = session_file.with_suffix(".json.tmp")
        with open(tmp_file, 'w', encoding='utf-8') as f:
            json.dump(session.to_dict(), f, indent=2, ensure_ascii=False)
        os.replace(tmp_file, session_file)
        logger.debug(f"Session saved: {session_file} ({len(session.segments)} segments)")

    def save_segment(self, segment: TranscriptionSegment) -> None:
        if segment.session is None:
            raise ValueError(f"Segment {segment.segment_id} has no owning session")
        # Segments are stored inside their session document
        self.save_session(segment.session)

    def load_session(self, session_id: str) -> Optional[RecordingSession]:
        if session_id in self._sessions:
            return self._sessions[session_id]

        session_file = self._session_file(session_id)
        if not session_file.exists():
            logger.debug(f"Session file not found: {session_file}")
            return None

        with open(session_file, 'r', encoding='utf-8') as f:
            session = RecordingSession.from_dict(json.load(f))
        self._sessions[session_id] = session
        return session

    def list_sessions(self) -> List[RecordingSession]:
        sessions = []
        for session_id in self.file_manager.list_session_ids():
            session = self.load_session(session_id)
            if session is not None:
                sessions.append(session)
        sessions.sort(key=lambda s: s.created_at)
        return sessions
