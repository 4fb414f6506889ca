"""File management module for segment audio and session data."""

import os
import uuid
import shutil
import logging
from pathlib import Path
from datetime import datetime
from typing import Dict, Any, List


logger = logging.getLogger(__name__)


class FileManager:
    """Manages file storage and organization for audio segments and metadata."""

    def __init__(self, data_dir: str = "./data"):
        """Initialize file manager with data directory.

        Args:
            data_dir: Base directory for storing all data
        """
        self.data_dir = Path(data_dir)
        self.segments_dir = self.data_dir / "segments"
        self.sessions_dir = self.data_dir / "sessions"
        self.logs_dir = self.data_dir / "logs"

        # Create directory structure
        self._ensure_directories()

        logger.info(f"FileManager initialized with data_dir: {self.data_dir}")

    def _ensure_directories(self) -> None:
        """Ensure all required directories exist."""
        for directory in [self.data_dir, self.segments_dir, self.sessions_dir, self.logs_dir]:
            directory.mkdir(parents=True, exist_ok=True)
            logger.debug(f"Ensured directory exists: {directory}")

    @property
    def recording_state_path(self) -> Path:
        return self.data_dir / "recording_state.json"

    def new_segment_path(self, session_id: str, segment_index: int) -> str:
        """Build a unique WAV path for the next segment of a session.

        Args:
            session_id: Owning session identifier
            segment_index: Running index of the segment within the recorder

        Returns:
            Full path where the segment should be written
        """
        session_dir = self.segments_dir / session_id
        session_dir.mkdir(parents=True, exist_ok=True)
        filename = f"segment-{segment_index}-{uuid.uuid4().hex[:6]}.wav"
        return str(session_dir / filename)

    def delete_file(self, path: str) -> bool:
        """Delete a file, returning True if something was removed."""
        try:
            os.remove(path)
            logger.debug(f"Deleted file: {path}")
            return True
        except FileNotFoundError:
            return False

    def free_space_bytes(self) -> int:
        """Free bytes on the volume holding the data directory."""
        return shutil.disk_usage(self.data_dir).free

    def get_session_path(self, session_id: str) -> Path:
        """Get full path to session directory.

        Args:
            session_id: Session identifier

        Returns:
            Path to session directory
        """
        return self.sessions_dir / session_id

    def list_session_ids(self) -> List[str]:
        """List session IDs that have saved metadata, oldest directory first."""
        sessions = [
            path for path in self.sessions_dir.iterdir()
            if path.is_dir() and (path / "session.json").exists()
        ]
        sessions.sort(key=lambda p: p.stat().st_mtime)
        logger.debug(f"Found {len(sessions)} sessions")
        return [path.name for path in sessions]

    def cleanup_old_sessions(self, max_age_days: int = 30) -> int:
        """Clean up old session metadata and segment audio.

        Args:
            max_age_days: Maximum age in days before cleanup

        Returns:
            Number of sessions cleaned up
        """
        cutoff_time = datetime.now().timestamp() - (max_age_days * 24 * 60 * 60)
        cleaned_count = 0

        for session_path in self.sessions_dir.iterdir():
            if session_path.is_dir() and session_path.stat().st_mtime < cutoff_time:
                shutil.rmtree(session_path)
                shutil.rmtree(self.segments_dir / session_path.name, ignore_errors=True)
                cleaned_count += 1
                logger.info(f"Cleaned up old session: {session_path}")

        logger.info(f"Cleaned up {cleaned_count} old sessions")
        return cleaned_count

    def get_storage_stats(self) -> Dict[str, Any]:
        """Get storage usage statistics.

        Returns:
            Dictionary with storage statistics
        """
        total_size = 0
        audio_files = 0

        for file_path in self.data_dir.rglob("*"):
            if file_path.is_file():
                total_size += file_path.stat().st_size
                if file_path.suffix == '.wav':
                    audio_files += 1

        return {
            "total_size_bytes": total_size,
            "total_size_mb": round(total_size / (1024 * 1024), 2),
            "session_count": len(self.list_session_ids()),
            "audio_files": audio_files,
            "free_space_mb": round(self.free_space_bytes() / (1024 * 1024), 2),
            "data_directory": str(self.data_dir)
        }
