"""Crash-recovery record for the segment currently being captured.

The record is a single pointer, overwritten on every new segment: the path of
the in-flight segment file and the session it belongs to. It is written only
by the segment rotation controller.
"""

import os
import json
import logging
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecordingStateSnapshot:
    pending_segment_path: str
    pending_session_id: str


class RecordingStateStore:
    """Key/value JSON file holding the current RecordingStateSnapshot."""

    def __init__(self, path: str):
        self.path = Path(path)

    def save(self, segment_path: str, session_id: str) -> None:
        snapshot = RecordingStateSnapshot(segment_path, session_id)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(asdict(snapshot), f)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, self.path)
        logger.debug(f"Recording state saved: {segment_path} (session {session_id})")

    def load(self) -> Optional[RecordingStateSnapshot]:
        if not self.path.exists():
            return None
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            return RecordingStateSnapshot(
                pending_segment_path=data["pending_segment_path"],
                pending_session_id=data["pending_session_id"],
            )
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring unreadable recording state {self.path}: {e}")
            return None

    def clear(self, expected_path: Optional[str] = None) -> bool:
        """Remove the snapshot.

        Args:
            expected_path: If given, only clear when the snapshot still points
                at this segment path.

        Returns:
            True if a snapshot was removed
        """
        if expected_path is not None:
            current = self.load()
            if current is None or current.pending_segment_path != expected_path:
                return False
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        logger.debug("Recording state cleared")
        return True
