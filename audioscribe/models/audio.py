"""Audio-related data models."""

from dataclasses import dataclass
from typing import Optional


@dataclass
class AudioStats:
    """Audio recording statistics."""
    is_recording: bool
    duration_seconds: float
    sample_rate: int
    chunk_size: int
    total_chunks: int
    level_db: float
    segment_path: Optional[str] = None
