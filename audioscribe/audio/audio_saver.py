"""Segment-scoped WAV writer used by the capture thread."""

import wave
import logging

logger = logging.getLogger(__name__)


class SegmentWriter:
    """Appends raw PCM buffers to one segment WAV file."""

    def __init__(self, path: str, sample_rate: int, channels: int, sample_width: int = 2):
        self.path = path
        self.sample_rate = sample_rate
        self.channels = channels
        self.frames_written = 0
        self._frame_size = channels * sample_width

        self._wav = wave.open(path, 'wb')
        self._wav.setnchannels(channels)
        self._wav.setsampwidth(sample_width)
        self._wav.setframerate(sample_rate)
        logger.debug(f"Segment writer opened: {path}")

    def write(self, audio_chunk: bytes) -> None:
        # wave patches the header on every write, so a crash leaves a readable file
        self._wav.writeframes(audio_chunk)
        self.frames_written += len(audio_chunk) // self._frame_size

    @property
    def duration_seconds(self) -> float:
        return self.frames_written / float(self.sample_rate)

    def close(self) -> str:
        self._wav.close()
        logger.debug(f"Segment writer closed: {self.path} ({self.duration_seconds:.2f}s)")
        return self.path
