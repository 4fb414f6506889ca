"""Audio capture module writing continuous input to rotating segment files."""

import pyaudio
import time
import logging
from threading import Thread, Event, Lock
from typing import Optional, Callable
from datetime import datetime

from .audio_saver import SegmentWriter
from .levels import rms_db, SILENCE_DB
from ..errors import DeviceError
from ..models.audio import AudioStats
from ..models.events import SampleBuffer


logger = logging.getLogger(__name__)


class AudioCapture:
    """Continuous PyAudio capture into segment-scoped WAV files.

    The read loop runs on a background thread and only does bounded work per
    buffer: write the samples, compute the level, invoke the buffer callback.
    """

    def __init__(
        self,
        buffer_callback: Optional[Callable[[SampleBuffer], None]] = None,
        error_callback: Optional[Callable[[Exception], None]] = None,
        sample_rate: int = 16000,
        chunk_size: int = 1024,
        channels: int = 1,
        format: int = pyaudio.paInt16,
        input_device_index: Optional[int] = None,
    ):
        """Initialize audio capture with specified parameters.

        Args:
            buffer_callback: Called on the capture thread for every buffer read
            error_callback: Called on the capture thread if the device fails mid-stream
            sample_rate: Audio sample rate
            chunk_size: Size of each audio chunk in samples
            channels: Number of audio channels (1 for mono)
            format: Audio format (16-bit signed int)
            input_device_index: PyAudio device index, None for the default input
        """
        self.buffer_callback = buffer_callback
        self.error_callback = error_callback
        self.sample_rate = sample_rate
        self.chunk_size = chunk_size
        self.channels = channels
        self.format = format
        self.input_device_index = input_device_index

        # Recording thread management
        self.recording_thread: Optional[Thread] = None
        self.stop_event = Event()
        self.is_recording = False

        # Segment writer, swapped by rotate_segment while the thread runs
        self._writer: Optional[SegmentWriter] = None
        self._writer_lock = Lock()

        # Statistics tracking
        self.start_time: Optional[datetime] = None
        self.total_chunks = 0
        self.level_db = SILENCE_DB

        # PyAudio instance
        self.pyaudio_instance: Optional[pyaudio.PyAudio] = None
        self.stream = None

    @property
    def sample_width(self) -> int:
        return pyaudio.get_sample_size(self.format)

    @property
    def segment_path(self) -> Optional[str]:
        with self._writer_lock:
            return self._writer.path if self._writer else None

    def start_recording(self, segment_path: str) -> None:
        """Open the input stream and start writing to segment_path.

        Raises:
            DeviceError: If the input stream cannot be opened
        """
        if self.is_recording:
            logger.warning("Recording already in progress")
            return

        logger.info(f"Starting audio recording into {segment_path}")
        self.stream = self.__open_audio_stream()
        try:
            self._writer = SegmentWriter(segment_path, self.sample_rate, self.channels, self.sample_width)
        except OSError as e:
            self.__release_audio()
            raise DeviceError(f"Could not create segment file {segment_path}: {e}") from e

        self.stop_event.clear()
        self.start_time = datetime.now()
        self.total_chunks = 0

        # Start recording thread
        self.recording_thread = Thread(target=self._record_continuously, daemon=True)
        self.recording_thread.name = "AudioCaptureThread"
        self.is_recording = True
        self.recording_thread.start()

    def rotate_segment(self, next_segment_path: str) -> str:
        """Close the current segment file and continue into a new one without gaps.

        Returns:
            Path of the segment that was just closed
        """
        if not self.is_recording:
            raise DeviceError("Cannot rotate segment: not recording")

        next_writer = SegmentWriter(next_segment_path, self.sample_rate, self.channels, self.sample_width)
        with self._writer_lock:
            finished, self._writer = self._writer, next_writer
        return finished.close()

    def stop_recording(self) -> Optional[str]:
        """Stop recording and clean up resources.

        Returns:
            Path of the last segment file, or None if nothing was recording
        """
        if not self.is_recording:
            logger.warning("No recording in progress")
            return None

        logger.info("Stopping audio recording")
        self.stop_event.set()

        # Wait for recording thread to finish
        if self.recording_thread and self.recording_thread.is_alive():
            self.recording_thread.join(timeout=2.0)
            if self.recording_thread.is_alive():
                logger.warning("Recording thread did not stop cleanly")

        self.is_recording = False
        with self._writer_lock:
            writer, self._writer = self._writer, None
        logger.info(f"Recording stopped. Total chunks: {self.total_chunks}")
        return writer.close() if writer else None

    def __open_audio_stream(self):
        try:
            self.pyaudio_instance = pyaudio.PyAudio()
            stream = self.pyaudio_instance.open(
                format=self.format,
                channels=self.channels,
                rate=self.sample_rate,
                input=True,
                input_device_index=self.input_device_index,
                frames_per_buffer=self.chunk_size,
                stream_callback=None
            )
        except OSError as e:
            self.__release_audio()
            raise DeviceError(f"Could not open audio input: {e}") from e
        logger.info(f"Audio stream opened: {self.sample_rate}Hz, "
                    f"{self.chunk_size} samples/chunk")
        return stream

    def __read_audio_chunk(self, stream) -> bytes:
        audio_chunk = stream.read(self.chunk_size, exception_on_overflow=False)
        self.total_chunks += 1
        return audio_chunk

    def __handle_audio_chunk(self, audio_chunk: bytes) -> None:
        with self._writer_lock:
            if self._writer is not None:
                self._writer.write(audio_chunk)

        self.level_db = rms_db(audio_chunk, self.sample_width)
        if self.buffer_callback:
            self.buffer_callback(SampleBuffer(
                data=audio_chunk,
                timestamp=time.time(),
                sequence_number=self.total_chunks,
                level_db=self.level_db,
                sample_rate=self.sample_rate,
                channels=self.channels,
            ))

    def _record_continuously(self) -> None:
        """Internal method: continuous recording loop in background thread."""
        try:
            while not self.stop_event.is_set():
                try:
                    audio_chunk = self.__read_audio_chunk(self.stream)
                except OSError as e:
                    # Device unplugged or stream broken
                    logger.error(f"Audio input read failed: {e}")
                    if self.error_callback:
                        self.error_callback(DeviceError(str(e)))
                    break
                self.__handle_audio_chunk(audio_chunk)
        finally:
            self.__release_audio()

    def __release_audio(self) -> None:
        if self.stream:
            try:
                self.stream.stop_stream()
                self.stream.close()
            except OSError as e:
                logger.debug(f"Error closing audio stream: {e}")
            self.stream = None
        if self.pyaudio_instance:
            self.pyaudio_instance.terminate()
            self.pyaudio_instance = None

    def get_recording_stats(self) -> AudioStats:
        """Get current recording statistics."""
        duration = 0.0
        if self.start_time:
            duration = (datetime.now() - self.start_time).total_seconds()

        return AudioStats(
            is_recording=self.is_recording,
            duration_seconds=duration,
            sample_rate=self.sample_rate,
            chunk_size=self.chunk_size,
            total_chunks=self.total_chunks,
            level_db=self.level_db,
            segment_path=self.segment_path,
        )
