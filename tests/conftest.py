"""Pytest configuration and fixtures for AudioScribe tests."""

import pytest
import tempfile
import logging
import wave
from pathlib import Path
from unittest.mock import Mock, patch

import numpy as np

from audioscribe.errors import DeviceError
from audioscribe.models.segment import TranscriptionSegment
from audioscribe.models.session import RecordingSession
from audioscribe.transcription.base import AbstractTranscriptionBackend, AbstractFallbackRecognizer


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without hardware or network")
    config.addinivalue_line("markers", "integration: tests wiring several components together")


def write_wav(path, seconds: float, sample_rate: int = 16000, channels: int = 1, freq: float = 440.0) -> str:
    """Write a sine-wave 16-bit WAV file of the given length."""
    samples = int(seconds * sample_rate)
    t = np.arange(samples) / float(sample_rate)
    data = (np.sin(2 * np.pi * freq * t) * 0.3 * 32767).astype(np.int16)
    if channels > 1:
        data = np.repeat(data[:, None], channels, axis=1)
    with wave.open(str(path), 'wb') as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(data.tobytes())
    return str(path)


class FakeCapture:
    """Capture device stand-in: every closed segment becomes a WAV of seconds_per_segment."""

    def __init__(self, seconds_per_segment: float = 2.0):
        self.buffer_callback = None
        self.error_callback = None
        self.seconds_per_segment = seconds_per_segment
        self.is_recording = False
        self.current_path = None
        self.started_paths = []
        self.fail_start = False
        self.fail_rotate = False

    def start_recording(self, segment_path: str) -> None:
        if self.fail_start:
            raise DeviceError("no input device")
        self.is_recording = True
        self.current_path = segment_path
        self.started_paths.append(segment_path)

    def rotate_segment(self, next_segment_path: str) -> str:
        if self.fail_rotate:
            raise OSError("disk full")
        finished = self.current_path
        write_wav(finished, self.seconds_per_segment)
        self.current_path = next_segment_path
        self.started_paths.append(next_segment_path)
        return finished

    def stop_recording(self):
        if not self.is_recording:
            return None
        self.is_recording = False
        finished, self.current_path = self.current_path, None
        write_wav(finished, self.seconds_per_segment)
        return finished


class ScriptedBackend(AbstractTranscriptionBackend):
    """Backend returning (or raising) scripted outcomes in call order.

    Once the script runs out the last outcome repeats.
    """

    service_name = "scripted"

    def __init__(self, outcomes=None):
        self.outcomes = list(outcomes or ["ok"])
        self.calls = []
        self.closed = False

    async def transcribe(self, audio_data: bytes, language: str) -> str:
        self.calls.append((audio_data, language))
        index = min(len(self.calls), len(self.outcomes)) - 1
        outcome = self.outcomes[index]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def close(self) -> None:
        self.closed = True


class ScriptedFallback(AbstractFallbackRecognizer):
    service_name = "scripted-fallback"

    def __init__(self, outcome="fallback text"):
        super().__init__("en-US")
        self.outcome = outcome
        self.calls = []

    async def recognize(self, audio_path: str) -> str:
        self.calls.append(audio_path)
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


class RecordingSleep:
    """Replacement for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def temp_data_dir():
    """Create temporary directory for test data."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def sample_audio_chunk():
    """Generate a sample audio chunk for testing."""
    # Generate 1024 samples of 16-bit audio (sine wave)
    sample_rate = 16000
    duration = 1024 / sample_rate  # ~0.064 seconds
    freq = 440  # A4 note

    t = np.linspace(0, duration, 1024, False)
    wave_data = np.sin(2 * np.pi * freq * t)

    # Convert to 16-bit integers
    audio_data = (wave_data * 32767).astype(np.int16)
    return audio_data.tobytes()


@pytest.fixture
def mock_pyaudio():
    """Mock PyAudio for testing without actual audio hardware."""
    with patch('pyaudio.PyAudio') as mock_pyaudio_class:
        mock_pyaudio_instance = Mock()
        mock_stream = Mock()

        # Configure mock stream
        mock_stream.read.return_value = b'\x00' * 2048  # Silent audio
        mock_stream.stop_stream.return_value = None
        mock_stream.close.return_value = None

        # Configure mock PyAudio instance
        mock_pyaudio_instance.open.return_value = mock_stream
        mock_pyaudio_instance.terminate.return_value = None
        mock_pyaudio_instance.get_sample_size.return_value = 2

        # Configure mock PyAudio class
        mock_pyaudio_class.return_value = mock_pyaudio_instance

        yield {
            'class': mock_pyaudio_class,
            'instance': mock_pyaudio_instance,
            'stream': mock_stream
        }


@pytest.fixture
def wav_file(temp_data_dir):
    """Factory writing WAV files of a given duration into the temp dir."""
    def make(name: str = "segment.wav", seconds: float = 2.0, sample_rate: int = 16000, channels: int = 1) -> str:
        return write_wav(Path(temp_data_dir) / name, seconds, sample_rate, channels)
    return make


@pytest.fixture
def fake_capture():
    return FakeCapture()


@pytest.fixture
def session_with_segments(temp_data_dir):
    """Factory building a session whose segments point at small audio files."""
    def make(count: int = 1, title: str = "Test session") -> RecordingSession:
        session = RecordingSession(title=title)
        for index in range(count):
            path = Path(temp_data_dir) / f"{session.session_id}-{index}.wav"
            write_wav(path, 1.5)
            session.add_segment(TranscriptionSegment(audio_file_path=str(path), duration_seconds=1.5))
        return session
    return make


@pytest.fixture
def config_file(temp_data_dir):
    """Write a minimal audioscribe.yaml and return its path."""
    path = Path(temp_data_dir) / "audioscribe.yaml"
    path.write_text(
        "transcription:\n"
        "  language: en\n"
        "  api_key: test-key\n"
        "fallback:\n"
        "  credentials_path: creds/google.json\n"
        "  locale: en-GB\n"
        "storage:\n"
        "  data_directory: data\n"
        "logging:\n"
        "  file_path: data/logs/test.log\n"
        "  console_output: false\n",
        encoding='utf-8',
    )
    return str(path)
