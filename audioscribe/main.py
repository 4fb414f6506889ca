"""Main application entry point for AudioScribe."""

import sys
import asyncio
import argparse
import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.table import Table

from audioscribe import __version__
from audioscribe.audio.audio_pub import RecorderPublisher, CaptureLifecycleSource
from audioscribe.audio.capture import AudioCapture
from audioscribe.audio.encoding import SegmentEncoder
from audioscribe.audio.permission import MicrophonePermission
from audioscribe.errors import CaptureError
from audioscribe.models.language import find_language
from audioscribe.models.segment import SegmentStatus
from audioscribe.models.session import RecordingSession
from audioscribe.services.segment_rotation import SegmentRotationController
from audioscribe.services.session_manager import SessionManager
from audioscribe.storage.file_manager import FileManager
from audioscribe.storage.recording_state import RecordingStateStore
from audioscribe.storage.repository import JsonSessionRepository
from audioscribe.transcription.google_fallback import GoogleSpeechFallback
from audioscribe.transcription.publisher import TranscriptionPublisher
from audioscribe.transcription.queue import TranscriptionQueue
from audioscribe.transcription.whisper_backend import WhisperAPIBackend, DEFAULT_ENDPOINT

from .config import AudioscribeConfig

logger = logging.getLogger(__name__)


class Server:

    def __init__(self, config_path: Optional[str], log_level: Optional[str] = None):
        # Load configuration
        self.config = AudioscribeConfig(config_path)
        # Command line overrides config
        setup_logging(self.config, log_level or self.config.get('logging.level', 'INFO'))
        self.fallback: Optional[GoogleSpeechFallback] = None
        self.session: Optional[RecordingSession] = None

    def init(self, language: Optional[str] = None) -> None:
        logger.info("Initializing services...")

        sample_rate = self.config.get('audio.sample_rate', 16000)
        chunk_size = self.config.get('audio.chunk_size', 1024)
        channels = self.config.get('audio.channels', 1)
        logger.info(f"Audio settings: {sample_rate}Hz, {chunk_size} samples/chunk, {channels} channels")

        language = language or self.config.get('transcription.language', 'en')
        if find_language(language) is None:
            logger.warning(f"Language '{language}' is not in the supported list; sending it as-is")

        self.file_manager = FileManager(self.config.get_data_directory())
        self.repository = JsonSessionRepository(self.file_manager)

        self.backend = WhisperAPIBackend(
            api_key=self.config.get_api_key(),
            model=self.config.get('transcription.model', 'whisper-1'),
            endpoint=self.config.get('transcription.endpoint', DEFAULT_ENDPOINT),
            timeout_seconds=self.config.get('transcription.timeout_seconds', 60.0),
        )
        self.fallback = self._create_fallback()

        self.transcription_publisher = TranscriptionPublisher()
        self.queue = TranscriptionQueue(
            backend=self.backend,
            fallback=self.fallback,
            repository=self.repository,
            language=language,
            max_attempts=self.config.get('transcription.max_attempts', 6),
            initial_backoff_seconds=self.config.get('transcription.initial_backoff_seconds', 1.0),
            failure_threshold=self.config.get('transcription.fallback_threshold', 5),
            result_callback=self.transcription_publisher.get_callback(),
        )
        self.session_manager = SessionManager(
            repository=self.repository,
            queue=self.queue,
            file_manager=self.file_manager,
            delete_transcribed_audio=self.config.get('storage.delete_transcribed_audio', True),
        )
        self.session_manager.subscribe()

        self.audio_capture = AudioCapture(
            sample_rate=sample_rate,
            chunk_size=chunk_size,
            channels=channels,
            input_device_index=self.config.get('audio.input_device_index'),
        )
        self.controller = SegmentRotationController(
            capture=self.audio_capture,
            file_manager=self.file_manager,
            state_store=RecordingStateStore(str(self.file_manager.recording_state_path)),
            permission=MicrophonePermission(),
            encoder=SegmentEncoder(),
            publisher=RecorderPublisher(),
            lifecycle_source=CaptureLifecycleSource(),
            segment_duration=self.config.get('recording.segment_duration_seconds', 30.0),
            min_segment_duration=self.config.get('recording.min_segment_seconds', 1.0),
            settle_delay=self.config.get('recording.settle_delay_seconds', 0.3),
            min_free_bytes=int(self.config.get('recording.min_free_megabytes', 50)) * 1024 * 1024,
        )

    def _create_fallback(self) -> Optional[GoogleSpeechFallback]:
        if not self.config.get('fallback.enabled', True):
            logger.info("Fallback recognizer disabled")
            return None
        credentials_path = self.config.get_fallback_credentials_path()
        if credentials_path is None:
            logger.info("No fallback credentials configured; primary backend only")
            return None
        return GoogleSpeechFallback(
            credentials_path=credentials_path,
            locale=self.config.get('fallback.locale', 'en-US'),
            enable_automatic_punctuation=self.config.get('fallback.enable_automatic_punctuation', True),
        )

    async def run(self, duration: Optional[float], title: Optional[str] = None,
                  recover_only: bool = False) -> Optional[RecordingSession]:
        try:
            recovered = await self.controller.recover()
            if recovered is not None:
                logger.info(f"Recovered segment from previous run: {recovered.path}")
            if recover_only:
                return None

            self.session = self.session_manager.start_session(title)
            await self.controller.start(self.session.session_id)
            if duration:
                await asyncio.sleep(duration)
            else:
                # Until Ctrl-C
                await asyncio.Event().wait()
        finally:
            await self.cleanup()
        return self.session

    async def cleanup(self) -> None:
        self.controller.stop()
        await self.controller.drain()
        drained = await self.queue.shutdown(timeout=self.config.get('transcription.shutdown_timeout_seconds', 120.0))
        if not drained:
            logger.warning("Some segments were not transcribed before shutdown")
        await self.backend.close()
        if self.fallback is not None:
            self.fallback.cleanup()
        self.controller.close()
        self.session_manager.unsubscribe()
        self.session_manager.stop_session()


def print_session_summary(session: RecordingSession, console: Optional[Console] = None) -> None:
    console = console or Console()
    table = Table(title=f"🎙️ {session.title} ({session.session_id})", show_header=True, header_style="bold magenta")
    table.add_column("#", justify="right")
    table.add_column("Status")
    table.add_column("Source")
    table.add_column("Duration", justify="right")
    table.add_column("Text / Failure")

    styles = {
        SegmentStatus.COMPLETED: "green",
        SegmentStatus.FAILED: "red",
        SegmentStatus.IN_PROGRESS: "yellow",
        SegmentStatus.PENDING: "dim",
    }
    for index, segment in enumerate(session.segments, start=1):
        duration = f"{segment.duration_seconds:.1f}s" if segment.duration_seconds else "-"
        detail = segment.transcription_text if segment.status is SegmentStatus.COMPLETED else segment.failure_reason
        table.add_row(
            str(index),
            segment.status.value,
            segment.transcribed_by or "-",
            duration,
            detail or "",
            style=styles[segment.status],
        )
    console.print(table)


def setup_logging(config, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    log_file_path = config.get('logging.file_path', 'data/logs/audioscribe.log')
    console_output = config.get('logging.console_output', True)

    # Create logs directory if it doesn't exist
    Path(log_file_path).parent.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    )
    file_handler.setFormatter(file_formatter)
    handlers.append(file_handler)

    # Console handler - only if enabled in config
    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.WARNING)  # Only show warnings and above on console
        console_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        console_handler.setFormatter(console_formatter)
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger = logging.getLogger(__name__)
    logger.info("=" * 50)
    logger.info("AudioScribe starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


def main() -> None:
    """Main entry point for AudioScribe."""
    parser = argparse.ArgumentParser(
        description="AudioScribe - Continuous recording with segment transcription",
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration YAML file (default: looks for audioscribe.yaml)"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (default: from config, else INFO)"
    )

    parser.add_argument(
        "--duration",
        type=float,
        help="Seconds to record before stopping (default: until Ctrl-C)"
    )

    parser.add_argument(
        "--title",
        type=str,
        help="Session title (default: 'Session HH:MM')"
    )

    parser.add_argument(
        "--language",
        type=str,
        help="Transcription language code (overrides config)"
    )

    parser.add_argument(
        "--recover-only",
        action="store_true",
        help="Only recover and transcribe a segment left by a previous run, then exit"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"AudioScribe v{__version__}"
    )

    args = parser.parse_args()

    console = Console()
    server = None
    try:
        server = Server(args.config, args.log_level)
        server.init(language=args.language)
        session = asyncio.run(server.run(args.duration, title=args.title, recover_only=args.recover_only))
    except KeyboardInterrupt:
        console.print("\n👋 Goodbye!", style="bold blue")
        session = server.session if server else None
    except (CaptureError, ValueError, FileNotFoundError) as e:
        console.print(f"❌ Error: {e}", style="bold red")
        logging.error(f"Application error: {e}")
        sys.exit(1)

    if session is not None:
        print_session_summary(session, console)


if __name__ == "__main__":
    main()
