"""Segment rotation controller: capture lifecycle, segment boundaries and recovery."""

import os
import wave
import asyncio
import logging
from enum import Enum
from typing import Optional, Callable, Set

from ..audio.capture import AudioCapture
from ..audio.encoding import SegmentEncoder
from ..audio.levels import SILENCE_DB
from ..audio.permission import MicrophonePermission, PermissionState
from ..audio.audio_pub import RecorderPublisher, CaptureLifecycleSource
from ..errors import PermissionDenied, InsufficientStorage, DeviceError, SegmentTooShort
from ..models.events import (
    SampleBuffer,
    SegmentFinished,
    LevelUpdated,
    RecorderSignal,
    SignalKind,
    CaptureLifecycleEvent,
    LifecycleKind,
)
from ..storage.file_manager import FileManager
from ..storage.recording_state import RecordingStateStore

logger = logging.getLogger(__name__)

DEFAULT_MIN_FREE_BYTES = 50 * 1024 * 1024


class RecorderState(Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    ROTATING = "rotating"
    STOPPED = "stopped"


class SegmentRotationController:
    """Turns one live capture stream into a sequence of bounded segments.

    Every capture cycle is tagged with a generation number. Asynchronous
    finalizes and automatic restarts compare their generation with the
    current one and drop their result when it no longer matches.

    All public methods must be called on the event loop the controller was
    started on; device and lifecycle callbacks from other threads are
    marshalled onto that loop.
    """

    def __init__(self,
                 capture: AudioCapture,
                 file_manager: FileManager,
                 state_store: RecordingStateStore,
                 permission: MicrophonePermission,
                 encoder: Optional[SegmentEncoder] = None,
                 publisher: Optional[RecorderPublisher] = None,
                 lifecycle_source: Optional[CaptureLifecycleSource] = None,
                 segment_callback: Optional[Callable[[SegmentFinished], None]] = None,
                 signal_callback: Optional[Callable[[RecorderSignal], None]] = None,
                 level_callback: Optional[Callable[[LevelUpdated], None]] = None,
                 segment_duration: float = 30.0,
                 min_segment_duration: float = 1.0,
                 settle_delay: float = 0.3,
                 min_free_bytes: int = DEFAULT_MIN_FREE_BYTES):
        """Initialize the controller.

        Args:
            capture: Capture device adapter; the controller owns it exclusively
            file_manager: Provides segment paths, free space and deletion
            state_store: Crash-recovery record, written only by this controller
            permission: Microphone permission state
            encoder: Duration reader / canonical re-encoder
            publisher: Pub/sub publisher for segment, level and signal events
            lifecycle_source: Interruption and route-change events to react to
            segment_callback: Called with every SegmentFinished handed off
            signal_callback: Called with every RecorderSignal
            level_callback: Called with LevelUpdated events on the loop
            segment_duration: Seconds between rotations
            min_segment_duration: Shorter segments are discarded
            settle_delay: Seconds to wait after closing a segment before reading it
            min_free_bytes: Free space required to start
        """
        self.capture = capture
        self.file_manager = file_manager
        self.state_store = state_store
        self.permission = permission
        self.encoder = encoder or SegmentEncoder()
        self.publisher = publisher
        self.lifecycle_source = lifecycle_source
        self.segment_callback = segment_callback
        self.signal_callback = signal_callback
        self.level_callback = level_callback
        self.segment_duration = segment_duration
        self.min_segment_duration = min_segment_duration
        self.settle_delay = settle_delay
        self.min_free_bytes = min_free_bytes

        self.state = RecorderState.IDLE
        self.generation = 0
        self.session_id: Optional[str] = None
        self.level_db = SILENCE_DB

        self._segment_index = 0
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._timer_task: Optional[asyncio.Task] = None
        self._finalize_tasks: Set[asyncio.Task] = set()
        self._last_finalize: Optional[asyncio.Task] = None
        self._interrupted_generation: Optional[int] = None

        self.capture.buffer_callback = self._on_sample_buffer
        self.capture.error_callback = self._on_capture_error
        if self.lifecycle_source is not None:
            self.lifecycle_source.subscribe(self.handle_lifecycle_event)

    @property
    def is_capturing(self) -> bool:
        return self.state in (RecorderState.CAPTURING, RecorderState.ROTATING)

    # ------------------------------------------------------------------
    # Start / rotate / stop
    # ------------------------------------------------------------------

    async def start(self, session_id: str) -> None:
        """Begin capturing segments for session_id.

        Raises:
            PermissionDenied: Microphone access not granted
            InsufficientStorage: Free space below min_free_bytes
            DeviceError: Input stream could not be opened
        """
        if self.is_capturing:
            logger.warning(f"Already capturing session {self.session_id}")
            return

        self._loop = asyncio.get_running_loop()
        self._interrupted_generation = None

        if not await self._check_permission():
            self.state = RecorderState.IDLE
            error = PermissionDenied()
            self._publish_signal(SignalKind.PERMISSION_DENIED, str(error))
            raise error

        free_bytes = self.file_manager.free_space_bytes()
        if free_bytes < self.min_free_bytes:
            self.state = RecorderState.IDLE
            error = InsufficientStorage(free_bytes, self.min_free_bytes)
            self._publish_signal(SignalKind.INSUFFICIENT_STORAGE, str(error))
            raise error

        self.generation += 1
        self.session_id = session_id
        try:
            self._begin_capture()
        except DeviceError:
            self.state = RecorderState.IDLE
            raise
        self._start_timer()
        logger.info(f"Capturing session {session_id} (generation {self.generation}, "
                    f"{self.segment_duration:.0f}s segments)")

    async def _check_permission(self) -> bool:
        status = self.permission.status()
        if status is PermissionState.UNDETERMINED:
            return await self.permission.request()
        return status is PermissionState.GRANTED

    def _next_segment_path(self) -> str:
        self._segment_index += 1
        return self.file_manager.new_segment_path(self.session_id, self._segment_index)

    def _begin_capture(self) -> None:
        path = self._next_segment_path()
        self.capture.start_recording(path)
        self.state_store.save(path, self.session_id)
        self.state = RecorderState.CAPTURING

    def _start_timer(self) -> None:
        self._cancel_timer()
        self._timer_task = self._loop.create_task(self._rotation_timer(self.generation))

    def _cancel_timer(self) -> None:
        if self._timer_task is not None and not self._timer_task.done():
            self._timer_task.cancel()
        self._timer_task = None

    async def _rotation_timer(self, generation: int) -> None:
        while True:
            await asyncio.sleep(self.segment_duration)
            if generation != self.generation or self.state is not RecorderState.CAPTURING:
                return
            self.rotate()

    def rotate(self) -> Optional[asyncio.Task]:
        """Close the current segment and immediately continue into the next one.

        Returns:
            The finalize task of the closed segment, or None if not capturing
        """
        if self.state is not RecorderState.CAPTURING:
            return None

        self.state = RecorderState.ROTATING
        next_path = self._next_segment_path()
        try:
            finished_path = self.capture.rotate_segment(next_path)
        except (DeviceError, OSError) as e:
            logger.error(f"Segment rotation failed: {e}")
            finished_path = self._halt_capture()
            self.state = RecorderState.STOPPED
            self._publish_signal(SignalKind.CAPTURE_FAILED, str(e))
            return self._schedule_finalize(finished_path)

        self.state_store.save(next_path, self.session_id)
        self.state = RecorderState.CAPTURING
        logger.debug(f"Rotated segment {finished_path} -> {next_path}")
        return self._schedule_finalize(finished_path)

    def stop(self) -> Optional[asyncio.Task]:
        """Stop capturing; the last segment is finalized asynchronously.

        Returns:
            The finalize task of the last segment, or None if not capturing
        """
        self._interrupted_generation = None
        if not self.is_capturing:
            if self.state is RecorderState.IDLE and self.session_id is not None:
                self.state = RecorderState.STOPPED
            return None

        finished_path = self._halt_capture()
        # Cleared synchronously so a finalize still running cannot leave it behind
        self.state_store.clear()
        self.state = RecorderState.STOPPED
        logger.info(f"Stopped capturing session {self.session_id}")
        return self._schedule_finalize(finished_path)

    def _halt_capture(self) -> Optional[str]:
        self._cancel_timer()
        return self.capture.stop_recording()

    # ------------------------------------------------------------------
    # Finalize / recovery
    # ------------------------------------------------------------------

    def _schedule_finalize(self, path: Optional[str]) -> Optional[asyncio.Task]:
        if not path:
            return None
        task = self._loop.create_task(
            self._finalize(path, self.session_id, self.generation, previous=self._last_finalize))
        self._last_finalize = task
        self._finalize_tasks.add(task)
        task.add_done_callback(self._finalize_tasks.discard)
        return task

    async def _finalize(self, path: str, session_id: str, generation: int,
                        recovered: bool = False,
                        previous: Optional[asyncio.Task] = None) -> Optional[SegmentFinished]:
        """Settle, measure, discard or re-encode, then hand off one segment.

        Hand-off waits for previous, the finalize of the segment captured just
        before this one, so segments reach consumers in capture order.
        """
        if self.settle_delay > 0:
            await asyncio.sleep(self.settle_delay)

        try:
            duration = await self.encoder.duration(path)
        except (OSError, EOFError, wave.Error) as e:
            logger.error(f"Cannot read finished segment {path}: {e}")
            if recovered:
                # Left by a crashed process; nothing can be salvaged from it
                self.file_manager.delete_file(path)
            self._publish_signal(SignalKind.FINALIZE_FAILED, f"{path}: {e}")
            self.state_store.clear(expected_path=path)
            return None

        if duration < self.min_segment_duration:
            logger.info(f"Discarding segment: {SegmentTooShort(path, duration)}")
            self.file_manager.delete_file(path)
            self.state_store.clear(expected_path=path)
            return None

        try:
            delivered_path = await self.encoder.reencode(path)
        except (OSError, ValueError) as e:
            logger.error(f"Re-encoding segment {path} failed: {e}")
            self._publish_signal(SignalKind.FINALIZE_FAILED, f"{path}: {e}")
            self.state_store.clear(expected_path=path)
            return None

        if previous is not None and not previous.done():
            await asyncio.wait([previous])

        if generation != self.generation:
            logger.info(f"Dropping segment {delivered_path} from superseded generation {generation}")
            self.file_manager.delete_file(delivered_path)
            self.state_store.clear(expected_path=path)
            return None

        event = SegmentFinished(
            path=delivered_path,
            session_id=session_id,
            generation=generation,
            duration_seconds=duration,
            recovered=recovered,
        )
        self._deliver(event)
        self.state_store.clear(expected_path=path)
        return event

    async def recover(self) -> Optional[SegmentFinished]:
        """Recover a segment left in flight by a previous process.

        Must run once at startup, before start(). The recovery record is
        cleared whether or not the segment was usable.
        """
        snapshot = self.state_store.load()
        if snapshot is None:
            return None

        self._loop = asyncio.get_running_loop()
        try:
            path = snapshot.pending_segment_path
            if not os.path.exists(path):
                logger.info(f"Recovery: pending segment {path} no longer exists")
                return None
            logger.info(f"Recovering segment {path} for session {snapshot.pending_session_id}")
            return await self._finalize(path, snapshot.pending_session_id, self.generation, recovered=True)
        finally:
            self.state_store.clear()

    async def drain(self) -> None:
        """Wait for every scheduled finalize to complete."""
        while self._finalize_tasks:
            await asyncio.gather(*list(self._finalize_tasks))

    def _deliver(self, event: SegmentFinished) -> None:
        logger.info(f"Segment finished: {event.path} ({event.duration_seconds:.1f}s, session {event.session_id})")
        if self.publisher is not None:
            self.publisher.publish_segment_finished(event)
        if self.segment_callback is not None:
            self.segment_callback(event)

    # ------------------------------------------------------------------
    # Interruptions, device loss and level metering
    # ------------------------------------------------------------------

    def handle_lifecycle_event(self, event: CaptureLifecycleEvent) -> None:
        """Entry point for lifecycle events from any thread."""
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.debug(f"Ignoring lifecycle event {event.kind.value}: recorder not started")
            return
        loop.call_soon_threadsafe(self._apply_lifecycle_event, event)

    def _apply_lifecycle_event(self, event: CaptureLifecycleEvent) -> None:
        logger.info(f"Lifecycle event: {event.kind.value} (state {self.state.value})")

        if event.kind is LifecycleKind.INTERRUPTION_BEGAN:
            if not self.is_capturing:
                return
            self._interrupted_generation = self.generation
            finished_path = self._halt_capture()
            self.state = RecorderState.IDLE
            self._schedule_finalize(finished_path)
            self._publish_signal(SignalKind.INTERRUPTED, event.detail)

        elif event.kind is LifecycleKind.INTERRUPTION_ENDED:
            if self.state is not RecorderState.IDLE or self._interrupted_generation != self.generation:
                return
            self._interrupted_generation = None
            try:
                self._begin_capture()
            except (DeviceError, OSError) as e:
                logger.error(f"Resuming capture after interruption failed: {e}")
                self._publish_signal(SignalKind.RESUME_FAILED, str(e))
                return
            self._start_timer()
            self._publish_signal(SignalKind.RESUMED, event.detail)

        elif event.kind is LifecycleKind.DEVICE_LOST:
            if not self.is_capturing:
                return
            finished_path = self._halt_capture()
            self.state = RecorderState.STOPPED
            self._schedule_finalize(finished_path)
            self._publish_signal(SignalKind.DEVICE_DISCONNECTED, event.detail)

    def _on_capture_error(self, error: Exception) -> None:
        # Capture thread
        self.handle_lifecycle_event(CaptureLifecycleEvent(LifecycleKind.DEVICE_LOST, str(error)))

    def _on_sample_buffer(self, buffer: SampleBuffer) -> None:
        # Capture thread: keep this bounded and non-blocking
        self.level_db = buffer.level_db
        loop = self._loop
        if loop is None or (self.publisher is None and self.level_callback is None):
            return
        try:
            loop.call_soon_threadsafe(self._publish_level, buffer.level_db, buffer.timestamp)
        except RuntimeError:
            # Loop closed during shutdown; level updates are advisory
            pass

    def _publish_level(self, level_db: float, timestamp: float) -> None:
        event = LevelUpdated(db=level_db, timestamp=timestamp)
        if self.publisher is not None:
            self.publisher.publish_level(event)
        if self.level_callback is not None:
            self.level_callback(event)

    def _publish_signal(self, kind: SignalKind, detail: Optional[str] = None) -> None:
        event = RecorderSignal(kind=kind, detail=detail)
        if self.publisher is not None:
            self.publisher.publish_signal(event)
        if self.signal_callback is not None:
            self.signal_callback(event)

    def close(self) -> None:
        """Detach from the lifecycle source and stop the rotation timer."""
        self._cancel_timer()
        if self.lifecycle_source is not None:
            self.lifecycle_source.unsubscribe(self.handle_lifecycle_event)
