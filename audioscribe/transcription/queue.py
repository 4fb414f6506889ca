"""Ordered, single-consumer transcription queue with retry and fallback."""

import time
import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Optional, Callable, Awaitable, Deque, Dict, Any

from .base import AbstractTranscriptionBackend, AbstractFallbackRecognizer
from ..errors import TranscriptionError, FallbackError, FallbackUnavailable
from ..models.segment import TranscriptionSegment, SegmentStatus
from ..storage.repository import SessionRepository

logger = logging.getLogger(__name__)


@dataclass
class QueueEntry:
    """A segment waiting for transcription and its processing context."""
    segment: TranscriptionSegment
    enqueued_at: float = field(default_factory=time.time)
    attempts: int = 0
    routed_to_fallback: bool = False

    @property
    def audio_path(self) -> str:
        return self.segment.audio_file_path


class TranscriptionQueue:
    """Delivers finished segments to the transcription backend one at a time.

    All queue state (pending entries, the consecutive-failure counter) is
    mutated only by the worker task; enqueue() only appends. Segments settle
    in the order they were enqueued.
    """

    def __init__(self,
                 backend: AbstractTranscriptionBackend,
                 fallback: Optional[AbstractFallbackRecognizer] = None,
                 repository: Optional[SessionRepository] = None,
                 language: str = "en",
                 max_attempts: int = 6,
                 initial_backoff_seconds: float = 1.0,
                 failure_threshold: int = 5,
                 result_callback: Optional[Callable[[TranscriptionSegment], None]] = None,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        """Initialize the queue.

        Args:
            backend: Primary transcription backend
            fallback: Recognizer used once failure_threshold is reached
            repository: Where segment status changes are persisted
            language: Language hint sent to the primary backend
            max_attempts: Primary attempts per segment
            initial_backoff_seconds: Delay after the first failed attempt, doubled each time
            failure_threshold: Consecutive primary failures that route the next segment to fallback
            result_callback: Called with every segment that reaches a terminal status
            sleep: Awaitable used for backoff delays
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.backend = backend
        self.fallback = fallback
        self.repository = repository
        self.language = language
        self.max_attempts = max_attempts
        self.initial_backoff_seconds = initial_backoff_seconds
        self.failure_threshold = failure_threshold
        self.result_callback = result_callback
        self._sleep = sleep

        self._pending: Deque[QueueEntry] = deque()
        self._in_flight: Optional[QueueEntry] = None
        self._worker: Optional[asyncio.Task] = None
        self.consecutive_failures = 0

        self.stats = {
            "enqueued": 0,
            "completed": 0,
            "failed": 0,
            "fallback_used": 0,
            "primary_failures": 0,
        }

    def backoff_delay(self, attempt: int) -> float:
        """Delay after failed primary attempt number `attempt` (1-based)."""
        return self.initial_backoff_seconds * (2 ** (attempt - 1))

    def enqueue(self, segment: TranscriptionSegment) -> None:
        """Append a segment and make sure the worker is running.

        Must be called from the event loop thread; never blocks.
        """
        self._pending.append(QueueEntry(segment=segment))
        self.stats["enqueued"] += 1
        logger.debug(f"Enqueued segment {segment.segment_id}; {len(self._pending)} pending")
        self._ensure_worker()

    def enqueue_threadsafe(self, segment: TranscriptionSegment, loop: asyncio.AbstractEventLoop) -> None:
        """enqueue() from a thread other than the loop's."""
        loop.call_soon_threadsafe(self.enqueue, segment)

    def _ensure_worker(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._process_queue())
            self._worker.set_name("transcription-queue")

    def pending_count(self) -> int:
        """Segments not yet settled, including the one in flight."""
        return len(self._pending) + (1 if self._in_flight else 0)

    @property
    def is_processing(self) -> bool:
        return self._worker is not None and not self._worker.done()

    async def _process_queue(self) -> None:
        while self._pending:
            entry = self._pending.popleft()
            self._in_flight = entry
            segment = entry.segment
            try:
                await self._process_entry(entry)
            except Exception as e:
                logger.error(f"Unhandled exception transcribing segment {segment.segment_id}: {e}", exc_info=True)
                if segment.status is SegmentStatus.IN_PROGRESS:
                    segment.mark_failed(f"Unexpected error: {e}")
            finally:
                self._in_flight = None
            try:
                self._settle(segment)
            except Exception as e:
                logger.error(f"Settling segment {segment.segment_id} failed: {e}", exc_info=True)

    async def _process_entry(self, entry: QueueEntry) -> None:
        segment = entry.segment
        segment.mark_in_progress()
        self._save(segment)

        if self.fallback is not None and self.consecutive_failures >= self.failure_threshold:
            entry.routed_to_fallback = True
            await self._transcribe_with_fallback(segment)
            return

        try:
            audio_data = await self._read_audio(segment.audio_file_path)
        except OSError as e:
            logger.error(f"Segment audio unavailable for {segment.segment_id}: {e}")
            segment.mark_failed(f"Segment audio unavailable: {e}")
            return

        await self._transcribe_with_primary(entry, audio_data)

    async def _transcribe_with_primary(self, entry: QueueEntry, audio_data: bytes) -> None:
        segment = entry.segment
        last_error: Optional[TranscriptionError] = None

        for attempt in range(1, self.max_attempts + 1):
            entry.attempts = attempt
            try:
                text = await self.backend.transcribe(audio_data, self.language)
            except TranscriptionError as e:
                last_error = e
                self.consecutive_failures += 1
                self.stats["primary_failures"] += 1
                segment.record_attempt_failure()
                self._save(segment)
                logger.warning(f"Segment {segment.segment_id} attempt {attempt}/{self.max_attempts} "
                               f"failed ({e.__class__.__name__}): {e}; "
                               f"consecutive failures: {self.consecutive_failures}")
                if attempt < self.max_attempts:
                    await self._sleep(self.backoff_delay(attempt))
                continue

            self.consecutive_failures = 0
            segment.mark_completed(text, source="primary")
            logger.info(f"✅ Segment {segment.segment_id} transcribed via {self.backend.service_name} "
                        f"on attempt {attempt}")
            return

        segment.mark_failed(f"Transcription failed after {self.max_attempts} attempts: {last_error}")

    async def _transcribe_with_fallback(self, segment: TranscriptionSegment) -> None:
        logger.warning(f"⚠️ {self.consecutive_failures} consecutive failures, "
                       f"using {self.fallback.service_name} for segment {segment.segment_id}")
        self.stats["fallback_used"] += 1
        try:
            text = await self.fallback.recognize(segment.audio_file_path)
        except FallbackUnavailable as e:
            # Nothing to escalate to; probe the primary again with the next segment
            self.consecutive_failures = 0
            segment.mark_failed(str(e))
            return
        except FallbackError as e:
            segment.mark_failed(f"Fallback recognition failed: {e}")
            return

        self.consecutive_failures = 0
        segment.mark_completed(text, source="fallback")
        logger.info(f"✅ Segment {segment.segment_id} transcribed via {self.fallback.service_name}")

    async def _read_audio(self, path: str) -> bytes:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, _read_bytes, path)

    def _save(self, segment: TranscriptionSegment) -> None:
        if self.repository is not None and segment.session is not None:
            self.repository.save_segment(segment)

    def _settle(self, segment: TranscriptionSegment) -> None:
        if segment.status is SegmentStatus.COMPLETED:
            self.stats["completed"] += 1
        elif segment.status is SegmentStatus.FAILED:
            self.stats["failed"] += 1
            logger.error(f"❌ Segment {segment.segment_id} failed: {segment.failure_reason}")
        self._save(segment)
        if self.result_callback:
            self.result_callback(segment)

    async def join(self) -> None:
        """Wait until every enqueued segment has settled."""
        while self._worker is not None and not self._worker.done():
            await asyncio.shield(self._worker)

    async def shutdown(self, timeout: float = 30.0) -> bool:
        """Wait up to timeout for the queue to drain, then stop the worker.

        Returns:
            True if every segment settled before the timeout
        """
        logger.info(f"Shutting down transcription queue; {self.pending_count()} segments pending")
        try:
            await asyncio.wait_for(self.join(), timeout)
            logger.info("Transcription queue drained")
            return True
        except asyncio.TimeoutError:
            logger.warning(f"Timeout reached while waiting for queue. {self.pending_count()} segments remain.")

        in_flight = self._in_flight
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        if in_flight is not None and in_flight.segment.status is SegmentStatus.IN_PROGRESS:
            in_flight.segment.mark_failed("Transcription interrupted by shutdown")
            self._save(in_flight.segment)
        return False

    def get_stats(self) -> Dict[str, Any]:
        stats = dict(self.stats)
        stats.update({
            "pending": self.pending_count(),
            "consecutive_failures": self.consecutive_failures,
        })
        return stats


def _read_bytes(path: str) -> bytes:
    with open(path, 'rb') as f:
        return f.read()
