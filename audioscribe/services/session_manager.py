"""Session manager: attaches finished segments to sessions and tracks their transcription."""

import logging
from typing import Optional, Dict, Any

from pubsub import pub

from ..audio.audio_pub import SEGMENT_FINISHED_TOPIC
from ..models.events import SegmentFinished
from ..models.segment import TranscriptionSegment, SegmentStatus
from ..models.session import RecordingSession, default_session_title
from ..storage.file_manager import FileManager
from ..storage.repository import SessionRepository
from ..transcription.publisher import SETTLED_TOPIC
from ..transcription.queue import TranscriptionQueue

logger = logging.getLogger(__name__)


class SessionManager:
    """Manages recording sessions and the segments produced for them."""

    def __init__(self,
                 repository: SessionRepository,
                 queue: TranscriptionQueue,
                 file_manager: FileManager,
                 delete_transcribed_audio: bool = True,
                 segment_topic: str = SEGMENT_FINISHED_TOPIC,
                 settled_topic: str = SETTLED_TOPIC):
        """Initialize session manager.

        Args:
            repository: Where sessions and segments are persisted
            queue: Queue finished segments are handed to
            file_manager: Used to delete transcribed audio
            delete_transcribed_audio: Remove a segment's audio once it completes
            segment_topic: Pub/sub topic carrying SegmentFinished events
            settled_topic: Pub/sub topic carrying settled segments
        """
        self.repository = repository
        self.queue = queue
        self.file_manager = file_manager
        self.delete_transcribed_audio = delete_transcribed_audio
        self.segment_topic = segment_topic
        self.settled_topic = settled_topic
        self.current_session: Optional[RecordingSession] = None
        self.is_subscribed = False

    def subscribe(self) -> None:
        if self.is_subscribed:
            return
        pub.subscribe(self.on_segment_finished, self.segment_topic)
        pub.subscribe(self.on_segment_settled, self.settled_topic)
        self.is_subscribed = True

    def unsubscribe(self) -> None:
        if not self.is_subscribed:
            return
        for handler, topic in ((self.on_segment_finished, self.segment_topic),
                               (self.on_segment_settled, self.settled_topic)):
            if pub.isSubscribed(handler, topic):
                pub.unsubscribe(handler, topic)
        self.is_subscribed = False

    def start_session(self, title: Optional[str] = None) -> RecordingSession:
        """Create, persist and select a new recording session."""
        session = RecordingSession(title=title or default_session_title())
        self.repository.save_session(session)
        self.current_session = session
        logger.info(f"Created new session: {session.session_id} ('{session.title}')")
        return session

    def stop_session(self) -> Optional[RecordingSession]:
        session = self.current_session
        self.current_session = None
        if session is not None:
            logger.info(f"Session {session.session_id} closed with {len(session.segments)} segments")
        return session

    def _session_for(self, session_id: str) -> RecordingSession:
        if self.current_session is not None and self.current_session.session_id == session_id:
            return self.current_session

        session = self.repository.load_session(session_id)
        if session is None:
            # Recovered segment whose session was never persisted
            session = RecordingSession(title=default_session_title(), session_id=session_id)
            logger.info(f"Recreating missing session {session_id} for recovered segment")
        return session

    def on_segment_finished(self, event: SegmentFinished) -> TranscriptionSegment:
        """Persist a finished segment and hand it to the transcription queue.

        Runs on the event loop thread.
        """
        session = self._session_for(event.session_id)
        segment = TranscriptionSegment(
            audio_file_path=event.path,
            duration_seconds=event.duration_seconds,
        )
        session.add_segment(segment)
        self.repository.save_session(session)
        logger.info(f"Segment {segment.segment_id} added to session {session.session_id} "
                    f"({event.duration_seconds:.1f}s{', recovered' if event.recovered else ''})")
        self.queue.enqueue(segment)
        return segment

    def on_segment_settled(self, event: TranscriptionSegment) -> None:
        segment = event
        if segment.session is not None:
            self.repository.save_segment(segment)

        if segment.status is SegmentStatus.COMPLETED and self.delete_transcribed_audio:
            if self.file_manager.delete_file(segment.audio_file_path):
                logger.debug(f"Deleted transcribed audio {segment.audio_file_path}")

    def get_session_summary(self, session: RecordingSession) -> Dict[str, Any]:
        counts = {status.value: 0 for status in SegmentStatus}
        for segment in session.segments:
            counts[segment.status.value] += 1
        return {
            "session_id": session.session_id,
            "title": session.title,
            "segments": len(session.segments),
            "status_counts": counts,
            "transcript": session.transcript,
        }
