"""Transcription publisher module for pub/sub event publishing."""

import logging
from typing import Callable
from pubsub import pub
from ..models.segment import TranscriptionSegment

logger = logging.getLogger(__name__)

SETTLED_TOPIC = "transcription.settled"


class TranscriptionPublisher:
    """Publishes settled segments using pubsub.pub for pub/sub architecture."""

    def __init__(self, topic: str = SETTLED_TOPIC):
        """Initialize transcription publisher.

        Args:
            topic: Pub/sub topic name for settled segments
        """
        self.topic = topic
        logger.info(f"TranscriptionPublisher initialized with topic: {topic}")

    def publish_settled_segment(self, segment: TranscriptionSegment) -> None:
        """Publish a segment that reached a terminal status.

        Args:
            segment: Completed or failed segment
        """
        pub.sendMessage(self.topic, event=segment)
        logger.debug(f"Published settled segment: {segment.segment_id} ({segment.status.value})")

    def get_callback(self) -> Callable[[TranscriptionSegment], None]:
        """Get callback function for TranscriptionQueue to use.

        Returns:
            Callback function that publishes settled segments
        """
        return self.publish_settled_segment
