"""Recorder event publishing and the capture-lifecycle event source."""

import logging
from typing import Callable
from pubsub import pub

from ..models.events import (
    SegmentFinished,
    LevelUpdated,
    RecorderSignal,
    CaptureLifecycleEvent,
)

logger = logging.getLogger(__name__)

SEGMENT_FINISHED_TOPIC = "recorder.segment_finished"
LEVEL_TOPIC = "recorder.level"
SIGNAL_TOPIC = "recorder.signal"
LIFECYCLE_TOPIC = "capture.lifecycle"


class RecorderPublisher:
    """Publishes recorder events using pubsub.pub."""

    def __init__(self,
                 segment_topic: str = SEGMENT_FINISHED_TOPIC,
                 level_topic: str = LEVEL_TOPIC,
                 signal_topic: str = SIGNAL_TOPIC):
        self.segment_topic = segment_topic
        self.level_topic = level_topic
        self.signal_topic = signal_topic
        logger.info(f"RecorderPublisher initialized with topics: "
                    f"{segment_topic}, {level_topic}, {signal_topic}")

    def publish_segment_finished(self, event: SegmentFinished) -> None:
        pub.sendMessage(self.segment_topic, event=event)
        logger.debug(f"Published finished segment: {event.path} (session {event.session_id})")

    def publish_level(self, event: LevelUpdated) -> None:
        pub.sendMessage(self.level_topic, event=event)

    def publish_signal(self, event: RecorderSignal) -> None:
        pub.sendMessage(self.signal_topic, event=event)
        logger.info(f"Recorder signal: {event.kind.value} {event.detail or ''}")


class CaptureLifecycleSource:
    """Source of interruption and route-change events for the recorder.

    Platform integrations (or the capture thread on a read failure) publish
    CaptureLifecycleEvents; the recorder subscribes a handler.
    """

    def __init__(self, topic: str = LIFECYCLE_TOPIC):
        self.topic = topic

    def publish(self, event: CaptureLifecycleEvent) -> None:
        pub.sendMessage(self.topic, event=event)

    def subscribe(self, handler: Callable[[CaptureLifecycleEvent], None]) -> None:
        # pypubsub keeps weak references; handler owners must stay alive
        pub.subscribe(handler, self.topic)

    def unsubscribe(self, handler: Callable[[CaptureLifecycleEvent], None]) -> None:
        if pub.isSubscribed(handler, self.topic):
            pub.unsubscribe(handler, self.topic)
