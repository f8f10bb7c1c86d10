"""Dictation publisher module for pub/sub event publishing."""

import logging
from pubsub import pub

from ..models.events import DictationStateEvent, DurationEvent
from ..models.session import RecordingSession

logger = logging.getLogger(__name__)

STATE_TOPIC = "dictation_state"
DURATION_TOPIC = "dictation_duration"


class DictationPublisher:
    """Publishes controller state changes and duration ticks using pubsub.pub."""

    def __init__(self, controller_id: str,
                 state_topic: str = STATE_TOPIC,
                 duration_topic: str = DURATION_TOPIC):
        """Initialize dictation publisher.

        Args:
            controller_id: Identifies the publishing controller in every event
            state_topic: Pub/sub topic name for state changes
            duration_topic: Pub/sub topic name for duration ticks
        """
        self.controller_id = controller_id
        self.state_topic = state_topic
        self.duration_topic = duration_topic
        logger.info(f"DictationPublisher initialized for {controller_id}: {state_topic}, {duration_topic}")

    def publish_state(self, session: RecordingSession) -> None:
        """Publish the session's current state."""
        event = DictationStateEvent(
            controller_id=self.controller_id,
            session_id=session.session_id,
            state=session.state,
            last_error=session.last_error,
        )
        pub.sendMessage(self.state_topic, event=event)
        logger.debug(f"Published state {session.state.value} for session {session.session_id}")

    def publish_duration(self, session: RecordingSession) -> None:
        """Publish the session's elapsed recording time."""
        event = DurationEvent(
            controller_id=self.controller_id,
            session_id=session.session_id,
            elapsed_seconds=session.elapsed_seconds,
        )
        pub.sendMessage(self.duration_topic, event=event)
