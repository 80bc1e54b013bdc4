"""Session event publisher for pub/sub lifecycle notifications."""

import logging
import uuid
from typing import Any, Dict, Optional

from pubsub import pub

from ..models.events import SessionEvent

logger = logging.getLogger(__name__)


class SessionEventPublisher:
    """Publishes session lifecycle events using pubsub.pub."""

    def __init__(self, topic: str = "recorder.session"):
        """Initialize session event publisher.

        Args:
            topic: Pub/sub topic name for session events
        """
        self.topic = topic
        logger.info(f"SessionEventPublisher initialized with topic: {topic}")

    def publish(self, event_type: str, metadata: Optional[Dict[str, Any]] = None) -> SessionEvent:
        """Build and publish a session event.

        Args:
            event_type: Lifecycle event name
            metadata: Extra event details

        Returns:
            The published event
        """
        event = SessionEvent(
            event_id=uuid.uuid4().hex,
            event_type=event_type,
            metadata=metadata or {},
        )
        pub.sendMessage(self.topic, event=event)
        logger.debug(f"Published session event: {event_type}")
        return event
