"""Per-session event channel built on pypubsub."""

import logging
import re
from typing import Callable

from pubsub import pub

from .models.events import ConnectivityChanged, PrivacyModeChanged, SessionEvent

logger = logging.getLogger(__name__)

STATUS_TOPIC = "transcription_status"


def session_topic(session_id: str) -> str:
    """Return the pub/sub topic name for a session."""
    # pypubsub topic names only allow word characters
    safe_id = re.sub(r"\W", "_", session_id)
    return f"session.s_{safe_id}"


class SessionEventChannel:
    """Single typed notification channel for one session.

    Listeners receive one keyword argument, ``event``.
    """

    def __init__(self, session_id: str):
        self.session_id = session_id
        self.topic = session_topic(session_id)

    def publish(self, event: SessionEvent) -> None:
        pub.sendMessage(self.topic, event=event)
        logger.debug(f"Published {type(event).__name__} on {self.topic}")

    def subscribe(self, listener: Callable[..., None]) -> None:
        pub.subscribe(listener, self.topic)

    def unsubscribe(self, listener: Callable[..., None]) -> None:
        try:
            pub.unsubscribe(listener, self.topic)
        except Exception as e:
            logger.warning(f"Error during unsubscribe from {self.topic}: {e}")

    def close(self) -> None:
        """Delete the session topic along with any listeners still on it."""
        if pub.getDefaultTopicMgr().delTopic(self.topic):
            logger.debug(f"Deleted topic {self.topic}")


class StatusPublisher:
    """Publishes session-independent status changes."""

    def __init__(self, topic: str = STATUS_TOPIC):
        self.topic = topic

    def connectivity_changed(self, online: bool) -> None:
        pub.sendMessage(self.topic, event=ConnectivityChanged(online=online))

    def privacy_mode_changed(self, enabled: bool) -> None:
        pub.sendMessage(self.topic, event=PrivacyModeChanged(enabled=enabled))
