"""Unit tests for the session event channel."""

import pytest
from pubsub import pub

from aurix.channel import STATUS_TOPIC, SessionEventChannel, StatusPublisher, session_topic
from aurix.models.events import ConnectivityChanged, SessionStarted, SessionStopped
from aurix.models.transcription import EngineType


class StatusListener:
    def __init__(self):
        self.events = []

    def on_event(self, event):
        self.events.append(event)


@pytest.mark.unit
class TestSessionEventChannel:
    """Test per-session topics."""

    def test_topic_sanitizes_session_id(self):
        assert session_topic("20250101_120000_ab-cd") == "session.s_20250101_120000_ab_cd"

    def test_events_reach_only_their_session(self, session_id, event_collector):
        collector = event_collector(session_id)
        other = event_collector(session_id + "_other")

        SessionEventChannel(session_id).publish(SessionStarted(session_id=session_id,
                                                               engine=EngineType.LOCAL))

        assert len(collector.events) == 1
        assert collector.events[0].engine == EngineType.LOCAL
        assert other.events == []

    def test_unsubscribe_stops_delivery(self, session_id, event_collector):
        collector = event_collector(session_id)
        collector.close()

        SessionEventChannel(session_id).publish(SessionStopped(session_id=session_id))

        assert collector.events == []

    def test_status_publisher(self):
        listener = StatusListener()
        pub.subscribe(listener.on_event, STATUS_TOPIC)
        try:
            StatusPublisher().connectivity_changed(False)
        finally:
            pub.unsubscribe(listener.on_event, STATUS_TOPIC)

        assert len(listener.events) == 1
        assert isinstance(listener.events[0], ConnectivityChanged)
        assert listener.events[0].online is False
