"""Unit tests for TranscriptionSourceSelector."""

import pytest

from aurix.errors import AlreadyActive, EngineUnavailable, NoActiveSession
from aurix.models.events import (
    EngineUnavailableNotice,
    ModeSwitched,
    SessionStarted,
    SessionStopped,
    TranscriptionEvent,
)
from aurix.models.transcription import EngineType, select_engine
from aurix.transcription.selector import (
    SelectorState,
    TranscriptionSourceSelector,
    UNAVAILABLE_MESSAGES,
)


def results(collector):
    return [e.result for e in collector.of_type(TranscriptionEvent)]


@pytest.mark.unit
class TestSelectorLifecycle:
    """Test session start and stop."""

    def test_start_uses_network_when_online(self, selector, engine_factory, session_id, event_collector):
        collector = event_collector(session_id)

        status = selector.start_session(session_id)
        selector.get_status()

        assert status.active
        assert status.engine == EngineType.NETWORK
        assert selector.state == SelectorState.NETWORK_ACTIVE
        assert engine_factory.engines[EngineType.NETWORK].running
        started = collector.of_type(SessionStarted)
        assert len(started) == 1 and started[0].engine == EngineType.NETWORK

    def test_start_twice_raises(self, selector, session_id):
        selector.start_session(session_id)
        with pytest.raises(AlreadyActive):
            selector.start_session("another")

    def test_stop_without_session_raises(self, selector):
        with pytest.raises(NoActiveSession):
            selector.stop_session()

    def test_stop_flushes_pending_partial(self, selector, engine_factory, session_id, event_collector):
        collector = event_collector(session_id)
        selector.start_session(session_id)
        selector.get_status()
        engine_factory.engines[EngineType.NETWORK].emit("half a sentence", timestamp_ms=100)

        selector.stop_session()

        published = results(collector)
        assert [(r.text, r.is_final) for r in published] == [
            ("half a sentence", False),
            ("half a sentence", True),
        ]
        assert isinstance(collector.events[-1], SessionStopped)
        assert not selector.get_status().active
        assert selector.state == SelectorState.IDLE

    def test_selector_promotes_partial_when_engine_returns_none(self, selector, engine_factory,
                                                                session_id, event_collector):
        collector = event_collector(session_id)
        selector.start_session(session_id)
        selector.get_status()
        engine = engine_factory.engines[EngineType.NETWORK]
        engine.emit("still talking", timestamp_ms=40)
        selector.get_status()
        engine.last_partial = None

        selector.stop_session()

        assert results(collector)[-1].text == "still talking"
        assert results(collector)[-1].is_final

    def test_feed_without_session_is_noop(self, selector, engine_factory, make_chunk):
        selector.feed_audio(make_chunk("nobody", 0))
        selector.get_status()
        assert engine_factory.engines == {}

    def test_feed_for_other_session_dropped(self, selector, engine_factory, session_id, make_chunk):
        selector.start_session(session_id)
        selector.feed_audio(make_chunk("other", 0))
        selector.feed_audio(make_chunk(session_id, 1))
        selector.get_status()

        assert [c.sequence_number for c in engine_factory.engines[EngineType.NETWORK].fed] == [1]


@pytest.mark.unit
class TestSelectorHandover:
    """Test engine handover between network and local."""

    def test_privacy_toggle_flushes_partial_before_mode_switch(self, selector, engine_factory,
                                                               session_id, event_collector):
        collector = event_collector(session_id)
        selector.start_session(session_id)
        selector.get_status()
        network = engine_factory.engines[EngineType.NETWORK]
        network.emit("the quick brown", timestamp_ms=0)

        status = selector.set_privacy_mode(True)

        assert status.engine == EngineType.LOCAL
        events = collector.events
        final_index = next(i for i, e in enumerate(events)
                           if isinstance(e, TranscriptionEvent) and e.result.is_final)
        switch_index = next(i for i, e in enumerate(events) if isinstance(e, ModeSwitched))
        assert final_index < switch_index
        assert events[final_index].result.text == "the quick brown"
        assert events[final_index].result.source == EngineType.NETWORK
        assert events[switch_index].from_engine == EngineType.NETWORK
        assert events[switch_index].to_engine == EngineType.LOCAL

        assert not network.running
        assert engine_factory.engines[EngineType.LOCAL].running
        selector.get_status()
        assert selector.state == SelectorState.LOCAL_ACTIVE

    def test_chunks_held_during_switching_and_replayed(self, selector, engine_factory,
                                                       session_id, make_chunk):
        engine_factory.manual_ready.add(EngineType.NETWORK)
        selector.start_session(session_id)
        for i in range(3):
            selector.feed_audio(make_chunk(session_id, i))
        selector.get_status()

        network = engine_factory.engines[EngineType.NETWORK]
        assert selector.state == SelectorState.SWITCHING
        assert network.fed == []

        network.become_ready()
        selector.get_status()
        assert [c.sequence_number for c in network.fed] == [0, 1, 2]

        selector.feed_audio(make_chunk(session_id, 3))
        selector.get_status()
        assert [c.sequence_number for c in network.fed] == [0, 1, 2, 3]

    def test_handover_routes_each_chunk_to_exactly_one_engine(self, selector, engine_factory,
                                                              session_id, make_chunk):
        engine_factory.manual_ready.add(EngineType.LOCAL)
        selector.start_session(session_id)
        selector.feed_audio(make_chunk(session_id, 0))
        selector.feed_audio(make_chunk(session_id, 1))

        selector.set_privacy_mode(True)
        for i in range(2, 5):
            selector.feed_audio(make_chunk(session_id, i))
        selector.get_status()

        network = engine_factory.engines[EngineType.NETWORK]
        local = engine_factory.engines[EngineType.LOCAL]
        assert local.fed == []

        local.become_ready()
        selector.feed_audio(make_chunk(session_id, 5))
        selector.get_status()

        assert [c.sequence_number for c in network.fed] == [0, 1]
        assert [c.sequence_number for c in local.fed] == [2, 3, 4, 5]

    def test_unrecognized_audio_replayed_before_held_chunks(self, selector, engine_factory,
                                                            session_id, make_chunk):
        engine_factory.manual_ready.add(EngineType.LOCAL)
        selector.start_session(session_id)
        for i in range(4):
            selector.feed_audio(make_chunk(session_id, i))
        selector.get_status()
        network = engine_factory.engines[EngineType.NETWORK]
        network.unrecognized_tail = 2

        selector.set_privacy_mode(True)
        for i in range(4, 6):
            selector.feed_audio(make_chunk(session_id, i))
        selector.get_status()
        local = engine_factory.engines[EngineType.LOCAL]
        local.become_ready()
        selector.feed_audio(make_chunk(session_id, 6))
        selector.get_status()

        assert [c.sequence_number for c in network.fed] == [0, 1, 2, 3]
        assert [c.sequence_number for c in local.fed] == [2, 3, 4, 5, 6]

    def test_connectivity_loss_switches_to_local(self, selector, engine_factory, session_id, event_collector):
        collector = event_collector(session_id)
        selector.start_session(session_id)

        selector.on_connectivity_change(False)
        status = selector.get_status()

        assert status.engine == EngineType.LOCAL
        assert status.online is False
        switches = collector.of_type(ModeSwitched)
        assert len(switches) == 1 and switches[0].to_engine == EngineType.LOCAL

    def test_toggle_while_idle_only_updates_status(self, selector, engine_factory):
        status = selector.set_privacy_mode(True)

        assert status.engine == EngineType.LOCAL
        assert not status.active
        assert engine_factory.engines == {}

    def test_status_matches_rule_after_every_change(self, selector, engine_factory, session_id, make_chunk):
        selector.start_session(session_id)
        changes = [("privacy", True), ("online", False), ("privacy", False),
                   ("online", True), ("online", False), ("online", True)]

        sequence = 0
        for kind, value in changes:
            if kind == "privacy":
                selector.set_privacy_mode(value)
            else:
                selector.on_connectivity_change(value)
            selector.feed_audio(make_chunk(session_id, sequence))
            sequence += 1
            status = selector.get_status()
            assert status.engine == select_engine(status.privacy_mode, status.online)

        delivered = [c.sequence_number for engine in engine_factory.engines.values() for c in engine.fed]
        assert sorted(delivered) == list(range(sequence))

    def test_engines_reused_across_switches(self, selector, engine_factory, session_id):
        selector.start_session(session_id)
        selector.set_privacy_mode(True)
        network = engine_factory.engines[EngineType.NETWORK]
        selector.set_privacy_mode(False)

        assert engine_factory.engines[EngineType.NETWORK] is network
        assert network.start_count == 2


@pytest.mark.unit
class TestSelectorResults:
    """Test result publishing."""

    def test_timestamps_never_decrease(self, selector, engine_factory, session_id, event_collector):
        collector = event_collector(session_id)
        selector.start_session(session_id)
        selector.get_status()
        network = engine_factory.engines[EngineType.NETWORK]

        network.emit("one", timestamp_ms=500)
        network.emit("one two", is_final=True, timestamp_ms=300)
        network.emit("three", timestamp_ms=900)
        selector.get_status()

        stamps = [r.timestamp_ms for r in results(collector)]
        assert stamps == [500, 500, 900]
        assert all(r.session_id == session_id for r in results(collector))

    def test_stale_engine_results_ignored(self, selector, engine_factory, session_id, event_collector):
        collector = event_collector(session_id)
        selector.start_session(session_id)
        selector.set_privacy_mode(True)
        network = engine_factory.engines[EngineType.NETWORK]

        network.emit("late network result", timestamp_ms=10)
        selector.get_status()

        assert "late network result" not in [r.text for r in results(collector)]


@pytest.mark.unit
class TestSelectorUnavailable:
    """Test the engine-unavailable path."""

    def test_unavailable_local_engine_emits_notice(self, engine_factory, session_id,
                                                   event_collector, make_chunk):
        engine_factory.unavailable[EngineType.LOCAL] = "model not provisioned"
        selector = TranscriptionSourceSelector(engine_factory, privacy_mode=True)
        collector = event_collector(session_id)
        try:
            status = selector.start_session(session_id)
            selector.feed_audio(make_chunk(session_id, 0))
            selector.get_status()

            assert status.engine == EngineType.LOCAL
            assert selector.state == SelectorState.LOCAL_ACTIVE
            notice = results(collector)[-1]
            assert notice.text == UNAVAILABLE_MESSAGES[EngineType.LOCAL]
            assert notice.is_final and notice.confidence == 0.0
            assert notice.is_notice
            unavailable = collector.of_type(EngineUnavailableNotice)
            assert unavailable[0].reason == "model not provisioned"

            # Leaving privacy mode recovers onto the network engine
            selector.set_privacy_mode(False)
            selector.feed_audio(make_chunk(session_id, 1))
            selector.get_status()
            assert selector.state == SelectorState.NETWORK_ACTIVE
            assert [c.sequence_number for c in engine_factory.engines[EngineType.NETWORK].fed] == [1]
        finally:
            selector.shutdown(timeout=2.0)

    def test_engine_load_failure_reported_through_ready(self, selector, engine_factory,
                                                        session_id, event_collector):
        engine_factory.manual_ready.add(EngineType.NETWORK)
        collector = event_collector(session_id)
        selector.start_session(session_id)
        network = engine_factory.engines[EngineType.NETWORK]

        network.become_ready(EngineUnavailable("network", "bad credentials"))
        selector.get_status()

        assert selector.state == SelectorState.NETWORK_ACTIVE
        assert not network.running
        assert results(collector)[-1].text == UNAVAILABLE_MESSAGES[EngineType.NETWORK]
