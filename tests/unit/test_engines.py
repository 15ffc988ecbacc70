"""Unit tests for transcription engines."""

import os
import threading
import time
from types import SimpleNamespace
from unittest.mock import MagicMock

import numpy as np
import pytest
from google.api_core import exceptions as gax_exceptions

from aurix.errors import EngineUnavailable
from aurix.models.transcription import EngineType
from aurix.transcription import GoogleSpeechEngine, LocalModelManager, WhisperEngine
from aurix.transcription.base import WindowedTranscriptionEngine


class EchoEngine(WindowedTranscriptionEngine):
    """Recognizes a window as 'words <sample count>'."""

    engine_type = EngineType.LOCAL

    def __init__(self, texts=None, fail_load=False, **kwargs):
        super().__init__(partial_interval_seconds=0.128, max_utterance_seconds=0.256, **kwargs)
        self.texts = texts or {}
        self.fail_load = fail_load
        self.results_seen = threading.Condition()
        self.ready_errors = []
        self.ready_event = threading.Event()
        self.bind(self._on_results, self._on_ready)
        self.received = []

    def _on_results(self, engine):
        with self.results_seen:
            self.received.extend(engine.drain_results())
            self.results_seen.notify_all()

    def _on_ready(self, engine, error):
        self.ready_errors.append(error)
        self.ready_event.set()

    def wait_for_results(self, count, timeout=2.0):
        with self.results_seen:
            return self.results_seen.wait_for(lambda: len(self.received) >= count, timeout)

    def check_available(self):
        pass

    def _load(self):
        if self.fail_load:
            raise RuntimeError("model file is corrupt")

    def recognize(self, audio):
        return self.texts.get(len(audio), f"words {len(audio)}"), 0.9


@pytest.mark.unit
class TestWindowedTranscriptionEngine:
    """Test windowing, partial/final results and stop semantics."""

    def test_partials_then_final(self, make_chunk):
        engine = EchoEngine()
        engine.start("s1")
        assert engine.ready_event.wait(2.0)
        assert engine.ready_errors == [None]

        for i in range(4):
            engine.feed(make_chunk("s1", i))
        assert engine.wait_for_results(2)

        assert [(r.text, r.is_final) for r in engine.received] == [
            ("words 2048", False),
            ("words 4096", True),
        ]
        assert engine.received[0].timestamp_ms == 0
        assert engine.stop() is None

    def test_stop_promotes_last_partial(self, make_chunk):
        engine = EchoEngine()
        engine.start("s1")
        for i in range(2):
            engine.feed(make_chunk("s1", i))
        assert engine.wait_for_results(1)

        final = engine.stop()

        assert final is not None
        assert final.is_final
        assert final.text == "words 2048"
        assert final.source == EngineType.LOCAL

    def test_silent_final_keeps_previous_partial(self, make_chunk):
        engine = EchoEngine(texts={4096: ""})
        engine.start("s1")
        for i in range(4):
            engine.feed(make_chunk("s1", i))
        assert engine.wait_for_results(2)

        assert [(r.text, r.is_final) for r in engine.received] == [
            ("words 2048", False),
            ("words 2048", True),
        ]
        engine.stop()

    def test_load_failure_reported_as_unavailable(self):
        engine = EchoEngine(fail_load=True)
        engine.start("s1")

        assert engine.ready_event.wait(2.0)
        assert isinstance(engine.ready_errors[0], EngineUnavailable)
        assert "corrupt" in engine.ready_errors[0].reason
        engine.stop()

    def test_start_twice_raises(self):
        engine = EchoEngine()
        engine.start("s1")
        try:
            with pytest.raises(RuntimeError):
                engine.start("s1")
        finally:
            engine.stop()

    def test_feed_before_start_ignored(self, make_chunk):
        engine = EchoEngine()
        engine.feed(make_chunk("s1", 0))
        assert engine.utterance_samples == 0
        assert engine.stop() is None


class SlowEngine(EchoEngine):
    """EchoEngine whose model load and recognition take real time."""

    def __init__(self, load_seconds=0.0, recognize_seconds=0.0, **kwargs):
        super().__init__(**kwargs)
        self.load_seconds = load_seconds
        self.recognize_seconds = recognize_seconds
        self.recognizing = threading.Event()
        self.recognizer_threads = set()

    def _load(self):
        time.sleep(self.load_seconds)

    def recognize(self, audio):
        self.recognizer_threads.add(threading.current_thread().name)
        self.recognizing.set()
        time.sleep(self.recognize_seconds)
        return super().recognize(audio)


@pytest.mark.unit
class TestWindowedEngineStop:
    """Test stop and restart while the worker is busy."""

    def test_restart_during_slow_load_uses_one_worker(self, make_chunk):
        engine = SlowEngine(load_seconds=0.5, stop_timeout_seconds=0.1)
        engine.start("s1")
        first_worker = engine.worker_thread
        engine.stop()
        assert first_worker.is_alive()

        engine.start("s2")
        assert engine.ready_event.wait(2.0)
        for i in range(8):
            engine.feed(make_chunk("s2", i))
        assert engine.wait_for_results(4)

        first_worker.join(2.0)
        assert not first_worker.is_alive()
        assert engine.ready_errors == [None]
        assert len(engine.recognizer_threads) == 1
        assert [(r.text, r.is_final) for r in engine.received] == [
            ("words 2048", False), ("words 4096", True),
        ] * 2
        assert {r.session_id for r in engine.received} == {"s2"}
        engine.stop()

    def test_stop_hands_back_audio_not_yet_recognized(self, make_chunk):
        engine = SlowEngine(recognize_seconds=0.3)
        engine.start("s1")
        assert engine.ready_event.wait(2.0)
        engine.feed(make_chunk("s1", 0))
        engine.feed(make_chunk("s1", 1))
        assert engine.recognizing.wait(2.0)
        for i in range(2, 8):
            engine.feed(make_chunk("s1", i))

        final = engine.stop()

        # The in-flight partial covers chunks 0-1; everything after is handed back
        assert final is not None and final.text == "words 2048"
        assert [c.sequence_number for c in engine.take_unrecognized_audio()] == list(range(2, 8))
        assert engine.take_unrecognized_audio() == []

    def test_result_finishing_after_stop_timeout_is_dropped(self, make_chunk):
        engine = SlowEngine(recognize_seconds=0.3, stop_timeout_seconds=0.05)
        engine.start("s1")
        assert engine.ready_event.wait(2.0)
        engine.feed(make_chunk("s1", 0))
        engine.feed(make_chunk("s1", 1))
        assert engine.recognizing.wait(2.0)
        for i in range(2, 8):
            engine.feed(make_chunk("s1", i))

        final = engine.stop()
        time.sleep(0.5)

        assert final is None
        assert engine.received == []
        assert [c.sequence_number for c in engine.take_unrecognized_audio()] == list(range(8))


@pytest.mark.unit
class TestGoogleSpeechEngine:
    """Test Google engine availability and response handling."""

    def test_missing_credentials_unavailable(self):
        engine = GoogleSpeechEngine(credentials_path=None)
        with pytest.raises(EngineUnavailable) as exc_info:
            engine.start("s1")
        assert exc_info.value.engine == "network"
        assert engine.worker_thread is None

    def test_credentials_file_must_exist(self, temp_data_dir):
        engine = GoogleSpeechEngine(credentials_path=os.path.join(temp_data_dir, "missing.json"))
        with pytest.raises(EngineUnavailable):
            engine.check_available()

    def test_recognize_joins_alternatives(self):
        engine = GoogleSpeechEngine(credentials_path="unused.json")
        engine.client = MagicMock()
        engine.client.recognize.return_value = SimpleNamespace(results=[
            SimpleNamespace(alternatives=[SimpleNamespace(transcript="hello ", confidence=0.8)]),
            SimpleNamespace(alternatives=[SimpleNamespace(transcript="world", confidence=0.6)]),
        ])

        text, confidence = engine.recognize(np.zeros(1600, dtype=np.float32))

        assert text == "hello world"
        assert confidence == pytest.approx(0.7)
        assert engine.client.recognize.call_args.kwargs["timeout"] == engine.request_timeout_seconds

    def test_recognize_deadline_returns_empty(self):
        engine = GoogleSpeechEngine(credentials_path="unused.json")
        engine.client = MagicMock()
        engine.client.recognize.side_effect = gax_exceptions.DeadlineExceeded("too slow")

        assert engine.recognize(np.zeros(1600, dtype=np.float32)) == ("", 0.0)

    def test_recognize_no_results(self):
        engine = GoogleSpeechEngine(credentials_path="unused.json")
        engine.client = MagicMock()
        engine.client.recognize.return_value = SimpleNamespace(results=[])

        assert engine.recognize(np.zeros(1600, dtype=np.float32)) == ("", 0.0)


@pytest.mark.unit
class TestLocalModels:
    """Test local model provisioning checks and the Whisper engine."""

    def _install(self, models_dir, name):
        model_dir = os.path.join(models_dir, name)
        os.makedirs(model_dir)
        with open(os.path.join(model_dir, "model.bin"), "wb") as f:
            f.write(b"\0")

    def test_installed_models(self, temp_data_dir):
        self._install(temp_data_dir, "small.en")
        self._install(temp_data_dir, "base")
        os.makedirs(os.path.join(temp_data_dir, "incomplete"))

        manager = LocalModelManager(temp_data_dir)

        assert manager.installed_models() == ["base", "small.en"]
        assert not manager.is_model_installed("incomplete")

    def test_missing_directory_lists_nothing(self, temp_data_dir):
        manager = LocalModelManager(os.path.join(temp_data_dir, "nope"))
        assert manager.installed_models() == []

    def test_whisper_unavailable_without_model(self, temp_data_dir):
        engine = WhisperEngine(LocalModelManager(temp_data_dir), model_name="small.en")
        with pytest.raises(EngineUnavailable) as exc_info:
            engine.start("s1")
        assert exc_info.value.engine == "local"

    def test_whisper_resolves_model_path(self, temp_data_dir):
        self._install(temp_data_dir, "small.en")
        engine = WhisperEngine(LocalModelManager(temp_data_dir), model_name="small.en")

        engine.check_available()

        assert engine.model_path == os.path.join(temp_data_dir, "small.en")

    def test_whisper_recognize(self, temp_data_dir):
        engine = WhisperEngine(LocalModelManager(temp_data_dir))
        engine.model = MagicMock()
        engine.model.transcribe.return_value = (
            iter([SimpleNamespace(text=" hello", avg_logprob=0.0),
                  SimpleNamespace(text=" ", avg_logprob=-5.0),
                  SimpleNamespace(text="there ", avg_logprob=0.0)]),
            None,
        )

        text, confidence = engine.recognize(np.zeros(1600, dtype=np.float32))

        assert text == "hello there"
        assert confidence == pytest.approx(1.0)
        assert engine.model.transcribe.call_args.kwargs["language"] == "en"
