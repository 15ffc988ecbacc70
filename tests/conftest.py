"""Pytest configuration and fixtures for Aurix tests."""

import asyncio
import logging
import tempfile
import threading
import time
import uuid
from typing import Callable, Dict, List, Optional, Set

import numpy as np
import pytest

from aurix.channel import SessionEventChannel
from aurix.errors import EngineUnavailable
from aurix.models.audio import AudioChunk
from aurix.models.document import PipelineConfig
from aurix.models.events import SessionEvent
from aurix.models.transcription import EngineType, TranscriptionResult
from aurix.pipeline.llm import LanguageModelService
from aurix.transcription.base import AbstractTranscriptionEngine
from aurix.transcription.selector import TranscriptionSourceSelector


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class FakeEngine(AbstractTranscriptionEngine):
    """Engine driven by the test: results and readiness are triggered by hand."""

    def __init__(self, engine_type: EngineType, auto_ready: bool = True,
                 unavailable_reason: Optional[str] = None):
        super().__init__()
        self.engine_type = engine_type
        self.auto_ready = auto_ready
        self.unavailable_reason = unavailable_reason
        self.fed: List[AudioChunk] = []
        self.running = False
        self.start_count = 0
        self.stop_count = 0
        self.unrecognized_tail = 0
        self.last_partial: Optional[TranscriptionResult] = None

    def start(self, session_id: str) -> None:
        if self.unavailable_reason:
            raise EngineUnavailable(self.engine_type.value, self.unavailable_reason)
        self.session_id = session_id
        self.running = True
        self.start_count += 1
        if self.auto_ready:
            self._report_ready()

    def feed(self, chunk: AudioChunk) -> None:
        self.fed.append(chunk)

    def stop(self) -> Optional[TranscriptionResult]:
        self.running = False
        self.stop_count += 1
        if self.unrecognized_tail:
            self.unrecognized_audio = self.fed[-self.unrecognized_tail:]
        final =self.last_partial.as_final() if self.last_partial else None
        self.last_partial = None
        return final

    def emit(self, text: str, is_final: bool = False, timestamp_ms: int = 0,
             confidence: float = 0.9) -> TranscriptionResult:
        result = TranscriptionResult(text=text, is_final=is_final, confidence=confidence,
                                     timestamp_ms=timestamp_ms, source=self.engine_type,
                                     session_id=self.session_id or "")
        self.last_partial = None if is_final else result
        self._emit(result)
        return result

    def become_ready(self, error: Optional[Exception] = None) -> None:
        self._report_ready(error)


class FakeEngineFactory:
    """Builds one FakeEngine per engine type; behaviour is configured per type."""

    def __init__(self):
        self.engines: Dict[EngineType, FakeEngine] = {}
        self.manual_ready: Set[EngineType] = set()
        self.unavailable: Dict[EngineType, str] = {}

    def __call__(self, engine_type: EngineType) -> FakeEngine:
        engine = FakeEngine(engine_type,
                            auto_ready=engine_type not in self.manual_ready,
                            unavailable_reason=self.unavailable.get(engine_type))
        self.engines[engine_type] = engine
        return engine


class EventCollector:
    """Records every event published on one session channel."""

    def __init__(self, session_id: str):
        self.channel = SessionEventChannel(session_id)
        self.events: List[SessionEvent] = []
        self.condition = threading.Condition()
        self.channel.subscribe(self.on_event)

    def on_event(self, event: SessionEvent) -> None:
        with self.condition:
            self.events.append(event)
            self.condition.notify_all()

    def of_type(self, event_type) -> list:
        with self.condition:
            return [e for e in self.events if isinstance(e, event_type)]

    def wait_for(self, predicate: Callable[[List[SessionEvent]], bool], timeout: float = 2.0) -> bool:
        with self.condition:
            return self.condition.wait_for(lambda: predicate(self.events), timeout)

    def close(self) -> None:
        self.channel.unsubscribe(self.on_event)


class ScriptedLLM(LanguageModelService):
    """Language model whose replies come from a function of the prompt.

    The responder may return a string, return an exception (raised), or
    return a number of seconds to sleep (simulating a hung call).
    """

    def __init__(self, responder: Callable[[str], object]):
        self.responder = responder
        self.prompts: List[str] = []

    async def generate(self, prompt: str, model: Optional[str] = None,
                       temperature: float = 0.7, max_tokens: int = 1000) -> str:
        self.prompts.append(prompt)
        reply = self.responder(prompt)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, (int, float)):
            await asyncio.sleep(reply)
            return ""
        return reply


@pytest.fixture
def temp_data_dir():
    """Create temporary directory for test data."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def session_id():
    """Unique session id so pub/sub topics never leak between tests."""
    return f"test_{uuid.uuid4().hex[:8]}"


@pytest.fixture
def make_chunk():
    """Build audio chunks of 1024 samples (64 ms at 16 kHz)."""
    def _make(session_id: str, sequence: int, samples: int = 1024, value: float = 0.0) -> AudioChunk:
        return AudioChunk(
            session_id=session_id,
            samples=np.full(samples, value, dtype=np.float32),
            sequence_number=sequence,
            timestamp_ms=sequence * 64,
        )
    return _make


@pytest.fixture
def engine_factory():
    return FakeEngineFactory()


@pytest.fixture
def selector(engine_factory):
    selector = TranscriptionSourceSelector(engine_factory, reply_timeout_seconds=5.0)
    yield selector
    selector.shutdown(timeout=2.0)


@pytest.fixture
def event_collector():
    collectors = []

    def _collect(session_id: str) -> EventCollector:
        collector = EventCollector(session_id)
        collectors.append(collector)
        return collector

    yield _collect
    for collector in collectors:
        collector.close()


@pytest.fixture
def scripted_llm():
    return ScriptedLLM


@pytest.fixture
def fast_config():
    """Pipeline config with a short model timeout."""
    return PipelineConfig(model_timeout_seconds=0.2)


@pytest.fixture
def wait_until():
    """Poll ``predicate`` until it is true or ``timeout`` expires."""
    def _wait(predicate: Callable[[], bool], timeout: float = 2.0, interval: float = 0.01) -> bool:
        deadline = time.time() + timeout
        while time.time() < deadline:
            if predicate():
                return True
            time.sleep(interval)
        return predicate()
    return _wait
