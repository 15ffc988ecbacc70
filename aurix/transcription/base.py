"""Abstract base classes for transcription engines."""

import logging
import queue
import threading
from abc import ABC, abstractmethod
from typing import Callable, List, NamedTuple, Optional, Tuple

import numpy as np

from ..errors import EngineUnavailable
from ..models.audio import AudioChunk, SAMPLE_RATE
from ..models.transcription import EngineType, TranscriptionResult

logger = logging.getLogger(__name__)


class AbstractTranscriptionEngine(ABC):
    """Uniform contract shared by the network and local engines.

    Results are placed on ``outbox``; the owner is told about them through
    ``results_callback`` and drains them with :meth:`drain_results` on its
    own thread.
    """

    engine_type: EngineType

    def __init__(self):
        self.session_id: Optional[str] = None
        self.outbox: "queue.Queue[TranscriptionResult]" = queue.Queue()
        self.results_callback: Optional[Callable[["AbstractTranscriptionEngine"], None]] = None
        self.ready_callback: Optional[Callable[["AbstractTranscriptionEngine", Optional[Exception]], None]] = None
        self.is_ready = False
        self.unrecognized_audio: List[AudioChunk] = []

    def bind(self,
             results_callback: Callable[["AbstractTranscriptionEngine"], None],
             ready_callback: Callable[["AbstractTranscriptionEngine", Optional[Exception]], None]) -> None:
        """Register the owner's notification callbacks."""
        self.results_callback = results_callback
        self.ready_callback = ready_callback

    @abstractmethod
    def start(self, session_id: str) -> None:
        """Start transcribing for ``session_id``.

        Raises:
            EngineUnavailable: If the engine cannot run at all
        """
        pass

    @abstractmethod
    def feed(self, chunk: AudioChunk) -> None:
        """Feed one audio chunk."""
        pass

    @abstractmethod
    def stop(self) -> Optional[TranscriptionResult]:
        """Stop immediately, returning the pending partial promoted to final (if any).

        Audio that was fed but not yet recognized is left for
        :meth:`take_unrecognized_audio`.
        """
        pass

    def drain_results(self) -> List[TranscriptionResult]:
        """Get all results emitted so far (non-blocking)."""
        results = []
        while True:
            try:
                results.append(self.outbox.get_nowait())
            except queue.Empty:
                break
        return results

    def take_unrecognized_audio(self) -> List[AudioChunk]:
        """Get the audio fed before the last stop that no result covers."""
        chunks, self.unrecognized_audio = self.unrecognized_audio, []
        return chunks

    def _emit(self, result: TranscriptionResult) -> None:
        self.outbox.put(result)
        if self.results_callback:
            self.results_callback(self)

    def _report_ready(self, error: Optional[Exception] = None) -> None:
        self.is_ready = error is None
        if self.ready_callback:
            self.ready_callback(self, error)


class RecognitionTask(NamedTuple):
    """A window of utterance audio waiting for recognition."""
    audio: np.ndarray
    chunks: Tuple[AudioChunk, ...]
    utterance_id: int
    start_ms: int
    is_final: bool


class WindowedTranscriptionEngine(AbstractTranscriptionEngine):
    """Engine that re-recognizes the growing utterance on a worker thread.

    Every ``partial_interval_seconds`` of new audio the utterance so far is
    recognized and emitted as a partial result; once the utterance reaches
    ``max_utterance_seconds`` it is recognized one last time, emitted as a
    final result and a new utterance begins.

    Each run gets its own task queue and run id. A worker that outlives
    :meth:`stop` keeps reading only its own queue, and whatever it still
    recognizes is dropped because its run id is no longer current.
    """

    def __init__(self,
                 partial_interval_seconds: float = 2.0,
                 max_utterance_seconds: float = 10.0,
                 stop_timeout_seconds: float = 5.0,
                 sample_rate: int = SAMPLE_RATE):
        super().__init__()
        self.sample_rate = sample_rate
        self.partial_interval_samples = int(partial_interval_seconds * sample_rate)
        self.max_utterance_samples = int(max_utterance_seconds * sample_rate)
        self.stop_timeout_seconds = stop_timeout_seconds

        # Utterance buffering
        self.utterance_chunks: List[AudioChunk] = []
        self.utterance_samples = 0
        self.samples_since_window = 0
        self.utterance_start_ms: Optional[int] = None
        self.utterance_counter = 0

        # Worker state
        self.task_queue: "queue.Queue[Optional[RecognitionTask]]" = queue.Queue()
        self.worker_thread: Optional[threading.Thread] = None
        self.is_running = False
        self.run_id = 0
        self.in_flight: Optional[RecognitionTask] = None

        self.last_partial: Optional[TranscriptionResult] = None
        self.last_partial_task: Optional[RecognitionTask] = None
        self.lock = threading.Lock()

    @abstractmethod
    def check_available(self) -> None:
        """Raise EngineUnavailable if the engine's assets or credentials are missing."""
        pass

    @abstractmethod
    def _load(self) -> None:
        """Load the model or create the client (runs on the worker thread)."""
        pass

    @abstractmethod
    def recognize(self, audio: np.ndarray) -> Tuple[str, float]:
        """Recognize float32 mono audio, returning (text, confidence)."""
        pass

    def _release(self) -> None:
        """Release resources after the worker has stopped."""
        pass

    def start(self, session_id: str) -> None:
        if self.is_running:
            raise RuntimeError(f"{self.__class__.__name__} is already running")

        self.check_available()

        self.session_id = session_id
        self._reset_utterance()
        self.unrecognized_audio = []
        with self.lock:
            self.run_id += 1
            run_id = self.run_id
            self.last_partial = None
            self.last_partial_task = None
            self.in_flight = None
        self.is_ready = False
        self.task_queue = queue.Queue()
        self.is_running = True

        self.worker_thread = threading.Thread(
            target=self._worker_loop,
            args=(self.task_queue, run_id),
            name=f"{self.engine_type.value}_engine_{session_id}_{run_id}",
            daemon=True
        )
        self.worker_thread.start()
        logger.info(f"{self.__class__.__name__} started for session {session_id}")

    def _worker_loop(self, task_queue: "queue.Queue[Optional[RecognitionTask]]", run_id: int) -> None:
        thread_name = threading.current_thread().name
        try:
            self._load()
        except Exception as e:
            logger.error(f"{self.__class__.__name__} failed to load: {e}", exc_info=True)
            with self.lock:
                if run_id == self.run_id:
                    self.is_running = False
                    self._report_ready(EngineUnavailable(self.engine_type.value, str(e)))
            return

        with self.lock:
            if run_id == self.run_id:
                self._report_ready()
        logger.debug(f"Worker {thread_name} ready")

        while True:
            task = task_queue.get()
            if task is None:
                task_queue.task_done()
                logger.debug(f"Worker {thread_name} received sentinel, exiting.")
                break
            try:
                with self.lock:
                    if run_id != self.run_id:
                        continue
                    self.in_flight = task
                self._process_task(task, run_id)
            except Exception as e:
                logger.error(f"Recognition failed in {thread_name}: {e}", exc_info=True)
            finally:
                task_queue.task_done()

    def feed(self, chunk: AudioChunk) -> None:
        if not self.is_running or len(chunk.samples) == 0:
            return

        if self.utterance_start_ms is None:
            self.utterance_start_ms = chunk.timestamp_ms
        self.utterance_chunks.append(chunk)
        self.utterance_samples += len(chunk.samples)
        self.samples_since_window += len(chunk.samples)

        if self.utterance_samples >= self.max_utterance_samples:
            self._enqueue(is_final=True)
            self._reset_utterance()
        elif self.samples_since_window >= self.partial_interval_samples:
            self._enqueue(is_final=False)
            self.samples_since_window = 0

    def _enqueue(self, is_final: bool) -> None:
        task = RecognitionTask(
            audio=np.concatenate([np.asarray(c.samples, dtype=np.float32) for c in self.utterance_chunks]),
            chunks=tuple(self.utterance_chunks),
            utterance_id=self.utterance_counter,
            start_ms=self.utterance_start_ms or 0,
            is_final=is_final
        )
        logger.debug(f"Queueing {'final' if is_final else 'partial'} window: "
                     f"{len(task.audio)} samples, utterance {task.utterance_id}")
        self.task_queue.put(task)

    def _reset_utterance(self) -> None:
        self.utterance_chunks = []
        self.utterance_samples = 0
        self.samples_since_window = 0
        self.utterance_start_ms = None
        self.utterance_counter += 1

    def _process_task(self, task: RecognitionTask, run_id: int) -> None:
        text, confidence = self.recognize(task.audio)
        text = text.strip()

        with self.lock:
            if run_id != self.run_id:
                logger.debug(f"Dropping result of stopped run {run_id}: '{text}'")
                return
            self.in_flight = None

            if not text:
                if task.is_final and self.last_partial is not None:
                    # Keep what was heard before the utterance went quiet
                    result = self.last_partial.as_final()
                    self.last_partial = None
                    self.last_partial_task = None
                    self._emit(result)
                return

            result = TranscriptionResult(
                text=text,
                is_final=task.is_final,
                confidence=max(0.0, min(1.0, confidence)),
                timestamp_ms=task.start_ms,
                source=self.engine_type,
                session_id=self.session_id or ""
            )
            if task.is_final:
                self.last_partial = None
                self.last_partial_task = None
            else:
                self.last_partial = result
                self.last_partial_task = task
            self._emit(result)

        logger.debug(f"{self.engine_type.value.upper()}: '{text}' ({confidence:.1%})"
                     f"{' [final]' if task.is_final else ''}")

    def stop(self) -> Optional[TranscriptionResult]:
        """Stop immediately, returning the last partial promoted to final.

        Queued windows are not recognized. The audio they hold, together with
        the tail of the current utterance, is kept in ``unrecognized_audio``
        so that another engine can pick it up.
        """
        if not self.is_running and self.worker_thread is None:
            return None
        self.is_running = False

        discarded: List[RecognitionTask] = []
        while True:
            try:
                task = self.task_queue.get_nowait()
            except queue.Empty:
                break
            self.task_queue.task_done()
            if task is not None:
                discarded.append(task)
        if discarded:
            logger.info(f"{self.__class__.__name__}: discarded {len(discarded)} queued windows on stop")

        self.task_queue.put(None)
        if self.worker_thread is not None:
            self.worker_thread.join(self.stop_timeout_seconds)
            if self.worker_thread.is_alive():
                logger.warning(f"Worker thread {self.worker_thread.name} did not terminate cleanly; "
                               f"its remaining results will be ignored.")
            self.worker_thread = None

        with self.lock:
            self.run_id += 1
            final = self.last_partial.as_final() if self.last_partial else None
            self.unrecognized_audio = self._collect_unrecognized(discarded)
            self.last_partial = None
            self.last_partial_task = None
            self.in_flight = None

        if self.unrecognized_audio:
            logger.info(f"{self.__class__.__name__}: {len(self.unrecognized_audio)} audio chunks "
                        f"left unrecognized on stop")
        self._reset_utterance()
        self._release()
        self.is_ready = False
        logger.info(f"{self.__class__.__name__} stopped for session {self.session_id}")
        return final

    def _collect_unrecognized(self, discarded: List[RecognitionTask]) -> List[AudioChunk]:
        """Chunks of every unfinished utterance not covered by the last partial."""
        utterances = {}
        pending = discarded + ([self.in_flight] if self.in_flight is not None else [])
        for task in pending:
            if task.is_final:
                utterances[task.utterance_id] = task.chunks
        if self.utterance_chunks:
            utterances[self.utterance_counter] = tuple(self.utterance_chunks)

        covered = self.last_partial_task
        chunks: List[AudioChunk] = []
        for utterance_id in sorted(utterances):
            utterance = utterances[utterance_id]
            if covered is not None and covered.utterance_id == utterance_id:
                utterance = utterance[len(covered.chunks):]
            chunks.extend(utterance)
        return chunks
