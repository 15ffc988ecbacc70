"""Transcription-source selector.

Owns the transcription status and decides which engine is active. Every
mutation (session start/stop, privacy toggle, connectivity change, audio
feed, engine readiness and results) is a command processed in FIFO order by
a single actor thread, so the status never changes underneath an audio feed.

State machine::

    IDLE --start--> SWITCHING --ready--> NETWORK_ACTIVE / LOCAL_ACTIVE
    *_ACTIVE --target engine changes--> SWITCHING --ready--> *_ACTIVE
    any --stop--> IDLE

An engine that cannot start leaves the session in the target ``*_ACTIVE``
state without an engine; audio is dropped until the next mode change.
"""

import logging
import queue
import threading
from concurrent.futures import Future
from dataclasses import replace
from enum import Enum
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Sequence

from .base import AbstractTranscriptionEngine
from .connectivity import ConnectivityMonitor
from ..audio.buffer import AudioChunkBuffer
from ..channel import SessionEventChannel, StatusPublisher
from ..errors import AlreadyActive, EngineUnavailable, NoActiveSession
from ..models.audio import AudioChunk
from ..models.events import (
    EngineUnavailableNotice,
    ModeSwitched,
    SessionStarted,
    SessionStopped,
    TranscriptionEvent,
)
from ..models.transcription import (
    EngineType,
    TranscriptionResult,
    TranscriptionStatus,
    select_engine,
)

logger = logging.getLogger(__name__)

EngineFactory = Callable[[EngineType], AbstractTranscriptionEngine]

UNAVAILABLE_MESSAGES = {
    EngineType.LOCAL: "[Offline transcription not available. "
                      "Please check your internet connection for online transcription.]",
    EngineType.NETWORK: "[Online transcription not available. "
                        "Enable privacy mode to use offline transcription.]",
}


class SelectorState(str, Enum):
    IDLE = "idle"
    SWITCHING = "switching"
    NETWORK_ACTIVE = "network_active"
    LOCAL_ACTIVE = "local_active"


ACTIVE_STATES = {
    EngineType.NETWORK: SelectorState.NETWORK_ACTIVE,
    EngineType.LOCAL: SelectorState.LOCAL_ACTIVE,
}


class _Command(NamedTuple):
    name: str
    args: tuple
    reply: Optional[Future]


class TranscriptionSourceSelector:
    """Keeps exactly one engine active per session and merges their results."""

    def __init__(self,
                 engine_factory: EngineFactory,
                 privacy_mode: bool = False,
                 online: bool = True,
                 buffer: Optional[AudioChunkBuffer] = None,
                 reply_timeout_seconds: float = 30.0):
        """Initialize selector and start its actor thread.

        Args:
            engine_factory: Creates the engine for an engine type (called once per type)
            privacy_mode: Initial privacy preference
            online: Connectivity assumed until the monitor reports otherwise
            buffer: Audio chunk buffer (a new one by default)
            reply_timeout_seconds: How long public calls wait for the actor
        """
        self.engine_factory = engine_factory
        self.buffer = buffer or AudioChunkBuffer()
        self.reply_timeout_seconds = reply_timeout_seconds
        self.status_publisher = StatusPublisher()
        self.monitor: Optional[ConnectivityMonitor] = None

        self.status = TranscriptionStatus(
            active=False,
            engine=select_engine(privacy_mode, online),
            online=online,
            privacy_mode=privacy_mode
        )
        self.state = SelectorState.IDLE

        # Actor-owned session state
        self.session_id: Optional[str] = None
        self.channel: Optional[SessionEventChannel] = None
        self.engines: Dict[EngineType, AbstractTranscriptionEngine] = {}
        self.engine: Optional[AbstractTranscriptionEngine] = None
        self.generation = 0
        self.last_timestamp_ms = 0
        self.pending_partial: Optional[TranscriptionResult] = None

        self.commands: "queue.Queue[Optional[_Command]]" = queue.Queue()
        self.actor_thread = threading.Thread(target=self._run,
                                             name="transcription_selector",
                                             daemon=True)
        self.actor_thread.start()
        logger.info(f"TranscriptionSourceSelector initialized: {self.status}")

    # ------------------------------------------------------------------
    # Public API (any thread)
    # ------------------------------------------------------------------

    def start_session(self, session_id: str) -> TranscriptionStatus:
        """Start a session on the engine chosen by the current status.

        Raises:
            AlreadyActive: If a session is already running
        """
        return self._call("start", session_id)

    def stop_session(self) -> None:
        """Stop the active engine and flush its pending partial as final.

        Raises:
            NoActiveSession: If no session is running
        """
        self._call("stop")

    def set_privacy_mode(self, enabled: bool) -> TranscriptionStatus:
        return self._call("privacy", enabled)

    def on_connectivity_change(self, online: bool) -> None:
        self._post("connectivity", online)

    def feed_audio(self, chunk: AudioChunk) -> None:
        """Route a chunk to the active engine; no-op without a session."""
        self._post("feed", chunk)

    def get_status(self) -> TranscriptionStatus:
        """Status snapshot after all previously posted commands were processed."""
        return self._call("status")

    def attach_monitor(self, monitor: ConnectivityMonitor) -> None:
        """Start ``monitor``; it is stopped again by :meth:`shutdown`."""
        self.monitor = monitor
        monitor.start()

    def shutdown(self, timeout: float = 5.0) -> None:
        """Stop monitoring, stop any active session and end the actor."""
        logger.info("Shutting down TranscriptionSourceSelector...")
        if self.monitor:
            self.monitor.stop(timeout)
            self.monitor = None

        if self.actor_thread.is_alive():
            try:
                self._call("stop")
            except NoActiveSession:
                pass
            self.commands.put(None)
            self.actor_thread.join(timeout)
            if self.actor_thread.is_alive():
                logger.warning("Selector actor thread did not terminate cleanly.")
        logger.info("TranscriptionSourceSelector shutdown complete")

    def _post(self, name: str, *args: Any) -> None:
        self.commands.put(_Command(name, args, None))

    def _call(self, name: str, *args: Any) -> Any:
        if not self.actor_thread.is_alive():
            raise RuntimeError("TranscriptionSourceSelector has been shut down")
        reply: Future = Future()
        self.commands.put(_Command(name, args, reply))
        return reply.result(timeout=self.reply_timeout_seconds)

    # ------------------------------------------------------------------
    # Actor
    # ------------------------------------------------------------------

    def _run(self) -> None:
        while True:
            command = self.commands.get()
            if command is None:
                logger.debug("Selector actor received sentinel, exiting.")
                break

            handler = getattr(self, f"_handle_{command.name}")
            try:
                result = handler(*command.args)
            except Exception as e:
                if command.reply is not None:
                    command.reply.set_exception(e)
                else:
                    logger.error(f"Selector command '{command.name}' failed: {e}", exc_info=True)
            else:
                if command.reply is not None:
                    command.reply.set_result(result)

    def _handle_start(self, session_id: str) -> TranscriptionStatus:
        if self.state != SelectorState.IDLE:
            raise AlreadyActive(f"Session {self.session_id} is already active")

        self.session_id = session_id
        self.channel = SessionEventChannel(session_id)
        self.last_timestamp_ms = 0
        self.pending_partial = None

        target = self.status.target_engine
        self.status = replace(self.status, active=True, engine=target)
        self.channel.publish(SessionStarted(session_id=session_id, engine=target))
        logger.info(f"Transcription session {session_id} started on {target.value} engine")

        self._activate(target)
        return self.status

    def _handle_stop(self) -> None:
        if self.state == SelectorState.IDLE:
            raise NoActiveSession("No transcription session is active")

        session_id = self.session_id
        self._deactivate()
        self.buffer.discard()

        self.channel.publish(SessionStopped(session_id=session_id))
        self.state = SelectorState.IDLE
        self.status = replace(self.status, active=False)
        self.session_id = None
        self.channel = None
        logger.info(f"Transcription session {session_id} stopped")

    def _handle_privacy(self, enabled: bool) -> TranscriptionStatus:
        if enabled != self.status.privacy_mode:
            self.status = replace(self.status, privacy_mode=enabled)
            logger.info(f"Privacy mode {'enabled' if enabled else 'disabled'}")
            self.status_publisher.privacy_mode_changed(enabled)
            self._reconcile()
        return self.status

    def _handle_connectivity(self, online: bool) -> None:
        if online != self.status.online:
            self.status = replace(self.status, online=online)
            logger.info(f"Connectivity is now {'online' if online else 'offline'}")
            self.status_publisher.connectivity_changed(online)
            self._reconcile()

    def _handle_status(self) -> TranscriptionStatus:
        return self.status

    def _handle_feed(self, chunk: AudioChunk) -> None:
        if self.state == SelectorState.IDLE:
            return
        if chunk.session_id != self.session_id:
            logger.debug(f"Dropping chunk {chunk.sequence_number} for inactive session {chunk.session_id}")
            return
        self.buffer.push(chunk)

    def _handle_ready(self, engine: AbstractTranscriptionEngine, generation: int,
                      error: Optional[Exception]) -> None:
        if generation != self.generation or self.state != SelectorState.SWITCHING:
            logger.debug(f"Ignoring stale readiness from {engine.__class__.__name__}")
            return

        if error is not None:
            engine.stop()
            reason = error.reason if isinstance(error, EngineUnavailable) else str(error)
            self._enter_unavailable(engine.engine_type, reason)
            return

        replayed = self.buffer.release(engine)
        self.state = ACTIVE_STATES[engine.engine_type]
        logger.info(f"{engine.engine_type.value} engine ready for session {self.session_id} "
                    f"({replayed} held chunks replayed)")

    def _handle_results(self, engine: AbstractTranscriptionEngine, generation: int) -> None:
        if generation != self.generation:
            # Handover already drained this engine
            return
        for result in engine.drain_results():
            self._publish_result(result)

    # ------------------------------------------------------------------
    # Engine handover
    # ------------------------------------------------------------------

    def _reconcile(self) -> None:
        target = self.status.target_engine
        current = self.status.engine
        if self.state == SelectorState.IDLE:
            self.status = replace(self.status, engine=target)
            return
        if target == current:
            return

        logger.info(f"Switching transcription engine for session {self.session_id}: "
                    f"{current.value} -> {target.value}")
        carried = self._deactivate()
        self.status = replace(self.status, engine=target)
        self._activate(target, carried)
        self.channel.publish(ModeSwitched(session_id=self.session_id,
                                          from_engine=current, to_engine=target))

    def _activate(self, engine_type: EngineType, carried: Sequence[AudioChunk] = ()) -> None:
        self.generation += 1
        generation = self.generation
        self.state = SelectorState.SWITCHING
        # Chunks already held from an unfinished handover stay queued
        self.buffer.hold()
        if carried:
            self.buffer.requeue(carried)

        try:
            engine = self._get_engine(engine_type)
            stale = engine.drain_results()
            if stale:
                logger.debug(f"Dropped {len(stale)} stale results from {engine.__class__.__name__}")
            engine.bind(
                lambda e: self._post("results", e, generation),
                lambda e, error: self._post("ready", e, generation, error)
            )
            engine.start(self.session_id)
        except EngineUnavailable as e:
            self._enter_unavailable(engine_type, e.reason)
            return
        self.engine = engine

    def _deactivate(self) -> List[AudioChunk]:
        """Stop the current engine and flush its results, pending partial last.

        Returns:
            Audio the engine was fed but never recognized, oldest first
        """
        engine = self.engine
        self.engine = None
        self.generation += 1

        final = None
        unrecognized: List[AudioChunk] = []
        if engine is not None:
            final = engine.stop()
            unrecognized = engine.take_unrecognized_audio()
            for result in engine.drain_results():
                self._publish_result(result)
        if final is None and self.pending_partial is not None:
            final = self.pending_partial.as_final()
        if final is not None:
            self._publish_result(final)
        self.pending_partial = None
        return unrecognized

    def _enter_unavailable(self, engine_type: EngineType, reason: str) -> None:
        logger.warning(f"{engine_type.value} engine unavailable for session {self.session_id}: {reason}")
        self.engine = None
        self.buffer.discard()
        self.state = ACTIVE_STATES[engine_type]

        self._publish_result(TranscriptionResult(
            text=UNAVAILABLE_MESSAGES[engine_type],
            is_final=True,
            confidence=0.0,
            timestamp_ms=self.last_timestamp_ms,
            source=engine_type,
            session_id=self.session_id,
            is_notice=True
        ))
        self.channel.publish(EngineUnavailableNotice(session_id=self.session_id,
                                                     engine=engine_type, reason=reason))

    def _get_engine(self, engine_type: EngineType) -> AbstractTranscriptionEngine:
        if engine_type not in self.engines:
            self.engines[engine_type] = self.engine_factory(engine_type)
        return self.engines[engine_type]

    def _publish_result(self, result: TranscriptionResult) -> None:
        timestamp_ms = max(result.timestamp_ms, self.last_timestamp_ms)
        self.last_timestamp_ms = timestamp_ms
        result = replace(result, timestamp_ms=timestamp_ms, session_id=self.session_id)
        self.pending_partial = None if result.is_final else result
        self.channel.publish(TranscriptionEvent(session_id=self.session_id, result=result))
