"""Audio chunk buffer that routes capture frames to the active transcription engine."""

import logging
from collections import deque

from ..models.audio import AudioChunk

logger = logging.getLogger(__name__)


class AudioChunkBuffer:
    """Routes audio chunks to exactly one engine at a time.

    While an engine handover is in flight the buffer holds incoming chunks
    and replays them, in arrival order, to the engine that takes over.
    Only the selector's actor thread touches this object.
    """

    def __init__(self, max_pending_chunks: int = 2000):
        """Initialize audio chunk buffer.

        Args:
            max_pending_chunks: How many chunks to hold during a handover
                before the oldest ones are dropped (2000 x 64ms is ~2 minutes)
        """
        self.max_pending_chunks = max_pending_chunks
        self.pending = deque()
        self.target = None
        self.holding = False

        self.routed_chunks = 0
        self.replayed_chunks = 0
        self.dropped_chunks = 0

    def route_to(self, engine) -> None:
        """Send subsequent chunks straight to ``engine``."""
        self.target = engine
        self.holding = False

    def hold(self) -> None:
        """Start queueing chunks until :meth:`release` is called."""
        self.target = None
        self.holding = True
        logger.debug("Audio buffer holding chunks for handover")

    def release(self, engine) -> int:
        """Replay held chunks to ``engine`` and route to it from now on.

        Returns:
            Number of chunks replayed
        """
        replayed = 0
        while self.pending:
            engine.feed(self.pending.popleft())
            replayed += 1
        self.replayed_chunks += replayed
        self.route_to(engine)
        if replayed:
            logger.info(f"Replayed {replayed} held audio chunks to {engine.__class__.__name__}")
        return replayed

    def requeue(self, chunks) -> None:
        """Put ``chunks`` back in front of the held ones, keeping their order."""
        for chunk in reversed(chunks):
            self.pending.appendleft(chunk)
        overflow = len(self.pending) - self.max_pending_chunks
        if overflow > 0:
            for _ in range(overflow):
                self.pending.popleft()
            self.dropped_chunks += overflow
            logger.warning(f"Handover queue full, dropped {overflow} oldest audio chunks")
        logger.debug(f"Requeued {len(chunks)} unrecognized audio chunks for handover")

    def discard(self) -> int:
        """Drop held chunks and detach from any engine.

        Returns:
            Number of chunks dropped
        """
        dropped = len(self.pending)
        self.pending.clear()
        self.dropped_chunks += dropped
        self.target = None
        self.holding = False
        if dropped:
            logger.warning(f"Discarded {dropped} held audio chunks")
        return dropped

    def push(self, chunk: AudioChunk) -> None:
        """Route one chunk according to the current mode."""
        if self.holding:
            if len(self.pending) >= self.max_pending_chunks:
                self.pending.popleft()
                self.dropped_chunks += 1
                logger.warning("Handover queue full, dropping oldest audio chunk")
            self.pending.append(chunk)
            return

        if self.target is None:
            self.dropped_chunks += 1
            return

        self.target.feed(chunk)
        self.routed_chunks += 1

    @property
    def pending_count(self) -> int:
        return len(self.pending)

    def get_buffer_stats(self) -> dict:
        """Get buffer statistics."""
        return {
            "pending_chunks": len(self.pending),
            "holding": self.holding,
            "routed_chunks": self.routed_chunks,
            "replayed_chunks": self.replayed_chunks,
            "dropped_chunks": self.dropped_chunks,
        }
