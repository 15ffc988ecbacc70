"""Collects the final results of one session into a transcript."""

import logging
import threading
from typing import Dict, List, Optional

from ..channel import SessionEventChannel
from ..models.document import TranscriptSegment
from ..models.events import SessionEvent, TranscriptionEvent
from ..models.transcription import TranscriptionResult

logger = logging.getLogger(__name__)


class TranscriptAccumulator:
    """Subscribes to a session channel and accumulates final results.

    Partial results only replace the current preview; final results are
    appended in arrival order and never modified.
    """

    def __init__(self, channel: SessionEventChannel):
        self.channel = channel
        self.finals: List[TranscriptionResult] = []
        self.preview: Optional[TranscriptionResult] = None
        self.lock = threading.RLock()

        channel.subscribe(self._on_event)
        logger.info(f"TranscriptAccumulator subscribed to {channel.topic}")

    def _on_event(self, event: SessionEvent) -> None:
        if not isinstance(event, TranscriptionEvent) or event.result is None:
            return
        result = event.result
        with self.lock:
            if not result.is_final:
                self.preview = result
                return
            self.preview = None
            if result.is_notice:
                logger.debug(f"Skipping notice in transcript: {result.text}")
                return
            if result.text.strip():
                self.finals.append(result)
                logger.debug(f"Accumulated final result: {result.text[:50]}...")

    def get_segments(self) -> List[TranscriptSegment]:
        with self.lock:
            return [
                TranscriptSegment(text=r.text, timestamp_ms=r.timestamp_ms, confidence=r.confidence)
                for r in self.finals
            ]

    def get_transcript(self) -> str:
        """Full transcript text, finals joined by spaces."""
        with self.lock:
            return " ".join(r.text.strip() for r in self.finals)

    def get_results_summary(self) -> Dict[str, object]:
        with self.lock:
            return {
                "count": len(self.finals),
                "preview": self.preview.text if self.preview else None,
                "word_count": len(self.get_transcript().split()),
            }

    def close(self) -> None:
        self.channel.unsubscribe(self._on_event)
        logger.info(f"TranscriptAccumulator unsubscribed from {self.channel.topic}")
