"""Session manager tying transcription sessions to document generation."""

import logging
import threading
from collections import OrderedDict
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from typing import Dict, Optional

from ..channel import SessionEventChannel
from ..errors import AlreadyActive, NoActiveSession
from ..models.audio import AudioChunk
from ..models.document import DocumentResult
from ..pipeline.runner import new_session_id
from ..transcription import TranscriptAccumulator, TranscriptionSourceSelector
from .document_service import DocumentService

logger = logging.getLogger(__name__)


class SessionManager:
    """Manages recording sessions and the document jobs they produce.

    Stopping a session hands its transcript to a background executor, so a
    new recording may start while the previous document is generated.
    """

    def __init__(self,
                 selector: TranscriptionSourceSelector,
                 document_service: DocumentService,
                 max_concurrent_documents: int = 2,
                 max_completed_documents: int = 16):
        self.selector = selector
        self.document_service = document_service
        self.max_completed_documents = max_completed_documents
        self.executor = ThreadPoolExecutor(max_workers=max_concurrent_documents,
                                           thread_name_prefix="document_pipeline")

        self.active_session_id: Optional[str] = None
        self.active_started_at: Optional[datetime] = None
        self.channel: Optional[SessionEventChannel] = None
        self.accumulator: Optional[TranscriptAccumulator] = None
        self.jobs: Dict[str, Future] = {}
        self.completed: "OrderedDict[str, Future]" = OrderedDict()
        self.lock = threading.Lock()

        logger.info("SessionManager initialized")

    def start_session(self, session_id: Optional[str] = None) -> str:
        """Start recording a new session.

        Returns:
            Session ID

        Raises:
            AlreadyActive: If a session is already being recorded
        """
        with self.lock:
            if self.active_session_id is not None:
                raise AlreadyActive(f"Session {self.active_session_id} is already active")

            session_id = session_id or new_session_id()
            channel = SessionEventChannel(session_id)
            accumulator = TranscriptAccumulator(channel)
            try:
                self.selector.start_session(session_id)
            except Exception:
                accumulator.close()
                channel.close()
                raise

            self.active_session_id = session_id
            self.active_started_at = datetime.now()
            self.channel = channel
            self.accumulator = accumulator

        logger.info(f"Started session: {session_id}")
        return session_id

    def feed_audio(self, chunk: AudioChunk) -> None:
        self.selector.feed_audio(chunk)

    def stop_session(self) -> Future:
        """Stop recording and submit the transcript for document generation.

        Returns:
            Future resolving to the session's ``DocumentResult``

        Raises:
            NoActiveSession: If no session is being recorded
        """
        with self.lock:
            if self.active_session_id is None:
                raise NoActiveSession("No recording session is active")

            session_id = self.active_session_id
            started_at = self.active_started_at
            channel = self.channel
            accumulator = self.accumulator
            try:
                self.selector.stop_session()
            except Exception:
                logger.error(f"Selector failed to stop session {session_id}; discarding it", exc_info=True)
                channel.close()
                raise
            finally:
                accumulator.close()
                self.active_session_id = None
                self.active_started_at = None
                self.channel = None
                self.accumulator = None

            transcript = accumulator.get_transcript()
            future = self.executor.submit(
                self.document_service.generate,
                transcript,
                session_id=session_id,
                channel=channel,
                segments=accumulator.get_segments(),
                created_at=started_at,
            )
            self.jobs[session_id] = future

        # Outside the lock: the callback runs immediately if the job already finished
        future.add_done_callback(lambda done: self._finish_job(session_id, channel, done))
        logger.info(f"Stopped session {session_id}; document generation queued "
                    f"({len(transcript.split())} words)")
        return future

    def _finish_job(self, session_id: str, channel: SessionEventChannel, future: Future) -> None:
        channel.close()
        with self.lock:
            self.jobs.pop(session_id, None)
            self.completed[session_id] = future
            while len(self.completed) > self.max_completed_documents:
                self.completed.popitem(last=False)
        logger.debug(f"Document job for session {session_id} finished")

    def get_document(self, session_id: str, timeout: Optional[float] = None) -> DocumentResult:
        """Wait for a session's document.

        Only the most recent ``max_completed_documents`` finished jobs are kept.

        Raises:
            KeyError: If the session has no pending or recent document job
            FatalPipelineError: If the transcript was unusable
        """
        with self.lock:
            future = self.jobs.get(session_id) or self.completed.get(session_id)
        if future is None:
            raise KeyError(session_id)
        return future.result(timeout=timeout)

    def get_session_status(self) -> Dict[str, object]:
        with self.lock:
            return {
                "active_session_id": self.active_session_id,
                "transcription": self.selector.status,
                "preview": self.accumulator.get_results_summary() if self.accumulator else None,
                "pending_documents": [sid for sid, job in self.jobs.items() if not job.done()],
            }

    def shutdown(self, wait: bool = True) -> None:
        logger.info("Shutting down SessionManager...")
        if self.active_session_id is not None:
            try:
                self.stop_session()
            except NoActiveSession:
                pass
            except Exception as e:
                logger.error(f"Error stopping active session during shutdown: {e}")
        self.executor.shutdown(wait=wait)
        logger.info("SessionManager shutdown complete")
