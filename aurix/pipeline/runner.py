"""Pipeline runner: executes the stages in order over immutable snapshots."""

import asyncio
import logging
import time
import uuid
from datetime import datetime
from typing import List, Optional, Sequence

from .llm import LanguageModelService
from .stages import Stage, build_default_stages
from ..channel import SessionEventChannel
from ..errors import FatalPipelineError
from ..models.document import DocumentResult, PipelineConfig, SessionState, TranscriptSegment
from ..models.events import StageProgress

logger = logging.getLogger(__name__)


def new_session_id() -> str:
    return f"{datetime.now().strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:6]}"


class PipelineRunner:
    """Runs one document job at a time per call; calls share no state.

    Non-fatal stage failures are absorbed: the stage's fallback delta is
    applied and a warning recorded. Only ``FatalPipelineError`` escapes.
    """

    def __init__(self,
                 llm: Optional[LanguageModelService],
                 config: Optional[PipelineConfig] = None,
                 stages: Optional[List[Stage]] = None):
        self.llm = llm
        self.config = config or PipelineConfig()
        self.stages = stages if stages is not None else build_default_stages(llm)
        logger.info(f"PipelineRunner initialized with stages: {[s.name for s in self.stages]}")

    async def run(self,
                  transcript: str,
                  session_id: Optional[str] = None,
                  config: Optional[PipelineConfig] = None,
                  channel: Optional[SessionEventChannel] = None,
                  segments: Sequence[TranscriptSegment] = (),
                  created_at: Optional[datetime] = None) -> DocumentResult:
        """Turn a finalized transcript into a document.

        Raises:
            FatalPipelineError: If the transcript is empty or unusable
        """
        state = SessionState(
            session_id=session_id or new_session_id(),
            transcript=transcript or "",
            config=config or self.config,
            segments=tuple(segments),
            created_at=created_at or datetime.now(),
        )
        start_time = time.time()
        logger.info(f"Pipeline started for session {state.session_id}")

        total = len(self.stages)
        if total:
            self._report_progress(channel, state.session_id, self.stages[0].name, 0)
        for index, stage in enumerate(self.stages):
            state = await self._run_stage(stage, state)
            self._report_progress(channel, state.session_id, stage.name, round(100 * (index + 1) / total))

        processing_seconds = time.time() - start_time
        logger.info(f"Pipeline completed for session {state.session_id} in {processing_seconds:.2f}s "
                    f"({len(state.warnings)} warnings)")
        return DocumentResult.from_state(state, processing_seconds)

    def run_sync(self, transcript: str, **kwargs) -> DocumentResult:
        """Blocking wrapper for callers without an event loop (e.g. worker threads)."""
        return asyncio.run(self.run(transcript, **kwargs))

    async def _run_stage(self, stage: Stage, state: SessionState) -> SessionState:
        stage_start = time.time()
        logger.info(f"Stage '{stage.name}' started for session {state.session_id}")

        try:
            delta = await stage.run(state)
        except FatalPipelineError as e:
            logger.error(f"Stage '{stage.name}' failed fatally for session {state.session_id}: {e}")
            raise
        except Exception as e:
            if stage.fatal:
                logger.error(f"Stage '{stage.name}' failed for session {state.session_id}: {e}", exc_info=True)
                raise FatalPipelineError(f"{stage.name} failed: {e}") from e
            logger.warning(f"Stage '{stage.name}' failed, using fallback: {e}")
            delta = dict(stage.fallback(state, e))
            delta["warnings"] = list(delta.get("warnings", ())) + [f"{stage.name} stage used fallback: {e}"]

        state = state.apply(delta)
        logger.info(f"Stage '{stage.name}' completed in {time.time() - stage_start:.2f}s")
        return state

    def _report_progress(self, channel: Optional[SessionEventChannel], session_id: str,
                         node: str, progress: int) -> None:
        logger.debug(f"Progress {session_id}: {node} {progress}%")
        if channel is not None:
            channel.publish(StageProgress(session_id=session_id, node=node, progress=progress))
