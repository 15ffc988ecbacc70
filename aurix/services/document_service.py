"""Document service: runs the pipeline with settings from config."""

import logging
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence

from ..channel import SessionEventChannel
from ..config import AurixConfig
from ..models.document import DocumentResult, PipelineConfig, TranscriptSegment
from ..pipeline import LanguageModelService, PipelineRunner, create_language_model

logger = logging.getLogger(__name__)


class DocumentService:
    """Turns transcripts into documents."""

    def __init__(self, config: AurixConfig, llm: Optional[LanguageModelService] = None):
        """Initialize document service.

        Args:
            config: Application configuration
            llm: Language model override (built from ``pipeline.llm`` by default)
        """
        self.config = config
        self.pipeline_config = PipelineConfig.from_config(config)
        self.llm = llm or create_language_model(config)
        self.runner = PipelineRunner(self.llm, self.pipeline_config)
        logger.info(f"DocumentService initialized: {self.pipeline_config}")

    def generate(self,
                 transcript: str,
                 session_id: Optional[str] = None,
                 generate_diagrams: Optional[bool] = None,
                 channel: Optional[SessionEventChannel] = None,
                 segments: Sequence[TranscriptSegment] = (),
                 created_at: Optional[datetime] = None) -> DocumentResult:
        """Run the pipeline to completion (blocking).

        Raises:
            FatalPipelineError: If the transcript is empty or unusable
        """
        job_config = self.pipeline_config
        if generate_diagrams is not None:
            job_config = replace(job_config, generate_diagrams=generate_diagrams)

        return self.runner.run_sync(
            transcript,
            session_id=session_id,
            config=job_config,
            channel=channel,
            segments=segments,
            created_at=created_at,
        )

    def save_document(self, result: DocumentResult, output_path: str) -> Path:
        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(result.final_document, encoding='utf-8')
        logger.info(f"Saved document for session {result.session_id} to {path}")
        return path
