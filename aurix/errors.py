"""Exception hierarchy for Aurix."""

from typing import Optional


class AurixError(Exception):
    """Base class for all Aurix errors."""


class TranscriptionError(AurixError):
    """Errors raised by the transcription layer."""


class AlreadyActive(TranscriptionError):
    """A transcription session is already running."""


class NoActiveSession(TranscriptionError):
    """No transcription session is running."""


class EngineUnavailable(TranscriptionError):
    """A transcription engine cannot be started (missing model, credentials, ...)."""

    def __init__(self, engine: str, reason: str):
        super().__init__(f"{engine} engine unavailable: {reason}")
        self.engine = engine
        self.reason = reason


class ServiceUnavailable(AurixError):
    """The language-model service is unreachable or returned an error."""


class ModelTimeout(ServiceUnavailable):
    """A language-model call did not finish within its timeout."""


class PipelineError(AurixError):
    """Errors raised while generating a document."""


class StageError(PipelineError):
    """A recoverable failure inside one pipeline stage."""

    def __init__(self, stage: str, message: str, cause: Optional[BaseException] = None):
        super().__init__(f"{stage}: {message}")
        self.stage = stage
        self.message = message
        self.cause = cause


class DiagramValidationError(StageError):
    """Generated diagram markup does not start with the archetype keyword."""


class FatalPipelineError(PipelineError):
    """The job cannot produce a document at all."""


class EmptyTranscript(FatalPipelineError):
    """The transcript is empty or contains no usable text."""
