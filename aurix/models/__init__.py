"""Data models for the Aurix application."""

from .audio import AudioChunk, SAMPLE_RATE
from .transcription import EngineType, TranscriptionResult, TranscriptionStatus, select_engine
from .events import (
    SessionEvent,
    SessionStarted,
    SessionStopped,
    ModeSwitched,
    TranscriptionEvent,
    EngineUnavailableNotice,
    StageProgress,
    ConnectivityChanged,
    PrivacyModeChanged,
)
from .document import (
    Complexity,
    ContentType,
    DiagramType,
    TargetAudience,
    DocumentStyle,
    ModelProvider,
    TranscriptSegment,
    ContentAnalysis,
    DocumentSection,
    DiagramSpec,
    CognitiveMetrics,
    PipelineConfig,
    SessionState,
    DocumentResult,
)

__all__ = [
    "AudioChunk",
    "SAMPLE_RATE",
    "EngineType",
    "TranscriptionResult",
    "TranscriptionStatus",
    "select_engine",
    # Events
    "SessionEvent",
    "SessionStarted",
    "SessionStopped",
    "ModeSwitched",
    "TranscriptionEvent",
    "EngineUnavailableNotice",
    "StageProgress",
    "ConnectivityChanged",
    "PrivacyModeChanged",
    # Document pipeline models
    "Complexity",
    "ContentType",
    "DiagramType",
    "TargetAudience",
    "DocumentStyle",
    "ModelProvider",
    "TranscriptSegment",
    "ContentAnalysis",
    "DocumentSection",
    "DiagramSpec",
    "CognitiveMetrics",
    "PipelineConfig",
    "SessionState",
    "DocumentResult",
]
