"""Data models for the document-generation pipeline."""

import logging
from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class Complexity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ContentType(str, Enum):
    EXPLANATION = "explanation"
    TUTORIAL = "tutorial"
    DISCUSSION = "discussion"
    BRAINSTORMING = "brainstorming"
    OTHER = "other"


class DiagramType(str, Enum):
    FLOWCHART = "flowchart"
    SEQUENCE = "sequence"
    STATE = "state"
    CONCEPT_MAP = "concept_map"


class TargetAudience(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    EXPERT = "expert"


class DocumentStyle(str, Enum):
    TECHNICAL = "technical"
    TUTORIAL = "tutorial"
    REFERENCE = "reference"


class ModelProvider(str, Enum):
    OLLAMA = "ollama"
    OPENAI = "openai"


def coerce_enum(enum_cls, value, default):
    """Map a raw value onto ``enum_cls``, returning ``default`` when it doesn't fit."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        return default


@dataclass(frozen=True)
class TranscriptSegment:
    text: str
    timestamp_ms: int
    confidence: float = 1.0


@dataclass(frozen=True)
class ContentAnalysis:
    topics: Tuple[str, ...]
    complexity: Complexity
    content_type: ContentType
    key_points: Tuple[str, ...]
    suggested_sections: Tuple[str, ...]


@dataclass(frozen=True)
class DocumentSection:
    title: str
    content: str
    heading_level: int
    order: int


@dataclass(frozen=True)
class DiagramSpec:
    type: DiagramType
    title: str
    description: str
    diagram_code: str


@dataclass(frozen=True)
class CognitiveMetrics:
    word_count: int = 0
    sentence_count: int = 0
    avg_words_per_sentence: float = 0.0
    technical_term_count: int = 0
    conceptual_density: float = 0.0  # 0-1
    est_reading_minutes: float = 0.0


@dataclass(frozen=True)
class PipelineConfig:
    """Per-job settings."""
    generate_diagrams: bool = True
    target_audience: TargetAudience = TargetAudience.INTERMEDIATE
    document_style: DocumentStyle = DocumentStyle.TECHNICAL
    max_section_words: int = 500
    model_provider: ModelProvider = ModelProvider.OLLAMA
    model_name: str = "llama3"
    model_timeout_seconds: float = 30.0

    @classmethod
    def from_config(cls, config) -> "PipelineConfig":
        """Build a job config from an ``AurixConfig``."""
        defaults = cls()

        def enum_setting(key, enum_cls, default):
            raw = config.get(key, default.value)
            value = coerce_enum(enum_cls, raw, default)
            if value is default and raw != default.value:
                logger.warning(f"Unknown value '{raw}' for {key}, using '{default.value}'")
            return value

        return cls(
            generate_diagrams=bool(config.get('pipeline.document.generate_diagrams', defaults.generate_diagrams)),
            target_audience=enum_setting('pipeline.document.target_audience', TargetAudience, defaults.target_audience),
            document_style=enum_setting('pipeline.document.document_style', DocumentStyle, defaults.document_style),
            max_section_words=int(config.get('pipeline.document.max_section_words', defaults.max_section_words)),
            model_provider=enum_setting('pipeline.llm.provider', ModelProvider, defaults.model_provider),
            model_name=config.get('pipeline.llm.model', defaults.model_name),
            model_timeout_seconds=float(config.get('pipeline.llm.timeout_seconds', defaults.model_timeout_seconds)),
        )


# Fields that accumulate across stages instead of being replaced
APPEND_ONLY_FIELDS = ("errors", "warnings")


@dataclass(frozen=True)
class SessionState:
    """Immutable snapshot threaded through the pipeline stages.

    Stages never mutate a snapshot; they return a delta which the runner
    folds in with :meth:`apply`.
    """
    session_id: str
    transcript: str
    config: PipelineConfig = field(default_factory=PipelineConfig)
    segments: Tuple[TranscriptSegment, ...] = ()
    analysis: Optional[ContentAnalysis] = None
    sections: Tuple[DocumentSection, ...] = ()
    diagrams: Tuple[DiagramSpec, ...] = ()
    final_document: str = ""
    cognitive_load_index: Optional[int] = None
    cognitive_metrics: Optional[CognitiveMetrics] = None
    errors: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()
    created_at: datetime = field(default_factory=datetime.now)

    def apply(self, delta: Dict[str, Any]) -> "SessionState":
        """Return a new snapshot with ``delta`` folded in."""
        known = {f.name for f in fields(self)}
        unknown = set(delta) - known
        if unknown:
            raise KeyError(f"Unknown SessionState fields: {sorted(unknown)}")

        changes = {}
        for key, value in delta.items():
            if key in APPEND_ONLY_FIELDS:
                changes[key] = getattr(self, key) + tuple(value)
            elif isinstance(value, list):
                changes[key] = tuple(value)
            else:
                changes[key] = value
        return replace(self, **changes)


@dataclass
class DocumentResult:
    """Payload handed to the document consumer once a job completes."""
    session_id: str
    final_document: str
    cognitive_load_index: int
    cognitive_metrics: Optional[CognitiveMetrics]
    analysis: Optional[ContentAnalysis]
    diagrams: Tuple[DiagramSpec, ...]
    errors: Tuple[str, ...]
    warnings: Tuple[str, ...]
    processing_seconds: float = 0.0

    @property
    def degraded(self) -> bool:
        return bool(self.warnings or self.errors)

    @classmethod
    def from_state(cls, state: SessionState, processing_seconds: float = 0.0) -> "DocumentResult":
        return cls(
            session_id=state.session_id,
            final_document=state.final_document,
            cognitive_load_index=state.cognitive_load_index if state.cognitive_load_index is not None else 0,
            cognitive_metrics=state.cognitive_metrics,
            analysis=state.analysis,
            diagrams=state.diagrams,
            errors=state.errors,
            warnings=state.warnings,
            processing_seconds=processing_seconds,
        )
