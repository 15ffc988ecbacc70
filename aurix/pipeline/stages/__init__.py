"""Document pipeline stages, in execution order."""

from typing import List, Optional

from .base import Stage, StateDelta
from .normalization import NormalizationStage
from .analysis import AnalysisStage
from .sections import SectionStage
from .diagrams import DiagramStage
from .assembly import AssemblyStage
from .cognitive_load import CognitiveLoadStage
from ..llm import LanguageModelService


def build_default_stages(llm: Optional[LanguageModelService]) -> List[Stage]:
    return [
        NormalizationStage(),
        AnalysisStage(llm),
        SectionStage(llm),
        DiagramStage(llm),
        AssemblyStage(),
        CognitiveLoadStage(),
    ]


__all__ = [
    "Stage",
    "StateDelta",
    "NormalizationStage",
    "AnalysisStage",
    "SectionStage",
    "DiagramStage",
    "AssemblyStage",
    "CognitiveLoadStage",
    "build_default_stages",
]
