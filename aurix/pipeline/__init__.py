"""Document-generation pipeline."""

from .llm import (
    LanguageModelService,
    OllamaService,
    ChatGPTService,
    create_language_model,
    call_model,
)
from .runner import PipelineRunner
from .stages import build_default_stages

__all__ = [
    "LanguageModelService",
    "OllamaService",
    "ChatGPTService",
    "create_language_model",
    "call_model",
    "PipelineRunner",
    "build_default_stages",
]
