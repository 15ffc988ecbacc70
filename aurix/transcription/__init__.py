"""Transcription module for Aurix."""

from .base import AbstractTranscriptionEngine, WindowedTranscriptionEngine
from ..models.transcription import TranscriptionResult, TranscriptionStatus
from .google_engine import GoogleSpeechEngine
from .whisper_engine import WhisperEngine
from .model_manager import LocalModelManager
from .connectivity import ConnectivityMonitor
from .selector import TranscriptionSourceSelector, SelectorState
from .aggregator import TranscriptAccumulator

__all__ = [
    "AbstractTranscriptionEngine",
    "WindowedTranscriptionEngine",
    "TranscriptionResult",
    "TranscriptionStatus",
    "GoogleSpeechEngine",
    "WhisperEngine",
    "LocalModelManager",
    "ConnectivityMonitor",
    "TranscriptionSourceSelector",
    "SelectorState",
    "TranscriptAccumulator",
]
