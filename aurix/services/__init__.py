"""Services layer for Aurix application logic."""

from .transcription_service import TranscriptionService
from .document_service import DocumentService
from .session_manager import SessionManager

__all__ = [
    "TranscriptionService",
    "DocumentService",
    "SessionManager",
]
