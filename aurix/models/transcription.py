"""Transcription-related data models."""

from dataclasses import dataclass, replace
from enum import Enum


class EngineType(str, Enum):
    """Transcription engine variants."""
    NETWORK = "network"
    LOCAL = "local"


def select_engine(privacy_mode: bool, online: bool) -> EngineType:
    """Engine-selection rule shared by manual toggles and connectivity changes."""
    if privacy_mode or not online:
        return EngineType.LOCAL
    return EngineType.NETWORK


@dataclass(frozen=True)
class TranscriptionStatus:
    """Snapshot of the selector state."""
    active: bool = False
    engine: EngineType = EngineType.NETWORK
    online: bool = True
    privacy_mode: bool = False

    @property
    def target_engine(self) -> EngineType:
        return select_engine(self.privacy_mode, self.online)


@dataclass(frozen=True)
class TranscriptionResult:
    """A partial or final piece of transcript emitted by an engine.

    ``is_notice`` marks a message for the listener (such as an engine being
    unavailable) rather than recognized speech.
    """
    text: str
    is_final: bool
    confidence: float
    timestamp_ms: int
    source: EngineType
    session_id: str = ""
    is_notice: bool = False

    def as_final(self) -> "TranscriptionResult":
        """Promote a partial result to a final one."""
        return replace(self, is_final=True)
