"""Typed events published on the session and status channels."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .transcription import EngineType, TranscriptionResult


@dataclass
class SessionEvent:
    """Base class for everything published on a session channel."""
    session_id: str
    timestamp: datetime = field(default_factory=datetime.now, compare=False)


@dataclass
class SessionStarted(SessionEvent):
    engine: Optional[EngineType] = None


@dataclass
class SessionStopped(SessionEvent):
    pass


@dataclass
class ModeSwitched(SessionEvent):
    from_engine: Optional[EngineType] = None
    to_engine: Optional[EngineType] = None


@dataclass
class TranscriptionEvent(SessionEvent):
    result: Optional[TranscriptionResult] = None


@dataclass
class EngineUnavailableNotice(SessionEvent):
    engine: Optional[EngineType] = None
    reason: str = ""


@dataclass
class StageProgress(SessionEvent):
    """Pipeline progress; ``progress`` is a percentage in [0, 100]."""
    node: str = ""
    progress: int = 0


@dataclass
class ConnectivityChanged:
    online: bool
    timestamp: datetime = field(default_factory=datetime.now, compare=False)


@dataclass
class PrivacyModeChanged:
    enabled: bool
    timestamp: datetime = field(default_factory=datetime.now, compare=False)
