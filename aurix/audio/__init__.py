"""Audio routing module."""

from .buffer import AudioChunkBuffer

__all__ = [
    'AudioChunkBuffer',
]
