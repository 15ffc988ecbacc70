"""Audio-related data models."""

from dataclasses import dataclass

import numpy as np

SAMPLE_RATE = 16000


def to_pcm16(samples: np.ndarray) -> bytes:
    """Convert float samples in [-1.0, 1.0] to little-endian 16-bit PCM."""
    clipped = np.clip(samples, -1.0, 1.0)
    return (clipped * 32767).astype("<i2").tobytes()


@dataclass
class AudioChunk:
    """A fixed-size block of mono samples handed over by the capture layer."""
    session_id: str
    samples: np.ndarray  # float32 in [-1.0, 1.0]
    sequence_number: int
    timestamp_ms: int  # Capture time of the first sample, relative to session start
    sample_rate: int = SAMPLE_RATE
