"""Local-only transcription engine using faster-whisper."""

import logging
import math
from typing import Optional, Tuple

import numpy as np

from .base import WindowedTranscriptionEngine
from .model_manager import LocalModelManager
from ..models.audio import SAMPLE_RATE
from ..models.transcription import EngineType

logger = logging.getLogger(__name__)


class WhisperEngine(WindowedTranscriptionEngine):
    """Offline engine running a provisioned faster-whisper model."""

    engine_type = EngineType.LOCAL

    def __init__(self,
                 model_manager: LocalModelManager,
                 model_name: str = "small.en",
                 device: str = "cpu",
                 compute_type: str = "int8",
                 language: str = "en",
                 sample_rate: int = SAMPLE_RATE,
                 **window_kwargs):
        """Initialize Whisper engine.

        Args:
            model_manager: Resolves ``model_name`` to a provisioned directory
            model_name: Name of the model directory (e.g. 'small.en')
            device: Device to run on (cpu, cuda)
            compute_type: CTranslate2 compute type (int8, float16, ...)
            language: Language hint passed to the decoder
        """
        super().__init__(sample_rate=sample_rate, **window_kwargs)
        self.model_manager = model_manager
        self.model_name = model_name
        self.device = device
        self.compute_type = compute_type
        self.language = language
        self.model_path: Optional[str] = None
        self.model = None

    def check_available(self) -> None:
        self.model_path = self.model_manager.ensure_model(self.model_name)

    def _load(self) -> None:
        if self.model is not None:
            return
        # Loaded lazily; importing faster_whisper pulls in CTranslate2
        from faster_whisper import WhisperModel

        logger.info(f"Loading Whisper model from {self.model_path} "
                    f"({self.device}, {self.compute_type})")
        self.model = WhisperModel(self.model_path, device=self.device, compute_type=self.compute_type)
        logger.info("Whisper model loaded")

    def recognize(self, audio: np.ndarray) -> Tuple[str, float]:
        segments, _info = self.model.transcribe(
            audio.astype(np.float32),
            language=self.language,
            beam_size=1,
            vad_filter=False,
        )

        texts = []
        probabilities = []
        for segment in segments:
            text = segment.text.strip()
            if text:
                texts.append(text)
                probabilities.append(math.exp(segment.avg_logprob))

        if not texts:
            return "", 0.0
        return " ".join(texts), sum(probabilities) / len(probabilities)
