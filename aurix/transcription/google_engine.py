"""Network-backed transcription engine using Google Speech-to-Text."""

import logging
import os
import time
from typing import Optional, Tuple

import numpy as np
from google.api_core import exceptions as gax_exceptions
from google.cloud import speech
from google.oauth2 import service_account

from .base import WindowedTranscriptionEngine
from ..errors import EngineUnavailable
from ..models.audio import SAMPLE_RATE, to_pcm16
from ..models.transcription import EngineType

logger = logging.getLogger(__name__)


class GoogleSpeechEngine(WindowedTranscriptionEngine):
    """Google Speech-to-Text engine (synchronous recognize per window)."""

    engine_type = EngineType.NETWORK

    def __init__(self,
                 credentials_path: Optional[str],
                 language: str = "en-US",
                 use_enhanced: bool = True,
                 enable_automatic_punctuation: bool = True,
                 request_timeout_seconds: float = 10.0,
                 sample_rate: int = SAMPLE_RATE,
                 **window_kwargs):
        """Initialize Google Speech engine.

        Args:
            credentials_path: Path to Google Cloud service account JSON file
            language: Language code (e.g., 'en-US', 'es-ES')
            use_enhanced: Whether to use enhanced model (costs more but better quality)
            enable_automatic_punctuation: Enable automatic punctuation
            request_timeout_seconds: Deadline for each recognize call
        """
        super().__init__(sample_rate=sample_rate, **window_kwargs)
        self.credentials_path = credentials_path
        self.language = language
        self.use_enhanced = use_enhanced
        self.enable_automatic_punctuation = enable_automatic_punctuation
        self.request_timeout_seconds = request_timeout_seconds
        self.client = None
        self.recognition_config = None

    def check_available(self) -> None:
        if not self.credentials_path:
            raise EngineUnavailable(self.engine_type.value, "no Google credentials configured")
        if not os.path.exists(self.credentials_path):
            raise EngineUnavailable(self.engine_type.value,
                                    f"credentials file not found: {self.credentials_path}")

    def _load(self) -> None:
        logger.info(f"Loading Google credentials from: {self.credentials_path}")
        credentials = service_account.Credentials.from_service_account_file(self.credentials_path)
        self.client = speech.SpeechClient(credentials=credentials)
        self.recognition_config = speech.RecognitionConfig(
            encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
            sample_rate_hertz=self.sample_rate,
            language_code=self.language,
            use_enhanced=self.use_enhanced,
            enable_automatic_punctuation=self.enable_automatic_punctuation,
            model="latest_long",
        )
        logger.info(f"Google Speech-to-Text client ready (project: {credentials.project_id})")

    def recognize(self, audio: np.ndarray) -> Tuple[str, float]:
        start_time = time.time()
        request_audio = speech.RecognitionAudio(content=to_pcm16(audio))

        try:
            response = self.client.recognize(config=self.recognition_config,
                                             audio=request_audio,
                                             timeout=self.request_timeout_seconds)
        except gax_exceptions.DeadlineExceeded:
            logger.error(f"Google STT recognize deadline exceeded ({len(audio)} samples)")
            return "", 0.0
        except gax_exceptions.GoogleAPICallError as e:
            logger.error(f"Google STT API call error: {e}")
            return "", 0.0

        if not response.results:
            logger.debug("--- NO SPEECH DETECTED ---")
            return "", 0.0

        alternatives = [r.alternatives[0] for r in response.results if r.alternatives]
        if not alternatives:
            return "", 0.0
        text = " ".join(alt.transcript.strip() for alt in alternatives)
        confidence = sum(alt.confidence for alt in alternatives) / len(alternatives)

        logger.debug(f"Google STT: '{text}' (confidence: {confidence:.2f}, "
                     f"processing_time: {time.time() - start_time:.3f}s)")
        return text, confidence

    def _release(self) -> None:
        self.client = None
