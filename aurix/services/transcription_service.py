"""Transcription service that wires engines, selector and connectivity monitor from config."""

import logging
from typing import Callable, Optional

from ..config import AurixConfig
from ..models.transcription import EngineType
from ..transcription import (
    AbstractTranscriptionEngine,
    ConnectivityMonitor,
    GoogleSpeechEngine,
    LocalModelManager,
    TranscriptionSourceSelector,
    WhisperEngine,
)

logger = logging.getLogger(__name__)


class TranscriptionService:
    """Owns the selector and builds engines on demand."""

    def __init__(self,
                 config: AurixConfig,
                 probe: Optional[Callable[[], bool]] = None,
                 monitor_connectivity: bool = True):
        """Initialize transcription service.

        Args:
            config: Application configuration
            probe: Connectivity probe override (defaults to an HTTP HEAD probe)
            monitor_connectivity: Start the background connectivity monitor
        """
        self.config = config
        self.model_manager = LocalModelManager(config.get_models_directory())
        self.selector = TranscriptionSourceSelector(
            engine_factory=self.create_engine,
            privacy_mode=bool(config.get('transcription.privacy_mode', False)),
        )

        if monitor_connectivity:
            monitor = ConnectivityMonitor(
                on_change=self.selector.on_connectivity_change,
                probe=probe,
                interval_seconds=config.get('transcription.connectivity.interval_seconds', 5.0),
                probe_url=config.get('transcription.connectivity.probe_url', 'http://www.google.com'),
                timeout_seconds=config.get('transcription.connectivity.timeout_seconds', 3.0),
            )
            self.selector.attach_monitor(monitor)

        logger.info(f"TranscriptionService initialized (installed local models: "
                    f"{self.model_manager.installed_models()})")

    def create_engine(self, engine_type: EngineType) -> AbstractTranscriptionEngine:
        if engine_type == EngineType.NETWORK:
            return self._create_google_engine()
        return self._create_whisper_engine()

    def _create_google_engine(self) -> GoogleSpeechEngine:
        prefix = 'transcription.network'
        logger.info("Creating Google Speech engine...")
        return GoogleSpeechEngine(
            credentials_path=self.config.get_google_credentials_path(),
            language=self.config.get(f'{prefix}.language', 'en-US'),
            use_enhanced=self.config.get(f'{prefix}.use_enhanced_model', True),
            enable_automatic_punctuation=self.config.get(f'{prefix}.enable_automatic_punctuation', True),
            request_timeout_seconds=self.config.get(f'{prefix}.request_timeout_seconds', 10.0),
            partial_interval_seconds=self.config.get(f'{prefix}.partial_interval_seconds', 2.0),
            max_utterance_seconds=self.config.get(f'{prefix}.max_utterance_seconds', 10.0),
            stop_timeout_seconds=self.config.get('transcription.stop_timeout_seconds', 5.0),
        )

    def _create_whisper_engine(self) -> WhisperEngine:
        prefix = 'transcription.local'
        logger.info("Creating Whisper engine...")
        return WhisperEngine(
            model_manager=self.model_manager,
            model_name=self.config.get(f'{prefix}.model_name', 'small.en'),
            device=self.config.get(f'{prefix}.device', 'cpu'),
            compute_type=self.config.get(f'{prefix}.compute_type', 'int8'),
            partial_interval_seconds=self.config.get(f'{prefix}.partial_interval_seconds', 2.0),
            max_utterance_seconds=self.config.get(f'{prefix}.max_utterance_seconds', 10.0),
            stop_timeout_seconds=self.config.get('transcription.stop_timeout_seconds', 5.0),
        )

    def shutdown(self) -> None:
        logger.info("Shutting down transcription service...")
        self.selector.shutdown()
        logger.info("Transcription service shutdown complete")
