"""Provisioning checks for local speech models."""

import logging
from pathlib import Path
from typing import List

from ..errors import EngineUnavailable
from ..models.transcription import EngineType

logger = logging.getLogger(__name__)

# faster-whisper (CTranslate2) model directories always carry these files
REQUIRED_FILES = ("model.bin",)


class LocalModelManager:
    """Knows where local models live and whether they are usable."""

    def __init__(self, models_directory: str):
        self.models_directory = Path(models_directory)

    def get_model_path(self, model_name: str) -> Path:
        return self.models_directory / model_name

    def is_model_installed(self, model_name: str) -> bool:
        model_path = self.get_model_path(model_name)
        return model_path.is_dir() and all((model_path / name).is_file() for name in REQUIRED_FILES)

    def ensure_model(self, model_name: str) -> str:
        """Return the model directory, or raise if it has not been provisioned.

        Raises:
            EngineUnavailable: If the directory or its model files are missing
        """
        if not self.is_model_installed(model_name):
            model_path = self.get_model_path(model_name)
            logger.warning(f"Local model '{model_name}' not provisioned at {model_path}")
            raise EngineUnavailable(
                EngineType.LOCAL.value,
                f"model '{model_name}' is not provisioned in {self.models_directory}"
            )
        return str(self.get_model_path(model_name))

    def installed_models(self) -> List[str]:
        """List provisioned model names, sorted."""
        if not self.models_directory.is_dir():
            return []
        return sorted(
            entry.name for entry in self.models_directory.iterdir()
            if entry.is_dir() and self.is_model_installed(entry.name)
        )
