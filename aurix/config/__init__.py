"""Simple YAML configuration loader for Aurix."""

import copy
import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging

logger = logging.getLogger(__name__)


DEFAULT_CONFIG: Dict[str, Any] = {
    'logging': {
        'level': 'INFO',
        'file_path': 'data/logs/aurix.log',
        'console_output': True,
    },
    'transcription': {
        'privacy_mode': False,
        'stop_timeout_seconds': 5.0,
        'connectivity': {
            'probe_url': 'http://www.google.com',
            'interval_seconds': 5.0,
            'timeout_seconds': 3.0,
        },
        'network': {
            'credentials_path': None,
            'language': 'en-US',
            'use_enhanced_model': True,
            'enable_automatic_punctuation': True,
            'partial_interval_seconds': 2.0,
            'max_utterance_seconds': 10.0,
            'request_timeout_seconds': 10.0,
        },
        'local': {
            'models_directory': 'data/models',
            'model_name': 'small.en',
            'device': 'cpu',
            'compute_type': 'int8',
            'partial_interval_seconds': 2.0,
            'max_utterance_seconds': 10.0,
        },
    },
    'pipeline': {
        'llm': {
            'provider': 'ollama',
            'model': 'llama3',
            'base_url': 'http://localhost:11434',
            'api_key': None,
            'timeout_seconds': 30.0,
        },
        'document': {
            'generate_diagrams': True,
            'target_audience': 'intermediate',
            'document_style': 'technical',
            'max_section_words': 500,
        },
    },
}

# Config keys holding paths that are resolved against the config file directory
PATH_KEYS = (
    'logging.file_path',
    'transcription.network.credentials_path',
    'transcription.local.models_directory',
)


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class AurixConfig:
    """Aurix configuration loader."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML config file. If None, only the built-in
                        defaults are used.
        """
        self.config_file = Path(config_path) if config_path else None

        if self.config_file is None:
            logger.info("No configuration file given, using defaults")
            self.config = copy.deepcopy(DEFAULT_CONFIG)
            return

        if not self.config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_file}")

        logger.info(f"Loading configuration from: {self.config_file}")
        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load and parse YAML configuration file."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}") from e

        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ValueError("Configuration file must contain a mapping at the top level")

        config = _deep_merge(DEFAULT_CONFIG, loaded)
        self._resolve_paths(config)

        logger.info("Configuration loaded successfully")
        return config

    def _resolve_paths(self, config: Dict[str, Any]) -> None:
        """Resolve relative paths in configuration relative to config file location."""
        config_dir = self.config_file.parent

        for key_path in PATH_KEYS:
            *parents, leaf = key_path.split('.')
            section = config
            for key in parents:
                section = section.get(key) if isinstance(section, dict) else None
            if not isinstance(section, dict):
                continue
            value = section.get(leaf)
            if value and not os.path.isabs(value):
                section[leaf] = str(config_dir / value)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'pipeline.llm.model').

        Args:
            key_path: Dot-separated key path
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split('.')
        value = self.config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def set(self, key_path: str, value: Any) -> None:
        """Set configuration value using dot notation.

        Args:
            key_path: Dot-separated path to config value (e.g., 'transcription.privacy_mode')
            value: Value to set
        """
        keys = key_path.split('.')
        config_dict = self.config

        # Navigate to the parent dictionary
        for key in keys[:-1]:
            if key not in config_dict:
                config_dict[key] = {}
            config_dict = config_dict[key]

        # Set the final value
        config_dict[keys[-1]] = value
        logger.debug(f"Configuration key '{key_path}' set to: {value}")

    def get_google_credentials_path(self) -> Optional[str]:
        """Get Google credentials path, or None when the network engine isn't configured."""
        creds_path = self.get('transcription.network.credentials_path')
        if not creds_path:
            return None
        return str(Path(creds_path).absolute())

    def get_models_directory(self) -> str:
        """Get the directory holding provisioned local speech models."""
        models_dir = self.get('transcription.local.models_directory', 'data/models')
        return str(Path(models_dir).absolute())
