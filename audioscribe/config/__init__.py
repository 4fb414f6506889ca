"""Simple YAML configuration loader for AudioScribe."""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "audioscribe.yaml"


def find_config_file(start_dir: Optional[str] = None) -> Optional[Path]:
    """Look for audioscribe.yaml in start_dir and its parents."""
    current = Path(start_dir or os.getcwd()).resolve()
    for directory in [current, *current.parents]:
        candidate = directory / CONFIG_FILENAME
        if candidate.exists():
            return candidate
    return None


class AudioscribeConfig:
    """AudioScribe configuration loader."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML config file. If None, looks for audioscribe.yaml
                        in current directory and parent directories.
        """
        if config_path is None:
            found = find_config_file()
            if found is None:
                raise FileNotFoundError(
                    f"Configuration file not found: no {CONFIG_FILENAME} in current or parent directories")
            self.config_file = found
        else:
            self.config_file = Path(config_path)

        if not self.config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_file}")

        logger.info(f"Loading configuration from: {self.config_file}")
        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load and parse YAML configuration file."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}") from e

        if not config:
            raise ValueError("Configuration file is empty")

        # Resolve relative paths
        self._resolve_paths(config)

        logger.info("Configuration loaded successfully")
        return config

    def _resolve_paths(self, config: Dict[str, Any]) -> None:
        """Resolve relative paths in configuration relative to config file location."""
        config_dir = self.config_file.parent

        for section, key in (('fallback', 'credentials_path'),
                             ('storage', 'data_directory'),
                             ('logging', 'file_path')):
            if section in config and isinstance(config[section], dict) and config[section].get(key):
                value = config[section][key]
                if not os.path.isabs(value):
                    config[section][key] = str(config_dir / value)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'transcription.language').

        Args:
            key_path: Dot-separated key path (e.g., 'recording.segment_duration_seconds')
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
            key_path: Dot-separated path to config value (e.g., 'transcription.language')
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

    def get_api_key(self) -> str:
        """Get the transcription API key - CRASHES if not found."""
        api_key = self.get('transcription.api_key')
        if api_key:
            return api_key

        env_name = self.get('transcription.api_key_env', 'OPENAI_API_KEY')
        api_key = os.environ.get(env_name)
        if not api_key:
            raise ValueError(f"Transcription API key not configured: set {env_name} or transcription.api_key")
        return api_key

    def get_fallback_credentials_path(self) -> Optional[str]:
        """Get fallback recognizer credentials path, or None if not configured."""
        creds_path = self.get('fallback.credentials_path')
        if not creds_path:
            return None
        return str(Path(creds_path).absolute())

    def get_data_directory(self) -> str:
        """Get data directory path."""
        data_dir = self.get('storage.data_directory', 'data')
        return str(Path(data_dir).absolute())
