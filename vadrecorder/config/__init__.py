"""Simple YAML configuration loader for vadrecorder."""

import copy
import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging

logger = logging.getLogger(__name__)


DEFAULT_CONFIG: Dict[str, Any] = {
    'recording': {},
    'engine': {
        'poll_interval_ms': 100,
    },
    'storage': {
        'data_directory': 'data',
    },
    'logging': {
        'level': 'INFO',
        'file_path': 'data/logs/vadrecorder.log',
        'console_output': True,
    },
}


class VadRecorderConfig:
    """vadrecorder configuration loader."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML config file. If None, built-in defaults are used.
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
            raise ValueError(f"Invalid YAML in configuration file: {e}")
        except OSError as e:
            raise ValueError(f"Failed to load configuration: {e}")

        if not loaded:
            raise ValueError("Configuration file is empty")
        if not isinstance(loaded, dict):
            raise ValueError("Configuration file must contain a mapping")

        config = copy.deepcopy(DEFAULT_CONFIG)
        for section, values in loaded.items():
            if isinstance(values, dict) and isinstance(config.get(section), dict):
                config[section].update(values)
            else:
                config[section] = values

        # Resolve relative paths
        self._resolve_paths(loaded, config)

        logger.info("Configuration loaded successfully")
        return config

    def _resolve_paths(self, loaded: Dict[str, Any], config: Dict[str, Any]) -> None:
        """Resolve relative paths given in the file relative to the config file location."""
        config_dir = self.config_file.parent

        # Resolve data directory
        if 'data_directory' in (loaded.get('storage') or {}):
            data_dir = config['storage']['data_directory']
            if not os.path.isabs(data_dir):
                config['storage']['data_directory'] = str(config_dir / data_dir)

        # Resolve log file path
        if 'file_path' in (loaded.get('logging') or {}):
            log_path = config['logging']['file_path']
            if not os.path.isabs(log_path):
                config['logging']['file_path'] = str(config_dir / log_path)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'engine.poll_interval_ms').

        Args:
            key_path: Dot-separated key path (e.g., 'storage.data_directory')
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
            key_path: Dot-separated path to config value (e.g., 'recording.max_duration_seconds')
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

    def get_recording_defaults(self) -> Dict[str, Any]:
        """Session config values that override the built-in recording defaults."""
        recording = self.get('recording') or {}
        if not isinstance(recording, dict):
            raise ValueError("'recording' section must be a mapping")
        return dict(recording)

    def get_poll_interval(self) -> float:
        """Level polling interval in seconds."""
        interval_ms = self.get('engine.poll_interval_ms', 100)
        if interval_ms <= 0:
            raise ValueError("engine.poll_interval_ms must be positive")
        return interval_ms / 1000.0

    def get_data_directory(self) -> str:
        """Get data directory path."""
        data_dir = self.get('storage.data_directory', 'data')
        return str(Path(data_dir).absolute())
