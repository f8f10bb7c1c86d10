"""Simple YAML configuration loader for OrthoCare."""

import copy
import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging

from ..errors import ConfigError

logger = logging.getLogger(__name__)


DEFAULT_CONFIG: Dict[str, Any] = {
    "audio": {
        "sample_rate": 48000,
        "channels": 1,
        "chunk_size": 4800,
    },
    "transcription": {
        "endpoint": "http://127.0.0.1:8765/api/transcribe",
        "session_endpoint": "http://127.0.0.1:8765/api/session",
        "timeout_seconds": 30,
        "provider": "whisper",
        "language": "en",
        "whisper": {
            "api_key": None,
            "model": "whisper-1",
            "base_url": "https://api.openai.com/v1",
        },
    },
    "google_cloud": {
        "credentials_path": None,
        "language": "en-US",
        "timeout_seconds": 30,
    },
    "server": {
        "host": "127.0.0.1",
        "port": 8765,
    },
    "storage": {
        "data_directory": "data",
    },
    "auth": {
        "required": False,
        "secret_key": None,
        "users": [],
    },
    "logging": {
        "level": "INFO",
        "file_path": "data/logs/orthocare.log",
        "console_output": True,
    },
}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into a copy of base."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class OrthoCareConfig:
    """OrthoCare configuration loader."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML config file. If None, built-in defaults
                        are used with paths relative to the working directory.
        """
        if config_path is None:
            self.config_file = Path.cwd() / "orthocare.yaml"
            logger.info("No configuration file given, using defaults")
            self.config = copy.deepcopy(DEFAULT_CONFIG)
            self._resolve_paths(self.config)
        else:
            self.config_file = Path(config_path)
            if not self.config_file.exists():
                raise FileNotFoundError(f"Configuration file not found: {self.config_file}")
            logger.info(f"Loading configuration from: {self.config_file}")
            self.config = self._load_config()

        self._apply_environment(self.config)

    @classmethod
    def default(cls) -> "OrthoCareConfig":
        """Configuration built from defaults only."""
        return cls(None)

    def _load_config(self) -> Dict[str, Any]:
        """Load and parse YAML configuration file."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in configuration file: {e}") from e
        except OSError as e:
            raise ConfigError(f"Failed to load configuration: {e}") from e

        if not loaded:
            raise ConfigError("Configuration file is empty")
        if not isinstance(loaded, dict):
            raise ConfigError("Configuration file must contain a mapping")

        config = _merge(DEFAULT_CONFIG, loaded)

        # Resolve relative paths
        self._resolve_paths(config)

        logger.info("Configuration loaded successfully")
        return config

    def _resolve_paths(self, config: Dict[str, Any]) -> None:
        """Resolve relative paths in configuration relative to config file location."""
        config_dir = self.config_file.parent

        # Resolve Google credentials path
        creds_path = config.get('google_cloud', {}).get('credentials_path')
        if creds_path and not os.path.isabs(creds_path):
            config['google_cloud']['credentials_path'] = str(config_dir / creds_path)

        # Resolve data directory
        data_dir = config.get('storage', {}).get('data_directory')
        if data_dir and not os.path.isabs(data_dir):
            config['storage']['data_directory'] = str(config_dir / data_dir)

        # Resolve log file path
        log_path = config.get('logging', {}).get('file_path')
        if log_path and not os.path.isabs(log_path):
            config['logging']['file_path'] = str(config_dir / log_path)

    def _apply_environment(self, config: Dict[str, Any]) -> None:
        """Let the environment supply secrets that should not live in YAML."""
        api_key = os.environ.get("OPENAI_API_KEY")
        if api_key:
            config['transcription']['whisper']['api_key'] = api_key
            logger.debug("Whisper API key taken from OPENAI_API_KEY")

        secret_key = os.environ.get("ORTHOCARE_SECRET_KEY")
        if secret_key:
            config['auth']['secret_key'] = secret_key
            logger.debug("Session signing key taken from ORTHOCARE_SECRET_KEY")

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'transcription.provider').

        Args:
            key_path: Dot-separated key path (e.g., 'audio.sample_rate')
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
            key_path: Dot-separated path to config value (e.g., 'server.port')
            value: Value to set
        """
        keys = key_path.split('.')
        config_dict = self.config

        # Navigate to the parent dictionary
        for key in keys[:-1]:
            if key not in config_dict:
                config_dict[key] = {}
            config_dict = config_dict[key]

        config_dict[keys[-1]] = value
        logger.debug(f"Configuration key '{key_path}' set")

    def get_google_credentials_path(self) -> str:
        """Get Google credentials path - raises if not configured or missing."""
        creds_path = self.get('google_cloud.credentials_path')
        if not creds_path:
            raise ConfigError("Google credentials path not configured in orthocare.yaml")

        creds_file = Path(creds_path)
        if not creds_file.exists():
            raise ConfigError(f"Google credentials file not found: {creds_path}")

        return str(creds_file.absolute())

    def get_data_directory(self) -> str:
        """Get data directory path."""
        data_dir = self.get('storage.data_directory', 'data')
        return str(Path(data_dir).absolute())
