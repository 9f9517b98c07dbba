"""Configuration loader for YAML and JSON configuration files."""

import json
import os
import yaml
from pathlib import Path
from typing import Optional, Dict, Any
import logging
from .settings import ApplicationConfig

logger = logging.getLogger(__name__)

ENV_PREFIX = "LEDCAL_"
SUPPORTED_BACKENDS = ("mqtt", "loopback")
SUPPORTED_SOURCES = ("webcam", "file")


class ConfigLoader:
    """Loads and manages application configuration."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize the configuration loader.

        Args:
            config_dir: Directory containing default configuration files.
                       Defaults to 'config/defaults' in project root.
        """
        if config_dir is None:
            config_dir = Path(__file__).parent / "defaults"
        self.config_dir = Path(config_dir)
        self.config: Optional[ApplicationConfig] = None

    def load(self, config_file: Optional[Path] = None) -> ApplicationConfig:
        """Load configuration from file.

        Args:
            config_file: Path to configuration file (YAML or JSON).
                        If None, loads from default locations.

        Returns:
            ApplicationConfig object with loaded settings.
        """
        if config_file:
            config_data = self._load_file(Path(config_file))
        else:
            config_data = self._load_defaults()

        config_data = self._merge_env_vars(config_data)

        self.config = ApplicationConfig.from_dict(config_data)

        logger.info("Configuration loaded successfully")
        return self.config

    def save(self, config: ApplicationConfig, file_path: Path) -> None:
        """Save configuration to file.

        Args:
            config: Configuration object to save.
            file_path: Path to save configuration to.
        """
        file_path = Path(file_path)
        config_data = config.to_dict()

        if file_path.suffix in (".yaml", ".yml"):
            with open(file_path, 'w') as f:
                yaml.safe_dump(config_data, f, default_flow_style=False)
        elif file_path.suffix == ".json":
            with open(file_path, 'w') as f:
                json.dump(config_data, f, indent=2)
        else:
            raise ValueError(f"Unsupported file format: {file_path.suffix}")

        logger.info(f"Configuration saved to {file_path}")

    def _load_file(self, file_path: Path) -> Dict[str, Any]:
        """Load configuration from a single file.

        Args:
            file_path: Path to configuration file.

        Returns:
            Dictionary with configuration data.
        """
        if not file_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {file_path}")

        with open(file_path, 'r') as f:
            if file_path.suffix in (".yaml", ".yml"):
                return yaml.safe_load(f) or {}
            elif file_path.suffix == ".json":
                return json.load(f)
            else:
                raise ValueError(f"Unsupported file format: {file_path.suffix}")

    def _load_defaults(self) -> Dict[str, Any]:
        """Load default configuration from defaults directory.

        Returns:
            Merged dictionary of all default configurations.
        """
        config_data = {}

        default_files = [
            "message_bus.yaml",
            "calibration.yaml",
            "application.yaml"
        ]

        for filename in default_files:
            file_path = self.config_dir / filename
            if file_path.exists():
                try:
                    config_data.update(self._load_file(file_path))
                    logger.debug(f"Loaded default config: {filename}")
                except (OSError, ValueError, yaml.YAMLError) as e:
                    logger.warning(f"Failed to load {filename}: {e}")

        return config_data

    def _merge_env_vars(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        """Merge environment variables into configuration.

        Environment variables should be prefixed with 'LEDCAL_' and use
        double underscores for nested values.
        Example: LEDCAL_MESSAGE_BUS__PASSWORD=secret

        Args:
            config_data: Current configuration dictionary.

        Returns:
            Configuration dictionary with environment variables merged.
        """
        for key, value in os.environ.items():
            if not key.startswith(ENV_PREFIX):
                continue

            keys = key[len(ENV_PREFIX):].lower().split("__")

            current = config_data
            for k in keys[:-1]:
                if not isinstance(current.get(k), dict):
                    current[k] = {}
                current = current[k]

            # Parse as JSON for numbers/booleans, keep raw strings otherwise
            try:
                current[keys[-1]] = json.loads(value)
            except json.JSONDecodeError:
                current[keys[-1]] = value

            logger.debug(f"Loaded environment variable: {key}")

        return config_data

    def validate(self, config: Optional[ApplicationConfig] = None) -> bool:
        """Validate configuration for correctness.

        Args:
            config: Configuration to validate. Uses loaded config if None.

        Returns:
            True if configuration is valid, False otherwise.
        """
        if config is None:
            config = self.config

        if config is None:
            logger.error("No configuration to validate")
            return False

        bus = config.message_bus
        if bus.backend not in SUPPORTED_BACKENDS:
            logger.error(f"Unknown message bus backend: {bus.backend}")
            return False

        if bus.qos not in (0, 1, 2):
            logger.error(f"Invalid QoS level: {bus.qos}")
            return False

        if not bus.subscribe_topic or not bus.publish_topic:
            logger.error("Message bus topics must not be empty")
            return False

        if bus.offline_buffer_size < 0:
            logger.error("Invalid offline buffer size")
            return False

        if not 0 <= config.detection.threshold <= 255:
            logger.error("Invalid detection threshold")
            return False

        if config.detection.erode_iterations < 0 or config.detection.dilate_iterations < 0:
            logger.error("Invalid morphology iteration count")
            return False

        if config.calibration.capture_count < 1:
            logger.error("Invalid capture count")
            return False

        if config.camera.source not in SUPPORTED_SOURCES:
            logger.error(f"Unknown camera source: {config.camera.source}")
            return False

        if config.camera.max_read_failures < 1:
            logger.error("Invalid webcam read failure limit")
            return False

        return True

    def get_config(self) -> Optional[ApplicationConfig]:
        """Get the currently loaded configuration."""
        return self.config

    def reload(self) -> ApplicationConfig:
        """Reload configuration from the default files."""
        logger.info("Reloading configuration")
        return self.load()
