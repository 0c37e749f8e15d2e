"""
Configuration management for the component kernel.
Handles environment variables, registry timing and recovery settings, and validation.
"""

import os
import json
from pathlib import Path
from typing import Dict, Any, Optional, Union, List
from dataclasses import dataclass, asdict

from dotenv import load_dotenv

from custom_logging import get_logger

logger = get_logger("config")


@dataclass
class LoggingConfig:
    """Logging configuration settings."""
    level: str = "INFO"
    log_dir: str = "./logs"
    max_file_size: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5
    log_to_file: bool = False


@dataclass
class RegistryConfig:
    """Component registry behaviour."""
    wait_timeout: float = 5.0      # seconds, default deadline for wait_for()
    poll_interval: float = 0.1     # seconds between readiness checks in wait_for()
    recovery_enabled: bool = True
    publish_cycle_events: bool = True


@dataclass
class KernelConfig:
    """Main configuration class for the component kernel."""

    # Core settings
    project_name: str = "concierge"
    environment: str = "development"  # development, staging, production
    debug: bool = False

    logging: LoggingConfig = None
    registry: RegistryConfig = None

    config_file: Optional[str] = None

    def __post_init__(self):
        """Initialize mutable defaults and validate."""
        if self.logging is None:
            self.logging = LoggingConfig()
        if self.registry is None:
            self.registry = RegistryConfig()

        self._validate_config()

    def _validate_config(self):
        """Validate configuration values."""
        validation_errors = []

        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if str(self.logging.level).upper() not in valid_levels:
            validation_errors.append(f"Invalid log level: {self.logging.level}")

        if self.registry.wait_timeout <= 0:
            validation_errors.append("Registry wait_timeout must be > 0 seconds")
        if self.registry.poll_interval <= 0:
            validation_errors.append("Registry poll_interval must be > 0 seconds")
        if self.registry.poll_interval > self.registry.wait_timeout:
            validation_errors.append("Registry poll_interval must not exceed wait_timeout")

        valid_environments = {"development", "staging", "production", "test"}
        if self.environment not in valid_environments:
            validation_errors.append(f"Invalid environment: {self.environment}")

        if validation_errors:
            for error in validation_errors:
                logger.error(f"Config validation error: {error}")
            raise ValueError(f"Configuration validation failed: {validation_errors}")


class ConfigManager:
    """Configuration manager for loading and managing kernel config."""

    def __init__(self):
        self.logger = get_logger("config_manager")
        load_dotenv()  # Load environment variables from .env file
        self.logger.debug("Loaded environment variables from .env")

    def load_config(self,
                    config_file: Optional[str] = None,
                    env_prefix: str = "CONCIERGE_") -> KernelConfig:
        """
        Load configuration from file and environment variables.

        Args:
            config_file: Path to JSON configuration file
            env_prefix: Prefix for environment variables

        Returns:
            KernelConfig instance
        """
        self.logger.info("Loading kernel configuration...")

        config_dict = asdict(KernelConfig())

        if config_file and Path(config_file).exists():
            self.logger.info(f"Loading config from file: {config_file}")
            with open(config_file, 'r') as f:
                file_config = json.load(f)
            config_dict = self._deep_merge(config_dict, file_config)
            config_dict["config_file"] = config_file
        elif config_file:
            self.logger.warning(f"Config file not found, using defaults: {config_file}")

        # Environment wins over the file
        env_config = self._load_from_env(env_prefix)
        config_dict = self._deep_merge(config_dict, env_config)

        try:
            config = KernelConfig(
                project_name=config_dict.get('project_name', 'concierge'),
                environment=config_dict.get('environment', 'development'),
                debug=config_dict.get('debug', False),
                logging=LoggingConfig(**config_dict.get('logging', {})),
                registry=RegistryConfig(**config_dict.get('registry', {})),
                config_file=config_dict.get('config_file'),
            )
            self.logger.info("Configuration loaded successfully")
            return config
        except Exception as e:
            self.logger.error(f"Failed to load configuration: {e}")
            raise

    def _load_from_env(self, prefix: str) -> Dict[str, Any]:
        """Load configuration from environment variables."""
        env_config = {}

        mappings = {
            f"{prefix}PROJECT_NAME": ["project_name"],
            f"{prefix}ENVIRONMENT": ["environment"],
            f"{prefix}DEBUG": ["debug"],
            f"{prefix}LOG_LEVEL": ["logging", "level"],
            f"{prefix}LOG_DIR": ["logging", "log_dir"],
            f"{prefix}LOG_MAX_FILE_SIZE": ["logging", "max_file_size"],
            f"{prefix}LOG_BACKUP_COUNT": ["logging", "backup_count"],
            f"{prefix}LOG_TO_FILE": ["logging", "log_to_file"],
            f"{prefix}WAIT_TIMEOUT": ["registry", "wait_timeout"],
            f"{prefix}POLL_INTERVAL": ["registry", "poll_interval"],
            f"{prefix}RECOVERY_ENABLED": ["registry", "recovery_enabled"],
            f"{prefix}PUBLISH_CYCLE_EVENTS": ["registry", "publish_cycle_events"],
        }

        for env_var, path in mappings.items():
            value = os.getenv(env_var)
            if value is not None:
                self._set_nested_value(env_config, path, self._convert_type(value))

        return env_config

    def _convert_type(self, value: str) -> Union[str, int, float, bool]:
        """Convert string environment variable to appropriate type."""
        if value.lower() in {"true", "yes", "on"}:
            return True
        elif value.lower() in {"false", "no", "off"}:
            return False

        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        return value

    def _set_nested_value(self, dictionary: Dict[str, Any], path: List[str], value: Any):
        """Set a nested dictionary value using a path."""
        current = dictionary
        for key in path[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]
        current[path[-1]] = value

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def create_env_template(self, path: str = ".env.template"):
        """Create a .env template file with the CONCIERGE_* variables read by load_config()."""
        self.logger.info(f"Writing environment template to: {path}")
        lines = [
            "# Component kernel environment template",
            "# Copy to .env and fill in values as needed",
            "",
            "# --- Core ---",
            "CONCIERGE_PROJECT_NAME=concierge",
            "CONCIERGE_ENVIRONMENT=development",
            "CONCIERGE_DEBUG=false",
            "",
            "# --- Logging ---",
            "CONCIERGE_LOG_LEVEL=INFO",
            "CONCIERGE_LOG_DIR=./logs",
            "CONCIERGE_LOG_MAX_FILE_SIZE=10485760",
            "CONCIERGE_LOG_BACKUP_COUNT=5",
            "CONCIERGE_LOG_TO_FILE=false",
            "",
            "# --- Registry ---",
            "CONCIERGE_WAIT_TIMEOUT=5.0",
            "CONCIERGE_POLL_INTERVAL=0.1",
            "CONCIERGE_RECOVERY_ENABLED=true",
            "CONCIERGE_PUBLISH_CYCLE_EVENTS=true",
        ]
        with open(path, "w") as f:
            f.write("\n".join(lines) + "\n")
        self.logger.info("Environment template written successfully")

    def save_config(self, config: KernelConfig, config_file: str):
        """Save configuration to JSON file."""
        self.logger.info(f"Saving configuration to: {config_file}")

        config_dict = asdict(config)
        with open(config_file, 'w') as f:
            json.dump(config_dict, f, indent=2)

        self.logger.info("Configuration saved successfully")


# Global configuration instance
_config_instance: Optional[KernelConfig] = None


def get_config() -> KernelConfig:
    """Get the global configuration instance."""
    global _config_instance
    if _config_instance is None:
        manager = ConfigManager()
        _config_instance = manager.load_config()
    return _config_instance


def init_config(config_file: Optional[str] = None) -> KernelConfig:
    """Initialize configuration with optional config file."""
    global _config_instance
    manager = ConfigManager()
    _config_instance = manager.load_config(config_file)
    return _config_instance
