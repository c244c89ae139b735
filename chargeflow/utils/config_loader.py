"""
Configuration loader utility for loading and validating YAML configuration files.
"""
import os
import re
from pathlib import Path
from typing import Any, Dict

import yaml

from chargeflow.utils.exceptions import ConfigurationException, ErrorCodes
from chargeflow.utils.logger import setup_logger

VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
VALID_REGISTRY_TYPES = ['file', 'remote']

# ${VAR_NAME} or ${VAR_NAME:-default}
_ENV_PATTERN = re.compile(r'\$\{([^}:]+)(?::-([^}]*))?\}')


class ConfigLoader:
    """Utility class for loading and validating configuration files."""

    def __init__(self):
        """Initialize the config loader."""
        self.logger = setup_logger(__name__)

    @classmethod
    def load(cls, config_path: str) -> Dict[str, Any]:
        """Load configuration from a YAML file.

        Args:
            config_path: Path to the configuration file

        Returns:
            Configuration dictionary

        Raises:
            ConfigurationException: If the file is missing, not valid YAML,
                references an unset environment variable or fails validation
        """
        loader = cls()
        return loader._load_config(config_path)

    def _load_config(self, config_path: str) -> Dict[str, Any]:
        config_file = Path(config_path)

        if not config_file.exists():
            raise ConfigurationException(
                f"Configuration file not found: {config_path}",
                config_file=str(config_path),
                error_code=ErrorCodes.CONFIG_NOT_FOUND
            )

        self.logger.debug(f"Loading configuration from {config_path}")

        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationException(
                f"Invalid YAML in configuration file: {e}",
                config_file=str(config_path),
                error_code=ErrorCodes.CONFIG_INVALID_FORMAT,
                cause=e
            ) from e

        if config is None:
            config = {}

        try:
            config = self._substitute_env_vars(config)
            self._validate_config(config)
        except ConfigurationException as e:
            e.context.setdefault('config_file', str(config_path))
            raise

        self.logger.debug(f"Configuration loaded successfully: {len(config)} top-level keys")
        return config

    def _substitute_env_vars(self, config: Any) -> Any:
        """Recursively substitute environment variables in configuration values."""
        if isinstance(config, dict):
            return {key: self._substitute_env_vars(value) for key, value in config.items()}
        elif isinstance(config, list):
            return [self._substitute_env_vars(item) for item in config]
        elif isinstance(config, str):
            return self._substitute_string_env_vars(config)
        else:
            return config

    def _substitute_string_env_vars(self, value: str) -> str:
        """Substitute environment variables in a string value.

        Supports formats:
        - ${VAR_NAME} - Required variable
        - ${VAR_NAME:-default} - Variable with default value

        Args:
            value: String value potentially containing environment variables

        Returns:
            String with environment variables substituted
        """
        def replace_var(match):
            var_name = match.group(1)
            default_value = match.group(2)

            env_value = os.environ.get(var_name)
            if env_value is not None:
                return env_value
            if default_value is not None:
                return default_value

            raise ConfigurationException(
                f"Required environment variable '{var_name}' not found",
                config_key=var_name,
                error_code=ErrorCodes.CONFIG_MISSING_REQUIRED
            )

        return _ENV_PATTERN.sub(replace_var, value)

    def _validate_config(self, config: Dict[str, Any]) -> None:
        """Validate the basic structure of the configuration.

        Raises:
            ConfigurationException: If the configuration is invalid
        """
        if not isinstance(config, dict):
            raise self._invalid("Configuration must be a dictionary")

        for section in ('ocpp', 'logging', 'schemas', 'registry', 'output', 'metrics'):
            if section in config and not isinstance(config[section], dict):
                raise self._invalid(f"'{section}' configuration must be a dictionary", section)

        if 'ocpp' in config:
            self._validate_ocpp_config(config['ocpp'])
        if 'logging' in config:
            self._validate_logging_config(config['logging'])
        if 'registry' in config:
            self._validate_registry_config(config['registry'])

    def _validate_ocpp_config(self, ocpp_config: Dict[str, Any]) -> None:
        from chargeflow.core.version import is_valid_protocol_version

        version = ocpp_config.get('version')
        if version is not None and not is_valid_protocol_version(version):
            raise self._invalid(f"Unsupported OCPP version: {version}", 'ocpp.version')

        response_type = ocpp_config.get('response_type')
        if response_type is not None and not isinstance(response_type, str):
            raise self._invalid("ocpp.response_type must be a string", 'ocpp.response_type')

    def _validate_logging_config(self, logging_config: Dict[str, Any]) -> None:
        if 'level' in logging_config:
            level = str(logging_config['level']).upper()
            if level not in VALID_LOG_LEVELS:
                raise self._invalid(f"Invalid log level: {level}", 'logging.level')

    def _validate_registry_config(self, registry_config: Dict[str, Any]) -> None:
        """Validate schema registry configuration.

        Args:
            registry_config: Registry configuration dictionary

        Raises:
            ConfigurationException: If the registry configuration is invalid
        """
        registry_type = registry_config.get('type', 'file')
        if registry_type not in VALID_REGISTRY_TYPES:
            raise self._invalid(f"Invalid registry type: {registry_type}", 'registry.type')

        if registry_type == 'remote' and not registry_config.get('url'):
            raise ConfigurationException(
                "A remote registry requires a url",
                config_key='registry.url',
                error_code=ErrorCodes.CONFIG_MISSING_REQUIRED
            )

        for key in ('timeout', 'cache_refresh'):
            if key in registry_config:
                value = registry_config[key]
                if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                    raise self._invalid(f"registry.{key} must be a positive number: {value}", f'registry.{key}')

        auth = registry_config.get('auth')
        if auth is not None and not isinstance(auth, dict):
            raise self._invalid("registry.auth must be a dictionary", 'registry.auth')

    @staticmethod
    def _invalid(message: str, config_key: str = None) -> ConfigurationException:
        return ConfigurationException(message, config_key=config_key, error_code=ErrorCodes.CONFIG_INVALID_VALUE)

    @classmethod
    def merge_configs(cls, *configs: Dict[str, Any]) -> Dict[str, Any]:
        """Merge multiple configuration dictionaries.

        Later configs override earlier ones for conflicting keys.

        Args:
            *configs: Configuration dictionaries to merge

        Returns:
            Merged configuration dictionary
        """
        merged = {}

        for config in configs:
            if not isinstance(config, dict):
                continue
            merged = cls._deep_merge(merged, config)

        return merged

    @staticmethod
    def _deep_merge(dict1: Dict[str, Any], dict2: Dict[str, Any]) -> Dict[str, Any]:
        result = dict1.copy()

        for key, value in dict2.items():
            if (key in result and
                    isinstance(result[key], dict) and
                    isinstance(value, dict)):
                result[key] = ConfigLoader._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    @classmethod
    def save_config(cls, config: Dict[str, Any], output_path: str) -> None:
        """Save configuration to a YAML file.

        Args:
            config: Configuration dictionary to save
            output_path: Path where to save the configuration
        """
        output_file = Path(output_path)
        output_file.parent.mkdir(parents=True, exist_ok=True)

        with open(output_file, 'w', encoding='utf-8') as f:
            yaml.safe_dump(config, f, default_flow_style=False, indent=2)

        setup_logger(__name__).info(f"Configuration saved to {output_path}")

    @classmethod
    def get_default_config(cls) -> Dict[str, Any]:
        """Get a default configuration template.

        Returns:
            Default configuration dictionary
        """
        return {
            "ocpp": {
                "version": "1.6",
                "response_type": None
            },
            "logging": {
                "level": "INFO",
                "file": None
            },
            "schemas": {
                "additional_dir": None
            },
            "registry": {
                "type": "file",
                "url": None,
                "timeout": 5.0,
                "cache_refresh": 600.0,
                "auth": {}
            },
            "output": {
                "path": None
            },
            "metrics": {
                "enabled": True
            }
        }
