"""
CryptoSense Configuration Manager

Loads the YAML configuration for the current environment, substitutes
``${VAR}`` references from the process environment and validates the
result against :class:`AppConfig`.
"""

import os
import re
from typing import Dict, Any, Optional
from pathlib import Path

import yaml
from pydantic import ValidationError

from .exceptions import ConfigValidationError
from .logging.structured_logger import get_logger
from .models.config_schema import AppConfig

logger = get_logger(__name__)

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")


def _substitute_env_vars(value: Any) -> Any:
    """Substitute environment variables in string values."""
    if isinstance(value, str):
        for var_name in _ENV_PATTERN.findall(value):
            value = value.replace(f"${{{var_name}}}", os.environ.get(var_name, ""))
        return value
    elif isinstance(value, dict):
        return {k: _substitute_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_substitute_env_vars(item) for item in value]
    return value


def _prune_empty(value: Any) -> Any:
    """Drop keys whose substituted value is an empty string so defaults apply."""
    if isinstance(value, dict):
        return {k: _prune_empty(v) for k, v in value.items() if v != ""}
    return value


class ConfigManager:
    """Configuration manager."""

    def __init__(self, config_path: Optional[str] = None, environment: Optional[str] = None):
        """
        Args:
            config_path: path to a YAML file
            environment: development, test, staging, production
        """
        self.environment = environment or os.getenv('CRYPTOSENSE_ENV', 'development')
        self.config_path = config_path or self._resolve_config_path()
        self.raw = self.load_raw()
        self.config = self.validate(self.raw)

        logger.info("Config manager initialized", {
            "environment": self.environment,
            "config_path": self.config_path
        })

    def _resolve_config_path(self) -> str:
        env_paths = {
            'development': 'config/default.yaml',
            'production': 'config/production.yaml',
            'staging': 'config/staging.yaml',
            'test': 'config/test.yaml'
        }
        return os.getenv('CRYPTOSENSE_CONFIG') or env_paths.get(self.environment, 'config/default.yaml')

    def load_raw(self) -> Dict[str, Any]:
        """Load the YAML mapping with environment substitution applied."""
        config_file = Path(self.config_path)
        if not config_file.exists():
            logger.warning("Config file not found, using defaults", {"path": self.config_path})
            raw: Dict[str, Any] = {}
        else:
            try:
                with open(config_file, 'r', encoding='utf-8') as f:
                    raw = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigValidationError(f"Invalid YAML in {self.config_path}: {e}") from e
            if not isinstance(raw, dict):
                raise ConfigValidationError(f"Top level of {self.config_path} must be a mapping")

        raw = _prune_empty(_substitute_env_vars(raw))
        raw.setdefault('environment', self.environment)

        database_url = os.getenv('DATABASE_URL')
        if database_url:
            raw.setdefault('database', {})['url'] = database_url
        log_level = os.getenv('LOG_LEVEL')
        if log_level:
            raw['log_level'] = log_level.upper()
        return raw

    @staticmethod
    def validate(raw: Dict[str, Any]) -> AppConfig:
        try:
            return AppConfig(**raw)
        except ValidationError as e:
            raise ConfigValidationError(str(e)) from e

    def get(self, key: str, default: Any = None) -> Any:
        """Dotted-key lookup on the raw configuration mapping."""
        value: Any = self.raw
        for k in key.split('.'):
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default
        return value if value is not None else default

    def reload(self) -> AppConfig:
        """Re-read the file; keeps the previous config when the new one is invalid."""
        try:
            raw = self.load_raw()
            self.config = self.validate(raw)
            self.raw = raw
            logger.info("Config reloaded", {"path": self.config_path})
        except ConfigValidationError as e:
            logger.error("Config reload rejected", {"path": self.config_path}, error=e)
        return self.config


def load_config(config_path: Optional[str] = None, environment: Optional[str] = None) -> AppConfig:
    """Shortcut returning the validated configuration."""
    return ConfigManager(config_path, environment).config
