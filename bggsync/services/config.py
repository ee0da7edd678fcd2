"""Configuration service for managing application settings."""

import json
import os
from collections.abc import Mapping
from dataclasses import replace
from pathlib import Path
from typing import Any

import structlog

from ..models import AppConfig
from .storage import write_json_atomic

log = structlog.stdlib.get_logger()

USERNAME_ENV = "BGGSYNC_USERNAME"
API_TOKEN_ENV = "BGGSYNC_API_TOKEN"

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ValidationResult:
    """Result of configuration validation."""

    def __init__(self, is_valid: bool, errors: list[str] | None = None) -> None:
        self.is_valid: bool = is_valid
        self.errors: list[str] = errors or []


class ConfigurationService:
    """Service for managing application configuration."""

    def __init__(self, config_path: Path | None = None) -> None:
        self.config_path: Path = config_path or Path.home() / ".config" / "bggsync" / "config.json"
        log.info("Configuration service initialized", config_path=str(self.config_path))

    def load_config(self, environ: Mapping[str, str] | None = None) -> AppConfig:
        """Load configuration from file or return default configuration.

        Environment overrides are applied on top of whatever was loaded.

        Args:
            environ: Environment to read overrides from (defaults to os.environ)
        """
        config = self._load_file()
        return self.apply_environment(config, os.environ if environ is None else environ)

    def save_config(self, config: AppConfig) -> None:
        """Save configuration to file.

        Raises:
            ValueError: If the configuration does not validate
            StorageError: If the file cannot be written
        """
        validation_result = self.validate_config(config)
        if not validation_result.is_valid:
            raise ValueError(f"Invalid configuration: {', '.join(validation_result.errors)}")

        write_json_atomic(self._config_to_dict(config), self.config_path)
        log.info("Configuration saved successfully", config_path=str(self.config_path))

    def validate_config(self, config: AppConfig) -> ValidationResult:
        """Validate configuration settings."""
        errors = []

        if not isinstance(config.cache_directory, Path):
            errors.append("cache_directory must be a Path object")
        elif not config.cache_directory.is_absolute():
            errors.append("cache_directory must be an absolute path")

        if not config.base_url.startswith(("http://", "https://")):
            errors.append("base_url must be an http or https URL")

        if not isinstance(config.max_attempts, int) or config.max_attempts < 1:
            errors.append("max_attempts must be a positive integer")

        for name in ("connect_timeout", "read_timeout"):
            value = getattr(config, name)
            if not isinstance(value, (int, float)) or value <= 0:
                errors.append(f"{name} must be a positive number")

        for name in ("initial_backoff", "max_backoff", "request_delay", "subfetch_delay", "page_delay"):
            value = getattr(config, name)
            if not isinstance(value, (int, float)) or value < 0:
                errors.append(f"{name} must be a non-negative number")
            elif value > 300:
                errors.append(f"{name} should not exceed 300 seconds")

        if not isinstance(config.backoff_multiplier, (int, float)) or config.backoff_multiplier < 1:
            errors.append("backoff_multiplier must be at least 1")

        if (
            isinstance(config.initial_backoff, (int, float))
            and isinstance(config.max_backoff, (int, float))
            and config.max_backoff < config.initial_backoff
        ):
            errors.append("max_backoff must not be smaller than initial_backoff")

        if config.log_level not in VALID_LOG_LEVELS:
            errors.append(f"log_level must be one of: {', '.join(VALID_LOG_LEVELS)}")

        return ValidationResult(len(errors) == 0, errors)

    @staticmethod
    def apply_environment(config: AppConfig, environ: Mapping[str, str]) -> AppConfig:
        """Override the username and API token from the environment when set."""
        overrides: dict[str, Any] = {}
        if environ.get(USERNAME_ENV, "").strip():
            overrides["username"] = environ[USERNAME_ENV].strip()
        if environ.get(API_TOKEN_ENV, "").strip():
            overrides["api_token"] = environ[API_TOKEN_ENV].strip()

        if overrides:
            log.debug("Applying environment overrides", settings=sorted(overrides))
            return replace(config, **overrides)
        return config

    def _load_file(self) -> AppConfig:
        if not self.config_path.exists():
            log.info("Configuration file not found, using defaults")
            return self._get_default_config()

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                data: dict[str, Any] = json.load(f)

            config = self._dict_to_config(data)
            validation_result = self.validate_config(config)

            if not validation_result.is_valid:
                log.warning("Invalid configuration loaded, using defaults", errors=validation_result.errors)
                return self._get_default_config()

            log.info("Configuration loaded successfully")
            return config

        except (OSError, json.JSONDecodeError, AttributeError, KeyError, TypeError, ValueError) as e:
            log.error("Failed to load configuration, using defaults", error=str(e))
            return self._get_default_config()

    def _get_default_config(self) -> AppConfig:
        """Get default configuration."""
        return AppConfig(cache_directory=Path.home() / ".cache" / "bggsync")

    def _config_to_dict(self, config: AppConfig) -> dict[str, Any]:
        """Convert AppConfig to dictionary for JSON serialization."""
        return {
            "cache_directory": str(config.cache_directory),
            "username": config.username,
            "base_url": config.base_url,
            "api_token": config.api_token,
            "connect_timeout": config.connect_timeout,
            "read_timeout": config.read_timeout,
            "max_attempts": config.max_attempts,
            "initial_backoff": config.initial_backoff,
            "backoff_multiplier": config.backoff_multiplier,
            "max_backoff": config.max_backoff,
            "request_delay": config.request_delay,
            "subfetch_delay": config.subfetch_delay,
            "page_delay": config.page_delay,
            "concurrent_subfetches": config.concurrent_subfetches,
            "log_level": config.log_level,
        }

    def _dict_to_config(self, data: dict[str, Any]) -> AppConfig:
        """Convert dictionary to AppConfig, falling back to defaults for missing keys."""
        defaults = self._get_default_config()

        def number(key: str) -> float:
            raw = data.get(key, getattr(defaults, key))
            return float(raw) if isinstance(raw, (int, float)) and not isinstance(raw, bool) else getattr(defaults, key)

        def optional_str(key: str) -> str | None:
            raw = data.get(key)
            return raw if isinstance(raw, str) and raw.strip() else None

        max_attempts_raw = data.get("max_attempts", defaults.max_attempts)
        concurrent_raw = data.get("concurrent_subfetches", defaults.concurrent_subfetches)

        return AppConfig(
            cache_directory=Path(str(data.get("cache_directory", defaults.cache_directory))).expanduser(),
            username=optional_str("username"),
            base_url=str(data.get("base_url", defaults.base_url)),
            api_token=optional_str("api_token"),
            connect_timeout=number("connect_timeout"),
            read_timeout=number("read_timeout"),
            max_attempts=max_attempts_raw if isinstance(max_attempts_raw, int) and not isinstance(max_attempts_raw, bool) else defaults.max_attempts,
            initial_backoff=number("initial_backoff"),
            backoff_multiplier=number("backoff_multiplier"),
            max_backoff=number("max_backoff"),
            request_delay=number("request_delay"),
            subfetch_delay=number("subfetch_delay"),
            page_delay=number("page_delay"),
            concurrent_subfetches=concurrent_raw if isinstance(concurrent_raw, bool) else defaults.concurrent_subfetches,
            log_level=str(data.get("log_level", defaults.log_level)).upper(),
        )
