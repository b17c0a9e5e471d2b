"""Configuration service for managing application settings."""

import json
from pathlib import Path

import structlog

from ..models import AppConfig
from .errors import ConfigurationError

log = structlog.stdlib.get_logger()

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ValidationResult:
    """Result of configuration validation."""

    def __init__(self, is_valid: bool, errors: list[str] | None = None) -> None:
        self.is_valid: bool = is_valid
        self.errors: list[str] = errors or []


class ConfigurationService:
    """Service for managing application configuration."""

    def __init__(self, config_path: Path | None = None) -> None:
        self.config_path: Path = config_path or Path.home() / ".config" / "classicsync" / "config.json"
        log.debug("Configuration service initialized", config_path=str(self.config_path))

    def load_config(self) -> AppConfig:
        """Load configuration from file or return default configuration."""
        if not self.config_path.exists():
            log.info("Configuration file not found, using defaults")
            return self._get_default_config()

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                data: dict[str, str | bool | None] = json.load(f)

            config = self._dict_to_config(data)
            validation_result = self.validate_config(config)

            if not validation_result.is_valid:
                log.warning("Invalid configuration loaded, using defaults", errors=validation_result.errors)
                return self._get_default_config()

            log.info("Configuration loaded successfully")
            return config

        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            log.error("Failed to load configuration, using defaults", error=str(e))
            return self._get_default_config()

    def save_config(self, config: AppConfig) -> None:
        """Save configuration to file.

        Raises:
            ConfigurationError: If the configuration is invalid
            OSError: If the file cannot be written
        """
        validation_result = self.validate_config(config)
        if not validation_result.is_valid:
            raise ConfigurationError(
                f"Invalid configuration: {', '.join(validation_result.errors)}",
                setting=str(self.config_path),
            )

        self.config_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            with open(self.config_path, 'w', encoding='utf-8') as f:
                json.dump(self._config_to_dict(config), f, indent=2, ensure_ascii=False)

            log.info("Configuration saved successfully")

        except OSError as e:
            log.error("Failed to save configuration", error=str(e))
            raise

    def validate_config(self, config: AppConfig) -> ValidationResult:
        """Validate configuration settings."""
        errors = []

        for name in ("destination", "database_path", "power_control_path"):
            value = getattr(config, name)
            if not isinstance(value, Path):
                errors.append(f"{name} must be a Path object")
            elif not value.is_absolute():
                errors.append(f"{name} must be an absolute path")

        if config.log_directory is not None and (
            not isinstance(config.log_directory, Path) or not config.log_directory.is_absolute()
        ):
            errors.append("log_directory must be an absolute path")

        if not isinstance(config.games_directory, str) or not config.games_directory.strip():
            errors.append("games_directory cannot be empty")
        elif "/" in config.games_directory or "\\" in config.games_directory or config.games_directory in (".", ".."):
            errors.append("games_directory must be a single directory name")

        if config.log_level not in VALID_LOG_LEVELS:
            errors.append(f"log_level must be one of: {', '.join(VALID_LOG_LEVELS)}")

        if not isinstance(config.generate_missing_sheets, bool):
            errors.append("generate_missing_sheets must be true or false")

        return ValidationResult(len(errors) == 0, errors)

    def _get_default_config(self) -> AppConfig:
        """Get default configuration (console storage mounted at /media)."""
        return AppConfig(
            destination=Path("/media"),
            database_path=Path("/media/System/Databases/regional.db"),
        )

    def _config_to_dict(self, config: AppConfig) -> dict[str, str | bool | None]:
        """Convert AppConfig to dictionary for JSON serialization."""
        return {
            "destination": str(config.destination),
            "games_directory": config.games_directory,
            "database_path": str(config.database_path),
            "power_control_path": str(config.power_control_path),
            "log_level": config.log_level,
            "log_directory": str(config.log_directory) if config.log_directory else None,
            "generate_missing_sheets": config.generate_missing_sheets,
        }

    def _dict_to_config(self, data: dict[str, str | bool | None]) -> AppConfig:
        """Convert dictionary to AppConfig; missing optional keys take defaults."""
        defaults = self._get_default_config()

        generate_raw = data.get("generate_missing_sheets", defaults.generate_missing_sheets)
        generate_missing_sheets = generate_raw if isinstance(generate_raw, bool) else defaults.generate_missing_sheets

        return AppConfig(
            destination=Path(str(data["destination"])),
            database_path=Path(str(data["database_path"])),
            games_directory=str(data.get("games_directory") or defaults.games_directory),
            power_control_path=Path(str(data.get("power_control_path") or defaults.power_control_path)),
            log_level=str(data["log_level"]) if isinstance(data.get("log_level"), str) else defaults.log_level,
            log_directory=Path(str(data["log_directory"])) if data.get("log_directory") else None,
            generate_missing_sheets=generate_missing_sheets,
        )
