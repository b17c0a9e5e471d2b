"""Configuration data models."""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class AppConfig:
    """Application configuration settings."""
    destination: Path
    database_path: Path
    games_directory: str = "Games"
    power_control_path: Path = Path("/dev/shm/power/control")
    log_level: str = "INFO"
    log_directory: Path | None = None  # Rotating log files; console only when unset
    generate_missing_sheets: bool = True  # Synthesize .cue sheets for lone .bin images

    @property
    def base_games_directory(self) -> Path:
        return self.destination / self.games_directory
