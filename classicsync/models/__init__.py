"""Data models for the game library reconciliation engine."""

from .catalog import Disc, Game
from .config import AppConfig
from .title import FileReference, Title

__all__ = [
    "AppConfig",
    "Disc",
    "FileReference",
    "Game",
    "Title",
]
