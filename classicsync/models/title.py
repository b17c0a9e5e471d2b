"""Transient import records supplied by the import collaborator."""

from dataclasses import dataclass, field
from datetime import date
from pathlib import Path


@dataclass
class FileReference:
    """A loose file belonging to a title.

    Mutated in place once the file has been relocated.
    """
    name: str
    path: Path
    title_id: int


@dataclass
class Title:
    """Core title description handed in for import, update or rebuild."""
    id: int
    name: str
    sort_name: str = ""
    publisher: str = ""
    release_date: date | None = None
    players: int | None = None
    position: int = 0
    files: list[FileReference] = field(default_factory=list)

    @property
    def year(self) -> int:
        """Release year, or 0 when no release date is known."""
        return self.release_date.year if self.release_date else 0

    @property
    def player_count(self) -> int:
        return self.players if self.players is not None else 0
