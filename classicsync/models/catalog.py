"""Persistent catalog records."""

from dataclasses import dataclass, field


@dataclass
class Disc:
    """One disc of a game, backed by a sheet file in the game directory."""
    basename: str
    disc_number: int
    game_id: int
    id: int | None = None  # Assigned by the store on insert


@dataclass
class Game:
    """Catalog entry for one game and its discs."""
    id: int
    title: str
    publisher: str = ""
    year: int = 0
    players: int = 0
    position: int = 0
    # Console capability flags
    memory_card_block_count: int = 0
    multitap_compatible: bool = False
    link_cable_compatible: bool = False
    vibration_compatible: bool = False
    analog_compatible: bool = False
    digital_compatible: bool = False
    light_gun_compatible: bool = False
    discs: list[Disc] = field(default_factory=list)
