"""SQLite catalog of games and discs read by the console's boot menu.

Mutations are staged in the open transaction and only become durable on
commit(); a failed commit rolls the transaction back and raises
PersistenceError. Files already moved by the caller stay where they are.
"""

import sqlite3
from pathlib import Path
from typing import Any

import structlog

from ..models import Disc, Game
from .errors import GameNotFoundError, PersistenceError

log = structlog.stdlib.get_logger()

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS games (
    id INTEGER PRIMARY KEY,
    title TEXT NOT NULL,
    publisher TEXT NOT NULL DEFAULT '',
    year INTEGER NOT NULL DEFAULT 0,
    players INTEGER NOT NULL DEFAULT 0,
    position INTEGER NOT NULL DEFAULT 0,
    memory_card_block_count INTEGER NOT NULL DEFAULT 0,
    multitap_compatible INTEGER NOT NULL DEFAULT 0,
    link_cable_compatible INTEGER NOT NULL DEFAULT 0,
    vibration_compatible INTEGER NOT NULL DEFAULT 0,
    analog_compatible INTEGER NOT NULL DEFAULT 0,
    digital_compatible INTEGER NOT NULL DEFAULT 0,
    light_gun_compatible INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS discs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    game_id INTEGER NOT NULL REFERENCES games(id) ON DELETE CASCADE,
    basename TEXT NOT NULL,
    disc_number INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_discs_game_id ON discs(game_id);
"""

DROP_SQL = """
DROP TABLE IF EXISTS discs;
DROP TABLE IF EXISTS games;
"""

GAME_COLUMNS = (
    "id",
    "title",
    "publisher",
    "year",
    "players",
    "position",
    "memory_card_block_count",
    "multitap_compatible",
    "link_cable_compatible",
    "vibration_compatible",
    "analog_compatible",
    "digital_compatible",
    "light_gun_compatible",
)

_BOOL_COLUMNS = frozenset(c for c in GAME_COLUMNS if c.endswith("_compatible"))


class CatalogStore:
    """Persistent record set for games and their discs."""

    def __init__(self, db_path: Path) -> None:
        """Open (and create if needed) the catalog database.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            self.conn = sqlite3.connect(str(db_path))
            self.conn.row_factory = sqlite3.Row
            self.conn.execute("PRAGMA foreign_keys = ON")
            self.conn.executescript(SCHEMA_SQL)
        except sqlite3.Error as e:
            log.error("Failed to open catalog", db_path=str(db_path), error=str(e))
            raise PersistenceError(f"Could not open catalog {db_path}", original_error=e) from e

        log.info("Catalog store opened", db_path=str(db_path))

    def __enter__(self) -> "CatalogStore":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self.conn.close()

    def _execute(self, sql: str, params: tuple[Any, ...] = ()) -> sqlite3.Cursor:
        try:
            return self.conn.execute(sql, params)
        except sqlite3.Error as e:
            log.error("Catalog statement failed", statement=sql.split("(")[0].strip(), error=str(e))
            self.conn.rollback()
            raise PersistenceError("The catalog rejected a change", original_error=e, statement=sql) from e

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def recreate(self) -> None:
        """Drop every table and create the schema again, empty."""
        try:
            self.conn.rollback()
            self.conn.executescript(DROP_SQL + SCHEMA_SQL)
        except sqlite3.Error as e:
            log.error("Failed to recreate catalog", error=str(e))
            raise PersistenceError("Could not recreate the catalog", original_error=e) from e

        log.warning("Catalog wiped and recreated", db_path=str(self.db_path))

    # ------------------------------------------------------------------
    # Games
    # ------------------------------------------------------------------

    def find_game(self, game_id: int) -> Game | None:
        """Look up a game and its discs; None if it is not in the catalog."""
        row = self._execute("SELECT * FROM games WHERE id = ?", (game_id,)).fetchone()
        if row is None:
            return None

        game = self._row_to_game(row)
        game.discs = self.list_discs(game_id)
        return game

    def get_game(self, game_id: int) -> Game:
        """Look up a game that must exist.

        Raises:
            GameNotFoundError: If there is no game with this id
        """
        game = self.find_game(game_id)
        if game is None:
            raise GameNotFoundError(game_id)
        return game

    def list_games(self) -> list[Game]:
        """All games in menu order, each with its discs."""
        rows = self._execute("SELECT * FROM games ORDER BY position, id").fetchall()
        discs_by_game: dict[int, list[Disc]] = {}
        for disc in self.list_discs():
            discs_by_game.setdefault(disc.game_id, []).append(disc)

        games = []
        for row in rows:
            game = self._row_to_game(row)
            game.discs = discs_by_game.get(game.id, [])
            games.append(game)
        return games

    def add_game(self, game: Game) -> None:
        placeholders = ", ".join("?" for _ in GAME_COLUMNS)
        self._execute(
            f"INSERT INTO games ({', '.join(GAME_COLUMNS)}) VALUES ({placeholders})",
            self._game_values(game),
        )
        log.debug("Game staged for insert", game_id=game.id, title=game.title)

    def update_game(self, game: Game) -> None:
        assignments = ", ".join(f"{c} = ?" for c in GAME_COLUMNS[1:])
        cursor = self._execute(
            f"UPDATE games SET {assignments} WHERE id = ?",
            self._game_values(game)[1:] + (game.id,),
        )
        if cursor.rowcount == 0:
            raise GameNotFoundError(game.id, operation="update")
        log.debug("Game staged for update", game_id=game.id, title=game.title)

    def remove_game(self, game: Game) -> None:
        """Delete a game; its discs go with it."""
        cursor = self._execute("DELETE FROM games WHERE id = ?", (game.id,))
        if cursor.rowcount == 0:
            raise GameNotFoundError(game.id, operation="delete")
        log.debug("Game staged for delete", game_id=game.id)

    # ------------------------------------------------------------------
    # Discs
    # ------------------------------------------------------------------

    def add_discs(self, discs: list[Disc]) -> None:
        for disc in discs:
            cursor = self._execute(
                "INSERT INTO discs (game_id, basename, disc_number) VALUES (?, ?, ?)",
                (disc.game_id, disc.basename, disc.disc_number),
            )
            disc.id = cursor.lastrowid
        log.debug("Discs staged for insert", count=len(discs))

    def list_discs(self, game_id: int | None = None) -> list[Disc]:
        if game_id is None:
            rows = self._execute("SELECT * FROM discs ORDER BY game_id, disc_number").fetchall()
        else:
            rows = self._execute(
                "SELECT * FROM discs WHERE game_id = ? ORDER BY disc_number",
                (game_id,),
            ).fetchall()

        return [
            Disc(
                basename=row["basename"],
                disc_number=row["disc_number"],
                game_id=row["game_id"],
                id=row["id"],
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def commit(self) -> None:
        """Make all staged changes durable.

        Raises:
            PersistenceError: If the commit fails; staged changes are discarded
        """
        try:
            self.conn.commit()
        except sqlite3.Error as e:
            log.error("Catalog commit failed", error=str(e))
            self.conn.rollback()
            raise PersistenceError("The catalog could not save changes", original_error=e) from e

    def rollback(self) -> None:
        self.conn.rollback()

    @staticmethod
    def _game_values(game: Game) -> tuple[Any, ...]:
        return tuple(
            int(getattr(game, c)) if c in _BOOL_COLUMNS else getattr(game, c)
            for c in GAME_COLUMNS
        )

    @staticmethod
    def _row_to_game(row: sqlite3.Row) -> Game:
        data = {c: (bool(row[c]) if c in _BOOL_COLUMNS else row[c]) for c in GAME_COLUMNS}
        return Game(**data)
