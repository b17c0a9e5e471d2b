"""Reconciliation engine keeping the catalog and the game directories in step.

Workflows:
- add_game: insert a game, move its files into place, record its discs
- update_games: upsert game metadata without touching files or discs
- delete_game: remove a game directory and its catalog row
- rebuild_database: regenerate the catalog from an authoritative title list
- get_games: list installed games, with files read from disk
- sync: ask the console to reboot and apply the changes

Calls must be serialized; nothing here is safe for concurrent use. Files are
moved before the disc rows that reference them are committed, so a crash can
leave the filesystem ahead of the catalog. rebuild_database and the
disk-first listing are the recovery paths for that state.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path, PurePath

import structlog

from ..models import Disc, FileReference, Game, Title
from .catalog import CatalogStore
from .filesystem import FileSystemService
from .layout import (
    assign_disc_numbers,
    find_sheet_files,
    game_directory,
    is_binary_image,
    plan_layout,
    sheet_name_for,
)
from .power import PowerSignal
from .relocator import FileRelocator

log = structlog.stdlib.get_logger()


@dataclass(frozen=True)
class InstallationReport:
    """Catalog ids compared against the game directories on disk."""
    installed: list[int] = field(default_factory=list)
    orphaned: list[int] = field(default_factory=list)  # Catalog row, no directory
    untracked: list[str] = field(default_factory=list)  # Directory, no catalog row


def reconcile_installed(catalog_ids: Iterable[int], directory_names: Iterable[str]) -> InstallationReport:
    """Partition catalog ids by whether their game directory exists.

    The directory on disk decides whether a game is installed; a catalog row
    alone is not enough.
    """
    directories = set(directory_names)
    installed: list[int] = []
    orphaned: list[int] = []
    known: set[str] = set()

    for game_id in catalog_ids:
        name = str(game_id)
        known.add(name)
        if name in directories:
            installed.append(game_id)
        else:
            orphaned.append(game_id)

    return InstallationReport(
        installed=installed,
        orphaned=orphaned,
        untracked=sorted(directories - known),
    )


def game_from_title(title: Title) -> Game:
    return Game(
        id=title.id,
        title=title.name,
        publisher=title.publisher,
        year=title.year,
        players=title.player_count,
        position=title.position,
    )


def discs_from_files(files: list[FileReference]) -> list[Disc]:
    """One disc per sheet file, numbered from 1 in supply order."""
    return [
        Disc(
            basename=PurePath(sheet.name).stem,
            disc_number=number,
            game_id=sheet.title_id,
        )
        for sheet, number in assign_disc_numbers(files)
    ]


def title_from_game(game: Game, files: list[Path]) -> Title:
    title = Title(
        id=game.id,
        name=game.title,
        sort_name=game.title,
        publisher=game.publisher,
        release_date=date(game.year, 1, 1) if game.year > 0 else None,
        players=game.players,
        position=game.position,
    )
    title.files = [
        FileReference(name=path.name, path=path.absolute(), title_id=game.id)
        for path in files
    ]
    return title


class GameManagerService:
    """Imports, updates, deletes and lists games on the console storage."""

    def __init__(
        self,
        catalog: CatalogStore,
        base_games_directory: Path,
        relocator: FileRelocator | None = None,
        filesystem: FileSystemService | None = None,
        power_signal: PowerSignal | None = None,
        generate_missing_sheets: bool = True,
    ) -> None:
        """Initialize the game manager.

        Args:
            catalog: Catalog store holding games and discs
            base_games_directory: Directory containing one directory per game id
            relocator: File relocator (defaults to automatic move strategy)
            filesystem: File system service
            power_signal: Reboot signal used by sync()
            generate_missing_sheets: Write a cue sheet for binary images
                imported without one
        """
        self.catalog = catalog
        self.base_games_directory = base_games_directory
        self.filesystem = filesystem or FileSystemService()
        self.relocator = relocator or FileRelocator(filesystem=self.filesystem)
        self.power_signal = power_signal or PowerSignal(filesystem=self.filesystem)
        self.generate_missing_sheets = generate_missing_sheets
        log.info("Game manager initialized", base_games_directory=str(base_games_directory))

    def add_game(self, title: Title) -> Game:
        """Import a new title: catalog row first, then its files and discs.

        Raises:
            PersistenceError: If the catalog rejects the game or its discs
            FileSystemError: If the game directory cannot be created or a
                file cannot be moved; the game row is already committed
        """
        game = game_from_title(title)
        self.catalog.add_game(game)
        self.catalog.commit()
        log.info("Game added", game_id=game.id, title=game.title, file_count=len(title.files))

        if title.files:
            directory = game_directory(self.base_games_directory, game.id)
            self.filesystem.ensure_directory(directory)
            game.discs = self._import_files(game.id, title.files)

        return game

    def _import_files(self, game_id: int, files: list[FileReference]) -> list[Disc]:
        images = self._images_missing_sheets(files)
        directory = game_directory(self.base_games_directory, game_id)
        # Sheets not written yet still decide the base name of the cover
        pending_sheets = [
            FileReference(name=sheet_name_for(image.name), path=directory / sheet_name_for(image.name), title_id=game_id)
            for image in images
        ]

        plan = plan_layout(game_id, files + pending_sheets, self.base_games_directory)

        for file, destination in plan.destinations[:len(files)]:
            self.relocator.relocate(file, destination)

        if plan.cover_file is not None and plan.cover_name is not None:
            self.relocator.relocate(plan.cover_file, plan.directory / plan.cover_name)

        # Images are in the game directory now, so their sheets land there too
        files.extend(self.relocator.create_cue_sheet(image) for image in images)

        discs = discs_from_files(files)
        self.catalog.add_discs(discs)
        self.catalog.commit()

        log.info(
            "Game files imported",
            game_id=game_id,
            directory=str(plan.directory),
            file_count=len(files),
            disc_count=len(discs),
            sheets_created=len(images),
            base_name=plan.base_name,
        )
        return discs

    def _images_missing_sheets(self, files: list[FileReference]) -> list[FileReference]:
        """Binary images of a title that ships no sheet file."""
        if not self.generate_missing_sheets or find_sheet_files(files):
            return []

        return [f for f in files if is_binary_image(f.name)]

    def update_game(self, title: Title) -> None:
        self.update_games([title])

    def update_games(self, titles: Iterable[Title]) -> None:
        """Insert or update game metadata, committing once for the whole set.

        Files and discs are left alone.
        """
        added = updated = 0

        for title in titles:
            game = self.catalog.find_game(title.id)

            if game is None:
                self.catalog.add_game(game_from_title(title))
                added += 1
                continue

            game.title = title.name
            game.publisher = title.publisher
            game.year = title.year
            game.players = title.player_count
            game.position = title.position
            self.catalog.update_game(game)
            updated += 1

        self.catalog.commit()
        log.info("Games updated", added=added, updated=updated)

    def delete_game(self, game_id: int) -> None:
        """Remove a game's directory, then its catalog row.

        Raises:
            GameNotFoundError: If the catalog has no row for the id; the
                directory has already been removed at that point
            FileSystemError: If the directory cannot be removed
        """
        directory = game_directory(self.base_games_directory, game_id)
        self.filesystem.remove_directory(directory)

        game = self.catalog.get_game(game_id)
        self.catalog.remove_game(game)
        self.catalog.commit()
        log.info("Game deleted", game_id=game_id, title=game.title)

    def rebuild_database(self, titles: Iterable[Title]) -> int:
        """Wipe the catalog and regenerate it from an authoritative title list.

        Files are assumed to be in place already; none are moved, created or
        removed. Commits once per title.

        Returns:
            Number of games written
        """
        self.catalog.recreate()

        count = 0
        for title in titles:
            self.catalog.add_game(game_from_title(title))
            if title.files:
                self.catalog.add_discs(discs_from_files(title.files))
            self.catalog.commit()
            count += 1

        log.info("Catalog rebuilt", game_count=count)
        return count

    def check_installation(self) -> InstallationReport:
        """Compare catalog rows against the game directories on disk."""
        games = self.catalog.list_games()
        return reconcile_installed(
            (g.id for g in games),
            self.filesystem.list_directory_names(self.base_games_directory),
        )

    def get_games(self) -> list[Title]:
        """Installed games, with file lists read from their directories.

        Games whose directory is missing are left out even though their
        catalog row still exists.
        """
        games = self.catalog.list_games()
        report = reconcile_installed(
            (g.id for g in games),
            self.filesystem.list_directory_names(self.base_games_directory),
        )

        if report.orphaned:
            log.warning("Catalog games without a directory", game_ids=report.orphaned)
        if report.untracked:
            log.info("Game directories without a catalog entry", directories=report.untracked)

        installed = set(report.installed)
        titles = []
        for game in games:
            if game.id not in installed:
                continue
            files = self.filesystem.list_files(game_directory(self.base_games_directory, game.id))
            titles.append(title_from_game(game, files))

        log.debug("Games listed", count=len(titles))
        return titles

    def sync(self) -> None:
        """Signal that changes should be applied on next boot."""
        self.power_signal.request_reboot()
