"""Tests for the reconciliation engine."""

import tempfile
from datetime import date
from pathlib import Path

import pytest
from hypothesis import given, settings, strategies as st

from classicsync.models import Disc, FileReference, Game, Title
from classicsync.services.catalog import CatalogStore
from classicsync.services.errors import GameNotFoundError, RelocationError
from classicsync.services.game_manager import (
    GameManagerService,
    discs_from_files,
    game_from_title,
    reconcile_installed,
)
from classicsync.services.power import PowerSignal


def stage(directory: Path, name: str, content: bytes = b"data") -> FileReference:
    """Create a staged file and return a reference owned by title 7."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_bytes(content)
    return FileReference(name=name, path=path, title_id=7)


def tree(directory: Path) -> list[str]:
    return sorted(p.name for p in directory.iterdir())


class Library:
    """A catalog plus a games directory under a temporary root."""

    def __init__(self, root: Path, generate_missing_sheets: bool = True) -> None:
        self.root = root
        self.staging = root / "staging"
        self.games = root / "Games"
        self.catalog = CatalogStore(root / "regional.db")
        self.manager = GameManagerService(
            catalog=self.catalog,
            base_games_directory=self.games,
            power_signal=PowerSignal(root / "power" / "control"),
            generate_missing_sheets=generate_missing_sheets,
        )

    def close(self) -> None:
        self.catalog.close()


@pytest.fixture
def library(tmp_path: Path):
    lib = Library(tmp_path)
    yield lib
    lib.close()


class TestAddGame:
    """Tests for importing titles."""

    def test_import_scenario_single_disc_with_cover(self, library: Library) -> None:
        files = [
            stage(library.staging, "game.bin"),
            stage(library.staging, "game.cue"),
            stage(library.staging, "cover.png"),
        ]
        title = Title(id=7, name="Game", publisher="Pub", release_date=date(1997, 9, 29), players=2, files=files)

        library.manager.add_game(title)

        game_dir = library.games / "7"
        assert tree(game_dir) == ["game.bin", "game.cue", "game.png"]
        assert library.catalog.list_discs() == [Disc(basename="game", disc_number=1, game_id=7, id=1)]
        assert tree(library.staging) == []

    def test_import_derives_catalog_fields(self, library: Library) -> None:
        library.manager.add_game(Title(id=1, name="Dated", release_date=date(1995, 12, 3), players=4))
        library.manager.add_game(Title(id=2, name="Undated"))

        dated = library.catalog.get_game(1)
        undated = library.catalog.get_game(2)

        assert (dated.year, dated.players) == (1995, 4)
        assert (undated.year, undated.players) == (0, 0)

    def test_import_without_files_creates_no_directory(self, library: Library) -> None:
        library.manager.add_game(Title(id=3, name="Metadata only"))

        assert not (library.games / "3").exists()
        assert library.catalog.get_game(3).title == "Metadata only"

    def test_file_references_updated_in_place(self, library: Library) -> None:
        files = [stage(library.staging, "Game.CUE"), stage(library.staging, "Game.BIN")]

        library.manager.add_game(Title(id=7, name="Game", files=files))

        assert [f.name for f in files] == ["Game.cue", "Game.BIN"]
        assert all(f.path.parent == (library.games / "7").absolute() for f in files)
        assert all(f.path.exists() for f in files)

    def test_multi_disc_numbering_follows_supply_order(self, library: Library) -> None:
        files = [
            stage(library.staging, "Game (Disc 2).bin"),
            stage(library.staging, "Game (Disc 2).cue"),
            stage(library.staging, "Game (Disc 1).bin"),
            stage(library.staging, "Game (Disc 1).cue"),
        ]

        game = library.manager.add_game(Title(id=7, name="Game", files=files))

        assert [(d.basename, d.disc_number) for d in game.discs] == [
            ("Game (Disc 2)", 1),
            ("Game (Disc 1)", 2),
        ]
        assert [(d.basename, d.disc_number) for d in library.catalog.get_game(7).discs] == [
            ("Game (Disc 2)", 1),
            ("Game (Disc 1)", 2),
        ]

    def test_missing_sheet_is_generated(self, library: Library) -> None:
        files = [stage(library.staging, "Game.bin"), stage(library.staging, "cover.png")]

        library.manager.add_game(Title(id=7, name="Game", files=files))

        game_dir = library.games / "7"
        assert tree(game_dir) == ["Game.bin", "Game.cue", "Game.png"]
        assert 'FILE "Game.bin" BINARY' in (game_dir / "Game.cue").read_text(encoding="utf-8")
        assert [(d.basename, d.disc_number) for d in library.catalog.list_discs()] == [("Game", 1)]

    def test_generated_sheet_names_the_declared_image(self, library: Library) -> None:
        library.staging.mkdir(parents=True)
        upload = library.staging / "upload-123.tmp"
        upload.write_bytes(b"data")
        files = [FileReference(name="Game.bin", path=upload, title_id=7)]

        library.manager.add_game(Title(id=7, name="Game", files=files))

        game_dir = library.games / "7"
        assert tree(game_dir) == ["Game.bin", "Game.cue"]
        assert 'FILE "Game.bin" BINARY' in (game_dir / "Game.cue").read_text(encoding="utf-8")

    def test_generated_sheet_is_written_in_game_directory(self, library: Library) -> None:
        files = [stage(library.staging, "Game.bin")]

        library.manager.add_game(Title(id=7, name="Game", files=files))

        assert tree(library.staging) == []
        assert files[1].path == (library.games / "7" / "Game.cue").absolute()

    def test_import_can_be_retried_after_failed_move(self, library: Library) -> None:
        def title() -> Title:
            return Title(id=7, name="Game", files=[
                stage(library.staging, "Game.bin"),
                FileReference(name="cover.png", path=library.staging / "missing.png", title_id=7),
            ])

        with pytest.raises(RelocationError):
            library.manager.add_game(title())

        assert tree(library.staging) == []

        library.manager.delete_game(7)
        retry = title()
        retry.files[1].path.write_bytes(b"png")

        library.manager.add_game(retry)

        assert tree(library.games / "7") == ["Game.bin", "Game.cue", "Game.png"]
        assert [(d.basename, d.disc_number) for d in library.catalog.list_discs()] == [("Game", 1)]

    def test_cover_listed_first_takes_generated_sheet_name(self, library: Library) -> None:
        files = [stage(library.staging, "cover.png"), stage(library.staging, "Game.bin")]

        library.manager.add_game(Title(id=7, name="Game", files=files))

        assert tree(library.games / "7") == ["Game.bin", "Game.cue", "Game.png"]

    def test_sheet_generation_can_be_disabled(self, tmp_path: Path) -> None:
        lib = Library(tmp_path, generate_missing_sheets=False)
        try:
            lib.manager.add_game(Title(id=7, name="Game", files=[stage(lib.staging, "Game.bin")]))

            assert tree(lib.games / "7") == ["Game.bin"]
            assert lib.catalog.list_discs() == []
        finally:
            lib.close()

    def test_container_image_gets_no_sheet(self, library: Library) -> None:
        library.manager.add_game(Title(id=7, name="Game", files=[stage(library.staging, "game.PBP")]))

        assert tree(library.games / "7") == ["game.pbp"]
        assert library.catalog.list_discs() == []

    def test_relocation_failure_is_fatal(self, library: Library) -> None:
        missing = FileReference(name="game.cue", path=library.staging / "game.cue", title_id=7)

        with pytest.raises(RelocationError):
            library.manager.add_game(Title(id=7, name="Game", files=[missing]))

        # The game row is committed before files move; no discs were recorded
        assert library.catalog.get_game(7).discs == []

    @given(st.integers(min_value=1, max_value=6))
    @settings(max_examples=10, deadline=None)
    def test_n_sheets_produce_discs_one_to_n(self, disc_count: int) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            lib = Library(Path(temp_dir))
            try:
                files = []
                for n in range(disc_count, 0, -1):
                    files.append(stage(lib.staging, f"disc{n}.bin"))
                    files.append(stage(lib.staging, f"disc{n}.cue"))

                lib.manager.add_game(Title(id=7, name="Game", files=files))

                discs = lib.catalog.get_game(7).discs
                assert [d.disc_number for d in discs] == list(range(1, disc_count + 1))
                assert [d.basename for d in discs] == [f"disc{n}" for n in range(disc_count, 0, -1)]
            finally:
                lib.close()


class TestUpdateGames:
    """Tests for metadata updates."""

    def test_update_inserts_and_updates(self, library: Library) -> None:
        library.manager.add_game(Title(id=1, name="Old", publisher="A"))

        library.manager.update_games([
            Title(id=1, name="New", publisher="B", release_date=date(2000, 1, 1), players=2, position=5),
            Title(id=2, name="Added"),
        ])

        updated = library.catalog.get_game(1)
        assert (updated.title, updated.publisher, updated.year, updated.players, updated.position) == (
            "New", "B", 2000, 2, 5,
        )
        assert library.catalog.get_game(2).title == "Added"

    def test_update_leaves_files_and_discs_alone(self, library: Library) -> None:
        files = [stage(library.staging, "game.bin"), stage(library.staging, "game.cue")]
        library.manager.add_game(Title(id=7, name="Game", files=files))

        library.manager.update_game(Title(id=7, name="Renamed", files=[]))

        assert tree(library.games / "7") == ["game.bin", "game.cue"]
        assert [d.basename for d in library.catalog.get_game(7).discs] == ["game"]
        assert library.catalog.get_game(7).title == "Renamed"


class TestDeleteGame:
    """Tests for deleting games."""

    def test_delete_scenario(self, library: Library) -> None:
        files = [stage(library.staging, "game.bin"), stage(library.staging, "game.cue")]
        library.manager.add_game(Title(id=7, name="Game", files=files))

        library.manager.delete_game(7)

        assert not (library.games / "7").exists()
        assert library.catalog.find_game(7) is None
        assert library.catalog.list_discs() == []
        assert 7 not in [t.id for t in library.manager.get_games()]

    def test_delete_without_directory(self, library: Library) -> None:
        library.manager.add_game(Title(id=3, name="Metadata only"))

        library.manager.delete_game(3)

        assert library.catalog.find_game(3) is None

    def test_delete_unknown_game_raises_not_found(self, library: Library) -> None:
        stray = library.games / "9"
        stray.mkdir(parents=True)

        with pytest.raises(GameNotFoundError):
            library.manager.delete_game(9)

        assert not stray.exists()


class TestRebuildDatabase:
    """Tests for catalog-only recovery."""

    def test_rebuild_scenario_without_files(self, library: Library) -> None:
        library.manager.add_game(Title(id=99, name="Stale"))

        count = library.manager.rebuild_database([Title(id=1, name="One"), Title(id=2, name="Two")])

        assert count == 2
        assert [g.id for g in library.catalog.list_games()] == [1, 2]
        assert library.catalog.list_discs() == []

    def test_rebuild_matches_import_without_touching_files(self, library: Library) -> None:
        def title() -> Title:
            files = [
                FileReference(name="a.bin", path=library.games / "7" / "a.bin", title_id=7),
                FileReference(name="a.cue", path=library.games / "7" / "a.cue", title_id=7),
                FileReference(name="b.cue", path=library.games / "7" / "b.cue", title_id=7),
            ]
            return Title(id=7, name="Game", publisher="Pub", release_date=date(1999, 5, 1), players=1, files=files)

        game_dir = library.games / "7"
        game_dir.mkdir(parents=True)
        for name in ("a.bin", "a.cue", "b.cue"):
            (game_dir / name).write_bytes(b"placed")

        library.manager.rebuild_database([title()])

        expected = game_from_title(title())
        stored = library.catalog.get_game(7)
        assert [(d.basename, d.disc_number, d.game_id) for d in stored.discs] == [
            (d.basename, d.disc_number, d.game_id) for d in discs_from_files(title().files)
        ]
        stored.discs = []
        assert stored == expected
        assert tree(game_dir) == ["a.bin", "a.cue", "b.cue"]

    def test_rebuild_never_generates_sheets(self, library: Library) -> None:
        image = FileReference(name="game.bin", path=library.games / "7" / "game.bin", title_id=7)

        library.manager.rebuild_database([Title(id=7, name="Game", files=[image])])

        assert library.catalog.list_discs() == []
        assert not (library.games / "7").exists()


class TestGetGames:
    """Tests for listing installed games."""

    def test_listing_reads_files_from_disk(self, library: Library) -> None:
        files = [stage(library.staging, "game.bin"), stage(library.staging, "game.cue")]
        library.manager.add_game(Title(id=7, name="Game", release_date=date(1998, 6, 1), players=2, files=files))
        (library.games / "7" / "extra.txt").write_text("added later")

        titles = library.manager.get_games()

        assert len(titles) == 1
        title = titles[0]
        assert (title.id, title.name, title.sort_name, title.release_date, title.players) == (
            7, "Game", "Game", date(1998, 1, 1), 2,
        )
        assert [f.name for f in title.files] == ["extra.txt", "game.bin", "game.cue"]
        assert all(f.title_id == 7 for f in title.files)

    def test_listing_hides_games_without_directory(self, library: Library) -> None:
        library.manager.add_game(Title(id=1, name="Installed", files=[stage(library.staging, "a.cue")]))
        library.manager.add_game(Title(id=2, name="Orphaned"))

        assert [t.id for t in library.manager.get_games()] == [1]
        assert library.catalog.find_game(2) is not None

    def test_listing_picks_up_directory_that_reappears(self, library: Library) -> None:
        library.manager.add_game(Title(id=2, name="Orphaned"))
        (library.games / "2").mkdir(parents=True)

        titles = library.manager.get_games()

        assert [t.id for t in titles] == [2]
        assert titles[0].files == []
        assert titles[0].release_date is None

    def test_check_installation_reports_all_sides(self, library: Library) -> None:
        library.manager.add_game(Title(id=1, name="Installed", files=[stage(library.staging, "a.cue")]))
        library.manager.add_game(Title(id=2, name="Orphaned"))
        (library.games / "55").mkdir()

        report = library.manager.check_installation()

        assert report.installed == [1]
        assert report.orphaned == [2]
        assert report.untracked == ["55"]


class TestReconcileInstalled:
    """Tests for the catalog/directory comparison."""

    def test_partitions_ids(self) -> None:
        report = reconcile_installed([1, 2, 3], {"1", "3", "extra"})

        assert report.installed == [1, 3]
        assert report.orphaned == [2]
        assert report.untracked == ["extra"]

    @given(
        st.sets(st.integers(min_value=1, max_value=500)),
        st.sets(st.integers(min_value=1, max_value=500)),
    )
    def test_installed_ids_always_have_directories(self, catalog_ids: set[int], present: set[int]) -> None:
        report = reconcile_installed(sorted(catalog_ids), {str(i) for i in present})

        assert set(report.installed) == catalog_ids & present
        assert set(report.orphaned) == catalog_ids - present
        assert set(report.untracked) == {str(i) for i in present - catalog_ids}


class TestSync:
    """Tests for the apply signal."""

    def test_sync_writes_reboot_token(self, library: Library) -> None:
        control = library.root / "power" / "control"
        control.parent.mkdir()

        library.manager.sync()

        assert control.read_text(encoding="utf-8") == "reboot"

    def test_game_from_title_defaults(self) -> None:
        assert game_from_title(Title(id=4, name="Bare")) == Game(id=4, title="Bare")
