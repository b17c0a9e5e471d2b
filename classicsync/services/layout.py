"""Canonical game directory layout rules.

Every title lives in its own directory named after its id:

    {base_games_directory}/
    └── {title_id}/
        ├── {base_name}.cue
        ├── {base_name}.bin
        └── {base_name}.png

Nothing in this module touches the filesystem.
"""

from dataclasses import dataclass, field
from pathlib import Path, PurePath

import structlog

from ..models import FileReference

log = structlog.stdlib.get_logger()

SHEET_EXTENSION = ".cue"
BINARY_IMAGE_EXTENSION = ".bin"
COVER_FILE_NAME = "cover.png"
COVER_EXTENSION = ".png"


@dataclass
class LayoutPlan:
    """Where a title's files belong and how its discs are numbered."""
    directory: Path
    destinations: list[tuple[FileReference, Path]]
    sheet_files: list[FileReference]
    disc_numbers: list[tuple[FileReference, int]]
    base_name: str | None = None
    cover_name: str | None = None
    cover_file: FileReference | None = field(default=None, repr=False)


def game_directory(base_games_directory: Path, title_id: int) -> Path:
    """Canonical directory holding all files of a title."""
    return base_games_directory / str(title_id)


def normalize_file_name(name: str) -> str:
    """Lower-case the extension of a file name.

    Directory parts are dropped so a file always lands directly in its game
    directory. Binary images keep their extension untouched because sheet
    files may reference them case-sensitively.
    """
    path = PurePath(PurePath(name).name)
    suffix = path.suffix
    if not suffix or suffix.lower() == BINARY_IMAGE_EXTENSION:
        return path.name
    return path.stem + suffix.lower()


def sheet_name_for(image_name: str) -> str:
    """Name of the sheet file describing a binary image."""
    return PurePath(normalize_file_name(image_name)).stem + SHEET_EXTENSION


def is_sheet_file(name: str) -> bool:
    return PurePath(name).suffix.lower() == SHEET_EXTENSION


def is_binary_image(name: str) -> bool:
    return PurePath(name).suffix.lower() == BINARY_IMAGE_EXTENSION


def find_sheet_files(files: list[FileReference]) -> list[FileReference]:
    """Sheet files in the order they were supplied."""
    return [f for f in files if is_sheet_file(f.name)]


def find_base_name(files: list[FileReference]) -> str | None:
    """Stem of the first sheet file, or of the first file when there is none."""
    if not files:
        return None
    sheets = find_sheet_files(files)
    first = sheets[0] if sheets else files[0]
    return PurePath(first.name).stem


def find_cover_file(files: list[FileReference]) -> FileReference | None:
    return next((f for f in files if normalize_file_name(f.name) == COVER_FILE_NAME), None)


def assign_disc_numbers(files: list[FileReference]) -> list[tuple[FileReference, int]]:
    """Number sheet files from 1 in encounter order.

    Callers supply files in the intended disc order; no sorting is applied.
    """
    return [(sheet, number) for number, sheet in enumerate(find_sheet_files(files), start=1)]


def plan_layout(
    title_id: int,
    files: list[FileReference],
    base_games_directory: Path,
) -> LayoutPlan:
    """Compute the canonical layout for a title's files.

    Args:
        title_id: Identifier of the owning title
        files: Files in supply order
        base_games_directory: Root directory of all game directories

    Returns:
        The layout plan for the title
    """
    directory = game_directory(base_games_directory, title_id)
    destinations = [(f, directory / normalize_file_name(f.name)) for f in files]

    base_name = find_base_name(files)
    cover_file = find_cover_file(files)
    cover_name = base_name + COVER_EXTENSION if cover_file and base_name else None

    plan = LayoutPlan(
        directory=directory,
        destinations=destinations,
        sheet_files=find_sheet_files(files),
        disc_numbers=assign_disc_numbers(files),
        base_name=base_name,
        cover_name=cover_name,
        cover_file=cover_file,
    )

    log.debug(
        "Layout planned",
        title_id=title_id,
        directory=str(directory),
        file_count=len(files),
        disc_count=len(plan.disc_numbers),
        base_name=base_name,
        cover_name=cover_name,
    )

    return plan
