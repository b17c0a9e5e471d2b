"""Title manifests handed over by the import side.

A manifest is a JSON object with a "titles" list:

    {
      "titles": [
        {
          "id": 7,
          "name": "Game",
          "publisher": "Publisher",
          "release_date": "1998-03-01",
          "players": 2,
          "position": 1,
          "files": [{"name": "game.cue", "path": "/staging/game.cue"}]
        }
      ]
    }

File order inside a title is kept; it decides disc numbering.
"""

from datetime import date
from pathlib import Path
from typing import Any

import structlog

from ..models import FileReference, Title
from .errors import ValidationError
from .filesystem import FileSystemService

log = structlog.stdlib.get_logger()


def _require(entry: dict[str, Any], key: str, kind: type, where: str) -> Any:
    value = entry.get(key)
    if not isinstance(value, kind) or isinstance(value, bool):
        raise ValidationError(
            f"{where}: '{key}' is missing or not a {kind.__name__}",
            field=key,
            value=value,
        )
    return value


def _optional_int(entry: dict[str, Any], key: str, where: str) -> int | None:
    value = entry.get(key)
    if value is None:
        return None
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise ValidationError(
            f"{where}: '{key}' must be a non-negative integer",
            field=key,
            value=value,
            constraints=[f"{key} >= 0"],
        )
    return value


def parse_title(entry: dict[str, Any]) -> Title:
    """Build a Title from one manifest entry.

    Raises:
        ValidationError: If a required field is missing or malformed
    """
    if not isinstance(entry, dict):
        raise ValidationError("Title entries must be JSON objects", value=entry)

    title_id = _require(entry, "id", int, "title")
    where = f"title {title_id}"
    name = _require(entry, "name", str, where)

    release_date = None
    raw_date = entry.get("release_date")
    if raw_date:
        try:
            release_date = date.fromisoformat(str(raw_date)[:10])
        except ValueError as e:
            raise ValidationError(
                f"{where}: invalid release_date",
                field="release_date",
                value=raw_date,
                constraints=["ISO date, YYYY-MM-DD"],
            ) from e

    files = []
    for raw_file in entry.get("files") or []:
        if not isinstance(raw_file, dict):
            raise ValidationError(f"{where}: file entries must be JSON objects", field="files", value=raw_file)
        path = Path(_require(raw_file, "path", str, where))
        if not path.is_absolute():
            raise ValidationError(f"{where}: file paths must be absolute", field="path", value=str(path))
        file_name = raw_file.get("name") or path.name
        if not isinstance(file_name, str) or "/" in file_name or "\\" in file_name or file_name in (".", ".."):
            raise ValidationError(
                f"{where}: file names must be plain names without directories",
                field="name",
                value=file_name,
            )
        files.append(FileReference(
            name=file_name,
            path=path,
            title_id=title_id,
        ))

    return Title(
        id=title_id,
        name=name,
        sort_name=entry.get("sort_name") or name,
        publisher=entry.get("publisher") or "",
        release_date=release_date,
        players=_optional_int(entry, "players", where),
        position=_optional_int(entry, "position", where) or 0,
        files=files,
    )


def load_titles(path: Path, filesystem: FileSystemService | None = None) -> list[Title]:
    """Read every title from a manifest file.

    Raises:
        FileSystemError: If the manifest cannot be read
        ValidationError: If the manifest is malformed
    """
    filesystem = filesystem or FileSystemService()
    try:
        data = filesystem.load_json(path)
    except ValueError as e:
        raise ValidationError(str(e), field="manifest", value=str(path)) from e

    entries = data.get("titles")
    if not isinstance(entries, list):
        raise ValidationError("Manifest must contain a 'titles' list", field="titles")

    titles = [parse_title(entry) for entry in entries]
    log.info("Manifest loaded", path=str(path), title_count=len(titles))
    return titles
