"""Whole-file relocation of staged game files.

A move either completes (source gone, destination complete) or fails with a
RelocationError; a destination never holds partial bytes. Same-volume moves
use an atomic rename, cross-volume moves copy to a temporary sibling, verify
it and rename it into place before the source is removed.
"""

import errno
import hashlib
import os
import shutil
from abc import ABC, abstractmethod
from pathlib import Path

import structlog

from ..models import FileReference
from .errors import RelocationError
from .filesystem import FileSystemService
from .layout import normalize_file_name, sheet_name_for

log = structlog.stdlib.get_logger()

CUE_SHEET_TEMPLATE = (
    'FILE "{image_name}" BINARY\n'
    "  TRACK 01 MODE2/2352\n"
    "    INDEX 01 00:00:00\n"
)

PARTIAL_SUFFIX = ".partial"


class MoveStrategy(ABC):
    """How bytes get from a source path to a destination path."""

    name: str = "abstract"

    @abstractmethod
    def move(self, source: Path, destination: Path) -> None:
        """Move source onto destination, replacing it if present.

        Raises:
            OSError: If the move did not complete
        """


class RenameMoveStrategy(MoveStrategy):
    """Native atomic rename; only works within one volume."""

    name = "rename"

    def move(self, source: Path, destination: Path) -> None:
        os.replace(source, destination)


class CopyMoveStrategy(MoveStrategy):
    """Copy, verify, then delete. Works across volumes."""

    name = "copy"

    def __init__(self, chunk_size: int = 1024 * 1024) -> None:
        self._chunk_size = chunk_size

    def move(self, source: Path, destination: Path) -> None:
        partial = destination.with_name(destination.name + PARTIAL_SUFFIX)
        try:
            shutil.copyfile(source, partial)
            shutil.copystat(source, partial)
            self._verify(source, partial)
            os.replace(partial, destination)
        except BaseException:
            partial.unlink(missing_ok=True)
            raise

        source.unlink()

    def _verify(self, source: Path, copy: Path) -> None:
        source_size = source.stat().st_size
        copy_size = copy.stat().st_size
        if source_size != copy_size:
            raise OSError(errno.EIO, f"Size mismatch after copy ({copy_size} of {source_size} bytes)", str(copy))

        if self._file_hash(source) != self._file_hash(copy):
            raise OSError(errno.EIO, "Checksum mismatch after copy", str(copy))

    def _file_hash(self, path: Path, algorithm: str = "sha256") -> str:
        hash_obj = hashlib.new(algorithm)

        with open(path, "rb") as f:
            while chunk := f.read(self._chunk_size):
                hash_obj.update(chunk)

        return hash_obj.hexdigest()


class AutoMoveStrategy(MoveStrategy):
    """Rename when source and destination share a volume, copy otherwise."""

    name = "auto"

    def __init__(
        self,
        rename: MoveStrategy | None = None,
        copy: MoveStrategy | None = None,
    ) -> None:
        self._rename = rename or RenameMoveStrategy()
        self._copy = copy or CopyMoveStrategy()

    def move(self, source: Path, destination: Path) -> None:
        if self._same_volume(source, destination):
            try:
                self._rename.move(source, destination)
                return
            except OSError as e:
                if e.errno != errno.EXDEV:
                    raise
                log.debug("Rename crossed volumes, falling back to copy", source=str(source))

        self._copy.move(source, destination)

    @staticmethod
    def _same_volume(source: Path, destination: Path) -> bool:
        return os.stat(source).st_dev == os.stat(destination.parent).st_dev


class FileRelocator:
    """Moves staged files into their canonical place."""

    def __init__(
        self,
        strategy: MoveStrategy | None = None,
        filesystem: FileSystemService | None = None,
    ) -> None:
        self.strategy = strategy or AutoMoveStrategy()
        self.filesystem = filesystem or FileSystemService()
        log.debug("File relocator initialized", strategy=self.strategy.name)

    def move(self, source: Path, destination: Path, overwrite: bool = False) -> None:
        """Move a file from source to destination.

        Args:
            source: Source file path
            destination: Destination file path
            overwrite: Replace an existing destination instead of failing

        Raises:
            RelocationError: If the source is missing, the destination exists
                without overwrite, or the move itself failed
        """
        if not source.is_file():
            log.error("Source file not found for move", source=str(source))
            raise RelocationError(
                f"Cannot move {source}: source file not found",
                source=source,
                destination=destination,
                original_error=FileNotFoundError(errno.ENOENT, "No such file", str(source)),
            )

        if destination.exists():
            if source.resolve() == destination.resolve():
                log.debug("File already in place", path=str(destination))
                return
            if not overwrite:
                log.error("Destination already exists", source=str(source), destination=str(destination))
                raise RelocationError(
                    f"Cannot move {source}: {destination} already exists",
                    source=source,
                    destination=destination,
                    original_error=FileExistsError(errno.EEXIST, "File exists", str(destination)),
                )

        self.filesystem.ensure_directory(destination.parent)

        log.debug("Moving file", source=str(source), destination=str(destination), strategy=self.strategy.name)
        try:
            self.strategy.move(source, destination)
        except OSError as e:
            log.error("Failed to move file", source=str(source), destination=str(destination), error=str(e))
            raise RelocationError(
                f"Failed to move {source} to {destination}",
                source=source,
                destination=destination,
                original_error=e,
            ) from e

        log.info("File moved successfully", source=str(source), destination=str(destination))

    def relocate(self, file: FileReference, destination: Path, overwrite: bool = False) -> FileReference:
        """Move a referenced file and point the reference at its new location."""
        self.move(file.path, destination, overwrite=overwrite)
        file.path = destination.absolute()
        file.name = destination.name
        return file

    def create_cue_sheet(self, image: FileReference) -> FileReference:
        """Write a single-track sheet file next to a binary image.

        Args:
            image: Reference to the binary image lacking a sheet file

        Returns:
            Reference to the new sheet file, owned by the same title
        """
        sheet_name = sheet_name_for(image.name)
        sheet_path = image.path.parent / sheet_name

        self.filesystem.write_text(
            sheet_path,
            CUE_SHEET_TEMPLATE.format(image_name=normalize_file_name(image.name)),
            exclusive=True,
        )
        log.info("Cue sheet created", image=str(image.path), sheet=str(sheet_path))

        return FileReference(name=sheet_name, path=sheet_path.absolute(), title_id=image.title_id)
