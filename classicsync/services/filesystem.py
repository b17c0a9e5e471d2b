"""File system service for game directories and small control files."""

import json
import shutil
from pathlib import Path
from typing import Any

import structlog

from .errors import FileSystemError

log = structlog.stdlib.get_logger()


class FileSystemService:
    """Service for directory-level file system operations with error handling."""

    def ensure_directory(self, path: Path) -> None:
        """Ensure that a directory exists, creating it if necessary.

        Args:
            path: Directory path to ensure exists

        Raises:
            FileSystemError: If the path is not a directory or cannot be created
        """
        try:
            if path.exists():
                if not path.is_dir():
                    log.error("Path exists but is not a directory", path=str(path))
                    raise NotADirectoryError(f"Path exists but is not a directory: {path}")
                return

            log.debug("Creating directory", path=str(path))
            path.mkdir(parents=True, exist_ok=True)
            log.info("Directory created successfully", path=str(path))

        except OSError as e:
            log.error("Failed to create directory", path=str(path), error=str(e))
            raise FileSystemError(
                f"Could not create directory {path}",
                original_error=e,
                path=path,
                operation="mkdir",
            ) from e

    def remove_directory(self, path: Path) -> bool:
        """Remove a directory and everything below it.

        Args:
            path: Directory to remove

        Returns:
            True if the directory was removed, False if it did not exist

        Raises:
            FileSystemError: If the directory cannot be removed
        """
        if not path.is_dir():
            log.debug("Directory absent, nothing to remove", path=str(path))
            return False

        try:
            shutil.rmtree(path)
        except OSError as e:
            log.error("Failed to remove directory", path=str(path), error=str(e))
            raise FileSystemError(
                f"Could not remove directory {path}",
                original_error=e,
                path=path,
                operation="rmtree",
            ) from e

        log.info("Directory removed", path=str(path))
        return True

    def list_files(self, directory: Path) -> list[Path]:
        """List the regular files directly inside a directory, sorted by name.

        Raises:
            FileSystemError: If the directory does not exist or cannot be read
        """
        try:
            if not directory.is_dir():
                raise NotADirectoryError(f"Directory not found: {directory}")

            files = sorted((p for p in directory.iterdir() if p.is_file()), key=lambda p: p.name)

        except OSError as e:
            log.error("Failed to list files", directory=str(directory), error=str(e))
            raise FileSystemError(
                f"Could not list directory {directory}",
                original_error=e,
                path=directory,
                operation="list",
            ) from e

        log.debug("Listed files in directory", directory=str(directory), count=len(files))
        return files

    def list_directory_names(self, directory: Path) -> set[str]:
        """Names of the sub-directories of a directory; empty if it is missing."""
        if not directory.is_dir():
            return set()

        try:
            return {p.name for p in directory.iterdir() if p.is_dir()}
        except OSError as e:
            log.error("Failed to list directories", directory=str(directory), error=str(e))
            raise FileSystemError(
                f"Could not list directory {directory}",
                original_error=e,
                path=directory,
                operation="list",
            ) from e

    def write_text(self, path: Path, content: str, exclusive: bool = False) -> None:
        """Write a small text file.

        Args:
            path: File to write
            content: Text content
            exclusive: Fail instead of replacing an existing file

        Raises:
            FileSystemError: If the file cannot be written
        """
        try:
            with open(path, "x" if exclusive else "w", encoding="utf-8", newline="\n") as f:
                f.write(content)
        except OSError as e:
            log.error("Failed to write file", path=str(path), error=str(e))
            raise FileSystemError(
                f"Could not write {path}",
                original_error=e,
                path=path,
                operation="write",
            ) from e

        log.debug("File written", path=str(path), size=len(content))

    def load_json(self, path: Path) -> dict[str, Any]:
        """Load a JSON object from the specified path.

        Raises:
            FileSystemError: If the file cannot be read
            ValueError: If the file does not hold a JSON object
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except OSError as e:
            log.error("Failed to read JSON file", path=str(path), error=str(e))
            raise FileSystemError(
                f"Could not read {path}",
                original_error=e,
                path=path,
                operation="read",
            ) from e
        except json.JSONDecodeError as e:
            log.error("Invalid JSON in file", path=str(path), error=str(e))
            raise ValueError(f"Invalid JSON in file {path}: {e}") from e

        if not isinstance(data, dict):
            raise ValueError(f"Expected JSON object (dict), got {type(data).__name__}")

        log.debug("JSON data loaded", path=str(path), keys=list(data.keys()))
        return data
