"""Command line entry point for classicsync.

This module provides:
- Command-line argument parsing
- Application initialization and dependency injection
- Operator-facing error reporting
"""

import argparse
import sys
from pathlib import Path
from typing import Any

import structlog

from classicsync import __version__
from classicsync.models import AppConfig
from classicsync.services.catalog import CatalogStore
from classicsync.services.config import VALID_LOG_LEVELS, ConfigurationService
from classicsync.services.errors import AppError, ValidationError, get_error_service
from classicsync.services.filesystem import FileSystemService
from classicsync.services.game_manager import GameManagerService
from classicsync.services.logging import setup_logging
from classicsync.services.manifest import load_titles
from classicsync.services.power import PowerSignal
from classicsync.services.relocator import FileRelocator

log = structlog.stdlib.get_logger()


class ApplicationContext:
    """Container for application services.

    Services are created lazily so commands that do not touch the catalog
    never open it.
    """

    def __init__(self, config_path: Path | None = None) -> None:
        self._config_path: Path | None = config_path

        self._config_service: ConfigurationService | None = None
        self._config: AppConfig | None = None
        self._filesystem: FileSystemService | None = None
        self._catalog: CatalogStore | None = None
        self._game_manager: GameManagerService | None = None

    @property
    def config_service(self) -> ConfigurationService:
        if self._config_service is None:
            self._config_service = ConfigurationService(config_path=self._config_path)
        return self._config_service

    @property
    def config(self) -> AppConfig:
        if self._config is None:
            self._config = self.config_service.load_config()
        return self._config

    @property
    def filesystem(self) -> FileSystemService:
        if self._filesystem is None:
            self._filesystem = FileSystemService()
        return self._filesystem

    @property
    def catalog(self) -> CatalogStore:
        if self._catalog is None:
            self._catalog = CatalogStore(self.config.database_path)
        return self._catalog

    @property
    def game_manager(self) -> GameManagerService:
        if self._game_manager is None:
            self._game_manager = GameManagerService(
                catalog=self.catalog,
                base_games_directory=self.config.base_games_directory,
                relocator=FileRelocator(filesystem=self.filesystem),
                filesystem=self.filesystem,
                power_signal=PowerSignal(self.config.power_control_path, filesystem=self.filesystem),
                generate_missing_sheets=self.config.generate_missing_sheets,
            )
        return self._game_manager

    def close(self) -> None:
        if self._catalog is not None:
            self._catalog.close()
            self._catalog = None
            self._game_manager = None


class ParsedArgs:
    """Type-safe container for parsed command-line arguments."""

    def __init__(
        self,
        command: str,
        config: Path | None,
        log_level: str,
        log_dir: Path | None,
        manifest: Path | None = None,
        game_id: int | None = None,
        sync: bool = False,
    ) -> None:
        self.command: str = command
        self.config: Path | None = config
        self.log_level: str = log_level
        self.log_dir: Path | None = log_dir
        self.manifest: Path | None = manifest
        self.game_id: int | None = game_id
        self.sync: bool = sync


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="classicsync",
        description="Keep the console game catalog and game directories in sync",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  classicsync list                          List installed games
  classicsync import titles.json --sync     Import titles, then reboot
  classicsync rebuild library.json          Regenerate the catalog
        """
    )

    _ = parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    _ = parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: ~/.config/classicsync/config.json)"
    )
    _ = parser.add_argument(
        "--log-level",
        choices=VALID_LOG_LEVELS,
        default=None,
        help="Set the logging level (default: from configuration)"
    )
    _ = parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help="Directory for log files (default: from configuration)"
    )

    commands = parser.add_subparsers(dest="command", required=True)

    _ = commands.add_parser("list", help="List installed games")

    for name, help_text in (
        ("import", "Import new titles and move their files into place"),
        ("update", "Update catalog metadata for titles"),
        ("rebuild", "Wipe and regenerate the catalog without touching files"),
    ):
        sub = commands.add_parser(name, help=help_text)
        _ = sub.add_argument("manifest", type=Path, help="JSON title manifest")
        _ = sub.add_argument("--sync", action="store_true", help="Reboot afterwards to apply changes")

    delete = commands.add_parser("delete", help="Delete a game and its directory")
    _ = delete.add_argument("game_id", type=int)
    _ = delete.add_argument("--sync", action="store_true", help="Reboot afterwards to apply changes")

    _ = commands.add_parser("sync", help="Reboot to apply pending changes")

    return parser


def parse_arguments(argv: list[str] | None = None) -> ParsedArgs:
    ns = build_parser().parse_args(argv)

    return ParsedArgs(
        command=ns.command,
        config=ns.config,
        log_level=ns.log_level or "",
        log_dir=ns.log_dir,
        manifest=getattr(ns, "manifest", None),
        game_id=getattr(ns, "game_id", None),
        sync=bool(getattr(ns, "sync", False)),
    )


def _required(args: ParsedArgs, name: str) -> Any:
    value = getattr(args, name)
    if value is None:
        raise ValidationError(f"The {args.command} command needs a {name}", field=name)
    return value


def run_command(context: ApplicationContext, args: ParsedArgs) -> int:
    """Dispatch one command. Errors propagate to the caller."""
    manager = context.game_manager

    if args.command == "list":
        for title in manager.get_games():
            print(f"{title.id}\t{title.name}\t{len(title.files)} file(s)")
        return 0

    if args.command == "import":
        for title in load_titles(_required(args, "manifest"), context.filesystem):
            manager.add_game(title)
    elif args.command == "update":
        manager.update_games(load_titles(_required(args, "manifest"), context.filesystem))
    elif args.command == "rebuild":
        manager.rebuild_database(load_titles(_required(args, "manifest"), context.filesystem))
    elif args.command == "delete":
        manager.delete_game(_required(args, "game_id"))

    if args.command == "sync" or args.sync:
        manager.sync()

    return 0


def run(argv: list[str] | None = None) -> int:
    """Run the command line and return the exit code."""
    args = parse_arguments(argv)
    context = ApplicationContext(config_path=args.config)

    _ = setup_logging(
        log_level=args.log_level or context.config.log_level,
        log_dir=args.log_dir or context.config.log_directory,
    )
    log.info("Starting classicsync", version=__version__, command=args.command)

    try:
        exit_code = run_command(context, args)

    except KeyboardInterrupt:
        log.info("Interrupted by user")
        exit_code = 130  # Standard exit code for SIGINT

    except (AppError, OSError, ValueError) as e:
        service = get_error_service()
        friendly = service.handle_error(e, operation=args.command, component="cli")
        print(service.create_user_message(friendly), file=sys.stderr)
        exit_code = 1

    finally:
        context.close()

    log.info("classicsync exiting", exit_code=exit_code)
    return exit_code


def main() -> None:
    """Main entry point for the application."""
    sys.exit(run())


if __name__ == "__main__":
    main()
