"""Service layer: catalog, layout, relocation and reconciliation."""

from .catalog import CatalogStore
from .config import ConfigurationService, ValidationResult
from .errors import (
    AppError,
    ConfigurationError,
    ErrorCategory,
    ErrorHandlingService,
    ErrorSeverity,
    FileSystemError,
    GameNotFoundError,
    PersistenceError,
    RelocationError,
    UserFriendlyError,
    ValidationError,
    get_error_service,
    handle_error,
)
from .filesystem import FileSystemService
from .game_manager import GameManagerService, InstallationReport, reconcile_installed
from .layout import LayoutPlan, normalize_file_name, plan_layout
from .manifest import load_titles
from .power import PowerSignal
from .relocator import (
    AutoMoveStrategy,
    CopyMoveStrategy,
    FileRelocator,
    MoveStrategy,
    RenameMoveStrategy,
)

__all__ = [
    "AppError",
    "AutoMoveStrategy",
    "CatalogStore",
    "ConfigurationError",
    "ConfigurationService",
    "CopyMoveStrategy",
    "ErrorCategory",
    "ErrorHandlingService",
    "ErrorSeverity",
    "FileRelocator",
    "FileSystemError",
    "FileSystemService",
    "GameManagerService",
    "GameNotFoundError",
    "InstallationReport",
    "LayoutPlan",
    "MoveStrategy",
    "PersistenceError",
    "PowerSignal",
    "RelocationError",
    "RenameMoveStrategy",
    "UserFriendlyError",
    "ValidationError",
    "ValidationResult",
    "get_error_service",
    "handle_error",
    "load_titles",
    "normalize_file_name",
    "plan_layout",
    "reconcile_installed",
]
