"""Power-cycle signal consumed by the console's power management daemon."""

from pathlib import Path

import structlog

from .filesystem import FileSystemService

log = structlog.stdlib.get_logger()

DEFAULT_CONTROL_PATH = Path("/dev/shm/power/control")
REBOOT_TOKEN = "reboot"


class PowerSignal:
    """Asks the console to reboot so pending changes are applied on next boot."""

    def __init__(
        self,
        control_path: Path = DEFAULT_CONTROL_PATH,
        filesystem: FileSystemService | None = None,
    ) -> None:
        self.control_path = control_path
        self.filesystem = filesystem or FileSystemService()

    def request_reboot(self) -> None:
        """Fire-and-forget; nothing acknowledges the request."""
        self.filesystem.write_text(self.control_path, REBOOT_TOKEN)
        log.info("Reboot requested", control_path=str(self.control_path))
