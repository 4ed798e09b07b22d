"""Per-session path definitions.

Everything a session writes lives under ``<data_dir>/<bot_id>/``:

    logs/             session logs
    recordings/       screen recording output
    html_snapshots/   DOM captures taken at key lifecycle points

Usage:
    from meetbot.paths import PathManager

    paths = PathManager(config.data_dir, config.bot_id)
    paths.initialize_paths()
"""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class PathManager:
    """Resolves and creates the storage directories for one session."""

    def __init__(self, data_dir: Path, bot_id: str):
        self.data_dir = Path(data_dir)
        self.bot_id = bot_id
        self._initialized = False

    @property
    def base_dir(self) -> Path:
        return self.data_dir / self.bot_id

    @property
    def logs_dir(self) -> Path:
        return self.base_dir / "logs"

    @property
    def recordings_dir(self) -> Path:
        return self.base_dir / "recordings"

    @property
    def html_snapshots_dir(self) -> Path:
        return self.base_dir / "html_snapshots"

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def initialize_paths(self) -> None:
        """Create all session directories.

        Raises:
            OSError: if the directories cannot be created
        """
        for dir_path in [self.logs_dir, self.recordings_dir, self.html_snapshots_dir]:
            dir_path.mkdir(parents=True, exist_ok=True)
        self._initialized = True
        logger.info(f"Session paths ready under {self.base_dir}")

    def recording_path(self, extension: str = "mp4") -> Path:
        return self.recordings_dir / f"{self.bot_id}.{extension}"
