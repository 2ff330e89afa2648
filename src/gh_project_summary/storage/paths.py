"""Path management for result files."""

import re
import secrets
from datetime import UTC, datetime
from pathlib import Path

DEFAULT_COMMAND = "project_summary"
RESULT_SUFFIXES = (".json", ".json.xz")

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def safe_label(text: str, max_length: int = 60) -> str:
    """Reduce free text (a board title, ``owner/name``) to a filename part."""
    label = _UNSAFE_CHARS.sub("-", text.strip()).strip("-._").lower()
    return label[:max_length].rstrip("-._") or "unnamed"


class PathManager:
    """Manages result file locations.

    Layout:
    - Results: <root>/var/results/<command>_<label>_<YYYY-MM-DD>_<HH-MM-SS>_<8 hex>.json[.xz]
    """

    def __init__(self, root: Path, command: str = DEFAULT_COMMAND) -> None:
        """Initialize path manager.

        Args:
            root: Storage root directory.
            command: Command name used as the file name prefix.
        """
        self.root = Path(root)
        self.command = command

    @property
    def results_root(self) -> Path:
        """Directory holding result files."""
        return self.root / "var" / "results"

    def result_path(self, label: str, started_at: datetime, compress: bool = True) -> Path:
        """Unique path for a run's result file.

        The random suffix keeps runs started in the same second apart.

        Args:
            label: Project title or repository list summary.
            started_at: Run start time, rendered in UTC.
            compress: Whether the file gets the ``.xz`` suffix.
        """
        stamp = started_at.astimezone(UTC).strftime("%Y-%m-%d_%H-%M-%S")
        suffix = ".json.xz" if compress else ".json"
        name = f"{self.command}_{safe_label(label)}_{stamp}_{secrets.token_hex(4)}{suffix}"
        return self.results_root / name

    def list_results(self) -> list[Path]:
        """Result files of this command, oldest first by modification time."""
        if not self.results_root.exists():
            return []
        files = [
            path
            for path in self.results_root.iterdir()
            if path.is_file()
            and path.name.startswith(f"{self.command}_")
            and path.name.endswith(RESULT_SUFFIXES)
        ]
        return sorted(files, key=lambda path: (path.stat().st_mtime, path.name))
