"""Result file storage."""

from gh_project_summary.storage.paths import PathManager
from gh_project_summary.storage.writer import (
    ResultWriteError,
    clean_old_results,
    read_result,
    write_result,
)

__all__ = [
    "PathManager",
    "ResultWriteError",
    "clean_old_results",
    "read_result",
    "write_result",
]
