"""Atomic result file writing, reading and pruning."""

import json
import logging
import lzma
import os
import tempfile
import time
from pathlib import Path
from typing import Any

from gh_project_summary.storage.paths import PathManager

logger = logging.getLogger(__name__)

XZ_SUFFIX = ".xz"


class ResultWriteError(Exception):
    """Raised when the result file cannot be serialized or written."""


def serialize_result(payload: dict[str, Any]) -> bytes:
    """Serialize a result payload to UTF-8 JSON.

    Raises:
        ResultWriteError: If the payload holds non-JSON values or NaN/Infinity.
    """
    try:
        text = json.dumps(payload, indent=2, ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as e:
        msg = f"Result is not serializable: {e}"
        raise ResultWriteError(msg) from e
    return text.encode("utf-8")


def write_result(payload: dict[str, Any], path: Path) -> Path:
    """Write a result file atomically.

    Data goes to a temporary file in the target directory, is flushed and
    fsynced, then renamed over ``path``. A reader never sees a partial file.
    Paths ending in ``.xz`` are xz-compressed.

    Args:
        payload: JSON-compatible result dictionary.
        path: Final file path.

    Returns:
        The written path.

    Raises:
        ResultWriteError: If serialization or any filesystem step fails. The
            temporary file is removed first.
    """
    data = serialize_result(payload)
    if path.name.endswith(XZ_SUFFIX):
        data = lzma.compress(data, format=lzma.FORMAT_XZ)

    tmp_name: str | None = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode="wb",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as tmp:
            tmp_name = tmp.name
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(tmp_name, path)
    except OSError as e:
        if tmp_name is not None:
            Path(tmp_name).unlink(missing_ok=True)
        msg = f"Failed to write result file {path}: {e}"
        raise ResultWriteError(msg) from e

    logger.info("Wrote result file %s (%d bytes)", path, len(data))
    return path


def read_result(path: Path) -> dict[str, Any]:
    """Load a plain or xz-compressed result file."""
    raw = path.read_bytes()
    if path.name.endswith(XZ_SUFFIX):
        raw = lzma.decompress(raw)
    result: dict[str, Any] = json.loads(raw.decode("utf-8"))
    return result


def clean_old_results(
    paths: PathManager,
    max_age_hours: float = 168,
    max_files: int = 50,
    now: float | None = None,
) -> list[Path]:
    """Delete result files older than ``max_age_hours`` and beyond ``max_files``.

    Args:
        paths: Path manager pointing at the results directory.
        max_age_hours: Files modified longer ago than this are removed.
        max_files: Newest files kept at most.
        now: Current epoch seconds, for tests.

    Returns:
        Removed paths.
    """
    now = time.time() if now is None else now
    files = paths.list_results()
    cutoff = now - max_age_hours * 3600

    expired = [path for path in files if path.stat().st_mtime < cutoff]
    remaining = [path for path in files if path not in expired]
    overflow = remaining[: max(0, len(remaining) - max_files)]

    removed = []
    for path in expired + overflow:
        try:
            path.unlink()
        except FileNotFoundError:
            continue
        removed.append(path)
        logger.debug("Removed old result file %s", path)

    logger.info("Removed %d old result files, kept %d", len(removed), len(files) - len(removed))
    return removed
