"""Logging configuration with secret redaction."""

import logging
import re
from typing import ClassVar


class SecretRedactingFilter(logging.Filter):
    """Filter that masks GitHub credentials in log records."""

    SECRET_PATTERNS: ClassVar[list[tuple[re.Pattern[str], str]]] = [
        # Classic and app tokens: ghp_, gho_, ghu_, ghs_, ghr_
        (re.compile(r"gh[pousr]_[A-Za-z0-9]{20,}"), "[REDACTED_GH_TOKEN]"),
        (re.compile(r"github_pat_[A-Za-z0-9_]+"), "[REDACTED_GH_PAT]"),
        (re.compile(r"(Bearer|token)\s+[A-Za-z0-9_\-\.]{8,}"), r"\1 [REDACTED]"),
        (re.compile(r"(Authorization:\s*)[^\s,\]]+", re.IGNORECASE), r"\1[REDACTED]"),
        (re.compile(r"(x-access-token:)[^@\s]+", re.IGNORECASE), r"\1[REDACTED]"),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        """Redact secrets from the message and its string arguments."""
        record.msg = self.redact(str(record.msg))
        if record.args and isinstance(record.args, tuple):
            record.args = tuple(
                self.redact(arg) if isinstance(arg, str) else arg for arg in record.args
            )
        return True

    @classmethod
    def redact(cls, text: str) -> str:
        """Return text with every known secret pattern masked."""
        for pattern, replacement in cls.SECRET_PATTERNS:
            text = pattern.sub(replacement, text)
        return text


def setup_logging(verbose: bool = False, json_format: bool = False) -> None:
    """Configure root logging for a collection run.

    Args:
        verbose: Enable debug level logging.
        json_format: Emit one JSON object per line instead of plain text.
    """
    level = logging.DEBUG if verbose else logging.INFO

    if json_format:
        format_str = (
            '{"time": "%(asctime)s", "level": "%(levelname)s", '
            '"name": "%(name)s", "message": "%(message)s"}'
        )
    else:
        format_str = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

    logging.basicConfig(level=level, format=format_str, datefmt="%Y-%m-%d %H:%M:%S")

    redaction_filter = SecretRedactingFilter()
    for handler in logging.getLogger().handlers:
        handler.addFilter(redaction_filter)

    # Request lines from httpx would otherwise flood INFO output
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
