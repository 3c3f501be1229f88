"""
Error types and error logging for memosync.

Logs full stack traces for debugging while showing clean messages to users.
"""

import os
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional


class MemoSyncError(Exception):
    """Base class for errors that abort a sync run."""


class ConfigurationError(MemoSyncError):
    """Missing or malformed configuration. Raised before any network call."""


class TransportError(MemoSyncError):
    """The Memos server answered with a non-200 status."""

    def __init__(self, message: str, *, status_code: Optional[int] = None,
                 body: str = "", url: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.url = url


class NetworkUnreachableError(TransportError):
    """The Memos server could not be reached at all."""

    def __init__(self, url: str, reason: str = ""):
        message = f"Network error: cannot connect to {url}"
        if reason:
            message += f" ({reason})"
        super().__init__(message, url=url)


class FormatError(MemoSyncError):
    """The server response did not have the expected shape."""


def _error_log_path() -> Path:
    """Resolve error log path, respecting MEMOSYNC_HOME."""
    home = os.environ.get("MEMOSYNC_HOME")
    if home:
        return Path(home) / "memosync-errors.log"
    return Path.home() / ".memosync" / "memosync-errors.log"


def log_exception(exc: Exception, context: str = "") -> Path:
    """
    Log exception with full traceback to file.

    Args:
        exc: The exception that occurred
        context: Optional context string (e.g., command name)

    Returns:
        Path to the error log file
    """
    log_path = _error_log_path()
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(log_path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
        with os.fdopen(fd, "a") as f:
            f.write(f"\n{'='*60}\n")
            f.write(f"[{timestamp}]")
            if context:
                f.write(f" {context}")
            f.write("\n")
            f.write("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))
    except OSError:
        pass  # Error log is best effort
    return log_path
