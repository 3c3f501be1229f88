"""
Logging configuration for memosync.

Components never read a global verbosity flag. Each one receives a
logger at construction; ``component_logger`` hands out loggers under the
``memosync`` namespace at the configured level.
"""

import logging
import sys

# HTTP and SDK loggers that are noisy at INFO
_NOISY_LOGGERS = ("httpx", "httpcore", "urllib3", "openai", "anthropic", "google_genai")


def component_logger(name: str, verbose: bool = False) -> logging.Logger:
    """Return the logger for one pipeline component.

    Args:
        name: Component name, e.g. "client" or "digest"
        verbose: DEBUG when True, INFO otherwise
    """
    logger = logging.getLogger(f"memosync.{name}")
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    return logger


def configure_quiet_mode(quiet: bool = True):
    """
    Suppress verbose library output.

    Args:
        quiet: If True, HTTP client and SDK loggers only show warnings.
    """
    level = logging.WARNING if quiet else logging.NOTSET
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(level)


def _ensure_stderr_handler(logger: logging.Logger, level: int) -> None:
    if not any(isinstance(h, logging.StreamHandler) and h.stream == sys.stderr
               for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s",
            datefmt="%H:%M:%S"
        ))
        logger.addHandler(handler)


def enable_debug_mode():
    """Enable debug-level logging to stderr."""
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    _ensure_stderr_handler(root_logger, logging.DEBUG)
    logging.getLogger("memosync").setLevel(logging.DEBUG)


def configure_cli_logging(verbose: bool = False):
    """Logging setup for CLI runs: warnings always, debug with --verbose."""
    if verbose:
        enable_debug_mode()
        configure_quiet_mode(False)
        return
    configure_quiet_mode(True)
    root_logger = logging.getLogger()
    if root_logger.level == logging.NOTSET or root_logger.level > logging.WARNING:
        root_logger.setLevel(logging.WARNING)
    _ensure_stderr_handler(root_logger, logging.WARNING)
