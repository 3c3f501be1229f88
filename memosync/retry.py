"""
Retry with exponential backoff for AI backend calls.

One policy shared by every provider and every AI operation: up to
``max_attempts`` tries, waiting ``base_delay * 2**attempt`` (capped at
``max_delay``) between them. Rate-limit errors are logged as such; the
delay schedule is the same for both kinds. The last error is re-raised
once attempts run out.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, TypeVar

T = TypeVar("T")

MAX_ATTEMPTS = 3
RETRY_BACKOFF_BASE = 1.0  # seconds
MAX_BACKOFF = 30.0

_RATE_LIMIT_MARKERS = ("429", "rate limit", "rate_limit", "quota", "resource_exhausted",
                       "too many requests")


def is_rate_limit_error(exc: BaseException) -> bool:
    """Recognize a rate-limit/quota signal across SDKs.

    Checks the status code attributes used by openai/anthropic
    (``status_code``), google-genai (``code``) and httpx/requests
    (``response.status_code``), then falls back to the message text.
    """
    for attr in ("status_code", "code"):
        if getattr(exc, attr, None) == 429:
            return True
    response = getattr(exc, "response", None)
    if response is not None and getattr(response, "status_code", None) == 429:
        return True
    message = str(exc).lower()
    return any(marker in message for marker in _RATE_LIMIT_MARKERS)


@dataclass
class RetryPolicy:
    """Retry configuration plus the loop that applies it."""
    max_attempts: int = MAX_ATTEMPTS
    base_delay: float = RETRY_BACKOFF_BASE
    max_delay: float = MAX_BACKOFF
    is_rate_limited: Callable[[BaseException], bool] = is_rate_limit_error
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)
    logger: Optional[logging.Logger] = field(default=None, repr=False)

    def delay_for(self, attempt: int) -> float:
        """Delay after the zero-based ``attempt`` failed."""
        return min(self.base_delay * (2 ** attempt), self.max_delay)

    def call(self, fn: Callable[..., T], *args, label: str = "ai call", **kwargs) -> T:
        """Call ``fn(*args, **kwargs)`` with retries.

        Raises:
            Exception: The last error once all attempts have failed
        """
        log = self.logger or logging.getLogger(__name__)
        attempts = max(1, self.max_attempts)
        for attempt in range(attempts - 1):
            try:
                return fn(*args, **kwargs)
            except Exception as e:
                delay = self.delay_for(attempt)
                if self.is_rate_limited(e):
                    log.warning("%s rate limited, retrying in %.1fs", label, delay)
                else:
                    log.warning(
                        "%s attempt %d failed, retrying in %.1fs: %s",
                        label, attempt + 1, delay, e,
                    )
                self.sleep(delay)
        return fn(*args, **kwargs)
