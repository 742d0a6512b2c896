"""
Request Guards
Shared-secret header check and fixed-window rate limiting
"""
import logging
import math
import secrets
import time
from typing import Callable, Dict, Optional, Tuple

from fastapi import Depends, HTTPException, Request, status

from timed_quiz.core.config import Settings, get_settings
from timed_quiz.core.exceptions import AuthorizationError

logger = logging.getLogger(__name__)


def verify_secret(expected: Optional[str], provided: Optional[str]) -> None:
    """
    Raises:
        AuthorizationError: If a secret is configured and provided does not match
    """
    if not expected:
        return
    if not provided or not secrets.compare_digest(provided.encode(), expected.encode()):
        raise AuthorizationError("Missing or invalid secret")


async def require_secret(
    request: Request,
    config: Settings = Depends(get_settings)
) -> None:
    """Dependency guarding quiz endpoints when QUIZ_SECRET is set"""
    try:
        verify_secret(config.quiz_secret, request.headers.get(config.secret_header))
    except AuthorizationError:
        client = request.client.host if request.client else "unknown"
        logger.warning(f"⚠️ Rejected request without valid secret from {client}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized"
        )


class RateLimiter:
    """
    Fixed-window request budget per client key

    Each key gets `limit` requests per `window_seconds`; the window starts at
    the key's first request and resets once it has elapsed.
    """

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic
    ):
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: Dict[str, Tuple[float, int]] = {}

    def hit(self, key: str) -> Tuple[bool, int]:
        """
        Count one request

        Returns:
            (allowed, retry_after_seconds); retry_after is 0 when allowed
        """
        now = self._clock()
        started, count = self._windows.get(key, (now, 0))

        if now - started >= self.window_seconds:
            started, count = now, 0

        count += 1
        self._windows[key] = (started, count)

        if len(self._windows) > 10000:
            self._evict(now)

        if count > self.limit:
            retry_after = math.ceil(self.window_seconds - (now - started))
            return False, max(retry_after, 1)

        return True, 0

    def _evict(self, now: float) -> None:
        stale = [
            key for key, (started, _) in self._windows.items()
            if now - started >= self.window_seconds
        ]
        for key in stale:
            del self._windows[key]

    def reset(self) -> None:
        self._windows.clear()
