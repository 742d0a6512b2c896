"""
Ledger Cache
Short-lived read-through cache of each student's latest attempt
"""
import logging
import time
from typing import Callable, Dict, Optional, Tuple

from timed_quiz.models.attempt import AttemptRecord

logger = logging.getLogger(__name__)


class LedgerCache:
    """
    In-process cache of latest attempts keyed by student id

    "No attempt yet" is cached as well (record None). Entries older than
    ttl_seconds are treated as misses. A ttl of 0 disables caching.
    """

    def __init__(self, ttl_seconds: float = 120, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Optional[AttemptRecord]]] = {}

    def get(self, student_id: str) -> Tuple[bool, Optional[AttemptRecord]]:
        """
        Returns:
            (hit, record); record is None on a miss or for a cached "no attempt"
        """
        entry = self._entries.get(student_id)
        if entry is None:
            return False, None

        stored_at, record = entry
        if self._clock() - stored_at >= self.ttl_seconds:
            del self._entries[student_id]
            return False, None

        return True, record

    def put(self, student_id: str, record: Optional[AttemptRecord]) -> None:
        if self.ttl_seconds <= 0:
            return
        self._entries[student_id] = (self._clock(), record)

    def invalidate(self, student_id: str) -> None:
        if self._entries.pop(student_id, None) is not None:
            logger.debug(f"Invalidated cached attempt for {student_id}")

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
