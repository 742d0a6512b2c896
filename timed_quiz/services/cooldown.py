"""
Cooldown Gate
Decides whether a roll number may start or submit another attempt
"""
import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Optional

from timed_quiz.db.attempt_ledger import AttemptLedger
from timed_quiz.db.ledger_cache import LedgerCache
from timed_quiz.models.attempt import AttemptRecord, Eligibility

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN = timedelta(hours=10)


def format_retry_after(retry_after: timedelta) -> str:
    """Render a wait time as '9h 59m' (seconds are rounded up to a minute)"""
    total_minutes = math.ceil(retry_after.total_seconds() / 60)
    hours, minutes = divmod(max(total_minutes, 0), 60)
    if hours:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


class CooldownGate:
    """
    ELIGIBLE -> BLOCKED (attempt recorded) -> ELIGIBLE (window elapsed)

    Regular checks may be answered from the ledger cache. Authoritative
    checks always hit the ledger and refresh the cache.
    """

    def __init__(
        self,
        ledger: AttemptLedger,
        cache: Optional[LedgerCache] = None,
        window: timedelta = DEFAULT_COOLDOWN
    ):
        self.ledger = ledger
        self.cache = cache
        self.window = window

    async def _latest_attempt(self, student_id: str, authoritative: bool) -> Optional[AttemptRecord]:
        if self.cache is not None and not authoritative:
            hit, record = self.cache.get(student_id)
            if hit:
                return record

        # UpstreamUnavailable propagates: a failed read never means "no cooldown"
        record = await self.ledger.latest_attempt(student_id)

        if self.cache is not None:
            self.cache.put(student_id, record)

        return record

    async def check_eligibility(
        self,
        student_id: str,
        now: Optional[datetime] = None,
        authoritative: bool = False
    ) -> Eligibility:
        """
        Args:
            student_id: Roll number
            now: Evaluation time (UTC), defaults to the current time
            authoritative: Bypass the cache (required before persisting)

        Returns:
            Eligibility with the remaining wait when blocked
        """
        now = now or datetime.now(timezone.utc)
        latest = await self._latest_attempt(student_id, authoritative)

        if latest is None:
            return Eligibility(allowed=True)

        elapsed = now - latest.timestamp
        if elapsed >= self.window:
            return Eligibility(allowed=True, lastAttemptAt=latest.timestamp)

        retry_after = self.window - elapsed
        logger.info(
            f"⏳ Cooldown active for {student_id} - "
            f"retry in {format_retry_after(retry_after)}"
        )
        return Eligibility(allowed=False, retryAfter=retry_after, lastAttemptAt=latest.timestamp)

    def record_attempt(self, student_id: str) -> None:
        """Invalidation hook, called after every successful append"""
        if self.cache is not None:
            self.cache.invalidate(student_id)
