"""
Attempt Ledger
Append-only persistence of quiz attempts and their per-question results
FILE: timed_quiz/db/attempt_ledger.py
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol, Sequence

from timed_quiz.core.exceptions import LedgerWriteError, UpstreamUnavailable
from timed_quiz.db.sheets import SheetsClient, SheetsError
from timed_quiz.models.attempt import AttemptRecord, GradedDetail

logger = logging.getLogger(__name__)


class AttemptLedger(Protocol):
    """Storage contract used by the cooldown gate and the quiz service"""

    async def latest_attempt(self, student_id: str) -> Optional[AttemptRecord]:
        ...

    async def append(self, record: AttemptRecord, details: Sequence[GradedDetail]) -> None:
        ...


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _parse_timestamp(raw: Any) -> Optional[datetime]:
    if not isinstance(raw, str) or not raw.strip():
        return None
    try:
        return _as_utc(datetime.fromisoformat(raw.strip().replace("Z", "+00:00")))
    except ValueError:
        return None


# ==================== GOOGLE SHEETS ====================

class SheetsAttemptLedger:
    """
    Ledger kept in two tabs of a spreadsheet

    Attempts tab: roll, name, timestamp (ISO-8601 UTC), duration, score
    Results tab:  timestamp, name, roll, score, no., question, chosen, correct, status
    """

    def __init__(self, client: SheetsClient, attempts_range: str, results_range: str):
        self.client = client
        self.attempts_range = attempts_range
        self.results_range = results_range

    async def latest_attempt(self, student_id: str) -> Optional[AttemptRecord]:
        try:
            rows = await self.client.get_values(self.attempts_range)
        except SheetsError as e:
            raise UpstreamUnavailable(f"Attempts log unavailable: {e}")

        latest: Optional[AttemptRecord] = None

        for row in rows:
            if len(row) < 3 or str(row[0]).strip() != student_id:
                continue

            timestamp = _parse_timestamp(row[2])
            if timestamp is None:
                logger.warning(f"⚠️ Skipping attempts row with bad timestamp: {row}")
                continue

            if latest is None or timestamp > latest.timestamp:
                try:
                    duration = int(row[3]) if len(row) > 3 and str(row[3]).strip() else 0
                except ValueError:
                    duration = 0
                latest = AttemptRecord(
                    studentId=student_id,
                    studentName=row[1] or None,
                    timestamp=timestamp,
                    durationSeconds=max(duration, 0),
                    score=str(row[4]) if len(row) > 4 else ""
                )

        return latest

    async def append(self, record: AttemptRecord, details: Sequence[GradedDetail]) -> None:
        timestamp = record.timestamp.isoformat()
        attempt_row = [
            record.studentId,
            record.studentName or "",
            timestamp,
            record.durationSeconds,
            record.score
        ]
        result_rows = [
            [
                timestamp,
                record.studentName or "",
                record.studentId,
                record.score,
                i + 1,
                d.question,
                d.chosenText,
                d.correctText,
                d.verdict.value
            ]
            for i, d in enumerate(details)
        ]

        try:
            # Attempts first: it is the cooldown source of truth
            await self.client.append_values(
                self.attempts_range, [attempt_row], value_input_option="RAW"
            )
            if result_rows:
                await self.client.append_values(self.results_range, result_rows)
        except SheetsError as e:
            raise LedgerWriteError(f"Failed to append attempt for {record.studentId}: {e}")


# ==================== MONGODB ====================

class MongoAttemptLedger:
    """Ledger kept in the attempts and quiz_results collections"""

    ATTEMPTS_COLLECTION = "attempts"
    RESULTS_COLLECTION = "quiz_results"

    def __init__(self, db):
        self.db = db
        self.attempts = db[self.ATTEMPTS_COLLECTION]
        self.results = db[self.RESULTS_COLLECTION]

    async def latest_attempt(self, student_id: str) -> Optional[AttemptRecord]:
        try:
            doc = await self.attempts.find_one(
                {"studentId": student_id},
                sort=[("timestamp", -1)]
            )
        except Exception as e:
            logger.error(f"❌ Failed to read attempts for {student_id}: {e}")
            raise UpstreamUnavailable(f"Attempts collection unavailable: {e}")

        if not doc:
            return None

        doc.pop("_id", None)
        doc["timestamp"] = _as_utc(doc["timestamp"])
        return AttemptRecord(**doc)

    async def append(self, record: AttemptRecord, details: Sequence[GradedDetail]) -> None:
        result_doc: Dict[str, Any] = {
            "studentId": record.studentId,
            "studentName": record.studentName,
            "timestamp": record.timestamp,
            "score": record.score,
            "details": [d.model_dump(mode="json") for d in details]
        }

        try:
            await self.attempts.insert_one(record.model_dump())
            await self.results.insert_one(result_doc)
        except Exception as e:
            raise LedgerWriteError(f"Failed to append attempt for {record.studentId}: {e}")


# ==================== IN-MEMORY ====================

class MemoryAttemptLedger:
    """Process-local ledger for development and tests"""

    def __init__(self):
        self.attempts: List[AttemptRecord] = []
        self.results: List[Dict[str, Any]] = []

    async def latest_attempt(self, student_id: str) -> Optional[AttemptRecord]:
        matching = [a for a in self.attempts if a.studentId == student_id]
        if not matching:
            return None
        return max(matching, key=lambda a: a.timestamp)

    async def append(self, record: AttemptRecord, details: Sequence[GradedDetail]) -> None:
        self.attempts.append(record)
        self.results.append({"record": record, "details": list(details)})
