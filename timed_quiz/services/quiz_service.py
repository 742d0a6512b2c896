"""
Quiz Service
Business logic for issuing quizzes, grading submissions and recording attempts
FILE: timed_quiz/services/quiz_service.py
"""
import asyncio
import logging
import random
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from timed_quiz.core.config import Settings, settings
from timed_quiz.core.exceptions import CooldownActive, LedgerWriteError, QuizNotIssuedError
from timed_quiz.db.attempt_ledger import (
    AttemptLedger,
    MemoryAttemptLedger,
    MongoAttemptLedger,
    SheetsAttemptLedger
)
from timed_quiz.db.ledger_cache import LedgerCache
from timed_quiz.db.sheets import ServiceAccountTokenProvider, SheetsClient
from timed_quiz.models.attempt import AttemptRecord, Eligibility
from timed_quiz.models.question import IssuedQuiz, PublicQuestion
from timed_quiz.models.submission import GradedSubmission, SubmitQuizRequest
from timed_quiz.services.cooldown import CooldownGate
from timed_quiz.services.grading import grade, validate_answers
from timed_quiz.services.question_source import (
    GeneratedQuestionSource,
    QuestionSource,
    SheetQuestionSource
)
from timed_quiz.services.quiz_selector import select_quiz, to_public

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IssuedQuizStore:
    """Questions handed out per student, kept until submitted or expired"""

    def __init__(self, ttl: timedelta = timedelta(hours=2), clock: Callable[[], datetime] = _utcnow):
        self.ttl = ttl
        self._clock = clock
        self._quizzes: Dict[str, IssuedQuiz] = {}

    def _purge_expired(self) -> None:
        cutoff = self._clock() - self.ttl
        expired = [sid for sid, quiz in self._quizzes.items() if quiz.startedAt < cutoff]
        for sid in expired:
            del self._quizzes[sid]

    def put(self, quiz: IssuedQuiz) -> None:
        self._purge_expired()
        self._quizzes[quiz.studentId] = quiz

    def get(self, student_id: str) -> Optional[IssuedQuiz]:
        self._purge_expired()
        return self._quizzes.get(student_id)

    def discard(self, student_id: str, quiz: Optional[IssuedQuiz] = None) -> None:
        """Drop the student's quiz; with quiz given, only if it is still the stored one"""
        if quiz is not None and self._quizzes.get(student_id) is not quiz:
            return
        self._quizzes.pop(student_id, None)


class KeyedLock:
    """One asyncio.Lock per key, dropped once nobody holds or waits on it"""

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = defaultdict(int)

    @asynccontextmanager
    async def hold(self, key: str):
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class QuizService:
    """
    Service for the quiz lifecycle

    This service handles:
    1. Cooldown pre-checks for a roll number
    2. Issuing a shuffled subset of the question pool
    3. Grading, the authoritative cooldown re-check and ledger append
    """

    def __init__(
        self,
        question_source: QuestionSource,
        ledger: AttemptLedger,
        gate: CooldownGate,
        quiz_size: int = 5,
        issued_quizzes: Optional[IssuedQuizStore] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = _utcnow
    ):
        self.question_source = question_source
        self.ledger = ledger
        self.gate = gate
        self.quiz_size = quiz_size
        self.issued_quizzes = issued_quizzes or IssuedQuizStore(clock=clock)
        self.rng = rng
        self.clock = clock
        self._student_locks = KeyedLock()

    async def check_roll(self, student_id: str) -> Eligibility:
        """Advisory eligibility check, may be served from the ledger cache"""
        return await self.gate.check_eligibility(student_id, now=self.clock())

    async def issue_quiz(
        self,
        student_id: str,
        student_name: Optional[str] = None
    ) -> List[PublicQuestion]:
        """
        Select a quiz for a student

        Raises:
            CooldownActive: If the student attempted too recently
            UpstreamUnavailable: If the question source fails
            InsufficientPoolError: If the pool is smaller than the quiz
        """
        eligibility = await self.gate.check_eligibility(student_id, now=self.clock())
        if not eligibility.allowed:
            raise CooldownActive(student_id, eligibility.retryAfter)

        pool = await self.question_source.load_pool()
        questions = select_quiz(pool, self.quiz_size, self.rng)

        self.issued_quizzes.put(IssuedQuiz(
            studentId=student_id,
            studentName=student_name,
            questions=questions,
            startedAt=self.clock()
        ))

        logger.info(f"🎯 Issued {len(questions)} questions to {student_id}")
        return to_public(questions)

    async def submit_quiz(self, request: SubmitQuizRequest) -> GradedSubmission:
        """
        Grade and record a finished quiz

        Raises:
            QuizNotIssuedError: If no quiz is outstanding for the student
            QuizValidationError: If answers reference unknown or repeated questions
            CooldownActive: If an attempt was recorded since the quiz was issued
            UpstreamUnavailable: If the ledger cannot be read for the re-check
        """
        student_id = request.studentId

        async with self._student_locks.hold(student_id):
            now = self.clock()
            eligibility = await self.gate.check_eligibility(
                student_id, now=now, authoritative=True
            )
            if not eligibility.allowed:
                self.issued_quizzes.discard(student_id)
                raise CooldownActive(student_id, eligibility.retryAfter)

            issued = self.issued_quizzes.get(student_id)
            if issued is None:
                raise QuizNotIssuedError(f"No active quiz for {student_id}")

            validate_answers(issued.questions, request.answers)

            result = grade(issued.questions, request.answers)
            record = AttemptRecord(
                studentId=student_id,
                studentName=request.studentName,
                timestamp=now,
                durationSeconds=request.durationSeconds,
                score=result.score_text
            )

            saved = True
            try:
                await self.ledger.append(record, result.details)
            except LedgerWriteError as e:
                saved = False
                logger.error(
                    f"❌ AUDIT RECORD LOST for {student_id} "
                    f"(score {result.score_text}): {e}"
                )
            finally:
                self.gate.record_attempt(student_id)
                self.issued_quizzes.discard(student_id, issued)

        if saved:
            logger.info(f"✅ Recorded attempt for {student_id}: {result.score_text}")

        return GradedSubmission(
            score=result.score_text,
            correct=result.score,
            total=result.total,
            saved=saved,
            details=result.details
        )


# ==================== FACTORY ====================

def build_quiz_service(config: Settings, db=None) -> QuizService:
    """
    Wire a QuizService from settings

    Args:
        config: Application settings
        db: Motor database, required when ledger_backend is "mongo"
    """
    sheets_client = None
    if config.sheet_id and config.google_service_account:
        sheets_client = SheetsClient(
            config.sheet_id,
            ServiceAccountTokenProvider(config.google_service_account),
            timeout=config.sheets_timeout_seconds
        )

    backend = config.ledger_backend.lower()
    if backend == "sheets":
        if sheets_client is None:
            raise ValueError("SHEET_ID and GOOGLE_SERVICE_ACCOUNT are required for the sheets ledger")
        ledger = SheetsAttemptLedger(sheets_client, config.attempts_range, config.results_range)
    elif backend == "mongo":
        if db is None:
            raise ValueError("A MongoDB connection is required for the mongo ledger")
        ledger = MongoAttemptLedger(db)
    elif backend == "memory":
        ledger = MemoryAttemptLedger()
    else:
        raise ValueError(f"Unknown ledger backend: {config.ledger_backend}")

    source_kind = config.question_source.lower()
    if source_kind == "sheets":
        if sheets_client is None:
            raise ValueError("SHEET_ID and GOOGLE_SERVICE_ACCOUNT are required for the sheets question source")
        source = SheetQuestionSource(sheets_client, config.questions_range)
    elif source_kind == "generated":
        source = GeneratedQuestionSource(
            topic=config.quiz_topic,
            pool_size=max(config.generated_pool_size, config.quiz_size),
            provider=config.llm_provider,
            timeout=config.llm_timeout_seconds
        )
    else:
        raise ValueError(f"Unknown question source: {config.question_source}")

    gate = CooldownGate(
        ledger,
        cache=LedgerCache(ttl_seconds=config.ledger_cache_ttl_seconds),
        window=timedelta(hours=config.cooldown_hours)
    )

    logger.info(f"🔧 Quiz service wired: source={source_kind}, ledger={backend}")

    return QuizService(
        question_source=source,
        ledger=ledger,
        gate=gate,
        quiz_size=config.quiz_size,
        issued_quizzes=IssuedQuizStore(ttl=timedelta(seconds=config.issued_quiz_ttl_seconds))
    )


# ==================== SINGLETON ====================

_quiz_service: Optional[QuizService] = None


def init_quiz_service(db=None) -> QuizService:
    """Create the global QuizService instance (called from the app lifespan)"""
    global _quiz_service
    _quiz_service = build_quiz_service(settings, db=db)
    return _quiz_service


def get_quiz_service() -> QuizService:
    """Get or create the global QuizService instance"""
    global _quiz_service

    if _quiz_service is None:
        _quiz_service = build_quiz_service(settings)

    return _quiz_service


def reset_quiz_service() -> None:
    global _quiz_service
    _quiz_service = None
