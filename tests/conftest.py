import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from timed_quiz.core.exceptions import LedgerWriteError
from timed_quiz.db.attempt_ledger import MemoryAttemptLedger
from timed_quiz.db.ledger_cache import LedgerCache
from timed_quiz.models.question import Question
from timed_quiz.services.cooldown import CooldownGate
from timed_quiz.services.question_source import StaticQuestionSource
from timed_quiz.services.quiz_service import QuizService

T0 = datetime(2025, 12, 8, 9, 0, tzinfo=timezone.utc)


def make_question(qid, correct=0):
    return Question(
        id=qid,
        text=f"Question {qid}?",
        options=[f"Q{qid} option {letter}" for letter in "ABCD"],
        correctOptionIndex=correct
    )


class RecordingLedger(MemoryAttemptLedger):
    """Memory ledger that yields to the loop and counts reads"""

    def __init__(self, fail_append=False):
        super().__init__()
        self.reads = 0
        self.fail_append = fail_append

    async def latest_attempt(self, student_id):
        self.reads += 1
        await asyncio.sleep(0)
        return await super().latest_attempt(student_id)

    async def append(self, record, details):
        await asyncio.sleep(0)
        if self.fail_append:
            raise LedgerWriteError("sheet unavailable")
        await super().append(record, details)


class FakeClock:
    """Wall clock for services and a monotonic clock for caches"""

    def __init__(self, start=T0):
        self.now = start
        self.ticks = 0.0

    def __call__(self):
        return self.now

    def monotonic(self):
        return self.ticks

    def advance(self, **kwargs):
        delta = timedelta(**kwargs)
        self.now += delta
        self.ticks += delta.total_seconds()


@pytest.fixture
def pool():
    return [make_question(i, correct=i % 4) for i in range(1, 11)]


@pytest.fixture
def ledger():
    return RecordingLedger()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_service(pool, ledger, clock):
    def _make(quiz_size=5, questions=None, source=None, ledger_=None, cache_ttl=120):
        target_ledger = ledger_ or ledger
        gate = CooldownGate(
            target_ledger,
            cache=LedgerCache(ttl_seconds=cache_ttl, clock=clock.monotonic),
            window=timedelta(hours=10)
        )
        return QuizService(
            question_source=source or StaticQuestionSource(questions or pool),
            ledger=target_ledger,
            gate=gate,
            quiz_size=quiz_size,
            clock=clock
        )

    return _make
