"""
Quiz Selector
Draws a uniformly shuffled, fixed-size subset of the question pool
"""
import logging
import random
from typing import List, Optional, Sequence

from timed_quiz.core.exceptions import InsufficientPoolError
from timed_quiz.models.question import PublicQuestion, Question

logger = logging.getLogger(__name__)

_system_random = random.SystemRandom()


def fisher_yates_shuffle(items: Sequence, rng: Optional[random.Random] = None) -> list:
    """
    Return a shuffled copy of items; every permutation is equally likely

    Args:
        items: Sequence to shuffle (left untouched)
        rng: Random source, defaults to the OS generator

    Returns:
        New list with the same elements in random order
    """
    rng = rng or _system_random
    shuffled = list(items)

    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]

    return shuffled


def select_quiz(
    pool: Sequence[Question],
    k: int,
    rng: Optional[random.Random] = None
) -> List[Question]:
    """
    Select k distinct questions from the pool

    Args:
        pool: Full question pool snapshot
        k: Number of questions in the quiz
        rng: Optional random source (tests pass a seeded one)

    Returns:
        Ordered list of k questions

    Raises:
        InsufficientPoolError: If the pool holds fewer than k questions
    """
    if k < 1 or len(pool) < k:
        logger.error(f"❌ Pool too small: {len(pool)} available, {k} required")
        raise InsufficientPoolError(available=len(pool), required=k)

    selected = fisher_yates_shuffle(pool, rng)[:k]

    logger.debug(f"Selected questions {[q.id for q in selected]} from {len(pool)}")
    return selected


def to_public(questions: Sequence[Question]) -> List[PublicQuestion]:
    """Strip the answer key before questions are sent to a client"""
    return [q.to_public() for q in questions]
