import random
from collections import Counter

import pytest

from timed_quiz.core.exceptions import InsufficientPoolError
from timed_quiz.services.quiz_selector import fisher_yates_shuffle, select_quiz, to_public


def test_select_returns_k_distinct_questions_from_pool(pool):
    selected = select_quiz(pool, 5, random.Random(7))

    assert len(selected) == 5
    assert len({q.id for q in selected}) == 5
    assert all(q in pool for q in selected)


def test_select_does_not_mutate_pool(pool):
    before = [q.id for q in pool]
    select_quiz(pool, 10, random.Random(1))
    assert [q.id for q in pool] == before


def test_select_whole_pool_is_a_permutation(pool):
    selected = select_quiz(pool, len(pool), random.Random(3))
    assert sorted(q.id for q in selected) == sorted(q.id for q in pool)


@pytest.mark.parametrize("k", [11, 20])
def test_select_raises_when_pool_too_small(pool, k):
    with pytest.raises(InsufficientPoolError) as exc:
        select_quiz(pool, k)
    assert exc.value.available == 10
    assert exc.value.required == k


def test_select_rejects_empty_pool():
    with pytest.raises(InsufficientPoolError):
        select_quiz([], 5)


def test_selection_frequency_is_uniform(pool):
    rng = random.Random(1234)
    runs = 4000
    appearances = Counter()
    first_slot = Counter()

    for _ in range(runs):
        selected = select_quiz(pool, 5, rng)
        appearances.update(q.id for q in selected)
        first_slot[selected[0].id] += 1

    # Each question is expected in half the quizzes and first in a tenth
    for q in pool:
        assert 1800 <= appearances[q.id] <= 2200
        assert 300 <= first_slot[q.id] <= 500


def test_fisher_yates_hits_every_permutation_evenly():
    rng = random.Random(99)
    counts = Counter(tuple(fisher_yates_shuffle("abc", rng)) for _ in range(6000))

    assert len(counts) == 6
    assert all(850 <= n <= 1150 for n in counts.values())


def test_public_questions_have_no_answer_key(pool):
    public = to_public(select_quiz(pool, 5, random.Random(5)))

    for item in public:
        dumped = item.model_dump()
        assert set(dumped) == {"id", "question", "options"}
        assert len(dumped["options"]) == 4
