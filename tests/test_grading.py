import pytest

from timed_quiz.core.exceptions import QuizValidationError
from timed_quiz.models.attempt import NOT_ANSWERED, Verdict
from timed_quiz.models.submission import AnswerItem
from timed_quiz.services.grading import grade, validate_answers

from conftest import make_question


@pytest.fixture
def quiz():
    return [make_question(i, correct=i % 4) for i in (2, 5, 7, 8, 9)]


def test_total_counts_issued_questions_not_answers(quiz):
    result = grade(quiz, [AnswerItem(id=2, selected=2)])

    assert result.total == 5
    assert result.score == 1
    assert result.score_text == "1/5"
    assert len(result.details) == 5


def test_empty_submission_scores_zero(quiz):
    result = grade(quiz, [])

    assert (result.score, result.total) == (0, 5)
    assert all(d.verdict == Verdict.WRONG for d in result.details)
    assert all(d.chosenText == NOT_ANSWERED for d in result.details)


def test_unanswered_and_timed_out_are_wrong(quiz):
    answers = [
        AnswerItem(id=2, selected=None),
        AnswerItem(id=5, timedOut=True),
        AnswerItem(id=7, selected=3, timedOut=True),
    ]
    result = grade(quiz, answers)

    for detail in result.details[:3]:
        assert detail.verdict == Verdict.WRONG
        assert detail.chosenText == NOT_ANSWERED
    assert result.score == 0


def test_details_carry_option_texts_in_issue_order(quiz):
    answers = [AnswerItem(id=5, selected=0), AnswerItem(id=2, selected=2)]
    result = grade(quiz, answers)

    assert [d.question for d in result.details] == [q.text for q in quiz]
    assert result.details[0].verdict == Verdict.CORRECT
    assert result.details[0].chosenText == "Q2 option C"
    assert result.details[1].verdict == Verdict.WRONG
    assert result.details[1].chosenText == "Q5 option A"
    assert result.details[1].correctText == "Q5 option B"


def test_four_answered_one_timed_out(quiz):
    answers = [AnswerItem(id=q.id, selected=q.correctOptionIndex) for q in quiz[:4]]
    answers.append(AnswerItem(id=quiz[4].id, selected=None, timedOut=True))

    result = grade(quiz, answers)

    assert result.total == 5
    assert result.score == 4
    assert result.details[4].verdict == Verdict.WRONG
    assert result.details[4].chosenText == NOT_ANSWERED


def test_validate_rejects_unknown_question(quiz):
    with pytest.raises(QuizValidationError) as exc:
        validate_answers(quiz, [AnswerItem(id=2, selected=1), AnswerItem(id=99, selected=0)])

    assert exc.value.errors[0]["loc"] == ["body", "answers", 1, "id"]


def test_validate_rejects_duplicate_answers(quiz):
    with pytest.raises(QuizValidationError) as exc:
        validate_answers(quiz, [AnswerItem(id=2, selected=1), AnswerItem(id=2, selected=0)])

    assert "more than once" in exc.value.errors[0]["msg"]


def test_validate_accepts_partial_submission(quiz):
    validate_answers(quiz, [AnswerItem(id=9, selected=None)])
