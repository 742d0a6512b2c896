"""
Grading Engine
Scores submitted answers against the questions the server issued
"""
import logging
from typing import Dict, List, Sequence

from timed_quiz.core.exceptions import QuizValidationError
from timed_quiz.models.attempt import NOT_ANSWERED, GradedDetail, GradeResult, Verdict
from timed_quiz.models.question import Question
from timed_quiz.models.submission import AnswerItem

logger = logging.getLogger(__name__)


def validate_answers(questions: Sequence[Question], answers: Sequence[AnswerItem]) -> None:
    """
    Check that every answer references an issued question at most once

    Raises:
        QuizValidationError: With one entry per offending answer
    """
    issued_ids = {q.id for q in questions}
    seen = set()
    errors = []

    for idx, answer in enumerate(answers):
        if answer.id not in issued_ids:
            errors.append({
                "loc": ["body", "answers", idx, "id"],
                "msg": f"Question {answer.id} is not part of this quiz",
                "type": "value_error"
            })
        elif answer.id in seen:
            errors.append({
                "loc": ["body", "answers", idx, "id"],
                "msg": f"Question {answer.id} answered more than once",
                "type": "value_error"
            })
        seen.add(answer.id)

    if errors:
        raise QuizValidationError("Invalid answers", errors=errors)


def grade(questions: Sequence[Question], answers: Sequence[AnswerItem]) -> GradeResult:
    """
    Grade a quiz

    Args:
        questions: Issued questions, in presentation order
        answers: Submitted answers (any order, possibly incomplete)

    Returns:
        GradeResult where total is always len(questions)
    """
    by_id: Dict[int, AnswerItem] = {a.id: a for a in answers}
    details: List[GradedDetail] = []
    score = 0

    for question in questions:
        answer = by_id.get(question.id)
        correct_text = question.options[question.correctOptionIndex]

        if answer is None or not answer.is_answered:
            details.append(GradedDetail(
                question=question.text,
                chosenText=NOT_ANSWERED,
                correctText=correct_text,
                verdict=Verdict.WRONG
            ))
            continue

        is_correct = answer.selected == question.correctOptionIndex
        if is_correct:
            score += 1

        details.append(GradedDetail(
            question=question.text,
            chosenText=question.options[answer.selected],
            correctText=correct_text,
            verdict=Verdict.CORRECT if is_correct else Verdict.WRONG
        ))

    logger.debug(f"Graded {len(questions)} questions: {score} correct")
    return GradeResult(score=score, total=len(questions), details=details)
