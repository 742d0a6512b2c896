"""
Quiz API Routes
FastAPI endpoints for cooldown checks, quiz generation and submission
"""
import logging
import math
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from timed_quiz.core.exceptions import (
    CooldownActive,
    InsufficientPoolError,
    QuizNotIssuedError,
    QuizValidationError,
    UpstreamUnavailable
)
from timed_quiz.core.security import require_secret
from timed_quiz.models.question import PublicQuestion
from timed_quiz.models.submission import (
    CheckRollResponse,
    GenerateQuizRequest,
    SubmitQuizRequest,
    SubmitQuizResponse
)
from timed_quiz.services.cooldown import format_retry_after
from timed_quiz.services.quiz_service import QuizService, get_quiz_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Quiz"], dependencies=[Depends(require_secret)])

SERVICE_UNAVAILABLE_DETAIL = "Quiz service is temporarily unavailable, please try again"


def _cooldown_exception(e: CooldownActive) -> HTTPException:
    retry_seconds = max(math.ceil(e.retry_after.total_seconds()), 1)
    return HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail={
            "allowed": False,
            "message": f"You have already attempted the quiz. "
                       f"Try again in {format_retry_after(e.retry_after)}.",
            "retryAfterSeconds": retry_seconds
        },
        headers={"Retry-After": str(retry_seconds)}
    )


# ==================== COOLDOWN CHECK ====================

@router.get(
    "/check-roll/{student_id}",
    response_model=CheckRollResponse,
    summary="Check Roll Number",
    description="Whether a roll number may start a new attempt"
)
async def check_roll(
    student_id: str,
    service: QuizService = Depends(get_quiz_service)
) -> CheckRollResponse:
    """
    Advisory cooldown check

    The answer may be up to a couple of minutes stale; submissions are
    re-checked against the ledger before anything is recorded.
    """
    student_id = student_id.strip()
    if not student_id:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Roll number cannot be empty"
        )

    try:
        eligibility = await service.check_roll(student_id)

    except UpstreamUnavailable as e:
        logger.error(f"❌ Cooldown check failed for {student_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=SERVICE_UNAVAILABLE_DETAIL
        )

    if eligibility.allowed:
        return CheckRollResponse(allowed=True)

    return CheckRollResponse(
        allowed=False,
        message=f"You have already attempted the quiz. "
                f"Try again in {format_retry_after(eligibility.retryAfter)}.",
        retryAfterSeconds=max(math.ceil(eligibility.retryAfter.total_seconds()), 1)
    )


# ==================== QUIZ GENERATION ====================

async def _issue_quiz(
    service: QuizService,
    student_id: str,
    student_name: Optional[str]
) -> List[PublicQuestion]:
    try:
        return await service.issue_quiz(student_id, student_name)

    except CooldownActive as e:
        raise _cooldown_exception(e)

    except InsufficientPoolError as e:
        logger.error(f"❌ Not enough questions: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Not enough questions available to build a quiz"
        )

    except UpstreamUnavailable as e:
        logger.error(f"❌ Quiz generation failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=SERVICE_UNAVAILABLE_DETAIL
        )

    except Exception as e:
        logger.error(f"❌ Unexpected error generating quiz: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Quiz generation failed"
        )


@router.get(
    "/generate-quiz",
    response_model=List[PublicQuestion],
    summary="Generate Quiz",
    description="Issue a shuffled set of questions (no answer key)"
)
async def generate_quiz_get(
    studentId: Optional[str] = Query(None, max_length=64),
    roll: Optional[str] = Query(None, max_length=64),
    studentName: Optional[str] = Query(None, max_length=120),
    name: Optional[str] = Query(None, max_length=120),
    service: QuizService = Depends(get_quiz_service)
) -> List[PublicQuestion]:
    student_id = (studentId or roll or "").strip()
    if not student_id:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=[{
                "loc": ["query", "studentId"],
                "msg": "Field required",
                "type": "missing"
            }]
        )

    return await _issue_quiz(service, student_id, studentName or name)


@router.post(
    "/generate-quiz",
    response_model=List[PublicQuestion],
    summary="Generate Quiz",
    description="Issue a shuffled set of questions (no answer key)"
)
async def generate_quiz_post(
    request: GenerateQuizRequest,
    service: QuizService = Depends(get_quiz_service)
) -> List[PublicQuestion]:
    """
    Example:
        POST /generate-quiz
        {"studentId": "23B1042", "studentName": "Asha"}

        Response:
        [{"id": 7, "question": "...", "options": ["...", "...", "...", "..."]}, ...]
    """
    return await _issue_quiz(service, request.studentId, request.studentName)


# ==================== SUBMISSION ====================

@router.post(
    "/submit-quiz",
    response_model=SubmitQuizResponse,
    summary="Submit Quiz",
    description="Grade answers server-side and record the attempt"
)
async def submit_quiz(
    request: SubmitQuizRequest,
    service: QuizService = Depends(get_quiz_service)
) -> SubmitQuizResponse:
    """
    Grade a finished quiz

    Workflow:
    1. Re-check the cooldown against the ledger (not the cache)
    2. Match answers to the questions issued to this roll number
    3. Grade, append to the attempts and results logs

    A failed ledger write still returns the score with saved=false.
    The per-question breakdown goes to the results log only.
    """
    try:
        submission = await service.submit_quiz(request)

    except CooldownActive as e:
        raise _cooldown_exception(e)

    except QuizValidationError as e:
        logger.warning(f"⚠️ Invalid submission from {request.studentId}: {e.errors}")
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=e.errors or str(e)
        )

    except QuizNotIssuedError as e:
        logger.warning(f"⚠️ {e}")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No active quiz for this roll number"
        )

    except UpstreamUnavailable as e:
        logger.error(f"❌ Cooldown re-check failed for {request.studentId}: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=SERVICE_UNAVAILABLE_DETAIL
        )

    except Exception as e:
        logger.error(f"❌ Unexpected error submitting quiz: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Quiz submission failed"
        )

    return submission.to_response()
