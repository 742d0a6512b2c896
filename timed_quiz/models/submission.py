"""
Submission Request/Response Models
"""
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

from timed_quiz.models.attempt import GradedDetail


def _clean_identifier(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("must not be empty")
    return v


class AnswerItem(BaseModel):
    """One submitted answer; selected=None or timedOut means unanswered"""
    id: int = Field(..., description="Question ID being answered")
    selected: Optional[int] = Field(
        default=None,
        ge=0,
        le=3,
        description="Chosen option index (0-3), null when unanswered"
    )
    timedOut: bool = Field(default=False, description="Countdown expired")

    @property
    def is_answered(self) -> bool:
        return self.selected is not None and not self.timedOut


class SubmitQuizRequest(BaseModel):
    """Request model for submitting a finished quiz"""
    studentId: str = Field(
        ...,
        validation_alias=AliasChoices("studentId", "roll"),
        max_length=64,
        description="Roll number"
    )
    studentName: str = Field(
        ...,
        validation_alias=AliasChoices("studentName", "name"),
        max_length=120
    )
    answers: List[AnswerItem] = Field(default_factory=list)
    durationSeconds: int = Field(default=0, ge=0)

    @field_validator("studentId", "studentName")
    @classmethod
    def validate_identifiers(cls, v):
        return _clean_identifier(v)

    class Config:
        json_schema_extra = {
            "example": {
                "studentId": "23B1042",
                "studentName": "Asha",
                "answers": [
                    {"id": 3, "selected": 0},
                    {"id": 7, "selected": None, "timedOut": True}
                ],
                "durationSeconds": 112
            }
        }


class GradedSubmission(BaseModel):
    """Outcome of a graded submission, including the per-question breakdown"""
    score: str = Field(..., description="'correct/total'")
    correct: int
    total: int
    saved: bool = Field(..., description="Whether the attempt reached the ledger")
    details: List[GradedDetail] = Field(default_factory=list)

    def to_response(self) -> "SubmitQuizResponse":
        return SubmitQuizResponse(
            score=self.score,
            correct=self.correct,
            total=self.total,
            saved=self.saved
        )


class SubmitQuizResponse(BaseModel):
    """Body returned to the client; carries no correct answers"""
    score: str = Field(..., description="'correct/total'")
    correct: int
    total: int
    saved: bool = Field(..., description="Whether the attempt reached the ledger")


class GenerateQuizRequest(BaseModel):
    """Body accepted by POST /generate-quiz"""
    studentId: str = Field(
        ...,
        validation_alias=AliasChoices("studentId", "roll"),
        max_length=64
    )
    studentName: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("studentName", "name"),
        max_length=120
    )

    @field_validator("studentId")
    @classmethod
    def validate_student_id(cls, v):
        return _clean_identifier(v)


class CheckRollResponse(BaseModel):
    allowed: bool
    message: Optional[str] = None
    retryAfterSeconds: Optional[int] = None
