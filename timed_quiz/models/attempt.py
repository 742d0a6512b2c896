"""
Attempt Models
Ledger records written once per completed quiz
FILE: timed_quiz/models/attempt.py
"""
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

NOT_ANSWERED = "Not Answered"


class Verdict(str, Enum):
    CORRECT = "CORRECT"
    WRONG = "WRONG"


class GradedDetail(BaseModel):
    """Per-question grading outcome, persisted for audit"""
    question: str
    chosenText: str
    correctText: str
    verdict: Verdict


class GradeResult(BaseModel):
    score: int = Field(..., ge=0, description="Number of correct answers")
    total: int = Field(..., ge=0, description="Number of issued questions")
    details: List[GradedDetail]

    @property
    def score_text(self) -> str:
        return f"{self.score}/{self.total}"


class AttemptRecord(BaseModel):
    """
    One completed or auto-submitted quiz

    Append-only: never mutated or deleted once written
    """
    studentId: str
    studentName: Optional[str] = None
    timestamp: datetime = Field(..., description="Completion time (UTC)")
    durationSeconds: int = Field(..., ge=0)
    score: str = Field(..., description="'correct/total'")

    class Config:
        json_schema_extra = {
            "example": {
                "studentId": "23B1042",
                "studentName": "Asha",
                "timestamp": "2025-12-08T10:30:00Z",
                "durationSeconds": 112,
                "score": "4/5"
            }
        }


class Eligibility(BaseModel):
    """Result of a cooldown check"""
    allowed: bool
    retryAfter: Optional[timedelta] = None
    lastAttemptAt: Optional[datetime] = None
