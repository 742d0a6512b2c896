"""
Question Models
Pydantic models for pooled questions and their public (answer-free) form
FILE: timed_quiz/models/question.py
"""
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

OPTIONS_PER_QUESTION = 4


class Question(BaseModel):
    """
    A pooled question including its answer key

    SECURITY: correctOptionIndex never leaves the server, use to_public()
    """
    id: int = Field(..., description="Identifier, stable for the life of a quiz")
    text: str = Field(..., min_length=1, description="Question text")
    options: List[str] = Field(..., description="Exactly 4 answer options")
    correctOptionIndex: int = Field(..., ge=0, lt=OPTIONS_PER_QUESTION)

    @field_validator("options")
    @classmethod
    def validate_options(cls, v):
        """Ensure there are exactly four non-empty options"""
        if len(v) != OPTIONS_PER_QUESTION:
            raise ValueError(
                f"Expected {OPTIONS_PER_QUESTION} options, got {len(v)}"
            )
        if any(not opt or not opt.strip() for opt in v):
            raise ValueError("Options must be non-empty strings")
        return v

    @model_validator(mode="after")
    def validate_answer_key(self):
        if self.correctOptionIndex >= len(self.options):
            raise ValueError("correctOptionIndex must index into options")
        return self

    def to_public(self) -> "PublicQuestion":
        return PublicQuestion(id=self.id, question=self.text, options=list(self.options))

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "id": 3,
                "text": "What does NPV stand for?",
                "options": [
                    "Net Present Value",
                    "New Purchase Volume",
                    "Nominal Price Variance",
                    "Net Profit Valuation"
                ],
                "correctOptionIndex": 0
            }
        }


class PublicQuestion(BaseModel):
    """Question as transmitted to the client (no answer key)"""
    id: int
    question: str
    options: List[str]

    class Config:
        json_schema_extra = {
            "example": {
                "id": 3,
                "question": "What does NPV stand for?",
                "options": [
                    "Net Present Value",
                    "New Purchase Volume",
                    "Nominal Price Variance",
                    "Net Profit Valuation"
                ]
            }
        }


class IssuedQuiz(BaseModel):
    """Server-side record of the questions handed to one student"""
    studentId: str
    studentName: Optional[str] = None
    questions: List[Question]
    startedAt: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
