"""
Domain Exceptions
Error taxonomy shared by services and API routes
"""
from datetime import timedelta
from typing import Any, Dict, List, Optional


class QuizError(Exception):
    """Base exception for all quiz service errors"""
    pass


class QuizValidationError(QuizError):
    """Raised when a request is missing or has malformed required fields"""

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.errors = errors or []


class AuthorizationError(QuizError):
    """Raised when the shared secret is missing or does not match"""
    pass


class UpstreamUnavailable(QuizError):
    """Raised when the question source or ledger store fails or returns garbage"""
    pass


class InsufficientPoolError(QuizError):
    """Raised when fewer questions are available than the quiz needs"""

    def __init__(self, available: int, required: int):
        super().__init__(
            f"Question pool has {available} questions, {required} required"
        )
        self.available = available
        self.required = required


class CooldownActive(QuizError):
    """Raised when a student is still inside the cooldown window"""

    def __init__(self, student_id: str, retry_after: timedelta):
        super().__init__(
            f"Cooldown active for {student_id}, retry after {retry_after}"
        )
        self.student_id = student_id
        self.retry_after = retry_after


class QuizNotIssuedError(QuizError):
    """Raised when a submission has no matching issued quiz"""
    pass


class LedgerWriteError(QuizError):
    """Raised when an attempt could not be appended to the ledger"""
    pass
