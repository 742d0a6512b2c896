"""
Application configuration settings
FILE: timed_quiz/core/config.py
"""
from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Logging
    log_level: str = "INFO"

    # Quiz Configuration
    quiz_size: int = 5
    quiz_topic: str = (
        "finance: corporate finance, risk management, derivatives, "
        "current affairs related to finance and basic financial maths"
    )
    seconds_per_question: int = 30
    issued_quiz_ttl_seconds: int = 7200

    # Question source: "sheets" or "generated"
    question_source: str = "generated"
    generated_pool_size: int = 10
    llm_provider: str = "gemini"
    llm_timeout_seconds: float = 20.0

    # Cooldown Configuration
    cooldown_hours: float = 10.0
    ledger_cache_ttl_seconds: int = 120

    # Attempt ledger: "sheets", "mongo" or "memory"
    ledger_backend: str = "sheets"

    # Google Sheets Configuration
    sheet_id: Optional[str] = None
    google_service_account: Optional[str] = None
    questions_range: str = "Questions!A:G"
    results_range: str = "Sheet1!A:I"
    attempts_range: str = "Attempts!A:E"
    sheets_timeout_seconds: float = 15.0

    # MongoDB Configuration
    mongodb_url: str = "mongodb://localhost:27017"
    database_name: str = "timed_quiz"

    # Security
    quiz_secret: Optional[str] = None
    secret_header: str = "x-quiz-secret"
    rate_limit_requests: int = 100
    rate_limit_window_seconds: int = 900

    # CORS
    cors_origins: List[str] = ["*"]

    class Config:
        env_file = ".env"
        case_sensitive = False  # This allows case-insensitive matching
        extra = "allow"  # This allows extra fields


settings = Settings()


def get_settings() -> Settings:
    """Dependency returning the process-wide settings"""
    return settings
