"""
Configuration management using Pydantic Settings
"""
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Database (key-value storage for profiles, histories and preferences)
    DATABASE_URL: str = "sqlite:///./oab_prep.db"

    # Gemini API
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-3-flash-preview"

    # Redis (optional question cache backend, empty = in-process cache)
    REDIS_URL: str = ""

    # Application
    APP_NAME: str = "OAB Exam Prep"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Exam Settings
    QUESTION_CACHE_TTL: int = 300  # 5 minutes
    DEFAULT_EXAM_SIZE: int = 10
    MAX_EXAM_QUESTIONS: int = 80
    MINUTES_PER_QUESTION: float = 3.75  # 300 minutes / 80 questions
    SESSION_TICK_SECONDS: float = 1.0

    # Diagnostics
    DIAGNOSTIC_HISTORY_WINDOW: int = 10
    RECENT_TOPICS_LIMIT: int = 10

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
