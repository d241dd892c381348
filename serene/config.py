"""
Configuration management for the application.

Loads environment variables and provides centralized config access.
"""

import os
from typing import Optional
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Application configuration"""

    # Flask settings
    FLASK_ENV: str = os.getenv("FLASK_ENV", "development")
    DEBUG: bool = FLASK_ENV == "development"
    FRONTEND_URL: Optional[str] = os.getenv("FRONTEND_URL")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Database (hosted Postgres in production, SQLite locally)
    DATABASE_URL: Optional[str] = os.getenv("DATABASE_URL")

    # Auth provider
    SUPABASE_URL: Optional[str] = os.getenv("SUPABASE_URL")
    SUPABASE_JWT_SECRET: Optional[str] = os.getenv("SUPABASE_JWT_SECRET")

    # OpenAI settings
    OPENAI_API_KEY: Optional[str] = os.getenv("OPENAI_API_KEY")
    OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

    # Note processing
    PROCESSING_TEMPERATURE: float = 0.7
    PROCESSING_MAX_TOKENS: int = int(os.getenv("PROCESSING_MAX_TOKENS", "1000"))

    # Autosave / versioning
    AUTOSAVE_DEBOUNCE_SECONDS: float = float(os.getenv("AUTOSAVE_DEBOUNCE_SECONDS", "2.0"))
    VERSION_HISTORY_LIMIT: int = int(os.getenv("VERSION_HISTORY_LIMIT", "10"))
    DEFAULT_NOTE_TITLE: str = "Untitled Note"

    @classmethod
    def validate(cls):
        """Validate required configuration"""
        errors = []

        if cls.FLASK_ENV == "production" and not cls.DATABASE_URL:
            errors.append("DATABASE_URL is not set")
        if not cls.SUPABASE_JWT_SECRET and not cls.SUPABASE_URL:
            errors.append("SUPABASE_JWT_SECRET or SUPABASE_URL must be set")

        if errors:
            raise ValueError(f"Configuration errors: {', '.join(errors)}")
