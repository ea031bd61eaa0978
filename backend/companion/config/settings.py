"""
Configuration Settings.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings."""

    # App info
    app_name: str = "ACT Companion"
    app_version: str = "1.0.0"
    debug: bool = False

    # Supabase (auth + hosted tables)
    supabase_url: Optional[str] = None
    supabase_anon_key: Optional[str] = None
    supabase_timeout: float = 30.0
    auth_redirect_url: Optional[str] = None  # OAuth / password reset landing page

    # LLM Provider settings
    llm_provider: str = "gemini"
    llm_api_key: Optional[str] = None
    llm_model: str = "gemini-1.5-flash"
    llm_base_url: Optional[str] = None  # uses provider default if not set
    llm_timeout: float = 60.0

    # Local fallback storage
    local_storage_path: str = "./data"
    local_storage_key: str = "actTherapySessions"
    auth_session_key: str = "authSession"

    # Session lifecycle
    session_debounce_seconds: float = 10.0

    # CORS
    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
    ]

    # Logging configuration
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file_path: str = "./logs/companion.log"
    log_file_enabled: bool = True
    log_console_enabled: bool = True
    log_json_format: bool = True  # JSON format for files, human-readable for console
    log_api_requests: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = False

    @property
    def supabase_configured(self) -> bool:
        """Whether remote auth and storage can be used."""
        return bool(self.supabase_url and self.supabase_anon_key)


def get_settings() -> Settings:
    """Build settings from the environment and `.env`."""
    return Settings()
