"""Configuration settings."""

from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    supabase_url: Optional[str] = None
    supabase_anon_key: Optional[str] = None
    email_function: str = "resend-email"

    # Result cache and remote calls
    cache_ttl_seconds: float = 300.0
    request_timeout_seconds: float = 30.0
    page_idle_minutes: int = 60

    # API settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra fields from .env

    @property
    def demo_mode(self) -> bool:
        """True when no hosted backend is configured."""
        return not (self.supabase_url and self.supabase_anon_key)


def get_settings() -> Settings:
    """Get application settings."""
    return Settings()
