from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # -------------------------------------------------
    # General
    # -------------------------------------------------
    PROJECT_NAME: str = "UrbanGate API"
    ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # -------------------------------------------------
    # Frontend Domains
    # -------------------------------------------------
    FRONTEND_DOMAINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # -------------------------------------------------
    # CORS (auto-built below)
    # -------------------------------------------------
    BACKEND_CORS_ORIGINS: List[str] = []

    # -------------------------------------------------
    # Supabase (Primary DB & Auth)
    # -------------------------------------------------
    SUPABASE_URL: Optional[str] = None
    SUPABASE_ANON_KEY: Optional[str] = None
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = None

    # Shared secret sent by Supabase database webhooks
    SUPABASE_WEBHOOK_SECRET: Optional[str] = None

    # -------------------------------------------------
    # Gate notifications
    # -------------------------------------------------
    # Edge function that performs the actual web push delivery
    PUSH_FUNCTION_NAME: str = "send-push"

    TELEGRAM_BOT_TOKEN: Optional[str] = None
    TELEGRAM_WEBHOOK_SECRET: Optional[str] = None
    TELEGRAM_API_BASE: str = "https://api.telegram.org"

    # Outbound HTTP timeout for third-party APIs
    HTTP_TIMEOUT_SECONDS: float = 10.0

    # -------------------------------------------------
    # Visitor passes
    # -------------------------------------------------
    INVITE_CODE_MAX_ATTEMPTS: int = 5

    # Requests per minute
    GATE_CODE_RATE_LIMIT: int = 20
    JOIN_RATE_LIMIT: int = 10

    # -------------------------------------------------
    # Realtime
    # -------------------------------------------------
    CHANGE_FEED_BUFFER: int = 256

    # -------------------------------------------------
    # Model Config
    # -------------------------------------------------
    # Real environment variables only, no env_file
    model_config = SettingsConfigDict(case_sensitive=True)


# Instantiate settings
settings = Settings()

# -------------------------------------------------
# Build CORS list dynamically after loading settings
# -------------------------------------------------
settings.BACKEND_CORS_ORIGINS = sorted(
    {d.rstrip("/") for d in settings.FRONTEND_DOMAINS}
)
