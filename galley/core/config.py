import logging

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import List, Optional

class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False

    # Database (hosted Postgres in production, SQLite locally)
    DATABASE_URL: Optional[str] = "sqlite:///./galley.db"
    TEST_DATABASE_URL: Optional[str] = None

    # Gemini
    GEMINI_API_KEY: Optional[str] = None
    GOOGLE_GEMINI_API_KEY: Optional[str] = None  # legacy name, read when GEMINI_API_KEY is unset
    GEMINI_API_BASE: str = "https://generativelanguage.googleapis.com/v1beta"
    GEMINI_MODEL: str = "gemini-1.5-flash"
    GEMINI_PRO_MODEL: str = "gemini-1.5-pro"

    # OpenAI (lesson generation + transcription)
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_API_BASE: str = "https://api.openai.com/v1"
    OPENAI_CHAT_MODEL: str = "gpt-4o"
    OPENAI_TRANSCRIBE_MODEL: str = "whisper-1"

    # Model call behavior
    AI_REQUEST_TIMEOUT_SECONDS: float = 60.0
    AI_STRICT_OUTPUT: bool = False  # true = never answer from a fallback

    # Catalog generation: pause between course requests to the model
    CATALOG_PACING_SECONDS: float = 1.0

    # Toast POS
    TOAST_API_BASE: str = "https://ws-api.toasttab.com"
    TOAST_TIMEOUT_SECONDS: float = 30.0

    # Supabase auth
    SUPABASE_JWT_SECRET: Optional[str] = None
    SUPABASE_JWT_AUDIENCE: Optional[str] = "authenticated"

    # Admin access (usage resets, tier changes)
    ADMIN_KEY: Optional[str] = None

    # Edge CORS
    CORS_ALLOW_ORIGIN: str = "*"

    # Upgrade flow
    UPGRADE_URL: str = "/pricing"

    # Signaling
    SIGNALING_MAX_PARTICIPANTS: int = 0  # 0 = disabled

    # Observability / Tracing
    OTEL_ENABLED: bool = False
    OTEL_EXPORTER: str = "console"  # console | memory

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def gemini_key(self) -> Optional[str]:
        return self.GEMINI_API_KEY or self.GOOGLE_GEMINI_API_KEY

settings = Settings()


# what stops working when a key is missing
_FEATURE_KEYS = {
    "DATABASE_URL": "persistence",
    "SUPABASE_JWT_SECRET": "bearer-token auth",
    "OPENAI_API_KEY": "lesson generation and transcription",
}


def missing_config(cfg: Settings) -> List[str]:
    missing = [f"{key} ({feature})" for key, feature in _FEATURE_KEYS.items() if not getattr(cfg, key, None)]
    if not cfg.gemini_key:
        missing.append("GEMINI_API_KEY (all Gemini-backed functions)")
    return missing


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Report unset keys by name (never by value).

    Strict mode (CONFIG_STRICT) refuses to start; otherwise the service
    boots and the affected features fail at call time.
    """
    cfg = settings_obj or settings
    missing = missing_config(cfg)
    if not missing:
        return True
    message = "Missing configuration: " + ", ".join(missing)
    if cfg.CONFIG_STRICT if strict is None else strict:
        raise RuntimeError(message)
    (logger or logging.getLogger("galley")).warning(message)
    return True
