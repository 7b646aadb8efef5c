"""AdsDash — Central Configuration via Pydantic Settings."""

import os
from pydantic_settings import BaseSettings


def is_serverless() -> bool:
    """True on function hosts, where the platform cron calls /api/cron/sync-meta."""
    return bool(os.environ.get("VERCEL") or os.environ.get("AWS_LAMBDA_FUNCTION_NAME"))


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # ── Meta API ──
    meta_access_token: str = ""
    meta_ad_account_id: str = ""
    meta_api_version: str = "v21.0"
    meta_base_url: str = "https://graph.facebook.com"

    # ── Database ──
    database_url: str = ""

    # ── App ──
    log_level: str = "INFO"
    business_timezone: str = "America/Sao_Paulo"
    default_channel_id: str = "meta_ads"
    cron_secret: str = ""

    # ── Scheduler ──
    scheduler_enabled: bool = True
    sync_hour: int = 6  # Local time in business_timezone
    sync_minute: int = 0

    # ── Sync ──
    history_default_since: str = "2025-08-01"
    history_chunk_delay_ms: int = 800
    metrics_batch_size: int = 100

    @property
    def effective_database_url(self) -> str:
        """Return PostgreSQL URL if set, otherwise fall back to SQLite."""
        if self.database_url:
            return self.database_url
        # serverless hosts only allow writes under /tmp
        if is_serverless():
            return "sqlite:////tmp/adsdash.db"
        return "sqlite:///./adsdash.db"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
