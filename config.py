import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

# 1. Load environment variables from .env file
load_dotenv()


def _csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    database_url: str
    calendar_webhook_url: Optional[str] = None
    line_channel_id: Optional[str] = None
    line_channel_access_token: Optional[str] = None
    liff_id: Optional[str] = None
    line_api_base: str = "https://api.line.me"
    stage_timeout_seconds: float = 10.0
    slot_first_hour: int = 8
    slot_last_hour: int = 17
    slot_step_minutes: int = 30
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    db_echo: bool = False


def get_settings() -> Settings:
    # 2. Get the URL. If it's not found, raise an error to fail fast.
    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        raise ValueError("DATABASE_URL is not set. Please check your .env file.")

    return Settings(
        database_url=database_url,
        calendar_webhook_url=os.getenv("CALENDAR_WEBHOOK_URL") or None,
        line_channel_id=os.getenv("LINE_CHANNEL_ID") or None,
        line_channel_access_token=os.getenv("LINE_CHANNEL_ACCESS_TOKEN") or None,
        liff_id=os.getenv("LIFF_ID") or None,
        line_api_base=os.getenv("LINE_API_BASE", "https://api.line.me").rstrip("/"),
        stage_timeout_seconds=float(os.getenv("STAGE_TIMEOUT_SECONDS", "10")),
        slot_first_hour=int(os.getenv("SLOT_FIRST_HOUR", "8")),
        slot_last_hour=int(os.getenv("SLOT_LAST_HOUR", "17")),
        slot_step_minutes=int(os.getenv("SLOT_STEP_MINUTES", "30")),
        cors_origins=_csv(os.getenv("CORS_ORIGINS", "*")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        db_echo=os.getenv("DB_ECHO", "false").lower() == "true",
    )
