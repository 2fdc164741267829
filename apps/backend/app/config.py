import os
import logging
from pathlib import Path
from typing import Optional

import psycopg2

from app.db_config import db_config, DBConfig

logger = logging.getLogger(__name__)

DEFAULT_MOCK_EMAILS_FILE = str(Path(__file__).resolve().parent.parent / "fixtures" / "sample_emails.json")


class ConfigError(Exception):
    """Required configuration is missing or invalid"""


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {value!r}")


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, default))


class Settings:
    """Runtime settings read from the environment (.env is loaded by main)"""

    def __init__(self, db: Optional[DBConfig] = None):
        self.env = os.getenv("JOBRELAY_ENV", "production").lower()
        self.log_level = os.getenv("JOBRELAY_LOG_LEVEL", "INFO").upper()
        self.admin_token = os.getenv("JOBRELAY_ADMIN_TOKEN")

        self.alert_sender = os.getenv("JOBRELAY_ALERT_SENDER", "no-reply@notify.careers")
        self.scrape_cooldown_seconds = _env_float("JOBRELAY_SCRAPE_COOLDOWN_SECONDS", 60)
        self.scrape_interval_seconds = _env_float("JOBRELAY_SCRAPE_INTERVAL_SECONDS", 60)
        self.post_interval_seconds = _env_float("JOBRELAY_POST_INTERVAL_SECONDS", 3600)
        self.post_batch_size = _env_int("JOBRELAY_POST_BATCH_SIZE", 10)
        self.post_delay_seconds = _env_float("JOBRELAY_POST_DELAY_SECONDS", 1)
        self.page_timeout_ms = _env_int("JOBRELAY_PAGE_TIMEOUT_MS", 30000)
        self.headless = _env_bool("JOBRELAY_HEADLESS", True)
        self.dedupe = _env_bool("JOBRELAY_DEDUPE", True)
        self.mock_emails_file = os.getenv("JOBRELAY_MOCK_EMAILS_FILE", DEFAULT_MOCK_EMAILS_FILE)
        self.use_mock_mail = _env_bool("JOBRELAY_USE_MOCK_MAIL", self.env == "dev")

        self.discord_token = os.getenv("DISCORD_TOKEN")
        self.discord_channel_id = os.getenv("DISCORD_JOB_CHANNEL_ID")

        self.gmail_client_id = os.getenv("GMAIL_CLIENT_ID")
        self.gmail_client_secret = os.getenv("GMAIL_CLIENT_SECRET")
        self.gmail_refresh_token = os.getenv("GMAIL_REFRESH_TOKEN")

        self.db = db or db_config

        if self.post_batch_size < 1:
            raise ConfigError("JOBRELAY_POST_BATCH_SIZE must be at least 1")

    @property
    def is_dev(self) -> bool:
        return self.env == "dev"

    @property
    def is_gmail_configured(self) -> bool:
        return bool(self.gmail_client_id and self.gmail_client_secret and self.gmail_refresh_token)

    @property
    def is_discord_configured(self) -> bool:
        return bool(self.discord_token and self.discord_channel_id)

    def require_gmail(self):
        if not self.is_gmail_configured:
            raise ConfigError("GMAIL_CLIENT_ID, GMAIL_CLIENT_SECRET and GMAIL_REFRESH_TOKEN are required")

    def require_discord(self):
        if not self.is_discord_configured:
            raise ConfigError("DISCORD_TOKEN and DISCORD_JOB_CHANNEL_ID are required")


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create the global settings"""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


class Capabilities:
    @staticmethod
    def is_db_enabled() -> bool:
        return db_config.is_db_enabled

    @staticmethod
    def check_db_connection() -> bool:
        """Verify database connection with a trivial query"""
        if not Capabilities.is_db_enabled():
            return False

        conn_params = db_config.get_connection_params()
        if not conn_params:
            return False

        try:
            # Very short timeout for health checks
            conn = psycopg2.connect(**conn_params, connect_timeout=1)
            cursor = conn.cursor()
            cursor.execute("SELECT 1")
            cursor.fetchone()
            cursor.close()
            conn.close()
            return True
        except psycopg2.Error:
            return False

    @classmethod
    def get_status(cls, settings: Optional[Settings] = None) -> dict:
        settings = settings or get_settings()
        db = cls.check_db_connection()
        mail = settings.use_mock_mail or settings.is_gmail_configured
        chat = settings.is_discord_configured

        status = "green" if db and mail and chat else "amber"

        return {
            "status": status,
            "env": settings.env,
            "collection": settings.db.collection_name,
            "components": {
                "db": db,
                "mail": mail,
                "mock_mail": settings.use_mock_mail,
                "chat": chat,
            },
        }


def get_env_presence() -> dict:
    required_vars = [
        "JOBRELAY_ENV",
        "JOBRELAY_ALERT_SENDER",
        "JOBRELAY_ADMIN_TOKEN",
        "DATABASE_URL",
        "DISCORD_TOKEN",
        "DISCORD_JOB_CHANNEL_ID",
        "GMAIL_CLIENT_ID",
        "GMAIL_CLIENT_SECRET",
        "GMAIL_REFRESH_TOKEN",
    ]

    return {var: bool(os.getenv(var)) for var in required_vars}
