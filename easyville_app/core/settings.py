import os
from decimal import Decimal
from typing import List

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

from .url_parser import parser

load_dotenv()


class Settings(BaseSettings):
    PROJECT_NAME: str = "EASYVILLE ESTATES LISTING UNLOCK SERVICE"
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./easyville.db")
    DATABASE_ECHO: bool = False

    # Single source of truth for the price of one unlock.
    UNLOCK_FEE: Decimal = Decimal("1000")
    CURRENCY: str = "NGN"

    SECRET_KEY: str = os.getenv("SECRET_KEY", "change-me-in-production")
    ALGORITHM: str = os.getenv("ALGORITHM", "HS256")

    RABBITMQ_URL: str = os.getenv("RABBITMQ_URL", "")
    RABBITMQ_PROOF_EXCHANGE: str = "payment_proof_events"
    RABBITMQ_PROOF_QUEUE: str = "payment_proof_notifications"
    RABBITMQ_DLX: str = "dead_letter_exchange"
    RABBITMQ_DLX_QUEUE: str = "dead_letter_queue"

    UPSTASH_REDIS_TOKEN: str | None = os.getenv("UPSTASH_REDIS_REST_TOKEN")
    UPSTASH_REDIS_URL: str | None = os.getenv("UPSTASH_REDIS_REST_URL")
    STATS_CACHE_TTL: int = 300

    EMAIL_USER: str | None = os.getenv("EMAIL_USER")
    EMAIL_PASSWORD: str | None = os.getenv("EMAIL_PASSWORD")
    EMAIL_SERVER: str | None = os.getenv("EMAIL_SERVER")
    EMAIL_PORT: int = 587
    EMAIL_USE_TLS: bool = True
    ADMIN_NOTIFICATION_EMAIL: str | None = os.getenv("ADMIN_NOTIFICATION_EMAIL")
    FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:3000")

    STORAGE_RETRY_ATTEMPTS: int = 2
    ALLOWED_HOSTS_RAW: str = os.getenv("ALLOWED_HOSTS", "")

    @property
    def ALLOWED_HOSTS(self) -> List[str]:
        return parser.parse_url_list(self.ALLOWED_HOSTS_RAW, "ALLOWED_HOSTS")

    @property
    def email_enabled(self) -> bool:
        return bool(self.EMAIL_SERVER and self.EMAIL_USER)

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
    )


settings = Settings()
