"""
Application configuration and environment settings.
"""
from datetime import date
from decimal import Decimal
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Settings loaded from environment variables (or a local .env file)."""

    APP_NAME: str = "GoBuddy Settlement Service"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./gobuddy/db/gobuddy.db"

    # JWT (tokens are issued by the auth backend, we only decode them)
    SECRET_KEY: str = "your_secret_key"
    ALGORITHM: str = "HS256"

    # RabbitMQ
    RABBITMQ_HOST: str = "localhost"
    RABBITMQ_PORT: int = 5672
    RABBITMQ_USER: str = "guest"
    RABBITMQ_PASSWORD: str = "guest"
    RABBITMQ_VHOST: str = "/"
    EVENTS_EXCHANGE: str = "gobuddy.events"
    EVENTS_QUEUE: str = "gobuddy.settlement.queue"
    ENABLE_EVENT_CONSUMER: bool = False
    ENABLE_EVENT_PUBLISHING: bool = False

    # Settlement periods
    SETTLEMENT_EPOCH_DATE: date = date(2024, 1, 1)
    SETTLEMENT_PERIOD_DAYS: int = 5

    # Fees
    SERVICE_FEE_BASE: Decimal = Decimal("10")
    COMMISSION_FEE_BASE: Decimal = Decimal("5")
    VAT_RATE: Decimal = Decimal("0.12")
    INVOICE_REVERSE_MULTIPLIER: Decimal = Decimal("1.22")

    # Overdue settlements
    OVERDUE_LOCK_GRACE_DAYS: int = 5
    ENABLE_OVERDUE_CHECK: bool = False
    OVERDUE_CHECK_INTERVAL_SECONDS: int = 86400

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
