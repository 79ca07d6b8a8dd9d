from __future__ import annotations
"""server/alerting/core/config.py
~~~~~~~~~~~~~~~~~~~~~~~~
Paramètres (pydantic-settings).
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite+pysqlite:///./alerting.db"
    DB_CONNECT_TIMEOUT: int = Field(5, ge=1)

    # Boucle d'évaluation
    EVALUATION_INTERVAL_SECONDS: float = Field(30.0, gt=0)
    METRIC_WINDOW_MINUTES: int = Field(5, ge=1)
    CHANNEL_REFRESH_SECONDS: float = Field(300.0, gt=0)
    FETCH_MAX_WORKERS: int = Field(8, ge=1)
    DISPATCH_MAX_WORKERS: int = Field(4, ge=1)

    # Timeouts (secondes) : lecture métrique / envoi d'une notification
    METRICS_TIMEOUT_SECONDS: float = Field(5.0, gt=0)
    NOTIFY_TIMEOUT_SECONDS: float = Field(5.0, gt=0)

    PAGERDUTY_EVENTS_URL: str = "https://events.pagerduty.com/v2/enqueue"
    NOTIFY_USERNAME: str = "Fleet Alerts"
    NOTIFY_FOOTER: str = "Fleet Alerting"

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


settings = Settings()
