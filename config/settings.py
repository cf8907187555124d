"""
Configuration management using pydantic-settings.

Hierarchical configuration with environment variable support.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class KafkaSettings(BaseSettings):
    """Kafka connection and topic settings."""

    model_config = SettingsConfigDict(env_prefix="KAFKA_")

    bootstrap_servers: str = Field(default="localhost:9092")
    client_id: str = Field(default="book-order-router")

    # Topic names double as consumer group names
    camel_topic: str = Field(default="camel-book")
    strimzi_topic: str = Field(default="strimzi-book")

    ack_level: Literal["all", "leader"] = Field(
        default="all",
        description="Producer acknowledgment level",
    )
    request_timeout_ms: int = Field(default=30000, ge=1000)
    auto_offset_reset: Literal["earliest", "latest"] = Field(default="latest")
    enable_auto_commit: bool = Field(default=True)
    auto_commit_interval_ms: int = Field(default=5000, ge=100)

    @field_validator("ack_level", mode="before")
    @classmethod
    def normalize_ack_level(cls, v: str) -> str:
        return v.lower() if isinstance(v, str) else v


class TimerSettings(BaseSettings):
    """Order generation trigger settings."""

    model_config = SettingsConfigDict(env_prefix="TIMER_")

    period_ms: int = Field(default=1000, ge=1, description="Interval between ticks (ms)")
    delay_ms: int = Field(default=1000, ge=0, description="Delay before the first tick (ms)")


class MetricsSettings(BaseSettings):
    """Prometheus exporter settings."""

    model_config = SettingsConfigDict(env_prefix="METRICS_")

    enabled: bool = Field(default=False)
    port: int = Field(default=9108, ge=1, le=65535)


class AppSettings(BaseSettings):
    """Application-level settings."""

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    env: Literal["development", "staging", "production"] = Field(default="development")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")
    log_format: Literal["json", "console"] = Field(default="json")

    # Nested settings
    kafka: KafkaSettings = Field(default_factory=KafkaSettings)
    timer: TimerSettings = Field(default_factory=TimerSettings)
    metrics: MetricsSettings = Field(default_factory=MetricsSettings)

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @property
    def is_development(self) -> bool:
        return self.env == "development"


@lru_cache
def get_settings() -> AppSettings:
    """Get cached application settings."""
    return AppSettings()
