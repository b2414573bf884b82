"""
Module: settings.py
Description: Application configuration using pydantic-settings.

Configures storage, delivery, and retry settings from environment
variables with validation and defaults. Supports .env files for
local development.
"""

import re
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application settings
    app_name: str = Field(default="Tweet Webhooks", description="Application name")
    app_version: str = Field(default="0.3.0", description="Application version")
    log_level: str = Field(default="INFO", description="Logging level")
    stage: str = Field(default="dev", description="Deployment stage")

    # AWS settings
    aws_region: str = Field(default="us-east-1", description="AWS region")
    dynamodb_endpoint_url: Optional[str] = Field(
        default=None,
        description="Override DynamoDB endpoint (e.g. DynamoDB Local)"
    )

    # DynamoDB settings
    configs_table_name: str = Field(
        default="tweet-webhooks-configs",
        description="Name of the DynamoDB webhook configuration table"
    )
    logs_table_name: str = Field(
        default="tweet-webhooks-logs",
        description="Name of the DynamoDB webhook delivery log table"
    )

    # Delivery settings
    delivery_timeout_ms: int = Field(
        default=10000,
        ge=100,
        le=60000,
        description="HTTP timeout in milliseconds for delivery attempts"
    )
    test_timeout_ms: int = Field(
        default=5000,
        ge=100,
        le=60000,
        description="HTTP timeout in milliseconds for connectivity tests"
    )

    # Retry settings
    retry_base_delay_ms: int = Field(
        default=1000,
        ge=1,
        description="Delay before the first retry; doubles per retry"
    )
    retry_max_delay_ms: int = Field(
        default=5 * 60 * 1000,
        ge=1,
        description="Upper bound for the delay between retries"
    )

    # Metrics settings
    metrics_enabled: bool = Field(default=False, description="Publish CloudWatch metrics")
    metrics_namespace: str = Field(default="TweetWebhooks", description="CloudWatch namespace")

    @field_validator('configs_table_name', 'logs_table_name')
    @classmethod
    def validate_table_names(cls, v: str) -> str:
        """Validate DynamoDB table names."""
        if not v or not isinstance(v, str):
            raise ValueError("Table name must be a non-empty string")

        if not re.match(r'^[a-zA-Z0-9_.-]+$', v):
            raise ValueError(
                "Table name must contain only letters, numbers, dots, hyphens, and underscores"
            )

        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid logging level."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of: {', '.join(valid_levels)}")
        return v.upper()

    @model_validator(mode='after')
    def validate_retry_window(self) -> 'Settings':
        """The retry cap can never be shorter than the first delay."""
        if self.retry_max_delay_ms < self.retry_base_delay_ms:
            raise ValueError("retry_max_delay_ms must be >= retry_base_delay_ms")
        return self


# Global settings instance
settings = Settings()
