"""
Configuration management module using Pydantic Settings.

This module provides type-safe configuration management with environment variable
support and validation for tracefuse.
"""

import os
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tracefuse.constants import (
    BODY_MAX_LINES,
    DEFAULT_CLI_EXECUTABLE,
    DEFAULT_LOG_PATH,
    DEFAULT_REPORT_PATH,
    ERROR_CONTEXT_LINES,
    FAILURE_MESSAGE_LIMIT,
    RETRY_LOOKAHEAD_LINES,
)


class Settings(BaseSettings):
    """
    Application settings with environment variable support.

    All settings can be overridden via environment variables with the same name.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Logging Configuration
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level"
    )
    log_format: Literal["structured", "simple"] = Field(
        default="structured",
        description="Log format type"
    )
    sanitize_logs: bool = Field(
        default=True,
        description="Sanitize sensitive information from logs"
    )

    # Wrapped Test Runner
    cli_executable: str = Field(
        default=DEFAULT_CLI_EXECUTABLE,
        description="Executable of the HTTP test runner"
    )
    environment: Optional[str] = Field(
        default=None,
        description="Environment passed to the test runner with -e"
    )
    process_timeout: float = Field(
        default=60.0,
        gt=0,
        le=3600,
        description="Timeout for one test runner invocation in seconds"
    )
    report_path: str = Field(
        default=DEFAULT_REPORT_PATH,
        description="Path of the XML report written by the test runner"
    )
    log_path: str = Field(
        default=DEFAULT_LOG_PATH,
        description="Path of the trace-level log written by the test runner"
    )

    # Report Polling
    report_wait_timeout: float = Field(
        default=10.0,
        ge=0,
        le=300,
        description="How long to wait for the report to be rewritten, in seconds"
    )
    report_poll_interval: float = Field(
        default=0.1,
        gt=0,
        le=10,
        description="Polling interval for the report modification time, in seconds"
    )

    # Scanner Windows
    body_max_lines: int = Field(
        default=BODY_MAX_LINES,
        ge=1,
        le=10000,
        description="Maximum number of lines collected for one logged body"
    )
    retry_lookahead_lines: int = Field(
        default=RETRY_LOOKAHEAD_LINES,
        ge=1,
        le=1000,
        description="Lines searched after a retry marker for the attempt outcome"
    )
    error_context_lines: int = Field(
        default=ERROR_CONTEXT_LINES,
        ge=1,
        le=100,
        description="Lines searched after an error marker for its classification"
    )

    # Report Parsing
    failure_message_limit: int = Field(
        default=FAILURE_MESSAGE_LIMIT,
        ge=20,
        le=10000,
        description="Maximum length of a failure message taken from the report"
    )

    # Output Settings
    output_indent: int = Field(
        default=2,
        ge=0,
        le=8,
        description="JSON indentation for output files"
    )

    @field_validator("report_path", "log_path")
    @classmethod
    def validate_artifact_path(cls, v: str) -> str:
        """Normalize artefact paths."""
        if not v.strip():
            raise ValueError("Artefact path must not be empty")
        return os.path.normpath(v)

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: Optional[str]) -> Optional[str]:
        """Treat a blank environment name as unset."""
        if v is not None and not v.strip():
            return None
        return v


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """
    Get the current settings instance.

    Returns:
        Settings: The global settings instance
    """
    return settings
