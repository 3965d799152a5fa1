"""Configuration schema — Pydantic models for thoughtloop config files."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

DEFAULT_MESSAGE = (
    "⚠️Thought loop detected. The system has terminated this line of thinking "
    "as it is making no progress."
)


class RetryConfig(BaseModel):
    """Bounded retry for the abort and inject calls."""
    attempts: int = Field(1, ge=1)
    initial_delay_ms: int = Field(500, ge=0, alias="initialDelayMs")
    backoff_factor: float = Field(2, ge=1, alias="backoffFactor")
    max_delay_ms: int = Field(5000, ge=0, alias="maxDelayMs")

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class DetectorConfig(BaseModel):
    """Thought loop detection thresholds and interrupt behavior."""
    max_segment_len: int = Field(300, ge=1, alias="maxSegmentLen")
    max_history_segments: int = Field(20, ge=2, alias="maxHistorySegments")
    min_levenshtein_distance: int = Field(30, ge=1, alias="minLevenshteinDistance")
    message: str = DEFAULT_MESSAGE
    suppress_reply: bool = Field(False, alias="suppressReply")
    interrupt_timeout_ms: Optional[int] = Field(300_000, ge=0, alias="interruptTimeoutMs")
    forward_logs: bool = Field(True, alias="forwardLogs")
    retry: RetryConfig = Field(default_factory=RetryConfig)

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    @model_validator(mode="after")
    def _check_message(self) -> "DetectorConfig":
        if not self.message.strip():
            raise ValueError("detector message must not be empty")
        return self


class ServerConfig(BaseModel):
    """Session-control server connection."""
    url: str = "http://127.0.0.1:4096"
    timeout: float = Field(30.0, gt=0)
    directory: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: Optional[str] = None
    format: Optional[Literal["kv", "json", "pretty"]] = None
    console: Optional[bool] = None
    file: Optional[bool] = None
    dev_file: Optional[bool] = Field(None, alias="devFile")

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class Config(BaseModel):
    """Main configuration schema."""
    schema_: Optional[str] = Field(None, alias="$schema")
    log_level: Optional[str] = Field(None, alias="logLevel")
    logging: Optional[LoggingConfig] = None
    detector: DetectorConfig = Field(default_factory=DetectorConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    model_config = ConfigDict(extra="forbid", populate_by_name=True)
