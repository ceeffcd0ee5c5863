"""
Log record data models.

- LogRecord: one emitted log call, immutable once built
- InputLogEvent: the single entry sent with each append
- StreamDescription: what a describe call reports about a stream
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

TRACE = 5
logging.addLevelName(TRACE, "TRACE")


class LogLevel(str, Enum):
    """Shipped log levels, most verbose first."""

    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"

    @classmethod
    def from_levelno(cls, levelno: int) -> "LogLevel":
        """Map a stdlib numeric level onto the five shipped levels."""
        if levelno >= logging.ERROR:
            return cls.ERROR
        if levelno >= logging.WARNING:
            return cls.WARN
        if levelno >= logging.INFO:
            return cls.INFO
        if levelno >= logging.DEBUG:
            return cls.DEBUG
        return cls.TRACE


class LogRecord(BaseModel):
    """A single structured log record as seen by the formatter and shipper."""

    level: LogLevel = Field(description="Record severity")
    source_tag: str = Field(description="Emitting logger name")
    message: str = Field(description="Rendered message text")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the log call happened",
    )

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_stdlib(cls, record: logging.LogRecord) -> "LogRecord":
        """Build a record from a stdlib logging record."""
        return cls(
            level=LogLevel.from_levelno(record.levelno),
            source_tag=record.name,
            message=record.getMessage(),
            timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc),
        )


class InputLogEvent(BaseModel):
    """One entry of an append request."""

    timestamp: int = Field(description="Milliseconds since the Unix epoch")
    message: str = Field(description="Shipped message body")

    model_config = ConfigDict(frozen=True)


class StreamDescription(BaseModel):
    """Current state of a log stream as reported by describe."""

    group: str
    stream: str
    upload_sequence_token: Optional[str] = Field(
        default=None,
        description="Token the next append must present; absent for a fresh stream",
    )

    model_config = ConfigDict(frozen=True)
