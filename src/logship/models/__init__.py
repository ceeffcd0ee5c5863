"""
Pydantic data models package.

Contains the record and wire models shared by the formatter,
the shipper and the backend clients.
"""

from .record import TRACE, InputLogEvent, LogLevel, LogRecord, StreamDescription

__all__ = [
    "TRACE",
    "InputLogEvent",
    "LogLevel",
    "LogRecord",
    "StreamDescription",
]
