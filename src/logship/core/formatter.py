"""
Terminal line formatting for log records.

Lines look like `` INFO  app.db   > connected``: a fixed-width level label,
the source tag padded to the widest tag seen so far, then the message.
"""

import threading
from dataclasses import dataclass
from typing import Dict, Tuple

from ..models.record import LogLevel, LogRecord

RESET = "\033[0m"
BOLD = "\033[1m"

LEVEL_STYLES: Dict[LogLevel, Tuple[str, str]] = {
    LogLevel.TRACE: ("TRACE", "\033[35m"),  # magenta
    LogLevel.DEBUG: ("DEBUG", "\033[34m"),  # blue
    LogLevel.INFO: ("INFO ", "\033[32m"),   # green
    LogLevel.WARN: ("WARN ", "\033[33m"),   # yellow
    LogLevel.ERROR: ("ERROR", "\033[31m"),  # red
}


class FormatState:
    """
    Widest source tag observed, shared by every formatter that holds it.

    The width only ever grows.
    """

    def __init__(self, max_tag_width: int = 0) -> None:
        self._max_tag_width = max_tag_width
        self._lock = threading.Lock()

    @property
    def max_tag_width(self) -> int:
        return self._max_tag_width

    def observe(self, width: int) -> int:
        """Record a tag width and return the current maximum."""
        with self._lock:
            if width > self._max_tag_width:
                self._max_tag_width = width
            return self._max_tag_width


@dataclass(frozen=True)
class FormattedLine:
    """A record rendered both as plain text and with terminal styling."""
    plain: str
    styled: str


class RecordFormatter:
    """Render LogRecords into column-aligned, optionally coloured lines."""

    def __init__(self, state: FormatState, use_color: bool = True) -> None:
        self.state = state
        self.use_color = use_color

    def format(self, record: LogRecord) -> str:
        """Plain rendered line; this is also the shipped message body."""
        return self.format_line(record).plain

    def format_line(self, record: LogRecord) -> FormattedLine:
        width = self.state.observe(len(record.source_tag))
        label, color = LEVEL_STYLES[record.level]
        tag = record.source_tag.ljust(width)

        plain = f" {label} {tag} > {record.message}"
        if not self.use_color:
            return FormattedLine(plain=plain, styled=plain)

        styled = f" {color}{label}{RESET} {BOLD}{tag}{RESET} > {record.message}"
        return FormattedLine(plain=plain, styled=styled)
