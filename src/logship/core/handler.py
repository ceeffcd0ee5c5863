"""
Root logging handler printing records and handing them to the shipper.

The terminal line is written synchronously; shipping is scheduled and never
awaited, so a slow or failing backend cannot block or fail a log call.
"""

import logging
import sys
from typing import IO, Iterable, Optional, Tuple

from ..models.record import LogRecord
from .filters import DirectiveFilter
from .formatter import RecordFormatter
from .shipper import LogShipper

DEFAULT_EXCLUDED_TARGETS: Tuple[str, ...] = ("logship.core", "aiohttp", "asyncio")


class LogShipHandler(logging.Handler):
    """
    Print each record to a terminal stream and ship its plain rendering.

    Records from ``exclude_targets`` (the shipper's own loggers and its
    HTTP stack) are printed but never shipped.
    """

    def __init__(
        self,
        formatter: RecordFormatter,
        shipper: Optional[LogShipper] = None,
        stream: Optional[IO[str]] = None,
        exclude_targets: Iterable[str] = DEFAULT_EXCLUDED_TARGETS,
    ) -> None:
        super().__init__()
        self.record_formatter = formatter
        self.shipper = shipper
        self.stream = stream if stream is not None else sys.stderr
        self.exclude_targets = tuple(exclude_targets)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            log_record = LogRecord.from_stdlib(record)
            line = self.record_formatter.format_line(log_record)

            self.stream.write(line.styled + "\n")
            self.stream.flush()

            if self.shipper is not None and self._should_ship(log_record.source_tag):
                self.shipper.submit(line.plain)
        except Exception:
            self.handleError(record)

    def _should_ship(self, name: str) -> bool:
        for target in self.exclude_targets:
            if name == target or name.startswith(target + "."):
                return False
        return True


def install_handler(
    handler: LogShipHandler,
    log_filter: DirectiveFilter,
    root: Optional[logging.Logger] = None,
) -> LogShipHandler:
    """
    Register ``handler`` as the root logger's sink.

    Installation happens once; later calls return the handler already
    installed.
    """
    root = root if root is not None else logging.getLogger()

    for existing in root.handlers:
        if isinstance(existing, LogShipHandler):
            return existing

    handler.addFilter(log_filter)
    root.handlers = [handler]
    root.setLevel(log_filter.min_level)
    return handler
