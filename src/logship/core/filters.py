"""
Level filter directives in env-logger style.

A filter string is a comma separated list of directives, optionally
followed by ``/regex`` restricting which messages pass::

    info
    warn,logship.api=debug
    info,noisy.module=off/^request

Each directive is ``level``, ``target=level`` or a bare ``target`` (all
levels). The directive with the longest matching target prefix decides.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Pattern

import structlog

from ..models.record import TRACE

logger = structlog.get_logger(__name__)

OFF = logging.CRITICAL + 10

LEVEL_NAMES = {
    "off": OFF,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "trace": TRACE,
}


@dataclass(frozen=True)
class Directive:
    """Minimum level for records whose logger name starts with ``target``."""
    target: Optional[str]
    level: int


def _parse_level(text: str) -> Optional[int]:
    return LEVEL_NAMES.get(text.strip().lower())


def _matches(target: str, name: str) -> bool:
    return name == target or name.startswith(target + ".")


class DirectiveFilter(logging.Filter):
    """
    A ``logging.Filter`` applying parsed directives.

    Without any directive only errors pass, matching env-logger defaults.
    """

    def __init__(
        self,
        directives: List[Directive],
        message_pattern: Optional[Pattern[str]] = None,
    ) -> None:
        super().__init__()
        # Longest targets first; the default directive (target None) last.
        self.directives = sorted(
            directives,
            key=lambda d: -1 if d.target is None else len(d.target),
            reverse=True,
        )
        self.message_pattern = message_pattern

    @property
    def min_level(self) -> int:
        """Lowest level any directive lets through."""
        if not self.directives:
            return logging.ERROR
        return min(d.level for d in self.directives)

    def level_for(self, name: str) -> int:
        for directive in self.directives:
            if directive.target is None or _matches(directive.target, name):
                return directive.level
        return logging.ERROR

    def enabled(self, name: str, levelno: int) -> bool:
        return levelno >= self.level_for(name)

    def filter(self, record: logging.LogRecord) -> bool:
        if not self.enabled(record.name, record.levelno):
            return False
        if self.message_pattern is not None:
            return self.message_pattern.search(record.getMessage()) is not None
        return True


def parse_filters(filters: str) -> DirectiveFilter:
    """
    Parse a filter string into a DirectiveFilter.

    Malformed directives are skipped with a warning rather than failing.
    """
    filters = filters or ""
    message_pattern = None

    directives_part, sep, regex_part = filters.partition("/")
    if sep:
        try:
            message_pattern = re.compile(regex_part)
        except re.error as e:
            logger.warning("Invalid message filter regex, ignoring", regex=regex_part, error=str(e))

    # Later directives for the same target replace earlier ones.
    directives: Dict[Optional[str], Directive] = {}
    for raw in directives_part.split(","):
        part = raw.strip()
        if not part:
            continue

        if "=" in part:
            target, _, level_text = part.partition("=")
            level = _parse_level(level_text)
            if level is None or not target.strip():
                logger.warning("Ignoring invalid filter directive", directive=part)
                continue
            directives[target.strip()] = Directive(target=target.strip(), level=level)
            continue

        level = _parse_level(part)
        if level is not None:
            directives[None] = Directive(target=None, level=level)
        else:
            # A bare target enables every level for it.
            directives[part] = Directive(target=part, level=TRACE)

    return DirectiveFilter(list(directives.values()), message_pattern)
