"""
Wiring of the shipping bridge from settings.

configure_logging() sets up structlog over stdlib logging, then
build_bridge() creates the backend client, shipper and root handler.
"""

import logging
import sys
from dataclasses import dataclass
from typing import IO, Any, Optional

import structlog
from structlog.typing import EventDict

from .config import RetrySettings, Settings
from .core.client import CloudWatchLogsClient, LogStreamClient
from .core.filters import DirectiveFilter, parse_filters
from .core.formatter import FormatState, RecordFormatter
from .core.handler import LogShipHandler, install_handler
from .core.memory import InMemoryLogStreamClient
from .core.metrics import MetricsCollector
from .core.retry import RetryPolicy
from .core.shipper import LogShipper

logger = structlog.get_logger(__name__)


def render_event(logger: Any, method_name: str, event_dict: EventDict) -> str:
    """Final structlog processor: ``event key=value ...``."""
    event = event_dict.pop("event", "")
    extras = " ".join(f"{key}={value}" for key, value in event_dict.items())
    if extras:
        return f"{event} {extras}"
    return str(event)


def configure_logging() -> None:
    """
    Configure structlog to hand rendered messages to stdlib logging.

    Level filtering and output are owned by the root handler installed by
    build_bridge(); structlog only renders the message.
    """
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            render_event,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def build_policy(settings: RetrySettings, name: str) -> RetryPolicy:
    return RetryPolicy(
        base_delay=settings.base_delay_seconds,
        max_delay=settings.max_delay_seconds,
        max_attempts=settings.max_attempts,
        jitter=settings.jitter,
        name=name,
    )


def build_client(settings: Settings) -> LogStreamClient:
    """Create the backend client selected in settings."""
    stream = settings.stream
    if stream.backend == "memory":
        client = InMemoryLogStreamClient()
        client.create_stream(stream.log_group, stream.log_stream)
        return client

    return CloudWatchLogsClient(
        endpoint_url=stream.endpoint_url,
        timeout_seconds=stream.timeout_seconds,
        extra_headers=stream.extra_headers,
    )


@dataclass
class LogBridge:
    """The installed pieces of the shipping bridge."""
    shipper: LogShipper
    handler: LogShipHandler
    log_filter: DirectiveFilter
    format_state: FormatState

    async def start(self) -> None:
        await self.shipper.start()

    async def stop(self, drain_timeout: Optional[float] = None) -> None:
        await self.shipper.stop(drain_timeout=drain_timeout)


def build_bridge(
    settings: Settings,
    client: Optional[LogStreamClient] = None,
    metrics: Optional[MetricsCollector] = None,
    stream: Optional[IO[str]] = None,
    root: Optional[logging.Logger] = None,
) -> LogBridge:
    """
    Build the shipper and register its handler as the root sink.

    The shipper still has to be started from inside the event loop.
    """
    output = stream if stream is not None else sys.stderr
    use_color = settings.color
    if use_color is None:
        use_color = bool(getattr(output, "isatty", lambda: False)())

    shipper = LogShipper(
        client=client if client is not None else build_client(settings),
        group=settings.stream.log_group,
        stream=settings.stream.log_stream,
        outer_policy=build_policy(settings.outer_retry, "outer"),
        inner_policy=build_policy(settings.inner_retry, "inner"),
        metrics=metrics,
        max_in_flight=settings.stream.max_in_flight,
    )

    format_state = FormatState()
    log_filter = parse_filters(settings.log_filter)
    handler = install_handler(
        LogShipHandler(
            formatter=RecordFormatter(format_state, use_color=use_color),
            shipper=shipper,
            stream=output,
            exclude_targets=settings.stream.exclude_targets,
        ),
        log_filter,
        root=root,
    )

    if handler.shipper is None:
        handler.shipper = shipper
    elif handler.shipper is not shipper:
        # An already installed handler keeps its own shipper, filter and
        # settings; only the metrics collector follows the caller.
        logger.warning(
            "Log shipping handler already installed, reusing its shipper",
            group=handler.shipper.group,
            stream=handler.shipper.stream,
        )
        if metrics is not None:
            handler.shipper.metrics = metrics

    installed_filter = next(
        (f for f in handler.filters if isinstance(f, DirectiveFilter)),
        log_filter,
    )
    return LogBridge(
        shipper=handler.shipper,
        handler=handler,
        log_filter=installed_filter,
        format_state=handler.record_formatter.state,
    )
