"""
Tests for LogShipHandler, the root logging sink.

Tests the synchronous terminal path and the hand-off to the shipper.
"""

import io
import logging
import uuid
from unittest.mock import Mock

import pytest
from prometheus_client import CollectorRegistry

from logship.core.exceptions import TransientBackendError
from logship.core.filters import parse_filters
from logship.core.formatter import FormatState, RecordFormatter
from logship.core.handler import LogShipHandler, install_handler
from logship.core.memory import InMemoryLogStreamClient
from logship.core.metrics import MetricsCollector
from logship.core.retry import RetryPolicy
from logship.core.shipper import LogShipper
from logship.models.record import TRACE


def isolated_logger(name: str = "app") -> logging.Logger:
    """A logger detached from the root so tests do not share handlers."""
    logger = logging.getLogger(f"{name}.{uuid.uuid4().hex[:8]}")
    logger.propagate = False
    logger.setLevel(TRACE)
    return logger


def attach(logger: logging.Logger, handler: LogShipHandler, filters: str = "trace") -> None:
    handler.addFilter(parse_filters(filters))
    logger.addHandler(handler)


class TestTerminalPath:
    """Test local output."""

    def test_line_written_and_shipped(self, terminal: io.StringIO) -> None:
        """Test one record prints a line and submits the same plain text."""
        shipper = Mock(spec=LogShipper)
        handler = LogShipHandler(
            RecordFormatter(FormatState(), use_color=False), shipper=shipper, stream=terminal
        )
        logger = isolated_logger()
        attach(logger, handler)

        logger.info("up %s", "now")

        expected = f" INFO  {logger.name} > up now"
        assert terminal.getvalue() == expected + "\n"
        shipper.submit.assert_called_once_with(expected)

    def test_coloured_terminal_plain_shipment(self, terminal: io.StringIO) -> None:
        """Test escapes reach the terminal but never the shipper."""
        shipper = Mock(spec=LogShipper)
        handler = LogShipHandler(
            RecordFormatter(FormatState(), use_color=True), shipper=shipper, stream=terminal
        )
        logger = isolated_logger()
        attach(logger, handler)

        logger.error("boom")

        assert "\033[31mERROR" in terminal.getvalue()
        shipped = shipper.submit.call_args.args[0]
        assert "\033[" not in shipped
        assert shipped == f" ERROR {logger.name} > boom"

    def test_filtered_records_never_enter_pipeline(self, terminal: io.StringIO) -> None:
        """Test records below the minimum are neither printed nor shipped."""
        shipper = Mock(spec=LogShipper)
        handler = LogShipHandler(
            RecordFormatter(FormatState(), use_color=False), shipper=shipper, stream=terminal
        )
        logger = isolated_logger()
        attach(logger, handler, "warn")

        logger.info("quiet")
        logger.log(TRACE, "quieter")
        logger.warning("loud")

        assert terminal.getvalue().count("\n") == 1
        assert "loud" in terminal.getvalue()
        assert shipper.submit.call_count == 1

    def test_filtered_records_do_not_widen_tags(self, terminal: io.StringIO) -> None:
        """Test a filtered record does not touch the width state."""
        state = FormatState()
        handler = LogShipHandler(RecordFormatter(state, use_color=False), stream=terminal)
        logger = isolated_logger("a-very-long-logger-name")
        attach(logger, handler, "error")

        logger.info("dropped")

        assert state.max_tag_width == 0

    def test_excluded_targets_print_but_do_not_ship(self, terminal: io.StringIO) -> None:
        """Test the shipper's own loggers are kept local."""
        shipper = Mock(spec=LogShipper)
        handler = LogShipHandler(
            RecordFormatter(FormatState(), use_color=False),
            shipper=shipper,
            stream=terminal,
            exclude_targets=["logship.core"],
        )
        internal = logging.getLogger("logship.core.shipper.test")
        internal.propagate = False
        internal.addHandler(handler)
        internal.setLevel(logging.INFO)
        try:
            internal.info("internal detail")
        finally:
            internal.removeHandler(handler)

        assert "internal detail" in terminal.getvalue()
        shipper.submit.assert_not_called()

    def test_shipper_failure_never_reaches_caller(
        self, terminal: io.StringIO, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test an exploding shipper is reported via handleError, not raised."""
        monkeypatch.setattr(logging, "raiseExceptions", False)
        shipper = Mock(spec=LogShipper)
        shipper.submit.side_effect = RuntimeError("backend exploded")
        handler = LogShipHandler(
            RecordFormatter(FormatState(), use_color=False), shipper=shipper, stream=terminal
        )
        logger = isolated_logger()
        attach(logger, handler)

        logger.error("still printed")

        assert "still printed" in terminal.getvalue()

    def test_works_without_shipper(self, terminal: io.StringIO) -> None:
        """Test the handler can run as a plain terminal sink."""
        handler = LogShipHandler(RecordFormatter(FormatState(), use_color=False), stream=terminal)
        logger = isolated_logger()
        attach(logger, handler)

        logger.debug("local only")

        assert terminal.getvalue().endswith("> local only\n")


class TestFacadeWithShipper:
    """Test the handler against a running shipper."""

    @pytest.mark.asyncio
    async def test_terminal_line_precedes_remote_attempts(self, terminal: io.StringIO) -> None:
        """Test the line is printed before shipping starts and exhaustion stays silent."""
        client = InMemoryLogStreamClient()
        client.create_stream("test-group", "test-stream")
        client.fail_describe(*[TransientBackendError("down") for _ in range(4)])
        registry = CollectorRegistry()
        shipper = LogShipper(
            client=client,
            group="test-group",
            stream="test-stream",
            outer_policy=RetryPolicy(base_delay=0, max_attempts=2),
            inner_policy=RetryPolicy(base_delay=0, max_attempts=2),
            metrics=MetricsCollector(registry=registry),
        )
        await shipper.start()
        handler = LogShipHandler(
            RecordFormatter(FormatState(), use_color=False), shipper=shipper, stream=terminal
        )
        logger = isolated_logger()
        attach(logger, handler)

        logger.warning("doomed")

        assert "> doomed" in terminal.getvalue()
        assert client.describe_calls == 0

        await shipper.stop()

        assert client.describe_calls == 4
        assert client.events("test-group", "test-stream") == []
        assert registry.get_sample_value(
            "logship_records_dropped_total", {"reason": "retry_exhausted"}
        ) == 1

    @pytest.mark.asyncio
    async def test_records_reach_remote_stream(self, terminal: io.StringIO) -> None:
        """Test the shipped body matches the printed line."""
        client = InMemoryLogStreamClient()
        client.create_stream("test-group", "test-stream")
        shipper = LogShipper(
            client=client,
            group="test-group",
            stream="test-stream",
            outer_policy=RetryPolicy(base_delay=0, max_attempts=4),
            inner_policy=RetryPolicy(base_delay=0, max_attempts=10),
        )
        await shipper.start()
        handler = LogShipHandler(
            RecordFormatter(FormatState(), use_color=False), shipper=shipper, stream=terminal
        )
        logger = isolated_logger()
        attach(logger, handler)

        logger.info("hello")
        await shipper.stop()

        shipped = [e.message for e in client.events("test-group", "test-stream")]
        assert shipped == [terminal.getvalue().rstrip("\n")]


class TestInstallHandler:
    """Test registration as the process sink."""

    def test_install_once(self, terminal: io.StringIO) -> None:
        """Test a second installation returns the first handler."""
        root = isolated_logger("root-standin")
        first = LogShipHandler(RecordFormatter(FormatState()), stream=terminal)
        second = LogShipHandler(RecordFormatter(FormatState()), stream=terminal)

        assert install_handler(first, parse_filters("debug"), root=root) is first
        assert install_handler(second, parse_filters("trace"), root=root) is first
        assert root.handlers == [first]

    def test_install_sets_minimum_level(self, terminal: io.StringIO) -> None:
        """Test the logger level lets the most verbose directive through."""
        root = isolated_logger("root-standin")
        handler = LogShipHandler(RecordFormatter(FormatState()), stream=terminal)

        install_handler(handler, parse_filters("warn,app.db=trace"), root=root)

        assert root.level == TRACE
