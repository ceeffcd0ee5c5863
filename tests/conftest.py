"""
Pytest configuration and shared fixtures.

Contains common test fixtures and setup for all test modules.
"""

import io
import logging
from typing import Generator

import pytest
from prometheus_client import CollectorRegistry

from logship.bootstrap import configure_logging
from logship.config import (
    InnerRetrySettings,
    OuterRetrySettings,
    Settings,
    StreamSettings,
    get_settings,
)
from logship.core.memory import InMemoryLogStreamClient
from logship.core.metrics import MetricsCollector
from logship.core.retry import RetryPolicy

GROUP = "test-group"
STREAM = "test-stream"


@pytest.fixture(scope="session", autouse=True)
def structlog_over_stdlib() -> None:
    """Route structlog through stdlib logging as the application does."""
    configure_logging()


@pytest.fixture(autouse=True)
def clean_root_logger() -> Generator[None, None, None]:
    """Restore root logger handlers and level after each test."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
    get_settings.cache_clear()


@pytest.fixture
def memory_client() -> InMemoryLogStreamClient:
    """In-memory backend with the default stream created and no token yet."""
    client = InMemoryLogStreamClient()
    client.create_stream(GROUP, STREAM)
    return client


@pytest.fixture
def outer_policy() -> RetryPolicy:
    """Outer policy without delays."""
    return RetryPolicy(base_delay=0, max_delay=0, max_attempts=4, name="outer")


@pytest.fixture
def inner_policy() -> RetryPolicy:
    """Inner policy without delays."""
    return RetryPolicy(base_delay=0, max_delay=0, max_attempts=10, name="inner")


@pytest.fixture
def registry() -> CollectorRegistry:
    return CollectorRegistry()


@pytest.fixture
def metrics(registry: CollectorRegistry) -> MetricsCollector:
    return MetricsCollector(registry=registry)


@pytest.fixture
def terminal() -> io.StringIO:
    """Stand-in for the terminal stream."""
    return io.StringIO()


@pytest.fixture
def test_settings() -> Settings:
    """Settings using the in-memory backend and zero backoff."""
    return Settings(
        log_filter="info,httpx=off,httpcore=off",
        color=False,
        stream=StreamSettings(backend="memory", drain_timeout_seconds=5),
        outer_retry=OuterRetrySettings(base_delay_seconds=0, max_delay_seconds=0),
        inner_retry=InnerRetrySettings(base_delay_seconds=0, max_delay_seconds=0),
    )
