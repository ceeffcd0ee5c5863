"""
Async shipper sending rendered log lines to a remote log stream.

Features:
- One independent task per record, no queue and no batching
- Describe -> append sequence under an outer retry policy
- Describe step alone under an inner retry policy
- Records that exhaust their retries are dropped
- Optional cap on concurrently running shipping sequences
"""

import asyncio
import threading
import time
from typing import Any, Dict, Optional, Set

import structlog

from ..models.record import InputLogEvent, StreamDescription
from .client import LogStreamClient
from .exceptions import LogShipException, TokenConflictError
from .metrics import MetricsCollector
from .retry import RetryPolicy

logger = structlog.get_logger(__name__)


class LogShipper:
    """
    Fire-and-forget shipper for a single (group, stream) destination.

    Every shipping task fetches the stream's write token itself; nothing is
    cached between tasks, so concurrent tasks may race and the loser retries
    after a token conflict.
    """

    def __init__(
        self,
        client: LogStreamClient,
        group: str,
        stream: str,
        outer_policy: RetryPolicy,
        inner_policy: RetryPolicy,
        metrics: Optional[MetricsCollector] = None,
        max_in_flight: Optional[int] = None,
    ) -> None:
        self.client = client
        self.group = group
        self.stream = stream
        self.outer_policy = outer_policy
        self.inner_policy = inner_policy
        self.metrics = metrics
        self.max_in_flight = max_in_flight

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._tasks: Set["asyncio.Task[None]"] = set()
        self._pending_handoffs = 0
        self._handoff_lock = threading.Lock()
        self._closing: Optional["asyncio.Task[None]"] = None
        self._running = False

        logger.info(
            "Log shipper initialized",
            group=group,
            stream=stream,
            outer_max_attempts=outer_policy.max_attempts,
            inner_max_attempts=inner_policy.max_attempts,
            max_in_flight=max_in_flight,
        )

    @property
    def running(self) -> bool:
        return self._running

    @property
    def in_flight(self) -> int:
        """Shipping tasks scheduled or running, including cross-thread hand-offs."""
        with self._handoff_lock:
            return len(self._tasks) + self._pending_handoffs

    async def start(self) -> None:
        """Bind the shipper to the running event loop."""
        if self._running:
            return

        self._loop = asyncio.get_running_loop()
        if self.max_in_flight:
            self._semaphore = asyncio.Semaphore(self.max_in_flight)
        await self.client.start()
        self._running = True

        logger.info("Log shipper started")

    async def stop(self, drain_timeout: Optional[float] = None) -> None:
        """
        Stop accepting records and wait for in-flight tasks.

        Tasks still running after ``drain_timeout`` are left to finish on
        their own; none are cancelled. The client is closed once the last
        of them is done (see ``wait_closed``).
        """
        if not self._running:
            return

        # Records handed over from other threads before stop() still ship.
        while self._pending_count() > 0:
            await asyncio.sleep(0)

        self._running = False

        pending = set(self._tasks)
        still_running: Set["asyncio.Task[None]"] = set()
        if pending:
            logger.info("Draining shipping tasks", pending=len(pending))
            _, still_running = await asyncio.wait(pending, timeout=drain_timeout)

        if still_running:
            logger.warning(
                "Shipping tasks still running after drain timeout, deferring client close",
                pending=len(still_running),
            )
            self._closing = asyncio.create_task(self._close_when_done(still_running))
            return

        await self.client.close()
        logger.info("Log shipper stopped")

    async def wait_closed(self) -> None:
        """Wait for a client close deferred by ``stop``."""
        if self._closing is not None:
            await self._closing

    async def _close_when_done(self, tasks: Set["asyncio.Task[None]"]) -> None:
        await asyncio.wait(tasks)
        await self.client.close()
        logger.info("Log shipper stopped")

    def submit(self, message: str) -> None:
        """
        Schedule shipping of one rendered line and return immediately.

        Safe to call from any thread. Records submitted while the shipper is
        not running are dropped.
        """
        loop = self._loop
        if not self._running or loop is None or loop.is_closed():
            self._drop("not_started")
            return

        try:
            running_loop: Optional[asyncio.AbstractEventLoop] = asyncio.get_running_loop()
        except RuntimeError:
            running_loop = None

        if running_loop is loop:
            self._spawn(message)
            return

        with self._handoff_lock:
            self._pending_handoffs += 1
        try:
            loop.call_soon_threadsafe(self._spawn_handoff, message)
        except RuntimeError:
            # Loop closed between the check above and the hand-off.
            with self._handoff_lock:
                self._pending_handoffs -= 1
            self._drop("not_started")

    def _spawn_handoff(self, message: str) -> None:
        with self._handoff_lock:
            self._pending_handoffs -= 1
        if not self._running:
            self._drop("not_started")
            return
        self._spawn(message)

    def _pending_count(self) -> int:
        with self._handoff_lock:
            return self._pending_handoffs

    def _spawn(self, message: str) -> None:
        # Always runs on the shipper's loop.
        task = asyncio.create_task(self.ship(message))
        with self._handoff_lock:
            self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: "asyncio.Task[None]") -> None:
        with self._handoff_lock:
            self._tasks.discard(task)

    async def ship(self, message: str) -> None:
        """
        Deliver one line, retrying as the policies allow.

        Never raises; a record that cannot be delivered is dropped.
        """
        started = time.monotonic()
        event = InputLogEvent(timestamp=int(time.time() * 1000), message=message)

        try:
            if self._semaphore is not None:
                async with self._semaphore:
                    await self.outer_policy.retry(lambda: self._describe_and_append(event))
            else:
                await self.outer_policy.retry(lambda: self._describe_and_append(event))

        except LogShipException as e:
            logger.debug(
                "Dropping record after failed shipping",
                group=self.group,
                stream=self.stream,
                error=str(e),
                error_code=e.error_code,
            )
            self._drop(e.error_code, time.monotonic() - started)
            return

        except Exception as e:
            logger.error(
                "Unexpected error while shipping record",
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            self._drop("unexpected_error", time.monotonic() - started)
            return

        if self.metrics:
            self.metrics.record_shipped(time.monotonic() - started)

    async def _describe_and_append(self, event: InputLogEvent) -> Optional[str]:
        description = await self.inner_policy.retry(self._describe)
        token = description.upload_sequence_token

        try:
            next_token = await self.client.append(self.group, self.stream, token, [event])
        except TokenConflictError:
            self._record_call("append", "conflict")
            raise
        except Exception:
            self._record_call("append", "error")
            raise

        self._record_call("append", "success")
        return next_token

    async def _describe(self) -> StreamDescription:
        try:
            description = await self.client.describe_stream(self.group, self.stream)
        except Exception:
            self._record_call("describe", "error")
            raise

        self._record_call("describe", "success")
        return description

    def _record_call(self, operation: str, outcome: str) -> None:
        if self.metrics:
            self.metrics.record_backend_call(operation, outcome)

    def _drop(self, reason: str, duration_seconds: Optional[float] = None) -> None:
        if self.metrics:
            self.metrics.record_dropped(reason, duration_seconds)

    def stats(self) -> Dict[str, Any]:
        """Snapshot used by the health endpoint."""
        return {
            "running": self._running,
            "group": self.group,
            "stream": self.stream,
            "in_flight": self.in_flight,
            "max_in_flight": self.max_in_flight,
        }
