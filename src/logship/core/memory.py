"""
In-memory log stream backend.

Behaves like the remote service: every successful append advances the
stream's write token and appends presenting any other token are rejected.
Failures can be queued per operation to simulate throttling and races.
"""

import asyncio
import itertools
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional, Sequence, Tuple

from ..models.record import InputLogEvent, StreamDescription
from .client import LogStreamClient
from .exceptions import StreamNotFoundError, TokenConflictError


@dataclass
class MemoryStream:
    """Stored events and current write token of one stream."""
    token: Optional[str] = None
    events: List[InputLogEvent] = field(default_factory=list)


class InMemoryLogStreamClient(LogStreamClient):
    """LogStreamClient keeping streams in a dict."""

    def __init__(self, latency_seconds: float = 0.0) -> None:
        self.latency_seconds = latency_seconds
        self.streams: Dict[Tuple[str, str], MemoryStream] = {}
        self.describe_calls = 0
        self.append_calls = 0
        self._describe_failures: Deque[BaseException] = deque()
        self._append_failures: Deque[BaseException] = deque()
        self._tokens = itertools.count(1)

    def create_stream(self, group: str, stream: str, token: Optional[str] = None) -> MemoryStream:
        """Create (or reset) a stream, optionally seeding its token."""
        self.streams[(group, stream)] = MemoryStream(token=token)
        return self.streams[(group, stream)]

    def events(self, group: str, stream: str) -> List[InputLogEvent]:
        return list(self._stream(group, stream).events)

    def current_token(self, group: str, stream: str) -> Optional[str]:
        return self._stream(group, stream).token

    def fail_describe(self, *errors: BaseException) -> None:
        """Make the next describe calls raise these errors, in order."""
        self._describe_failures.extend(errors)

    def fail_append(self, *errors: BaseException) -> None:
        """Make the next append calls raise these errors, in order."""
        self._append_failures.extend(errors)

    async def describe_stream(self, group: str, stream: str) -> StreamDescription:
        self.describe_calls += 1
        await self._pause()

        if self._describe_failures:
            raise self._describe_failures.popleft()

        memory_stream = self._stream(group, stream)
        return StreamDescription(
            group=group,
            stream=stream,
            upload_sequence_token=memory_stream.token,
        )

    async def append(
        self,
        group: str,
        stream: str,
        token: Optional[str],
        events: Sequence[InputLogEvent],
    ) -> Optional[str]:
        self.append_calls += 1
        await self._pause()

        if self._append_failures:
            raise self._append_failures.popleft()

        memory_stream = self._stream(group, stream)
        if token != memory_stream.token:
            raise TokenConflictError(
                message=f"The given sequenceToken is invalid: {token}",
                expected_token=memory_stream.token,
            )

        memory_stream.events.extend(events)
        memory_stream.token = str(next(self._tokens))
        return memory_stream.token

    def _stream(self, group: str, stream: str) -> MemoryStream:
        try:
            return self.streams[(group, stream)]
        except KeyError:
            raise StreamNotFoundError(group, stream) from None

    async def _pause(self) -> None:
        # Suspends even when latency is zero.
        await asyncio.sleep(self.latency_seconds)
