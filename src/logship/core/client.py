"""
Log stream backend clients.

LogStreamClient is the capability the shipper depends on: describe a stream
to learn its current write token, and append entries presenting that token.
CloudWatchLogsClient implements it over the CloudWatch Logs JSON protocol.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

import aiohttp
import structlog

from ..models.record import InputLogEvent, StreamDescription
from .exceptions import (
    BackendRequestError,
    StreamNotFoundError,
    TokenConflictError,
    TransientBackendError,
)

logger = structlog.get_logger(__name__)

TARGET_PREFIX = "Logs_20140328"

CONFLICT_ERRORS = {"InvalidSequenceTokenException", "DataAlreadyAcceptedException"}
TRANSIENT_ERRORS = {
    "ThrottlingException",
    "ServiceUnavailableException",
    "OperationAbortedException",
    "LimitExceededException",
}


class LogStreamClient(ABC):
    """Describe + append capability of an append-only log stream backend."""

    @abstractmethod
    async def describe_stream(self, group: str, stream: str) -> StreamDescription:
        """Return the stream's current state, including its write token."""
        ...

    @abstractmethod
    async def append(
        self,
        group: str,
        stream: str,
        token: Optional[str],
        events: Sequence[InputLogEvent],
    ) -> Optional[str]:
        """Append events presenting ``token``; return the stream's next token."""
        ...

    async def start(self) -> None:
        """Acquire any resources the client needs."""

    async def close(self) -> None:
        """Release client resources."""


class CloudWatchLogsClient(LogStreamClient):
    """
    aiohttp client for the CloudWatch Logs JSON API.

    Requests are sent unsigned to ``endpoint_url``; point it at a signing
    proxy or a local emulator. ``extra_headers`` are added to every request.
    """

    def __init__(
        self,
        endpoint_url: str,
        timeout_seconds: float = 30,
        extra_headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self.endpoint_url = endpoint_url
        self.timeout_seconds = timeout_seconds
        self.extra_headers = extra_headers or {}
        self.session: Optional[aiohttp.ClientSession] = None
        self._closed = False

        logger.info("CloudWatch Logs client initialized", endpoint_url=endpoint_url)

    async def start(self) -> None:
        self._closed = False
        self._get_session()

    async def close(self) -> None:
        self._closed = True
        if self.session:
            await self.session.close()
            self.session = None

    def _get_session(self) -> aiohttp.ClientSession:
        """Open the session on first use; a closed client stays closed until start()."""
        if self.session is None:
            if self._closed:
                raise BackendRequestError(
                    "CloudWatch Logs client is closed",
                    details={"endpoint_url": self.endpoint_url},
                )
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds)
            )
        return self.session

    async def describe_stream(self, group: str, stream: str) -> StreamDescription:
        response = await self._call(
            "DescribeLogStreams",
            {"logGroupName": group, "logStreamNamePrefix": stream},
        )

        for entry in response.get("logStreams") or []:
            if entry.get("logStreamName") == stream:
                return StreamDescription(
                    group=group,
                    stream=stream,
                    upload_sequence_token=entry.get("uploadSequenceToken"),
                )

        raise StreamNotFoundError(group, stream)

    async def append(
        self,
        group: str,
        stream: str,
        token: Optional[str],
        events: Sequence[InputLogEvent],
    ) -> Optional[str]:
        payload: Dict[str, Any] = {
            "logGroupName": group,
            "logStreamName": stream,
            "logEvents": [
                {"timestamp": event.timestamp, "message": event.message}
                for event in events
            ],
        }
        if token is not None:
            payload["sequenceToken"] = token

        response = await self._call("PutLogEvents", payload)
        return response.get("nextSequenceToken")

    async def _call(self, action: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST one JSON protocol action and map failures onto our errors."""
        session = self._get_session()

        headers = {
            "Content-Type": "application/x-amz-json-1.1",
            "X-Amz-Target": f"{TARGET_PREFIX}.{action}",
            "User-Agent": "logship/0.1.0",
        }
        headers.update(self.extra_headers)

        try:
            async with session.post(
                self.endpoint_url,
                json=payload,
                headers=headers,
            ) as response:
                body = await response.json(content_type=None)
                status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransientBackendError(
                f"{action} request failed: {e}",
                details={"action": action, "error_type": type(e).__name__},
            ) from e
        except ValueError as e:
            raise TransientBackendError(
                f"{action} returned an unreadable body",
                details={"action": action},
            ) from e

        body = body if isinstance(body, dict) else {}
        if 200 <= status < 300:
            return body

        self._raise_for_error(action, status, body, payload)
        return body

    @staticmethod
    def _raise_for_error(
        action: str,
        status: int,
        body: Dict[str, Any],
        payload: Dict[str, Any],
    ) -> None:
        error_type = str(body.get("__type", "")).rsplit("#", 1)[-1]
        message = body.get("message") or body.get("Message") or f"HTTP {status}"
        details = {"action": action, "status": status, "error_type": error_type}

        logger.debug("Backend returned error", **details, error=message)

        if error_type in CONFLICT_ERRORS:
            raise TokenConflictError(
                message=message,
                expected_token=body.get("expectedSequenceToken"),
            )
        if error_type == "ResourceNotFoundException":
            raise StreamNotFoundError(
                payload.get("logGroupName", ""),
                payload.get("logStreamName") or payload.get("logStreamNamePrefix", ""),
            )
        if error_type in TRANSIENT_ERRORS or status >= 500 or status == 429:
            raise TransientBackendError(message, details=details)

        raise BackendRequestError(message, details=details)
