"""Pairing of outbound requests with their asynchronous results."""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any

from .const import RESPONSE_TIMEOUT
from .exceptions import CommandError, CommandTimeoutError
from .models import ResultMessage

_LOGGER = logging.getLogger(__name__)


class RequestCorrelator:
    """
    Track pending requests by id and resolve them from result messages.

    Ids come from a single counter starting at 1 and are never reused.
    Every pending entry is removed as soon as it resolves, fails or
    times out, so the pending map cannot grow across a long session.
    """

    def __init__(self, timeout: float = RESPONSE_TIMEOUT) -> None:
        self._timeout = timeout
        # next() on itertools.count is atomic under the GIL.
        self._ids = itertools.count(1)
        self._pending: dict[int, asyncio.Future[Any]] = {}

    @property
    def pending_count(self) -> int:
        """Return the number of requests awaiting a result."""
        return len(self._pending)

    def next_id(self) -> int:
        """Return a fresh request id."""
        return next(self._ids)

    def register(self, request_id: int) -> asyncio.Future[Any]:
        """Start tracking request_id and return its pending future."""
        if request_id in self._pending:
            raise ValueError(f"Request {request_id} is already pending")
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        return future

    def discard(self, request_id: int) -> None:
        """Stop tracking request_id without resolving it."""
        future = self._pending.pop(request_id, None)
        if future is not None and not future.done():
            future.cancel()

    async def wait(
        self,
        request_id: int,
        future: asyncio.Future[Any],
        timeout: float | None = None,
    ) -> Any:
        """
        Wait for the result of a registered request.

        Takes the future returned by register(), since the result may
        already have arrived before the caller starts waiting.

        Returns:
            The result payload of a successful request.

        Raises:
            CommandError: If the hub answered with success=false.
            CommandTimeoutError: If no answer arrived within the timeout.
            HassClimateConnectionError: If the connection closed first.

        """
        limit = self._timeout if timeout is None else timeout
        try:
            return await asyncio.wait_for(future, timeout=limit)
        except TimeoutError as exc:
            raise CommandTimeoutError(
                f"Request {request_id} timed out after {limit}s"
            ) from exc
        finally:
            self._pending.pop(request_id, None)

    def resolve(self, message: ResultMessage) -> bool:
        """
        Deliver a result message to its pending request.

        Returns:
            True if a pending request matched, False if the id was unknown
            (for example a late answer after a local timeout).

        """
        request_id = message.get("id")
        if not isinstance(request_id, int):
            return False
        future = self._pending.pop(request_id, None)
        if future is None or future.done():
            return False
        if message.get("success", False):
            future.set_result(message.get("result"))
        else:
            error = message.get("error") or {}
            future.set_exception(
                CommandError(error.get("message") or "Request failed")
            )
        return True

    def fail_all(self, exc: Exception) -> None:
        """Fail every pending request with exc and clear the pending map."""
        pending = list(self._pending.values())
        self._pending.clear()
        for future in pending:
            if not future.done():
                future.set_exception(exc)
        if pending:
            _LOGGER.debug("Failed %d pending request(s): %s", len(pending), exc)
