"""Listener registry for hub notifications."""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

    from .const import HubEvent

_LOGGER = logging.getLogger(__name__)


class CallbackRegistry:
    """
    Holds callbacks per HubEvent and fires them in registration order.

    A callback that raises is logged and skipped; the remaining callbacks
    still run and the exception never reaches the caller of fire().
    """

    def __init__(self) -> None:
        self._callbacks: dict[HubEvent, list[Callable[..., None]]] = {}

    def add(self, event: HubEvent, callback: Callable[..., None]) -> Callable[[], None]:
        """Register a callback. Returns a callable to unregister it."""
        self._callbacks.setdefault(event, []).append(callback)

        def _remove() -> None:
            with contextlib.suppress(ValueError):
                self._callbacks[event].remove(callback)

        return _remove

    def fire(self, event: HubEvent, *args: Any) -> None:
        """Invoke every callback registered for event."""
        # Copy so callbacks may unregister themselves while firing.
        for cb in list(self._callbacks.get(event, ())):
            try:
                cb(*args)
            except Exception:  # noqa: PERF203
                _LOGGER.exception("Error in %s callback", event)
