"""Shared fixtures for hassclimate tests."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import orjson
import pytest

from hassclimate.connection import HubConnection
from hassclimate.const import SessionState
from hassclimate.hub import ClimateHub

WS_URL = "ws://hub.local:8123/api/websocket"


def make_ws() -> MagicMock:
    """Return a mock websocket that records sent frames."""
    ws = MagicMock(spec=aiohttp.ClientWebSocketResponse)
    ws.closed = False
    ws.close_code = None
    ws.send_str = AsyncMock()
    ws.close = AsyncMock()
    return ws


def attach_ws(conn: HubConnection, state: SessionState) -> MagicMock:
    """Wire a mock websocket into conn as if the socket had opened."""
    ws = make_ws()
    conn._ws = ws
    conn._state = state
    return ws


def sent_messages(ws: MagicMock) -> list[dict[str, Any]]:
    """Decode every frame written to a mock websocket."""
    return [orjson.loads(c.args[0]) for c in ws.send_str.await_args_list]


def make_state(
    entity_id: str = "climate.office",
    state: str | None = "heat",
    **attributes: Any,
) -> dict[str, Any]:
    """Build a raw hub entity as returned by get_states."""
    return {"entity_id": entity_id, "state": state, "attributes": attributes}


def make_state_changed(
    entity_id: str, new_state: dict[str, Any] | None
) -> dict[str, Any]:
    """Build the data of a state_changed event."""
    return {"entity_id": entity_id, "old_state": None, "new_state": new_state}


def make_event_message(data: dict[str, Any], request_id: int = 1) -> dict[str, Any]:
    """Build a wire-format state_changed event message."""
    return {
        "type": "event",
        "id": request_id,
        "event": {"event_type": "state_changed", "data": data},
    }


@pytest.fixture
def connection() -> HubConnection:
    """Return a HubConnection with a mock websocket in the READY state.

    Ready for send/dispatch testing without any real I/O.
    """
    conn = HubConnection(WS_URL, "test-token")
    attach_ws(conn, SessionState.READY)
    return conn


@pytest.fixture
def disconnected_connection() -> HubConnection:
    """Return a HubConnection that is not connected."""
    return HubConnection(WS_URL, "test-token")


@pytest.fixture
def hub() -> ClimateHub:
    """Return a ClimateHub whose command sending is mocked out."""
    hub = ClimateHub("hub.local", "test-token")
    hub.connection.send_command = AsyncMock(return_value=1)  # type: ignore[method-assign]
    return hub
