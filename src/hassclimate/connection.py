"""Async websocket connection to a home-automation hub."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING, Any, ClassVar

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine
    from typing import Self

import aiohttp
import orjson

from .callbacks import CallbackRegistry
from .const import (
    CONNECT_TIMEOUT,
    HEARTBEAT_INTERVAL,
    RECONNECT_DELAY,
    RESPONSE_TIMEOUT,
    STATE_CHANGED,
    WEBSOCKET_PATH,
    HubEvent,
    SessionState,
)
from .correlator import RequestCorrelator
from .exceptions import HassClimateConnectionError, HassClimateError
from .models import (
    AuthInvalidMessage,
    AuthOkMessage,
    AuthRequiredMessage,
    EventMessage,
    HubEventPayload,
    RawEntityState,
    ResultMessage,
)

_LOGGER = logging.getLogger(__name__)

_SESSION_STATES = (
    SessionState.AUTHENTICATED,
    SessionState.SUBSCRIBING,
    SessionState.READY,
)


def build_websocket_url(host: str, port: int, use_tls: bool = False) -> str:
    """Return the websocket API url for a hub."""
    scheme = "wss" if use_tls else "ws"
    return f"{scheme}://{host}:{port}{WEBSOCKET_PATH}"


def _encode_message(msg: dict[str, Any]) -> str:
    """Encode a message as a compact JSON text frame."""
    return orjson.dumps(msg).decode()


class HubConnection:
    """
    Async websocket connection to the hub.

    Call start_background_tasks() to connect and keep reconnecting after
    failures, or drive connect() yourself. Faults never raise out of
    connect() or the background loop; they are reported through the
    ERROR notification and followed by DISCONNECTED once an opened
    socket goes away. Call disconnect() to stop everything.
    """

    def __init__(
        self,
        url: str,
        token: str,
        *,
        session: aiohttp.ClientSession | None = None,
        verify_ssl: bool = True,
        request_timeout: float = RESPONSE_TIMEOUT,
        reconnect_delay: float = RECONNECT_DELAY,
    ) -> None:
        self._url = url
        self._token = token
        self._session = session
        self._owns_session = session is None
        self._verify_ssl = verify_ssl
        self._reconnect_delay = reconnect_delay
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._receive_task: asyncio.Task[None] | None = None
        self._bootstrap_task: asyncio.Task[None] | None = None
        self._run_task: asyncio.Task[None] | None = None
        self._correlator = RequestCorrelator(request_timeout)
        self._callbacks = CallbackRegistry()
        self._message_handler: Callable[[HubEventPayload], None] | None = None
        self._snapshot_handler: Callable[[list[RawEntityState]], None] | None = None
        self._state = SessionState.DISCONNECTED
        self._closing = False
        self._auth_failed = False
        self._disconnect_notified = False

    @property
    def url(self) -> str:
        """Return the websocket url."""
        return self._url

    @property
    def state(self) -> SessionState:
        """Return the handshake state."""
        return self._state

    @property
    def connected(self) -> bool:
        """Return True once the hub has accepted the access token."""
        return self._state in _SESSION_STATES

    def add_event_callback(
        self, event: HubEvent, callback: Callable[..., None]
    ) -> Callable[[], None]:
        """Register a lifecycle callback. Returns a callable to unregister it."""
        return self._callbacks.add(event, callback)

    def set_message_handler(
        self, handler: Callable[[HubEventPayload], None] | None
    ) -> None:
        """Set the handler receiving every subscribed event."""
        self._message_handler = handler

    def set_snapshot_handler(
        self, handler: Callable[[list[RawEntityState]], None] | None
    ) -> None:
        """Set the handler receiving the bulk state list after each login."""
        self._snapshot_handler = handler

    # --- Connection lifecycle ---

    async def connect(self) -> bool:
        """
        Open the websocket and start reading frames.

        If already connected, the existing connection is closed first.
        The handshake itself is driven by the frames the hub sends.

        Returns:
            True if the socket opened. Failures are reported through the
            ERROR notification instead of being raised.

        """
        if self._ws is not None:
            await self._close_transport()
        try:
            ws = await self._open_websocket()
        except HassClimateConnectionError as exc:
            self._report_error(str(exc))
            self._notify_disconnected()
            return False
        self._ws = ws
        self._disconnect_notified = False
        self._state = SessionState.AWAITING_AUTH
        self._receive_task = asyncio.create_task(self._receive_loop(ws))
        _LOGGER.info("Websocket connected to %s", self._url)
        return True

    async def _open_websocket(self) -> aiohttp.ClientWebSocketResponse:
        """Open the websocket, mapping every failure to a connection error."""
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        _LOGGER.info("Connecting to %s...", self._url)
        try:
            return await asyncio.wait_for(
                self._session.ws_connect(
                    self._url,
                    heartbeat=HEARTBEAT_INTERVAL,
                    ssl=self._verify_ssl,
                ),
                timeout=CONNECT_TIMEOUT,
            )
        except aiohttp.WSServerHandshakeError as exc:
            raise HassClimateConnectionError(
                f"Websocket handshake failed: {exc.status} {exc.message}"
            ) from exc
        except aiohttp.ClientError as exc:
            raise HassClimateConnectionError(
                f"Websocket connect failed: {exc!r}"
            ) from exc
        except TimeoutError as exc:
            raise HassClimateConnectionError(
                f"Connection timed out after {CONNECT_TIMEOUT}s"
            ) from exc
        except OSError as exc:
            raise HassClimateConnectionError(f"TCP connect failed: {exc!r}") from exc

    async def _close_transport(self) -> None:
        """Close the websocket and wait for the receive loop to finish."""
        ws = self._ws
        receive_task = self._receive_task
        self._receive_task = None
        self._closing = True
        try:
            if ws is not None and not ws.closed:
                with contextlib.suppress(aiohttp.ClientError, OSError):
                    await ws.close()
            if receive_task is not None:
                receive_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await receive_task
            self._on_connection_lost(ws)
        finally:
            self._closing = False

    def _on_connection_lost(self, ws: aiohttp.ClientWebSocketResponse | None) -> None:
        """Tear down session state once per opened socket."""
        if ws is None or ws is not self._ws:
            return
        self._ws = None
        self._state = SessionState.DISCONNECTED
        if self._bootstrap_task is not None:
            self._bootstrap_task.cancel()
            self._bootstrap_task = None
        self._correlator.fail_all(HassClimateConnectionError("Connection closed"))
        if self._closing:
            _LOGGER.info("Connection to %s closed", self._url)
        else:
            _LOGGER.warning(
                "Connection closed by hub (code=%s)", ws.close_code
            )
            self._report_error(f"Connection closed by hub (code={ws.close_code})")
        self._notify_disconnected()

    def _notify_disconnected(self) -> None:
        """Fire DISCONNECTED unless it was already fired since the last open."""
        if self._disconnect_notified:
            return
        self._disconnect_notified = True
        self._callbacks.fire(HubEvent.DISCONNECTED)

    # --- Sending ---

    async def send(self, msg: dict[str, Any]) -> bool:
        """
        Send a message to the hub.

        Returns:
            True if the frame was written. Sending without an open socket
            reports "send while closed" and performs no I/O.

        """
        ws = self._ws
        if ws is None or ws.closed:
            self._report_error("send while closed")
            return False
        data = _encode_message(msg)
        if msg.get("type") == "auth":
            _LOGGER.debug("[>] TX auth (redacted)")
        else:
            _LOGGER.debug("[>] TX %s", data)
        try:
            await ws.send_str(data)
        except (aiohttp.ClientError, OSError) as exc:
            self._report_error(f"Send failed: {exc!r}")
            return False
        return True

    async def send_command(self, msg: dict[str, Any]) -> int | None:
        """
        Send a message with a fresh request id without awaiting its result.

        Returns:
            The request id, or None if nothing was sent.

        """
        request_id = self._correlator.next_id()
        if not await self.send({**msg, "id": request_id}):
            return None
        return request_id

    async def request(self, msg: dict[str, Any], *, timeout: float | None = None) -> Any:
        """
        Send a message with a fresh request id and wait for its result.

        Returns:
            The result payload.

        Raises:
            HassClimateConnectionError: If not connected or the connection
                closed before the result arrived.
            CommandError: If the hub rejected the request.
            CommandTimeoutError: If no result arrived in time.

        """
        if self._ws is None:
            raise HassClimateConnectionError("Not connected")
        request_id = self._correlator.next_id()
        future = self._correlator.register(request_id)
        if not await self.send({**msg, "id": request_id}):
            self._correlator.discard(request_id)
            raise HassClimateConnectionError("Not connected")
        return await self._correlator.wait(request_id, future, timeout)

    # --- Message handling ---

    async def _receive_loop(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        """Read frames in arrival order until the socket closes."""
        try:
            async for frame in ws:
                if frame.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                    await self._on_frame(frame.data)
                elif frame.type == aiohttp.WSMsgType.ERROR:
                    _LOGGER.warning("Websocket error: %s", ws.exception())
                    break
        finally:
            self._on_connection_lost(ws)

    async def _on_frame(self, data: str | bytes) -> None:
        """Parse one frame and dispatch it by message type."""
        try:
            msg = orjson.loads(data)
        except orjson.JSONDecodeError:
            _LOGGER.warning("Failed to parse JSON: %s", str(data)[:200])
            self._report_error("bad json")
            return
        if not isinstance(msg, dict):
            _LOGGER.warning("Dropping non-object frame: %s", str(data)[:200])
            self._report_error("bad json")
            return
        _LOGGER.debug("[<] RX %s", str(data)[:500])
        msg_type = msg.get("type")
        handler = self._MESSAGE_HANDLERS.get(msg_type)  # type: ignore[arg-type]
        if handler is not None:
            await handler(self, msg)
        elif not self.connected:
            self._protocol_error(msg_type)
        else:
            _LOGGER.debug("Ignoring %s message", msg_type)

    def _protocol_error(self, msg_type: Any) -> None:
        """Report a message that does not fit the handshake step."""
        self._report_error(f"Unexpected {msg_type!r} message in state {self._state}")

    async def _handle_auth_required(self, msg: AuthRequiredMessage) -> None:
        if self._state != SessionState.AWAITING_AUTH:
            self._protocol_error(msg.get("type"))
            return
        self._state = SessionState.AUTHENTICATING
        await self.send({"type": "auth", "access_token": self._token})

    async def _handle_auth_ok(self, msg: AuthOkMessage) -> None:
        if self._state != SessionState.AUTHENTICATING:
            self._protocol_error(msg.get("type"))
            return
        self._state = SessionState.AUTHENTICATED
        _LOGGER.info(
            "Authenticated successfully (hub version %s)",
            msg.get("ha_version", "unknown"),
        )
        self._callbacks.fire(HubEvent.CONNECTED)
        self._state = SessionState.SUBSCRIBING
        self._bootstrap_task = asyncio.create_task(self._bootstrap())

    async def _handle_auth_invalid(self, msg: AuthInvalidMessage) -> None:
        if self._state != SessionState.AUTHENTICATING:
            self._protocol_error(msg.get("type"))
            return
        self._auth_failed = True
        message = msg.get("message") or "Authentication failed"
        _LOGGER.warning("Authentication rejected: %s", message)
        self._report_error(message)
        ws = self._ws
        if ws is not None:
            self._closing = True
            try:
                with contextlib.suppress(aiohttp.ClientError, OSError):
                    await ws.close()
                self._on_connection_lost(ws)
            finally:
                self._closing = False

    async def _handle_result(self, msg: ResultMessage) -> None:
        if not self._correlator.resolve(msg):
            _LOGGER.debug(
                "Dropping result for untracked request %s (success=%s)",
                msg.get("id"),
                msg.get("success"),
            )

    async def _handle_event(self, msg: EventMessage) -> None:
        if not self.connected:
            self._protocol_error(msg.get("type"))
            return
        event = msg.get("event")
        if not isinstance(event, dict) or self._message_handler is None:
            return
        try:
            self._message_handler(event)
        except Exception:
            _LOGGER.exception("Error handling %s event", event.get("event_type"))

    async def _handle_pong(self, msg: dict[str, Any]) -> None:
        _LOGGER.debug("Pong for request %s", msg.get("id"))

    _MESSAGE_HANDLERS: ClassVar[
        dict[str, Callable[..., Coroutine[Any, Any, None]]]
    ] = {
        "auth_required": _handle_auth_required,
        "auth_ok": _handle_auth_ok,
        "auth_invalid": _handle_auth_invalid,
        "result": _handle_result,
        "event": _handle_event,
        "pong": _handle_pong,
    }

    async def _bootstrap(self) -> None:
        """
        Subscribe to state changes and fetch the bulk state list.

        Both requests go out together. A rejected subscription is reported
        but the snapshot is still applied; READY needs both to succeed.
        """
        subscribed, states = await asyncio.gather(
            self.request({"type": "subscribe_events", "event_type": STATE_CHANGED}),
            self.request({"type": "get_states"}),
            return_exceptions=True,
        )
        for outcome in (subscribed, states):
            if isinstance(outcome, HassClimateConnectionError | asyncio.CancelledError):
                _LOGGER.debug("Initial state fetch aborted: %s", outcome)
                return
            if isinstance(outcome, BaseException) and not isinstance(
                outcome, HassClimateError
            ):
                raise outcome
        if isinstance(subscribed, HassClimateError):
            self._report_error(f"Subscription failed: {subscribed}")
        if isinstance(states, HassClimateError):
            self._report_error(f"Initial state fetch failed: {states}")
            return
        if not isinstance(states, list):
            self._report_error("Initial state fetch returned no state list")
            return
        if self._snapshot_handler is not None:
            try:
                self._snapshot_handler(states)
            except Exception:
                _LOGGER.exception("Error handling state snapshot")
        if isinstance(subscribed, HassClimateError):
            return
        self._state = SessionState.READY
        _LOGGER.info("Ready with %d hub entities", len(states))

    def _report_error(self, message: str) -> None:
        self._callbacks.fire(HubEvent.ERROR, message)

    # --- Background tasks ---

    async def _run_loop(self) -> None:
        """
        Main background loop: connect, read until closed, retry after a delay.

        Stops for good when the hub rejects the access token.
        """
        try:
            while True:
                if await self.connect() and self._receive_task is not None:
                    await self._receive_task
                if self._auth_failed:
                    _LOGGER.warning("Not reconnecting: access token rejected")
                    return
                _LOGGER.info("Reconnecting in %.0fs...", self._reconnect_delay)
                await asyncio.sleep(self._reconnect_delay)
        except asyncio.CancelledError:
            return

    def start_background_tasks(self) -> None:
        """Start the background loop that connects and reconnects."""
        if self._run_task is not None and not self._run_task.done():
            _LOGGER.debug("Background loop already running")
            return
        self._auth_failed = False
        self._run_task = asyncio.create_task(self._run_loop())

    async def disconnect(self) -> None:
        """Disconnect from the hub and stop all background tasks. Idempotent."""
        self._closing = True
        try:
            await self._close_transport()
            if self._run_task:
                self._run_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await self._run_task
                self._run_task = None
            if self._owns_session and self._session is not None:
                await self._session.close()
                self._session = None
        finally:
            self._closing = False
        _LOGGER.info("Disconnected")

    async def __aenter__(self) -> Self:
        """Start the background loop."""
        self.start_background_tasks()
        return self

    async def __aexit__(self, *args: object) -> None:
        """Disconnect and stop all background tasks."""
        await self.disconnect()
