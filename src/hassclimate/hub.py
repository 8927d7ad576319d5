"""Climate hub: the public face of the synchronization client."""

from __future__ import annotations

import dataclasses
import logging
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable, Collection, Mapping
    from typing import Self

    import aiohttp

from .callbacks import CallbackRegistry
from .commands import CommandTranslator
from .connection import HubConnection, build_websocket_url
from .const import (
    DEFAULT_PORT,
    MODE_FROM_HUB,
    MODE_TO_HUB,
    RECONNECT_DELAY,
    RESPONSE_TIMEOUT,
    STATE_CHANGED,
    HubEvent,
)
from .models import CallServiceMessage, ClimateState, HubEventPayload
from .reconciler import StateReconciler

_LOGGER = logging.getLogger(__name__)


def mode_to_hub(mode: str) -> str:
    """Translate an outward HVAC mode to the hub's name for it."""
    return MODE_TO_HUB.get(mode.lower(), mode)


def mode_from_hub(mode: str) -> str:
    """Translate a hub HVAC mode to its outward name."""
    return MODE_FROM_HUB.get(mode.lower(), mode)


def _outward(state: ClimateState) -> ClimateState:
    """Return state with hub mode names translated for publishing."""
    return dataclasses.replace(
        state,
        hvac_mode=mode_from_hub(state.hvac_mode),
        supported_hvac_modes=tuple(
            mode_from_hub(mode) for mode in state.supported_hvac_modes
        ),
    )


class ClimateHub:
    """
    Real-time mirror of a hub's climate entities plus control commands.

    Notifications are delivered through add_event_callback(). Commands
    are sent without waiting for the hub to act on them; commands for
    entities not currently known are dropped silently.

    Example:
        async with ClimateHub("homeassistant.local", token) as hub:
            hub.add_event_callback(HubEvent.ENTITY_CHANGED, on_change)
            await hub.set_single_setpoint("climate.office", 21.3)

    """

    def __init__(
        self,
        host: str,
        token: str,
        port: int = DEFAULT_PORT,
        *,
        use_tls: bool = False,
        verify_ssl: bool = True,
        include: Collection[str] | None = None,
        session: aiohttp.ClientSession | None = None,
        request_timeout: float = RESPONSE_TIMEOUT,
        reconnect_delay: float = RECONNECT_DELAY,
    ) -> None:
        self._callbacks = CallbackRegistry()
        self._reconciler = StateReconciler(include)
        self._translator = CommandTranslator(self._reconciler.get)
        self._connection = HubConnection(
            build_websocket_url(host, port, use_tls),
            token,
            session=session,
            verify_ssl=verify_ssl,
            request_timeout=request_timeout,
            reconnect_delay=reconnect_delay,
        )
        self._connection.set_message_handler(self._on_hub_event)
        self._connection.set_snapshot_handler(self._reconciler.apply_snapshot)
        for event in (HubEvent.CONNECTED, HubEvent.DISCONNECTED, HubEvent.ERROR):
            self._connection.add_event_callback(event, self._forwarder(event))
        self._reconciler.add_event_callback(HubEvent.ENTITY_ADDED, self._on_added)
        self._reconciler.add_event_callback(HubEvent.ENTITY_CHANGED, self._on_changed)
        self._reconciler.add_event_callback(
            HubEvent.ENTITY_REMOVED, self._forwarder(HubEvent.ENTITY_REMOVED)
        )

    @property
    def connection(self) -> HubConnection:
        """Return the underlying connection."""
        return self._connection

    @property
    def connected(self) -> bool:
        """Return True while authenticated with the hub."""
        return self._connection.connected

    @property
    def climates(self) -> Mapping[str, ClimateState]:
        """Return a read-only copy of the known entities keyed by entity id."""
        return MappingProxyType(
            {eid: _outward(state) for eid, state in self._reconciler.snapshot().items()}
        )

    def get(self, entity_id: str) -> ClimateState | None:
        """Return the published state of an entity (case-insensitive id)."""
        state = self._reconciler.get(entity_id)
        return None if state is None else _outward(state)

    def add_event_callback(
        self, event: HubEvent, callback: Callable[..., None]
    ) -> Callable[[], None]:
        """
        Register a callback for a hub notification.

        Callback arguments per event:
            CONNECTED, DISCONNECTED: none.
            ERROR: message.
            ENTITY_ADDED, ENTITY_CHANGED: entity_id, state.
            ENTITY_REMOVED: entity_id.

        Returns:
            A callable that unregisters the callback.

        """
        return self._callbacks.add(event, callback)

    # --- Wiring ---

    def _forwarder(self, event: HubEvent) -> Callable[..., None]:
        def _forward(*args: Any) -> None:
            self._callbacks.fire(event, *args)

        return _forward

    def _on_added(self, entity_id: str, state: ClimateState) -> None:
        self._callbacks.fire(HubEvent.ENTITY_ADDED, entity_id, _outward(state))

    def _on_changed(self, entity_id: str, state: ClimateState) -> None:
        self._callbacks.fire(HubEvent.ENTITY_CHANGED, entity_id, _outward(state))

    def _on_hub_event(self, event: HubEventPayload) -> None:
        if event.get("event_type") != STATE_CHANGED:
            return
        data = event.get("data")
        if isinstance(data, dict):
            self._reconciler.apply_state_changed(data)

    # --- Lifecycle ---

    def start(self) -> None:
        """Connect in the background, reconnecting until stop() is called."""
        self._connection.start_background_tasks()

    async def stop(self) -> None:
        """Disconnect and stop reconnecting. Pending requests fail immediately."""
        await self._connection.disconnect()

    async def __aenter__(self) -> Self:
        self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.stop()

    # --- Commands ---

    async def _submit(self, call: CallServiceMessage | None) -> None:
        if call is not None:
            await self._connection.send_command(dict(call))

    async def set_mode(self, entity_id: str, mode: str) -> None:
        """Set the HVAC mode. "auto" is sent as the hub's "heat_cool"."""
        await self._submit(
            self._translator.set_hvac_mode(entity_id, mode_to_hub(mode))
        )

    async def set_fan_mode(self, entity_id: str, fan_mode: str) -> None:
        """Set the fan mode."""
        await self._submit(self._translator.set_fan_mode(entity_id, fan_mode))

    async def set_single_setpoint(self, entity_id: str, temperature: float) -> None:
        """Set the target temperature, clamped to limits and rounded to step."""
        await self._submit(
            self._translator.set_single_setpoint(entity_id, temperature)
        )

    async def set_heat_cool_range(
        self, entity_id: str, heat: float, cool: float
    ) -> None:
        """Set the heat and cool setpoints, each clamped and rounded."""
        await self._submit(
            self._translator.set_heat_cool_range(entity_id, heat, cool)
        )

    async def turn_on(self, entity_id: str) -> None:
        """Turn the entity on."""
        await self._submit(self._translator.turn_on(entity_id))

    async def turn_off(self, entity_id: str) -> None:
        """Turn the entity off."""
        await self._submit(self._translator.turn_off(entity_id))
