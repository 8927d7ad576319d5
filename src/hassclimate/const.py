"""Constants and enums for the hassclimate hub protocol."""

from __future__ import annotations

from enum import StrEnum


class SessionState(StrEnum):
    """Handshake state of a hub connection."""

    DISCONNECTED = "disconnected"
    AWAITING_AUTH = "awaiting_auth"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    SUBSCRIBING = "subscribing"
    READY = "ready"


class HubEvent(StrEnum):
    """
    Notifications raised by the hub.

    CONNECTED: Authentication accepted.
    DISCONNECTED: An opened connection was torn down.
    ERROR: A fault was reported; carries a message.
    ENTITY_ADDED: A climate entity appeared; carries id and state.
    ENTITY_CHANGED: A known entity changed meaningfully; carries id and state.
    ENTITY_REMOVED: A known entity went away; carries id.
    """

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"
    ENTITY_ADDED = "entity_added"
    ENTITY_CHANGED = "entity_changed"
    ENTITY_REMOVED = "entity_removed"


class HvacMode(StrEnum):
    """HVAC modes with a fixed meaning. Hubs may report others."""

    OFF = "off"
    HEAT = "heat"
    COOL = "cool"
    HEAT_COOL = "heat_cool"
    AUTO = "auto"


class ClimateService(StrEnum):
    """Services called on the climate domain."""

    SET_HVAC_MODE = "set_hvac_mode"
    SET_FAN_MODE = "set_fan_mode"
    SET_TEMPERATURE = "set_temperature"
    TURN_ON = "turn_on"
    TURN_OFF = "turn_off"


# Outward mode name -> hub mode name. Only this pair is remapped.
MODE_TO_HUB: dict[str, str] = {HvacMode.AUTO: HvacMode.HEAT_COOL}
MODE_FROM_HUB: dict[str, str] = {v: k for k, v in MODE_TO_HUB.items()}

CLIMATE_DOMAIN = "climate"
ENTITY_PREFIX = f"{CLIMATE_DOMAIN}."
STATE_CHANGED = "state_changed"

DEFAULT_PORT = 8123
WEBSOCKET_PATH = "/api/websocket"
CONNECT_TIMEOUT = 10
RESPONSE_TIMEOUT = 30
RECONNECT_DELAY = 5  # fixed delay between reconnect attempts
HEARTBEAT_INTERVAL = 15  # seconds between websocket pings

DEFAULT_STEP = 0.5
DEFAULT_MIN_TEMP = 5.0
DEFAULT_MAX_TEMP = 35.0
DEFAULT_TEMPERATURE_UNIT = "°C"
CHANGE_TOLERANCE = 0.01
