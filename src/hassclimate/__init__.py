"""Real-time mirror and control of climate entities on a home-automation hub."""

__version__ = "1.0.0"

from .connection import HubConnection, build_websocket_url
from .const import DEFAULT_PORT, HubEvent, HvacMode, SessionState
from .exceptions import (
    CommandError,
    CommandTimeoutError,
    HassClimateConnectionError,
    HassClimateError,
)
from .hub import ClimateHub, mode_from_hub, mode_to_hub
from .models import ClimateState
from .reconciler import parse_include_filter

__all__ = [
    "DEFAULT_PORT",
    "ClimateHub",
    "ClimateState",
    "CommandError",
    "CommandTimeoutError",
    "HassClimateConnectionError",
    "HassClimateError",
    "HubConnection",
    "HubEvent",
    "HvacMode",
    "SessionState",
    "build_websocket_url",
    "mode_from_hub",
    "mode_to_hub",
    "parse_include_filter",
]
