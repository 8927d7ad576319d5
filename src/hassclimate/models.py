"""Data models for hub messages and climate entity state."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, NotRequired, TypedDict

from .const import (
    DEFAULT_MAX_TEMP,
    DEFAULT_MIN_TEMP,
    DEFAULT_STEP,
    DEFAULT_TEMPERATURE_UNIT,
    HvacMode,
)

# ---------------------------------------------------------------------------
# Inbound message TypedDicts: match the wire format exactly
# ---------------------------------------------------------------------------


class AuthRequiredMessage(TypedDict):
    """Sent by the hub as soon as the socket opens."""

    type: str
    ha_version: NotRequired[str]


class AuthOkMessage(TypedDict):
    """The access token was accepted."""

    type: str
    ha_version: NotRequired[str]


class AuthInvalidMessage(TypedDict):
    """The access token was rejected."""

    type: str
    message: NotRequired[str]


class ErrorPayload(TypedDict, total=False):
    """Error details attached to a failed result."""

    code: str
    message: str


class ResultMessage(TypedDict):
    """Reply to a request carrying an id."""

    type: str
    id: int
    success: bool
    result: NotRequired[Any]
    error: NotRequired[ErrorPayload]


class RawEntityState(TypedDict, total=False):
    """One entity as reported by get_states or a state_changed event."""

    entity_id: str
    state: str | None
    attributes: dict[str, Any] | None
    last_changed: str
    last_updated: str


class StateChangedData(TypedDict, total=False):
    """Payload of a state_changed event."""

    entity_id: str
    old_state: RawEntityState | None
    new_state: RawEntityState | None


class HubEventPayload(TypedDict, total=False):
    """The event object inside an event message."""

    event_type: str
    data: StateChangedData
    origin: str
    time_fired: str


class EventMessage(TypedDict):
    """A pushed event for an active subscription."""

    type: str
    id: int
    event: HubEventPayload


# ---------------------------------------------------------------------------
# Outbound message TypedDicts
# ---------------------------------------------------------------------------


class ServiceTarget(TypedDict):
    """Target of a service call."""

    entity_id: str


class CallServiceMessage(TypedDict):
    """A service call. The connection adds the request id when sending."""

    type: str
    domain: str
    service: str
    target: ServiceTarget
    service_data: dict[str, Any]


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------


def _as_float(value: Any) -> float | None:
    """Return value as a float, or None when null or not numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _as_str(value: Any) -> str | None:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def _as_str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [_as_str(item) for item in value if item is not None]  # type: ignore[misc]


def _first_float(attrs: dict[str, Any], *keys: str) -> float | None:
    """Return the first attribute among keys that parses as a number."""
    for key in keys:
        parsed = _as_float(attrs.get(key))
        if parsed is not None:
            return parsed
    return None


def _first_str(attrs: dict[str, Any], *keys: str) -> str | None:
    """Return the first attribute among keys holding a non-blank string."""
    for key in keys:
        parsed = _as_str(attrs.get(key))
        if parsed is not None and parsed.strip():
            return parsed
    return None


# ---------------------------------------------------------------------------
# State dataclass
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ClimateState:
    """
    State of a single climate entity.

    Records are immutable: every observation produces a new instance
    that replaces the previous one wholesale.
    """

    entity_id: str
    name: str = ""
    hvac_mode: str = HvacMode.OFF
    action: str | None = None
    fan_mode: str | None = None
    current_temperature: float | None = None
    target_temperature: float | None = None
    heat_setpoint: float | None = None
    cool_setpoint: float | None = None
    min_temp: float | None = None
    max_temp: float | None = None
    step: float = DEFAULT_STEP
    temperature_unit: str = DEFAULT_TEMPERATURE_UNIT
    supported_hvac_modes: tuple[str, ...] = field(default_factory=tuple)
    supported_fan_modes: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_hub_state(cls, raw: RawEntityState) -> ClimateState:
        """
        Build a state record from a raw hub entity.

        Each field takes the first attribute present among its aliases.
        Null or non-numeric values count as absent, never as zero.

        Raises:
            ValueError: If the payload carries no entity_id.

        """
        entity_id = _as_str(raw.get("entity_id"))
        if not entity_id:
            raise ValueError("Entity payload has no entity_id")
        attrs = raw.get("attributes")
        if not isinstance(attrs, dict):
            attrs = {}

        step = _first_float(attrs, "target_temp_step", "precision")
        if step is None or step <= 0 or not math.isfinite(step):
            step = DEFAULT_STEP

        return cls(
            entity_id=entity_id,
            name=_first_str(attrs, "friendly_name") or entity_id,
            hvac_mode=_as_str(raw.get("state")) or HvacMode.OFF,
            action=_as_str(attrs.get("hvac_action")),
            fan_mode=_as_str(attrs.get("fan_mode")),
            current_temperature=_first_float(attrs, "current_temperature"),
            target_temperature=_first_float(
                attrs, "temperature", "target_temperature"
            ),
            heat_setpoint=_first_float(
                attrs, "target_temp_low", "target_temperature_low"
            ),
            cool_setpoint=_first_float(
                attrs, "target_temp_high", "target_temperature_high"
            ),
            min_temp=_first_float(attrs, "min_temp"),
            max_temp=_first_float(attrs, "max_temp"),
            step=step,
            temperature_unit=_first_str(
                attrs, "temperature_unit", "unit_of_measurement"
            )
            or DEFAULT_TEMPERATURE_UNIT,
            supported_hvac_modes=tuple(_as_str_list(attrs.get("hvac_modes"))),
            supported_fan_modes=tuple(_as_str_list(attrs.get("fan_modes"))),
        )

    @property
    def is_range(self) -> bool:
        """Return True if the entity reports a heat/cool setpoint pair."""
        return self.heat_setpoint is not None or self.cool_setpoint is not None

    @property
    def target_summary(self) -> str:
        """Return the target for display: single value, else low–high."""
        if self.target_temperature is not None:
            return f"{self.target_temperature:.1f}"
        low = "-" if self.heat_setpoint is None else f"{self.heat_setpoint:.1f}"
        high = "-" if self.cool_setpoint is None else f"{self.cool_setpoint:.1f}"
        return f"{low}–{high}"

    @property
    def min_temp_or_default(self) -> float:
        return DEFAULT_MIN_TEMP if self.min_temp is None else self.min_temp

    @property
    def max_temp_or_default(self) -> float:
        return DEFAULT_MAX_TEMP if self.max_temp is None else self.max_temp
