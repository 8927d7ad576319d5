"""Translation of control intents into climate service calls."""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

from .const import CLIMATE_DOMAIN, DEFAULT_STEP, ClimateService
from .models import CallServiceMessage, ClimateState

_LOGGER = logging.getLogger(__name__)


def clamp(value: float, minimum: float | None, maximum: float | None) -> float:
    """Clamp value to the bounds that are present."""
    if minimum is not None and value < minimum:
        value = minimum
    if maximum is not None and value > maximum:
        value = maximum
    return value


def round_to_step(value: float, step: float) -> float:
    """
    Round value to the nearest multiple of step, halves away from zero.

    A non-positive step is replaced by DEFAULT_STEP.
    """
    if step <= 0:
        step = DEFAULT_STEP
    steps = value / step
    rounded = math.copysign(math.floor(abs(steps) + 0.5), steps)
    # Strip binary float noise such as 21.200000000000003.
    return round(rounded * step, 10)


def constrain_setpoint(value: float, state: ClimateState) -> float:
    """Clamp value to the entity's limits, then round it to its step."""
    return round_to_step(clamp(value, state.min_temp, state.max_temp), state.step)


def build_service_call(
    service: ClimateService,
    entity_id: str,
    service_data: dict[str, Any] | None = None,
) -> CallServiceMessage:
    """Build a call_service message for the climate domain."""
    return {
        "type": "call_service",
        "domain": CLIMATE_DOMAIN,
        "service": service,
        "target": {"entity_id": entity_id},
        "service_data": service_data or {},
    }


class CommandTranslator:
    """
    Build service calls for control intents against known entities.

    Every method returns None when the target entity is not known, so
    the caller sends nothing. Commands are never queued for entities
    that show up later.
    """

    def __init__(self, lookup: Callable[[str], ClimateState | None]) -> None:
        self._lookup = lookup

    def _target(self, entity_id: str) -> ClimateState | None:
        state = self._lookup(entity_id) if entity_id else None
        if state is None:
            _LOGGER.debug("Dropping command for unknown entity %r", entity_id)
        return state

    def set_hvac_mode(self, entity_id: str, hvac_mode: str) -> CallServiceMessage | None:
        """Set the HVAC mode, passed through as given."""
        if not hvac_mode or not hvac_mode.strip():
            return None
        state = self._target(entity_id)
        if state is None:
            return None
        return build_service_call(
            ClimateService.SET_HVAC_MODE, state.entity_id, {"hvac_mode": hvac_mode}
        )

    def set_fan_mode(self, entity_id: str, fan_mode: str) -> CallServiceMessage | None:
        """Set the fan mode. The hub validates it against its own list."""
        if not fan_mode or not fan_mode.strip():
            return None
        state = self._target(entity_id)
        if state is None:
            return None
        return build_service_call(
            ClimateService.SET_FAN_MODE, state.entity_id, {"fan_mode": fan_mode}
        )

    def set_single_setpoint(
        self, entity_id: str, temperature: float
    ) -> CallServiceMessage | None:
        """Set the single target temperature, clamped and rounded."""
        state = self._target(entity_id)
        if state is None:
            return None
        return build_service_call(
            ClimateService.SET_TEMPERATURE,
            state.entity_id,
            {"temperature": constrain_setpoint(temperature, state)},
        )

    def set_heat_cool_range(
        self, entity_id: str, heat: float, cool: float
    ) -> CallServiceMessage | None:
        """Set the heat and cool setpoints, each clamped and rounded."""
        state = self._target(entity_id)
        if state is None:
            return None
        return build_service_call(
            ClimateService.SET_TEMPERATURE,
            state.entity_id,
            {
                "target_temp_low": constrain_setpoint(heat, state),
                "target_temp_high": constrain_setpoint(cool, state),
            },
        )

    def turn_on(self, entity_id: str) -> CallServiceMessage | None:
        state = self._target(entity_id)
        if state is None:
            return None
        return build_service_call(ClimateService.TURN_ON, state.entity_id)

    def turn_off(self, entity_id: str) -> CallServiceMessage | None:
        state = self._target(entity_id)
        if state is None:
            return None
        return build_service_call(ClimateService.TURN_OFF, state.entity_id)
