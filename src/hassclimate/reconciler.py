"""Reconciliation of hub entity payloads into the climate entity table."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable, Collection, Iterable

from .callbacks import CallbackRegistry
from .const import CHANGE_TOLERANCE, ENTITY_PREFIX, HubEvent
from .models import ClimateState, RawEntityState, StateChangedData

_LOGGER = logging.getLogger(__name__)


def is_climate_entity(entity_id: Any) -> bool:
    """Return True if entity_id belongs to the climate namespace."""
    return isinstance(entity_id, str) and entity_id.lower().startswith(ENTITY_PREFIX)


def parse_include_filter(text: str | None) -> frozenset[str]:
    """
    Parse a comma or semicolon separated list of entity ids or names.

    An empty result means every climate entity is exposed.
    """
    if not text:
        return frozenset()
    items = text.replace(";", ",").split(",")
    return frozenset(item.strip().lower() for item in items if item.strip())


def _same_text(a: str | None, b: str | None) -> bool:
    return (a or "").lower() == (b or "").lower()


def _same_number(a: float | None, b: float | None) -> bool:
    if a is None or b is None:
        return a is b
    return abs(a - b) <= CHANGE_TOLERANCE


def has_meaningful_change(previous: ClimateState, current: ClimateState) -> bool:
    """
    Return True if current differs from previous in a field worth publishing.

    Mode, fan mode and action compare case-insensitively. Temperatures
    compare within CHANGE_TOLERANCE; a value appearing or disappearing
    always counts. Name, limits, step, unit and capability lists are
    ignored.
    """
    return not (
        _same_text(current.hvac_mode, previous.hvac_mode)
        and _same_text(current.fan_mode, previous.fan_mode)
        and _same_text(current.action, previous.action)
        and _same_number(current.current_temperature, previous.current_temperature)
        and _same_number(current.target_temperature, previous.target_temperature)
        and _same_number(current.heat_setpoint, previous.heat_setpoint)
        and _same_number(current.cool_setpoint, previous.cool_setpoint)
    )


class StateReconciler:
    """
    Owner of the table of known climate entities.

    Keys are lower-cased entity ids, so lookups are case-insensitive.
    Only the connection's receive loop writes to the table; everyone
    else reads through get() and snapshot().
    """

    def __init__(self, include: Collection[str] | None = None) -> None:
        self._entities: dict[str, ClimateState] = {}
        self._include = frozenset(item.lower() for item in include or ())
        self._callbacks = CallbackRegistry()

    def add_event_callback(
        self, event: HubEvent, callback: Callable[..., None]
    ) -> Callable[[], None]:
        """Register an entity callback. Returns a callable to unregister it."""
        return self._callbacks.add(event, callback)

    def __len__(self) -> int:
        return len(self._entities)

    def __contains__(self, entity_id: object) -> bool:
        return isinstance(entity_id, str) and entity_id.lower() in self._entities

    def get(self, entity_id: str) -> ClimateState | None:
        """Return the current state of an entity, or None if unknown."""
        return self._entities.get(entity_id.lower())

    def snapshot(self) -> dict[str, ClimateState]:
        """Return a copy of the table keyed by entity id."""
        return {state.entity_id: state for state in self._entities.values()}

    def _is_exposed(self, state: ClimateState) -> bool:
        if not self._include:
            return True
        return (
            state.entity_id.lower() in self._include
            or state.name.lower() in self._include
        )

    def _parse(self, raw: Any) -> ClimateState | None:
        if not isinstance(raw, dict) or not is_climate_entity(raw.get("entity_id")):
            return None
        try:
            state = ClimateState.from_hub_state(raw)  # type: ignore[arg-type]
        except ValueError as exc:
            _LOGGER.warning("Skipping malformed entity: %s", exc)
            return None
        return state if self._is_exposed(state) else None

    def _remove(self, key: str) -> None:
        state = self._entities.pop(key, None)
        if state is not None:
            _LOGGER.debug("Removed %s", state.entity_id)
            self._callbacks.fire(HubEvent.ENTITY_REMOVED, state.entity_id)

    def apply_snapshot(self, states: Iterable[RawEntityState]) -> None:
        """
        Reconcile the table against a full list of hub entities.

        New entities fire ENTITY_ADDED. Known entities are replaced and
        always fire ENTITY_CHANGED. Known entities missing from the list
        are removed afterwards and fire ENTITY_REMOVED.
        """
        seen: set[str] = set()
        for raw in states:
            state = self._parse(raw)
            if state is None:
                continue
            key = state.entity_id.lower()
            seen.add(key)
            known = key in self._entities
            self._entities[key] = state
            if known:
                self._callbacks.fire(HubEvent.ENTITY_CHANGED, state.entity_id, state)
            else:
                _LOGGER.debug("Added %s", state.entity_id)
                self._callbacks.fire(HubEvent.ENTITY_ADDED, state.entity_id, state)

        for key in [key for key in self._entities if key not in seen]:
            self._remove(key)

    def apply_state_changed(self, data: StateChangedData) -> None:
        """
        Apply one state_changed event.

        A null new_state removes a known entity. Otherwise the entity is
        added, or replaced and reported only when the change is meaningful.
        """
        entity_id = data.get("entity_id")
        if not is_climate_entity(entity_id):
            return
        key = entity_id.lower()  # type: ignore[union-attr]
        raw = data.get("new_state")
        if raw is None:
            self._remove(key)
            return

        if isinstance(raw, dict) and raw.get("entity_id") != entity_id:
            # The record must carry the id it is stored under.
            raw = {**raw, "entity_id": entity_id}  # type: ignore[assignment]
        state = self._parse(raw)
        if state is None:
            # Filtered out or unparsable: drop it if we were tracking it.
            self._remove(key)
            return

        previous = self._entities.get(key)
        self._entities[key] = state
        if previous is None:
            _LOGGER.debug("Added %s", state.entity_id)
            self._callbacks.fire(HubEvent.ENTITY_ADDED, state.entity_id, state)
        elif has_meaningful_change(previous, state):
            self._callbacks.fire(HubEvent.ENTITY_CHANGED, state.entity_id, state)
