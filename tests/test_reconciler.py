"""Tests for StateReconciler."""

from __future__ import annotations

from typing import Any

import pytest

from hassclimate.const import HubEvent
from hassclimate.models import ClimateState
from hassclimate.reconciler import (
    StateReconciler,
    has_meaningful_change,
    is_climate_entity,
    parse_include_filter,
)

from .conftest import make_state, make_state_changed


class Recorder:
    """Collect reconciler notifications in order."""

    def __init__(self, reconciler: StateReconciler) -> None:
        self.events: list[tuple[str, str]] = []
        self.states: dict[str, ClimateState] = {}
        reconciler.add_event_callback(HubEvent.ENTITY_ADDED, self._added)
        reconciler.add_event_callback(HubEvent.ENTITY_CHANGED, self._changed)
        reconciler.add_event_callback(HubEvent.ENTITY_REMOVED, self._removed)

    def _added(self, entity_id: str, state: ClimateState) -> None:
        self.events.append(("added", entity_id))
        self.states[entity_id] = state

    def _changed(self, entity_id: str, state: ClimateState) -> None:
        self.events.append(("changed", entity_id))
        self.states[entity_id] = state

    def _removed(self, entity_id: str) -> None:
        self.events.append(("removed", entity_id))


@pytest.fixture
def reconciler() -> StateReconciler:
    return StateReconciler()


@pytest.fixture
def recorder(reconciler: StateReconciler) -> Recorder:
    return Recorder(reconciler)


def _snapshot() -> list[dict[str, Any]]:
    return [
        make_state("climate.office", "heat", current_temperature=20.5, temperature=21),
        make_state("climate.den", "cool", current_temperature=25),
        make_state("sensor.outside", "12.3"),
        make_state("light.kitchen", "on"),
    ]


# ---------------------------------------------------------------------------
# Namespace filtering
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("entity_id", "expected"),
    [
        ("climate.office", True),
        ("Climate.Office", True),
        ("sensor.climate", False),
        ("climate", False),
        (None, False),
        (42, False),
    ],
)
def test_is_climate_entity(entity_id: object, expected: bool) -> None:
    assert is_climate_entity(entity_id) is expected


def test_parse_include_filter() -> None:
    assert parse_include_filter(None) == frozenset()
    assert parse_include_filter("") == frozenset()
    assert parse_include_filter("climate.Office, Den ;;climate.x") == {
        "climate.office",
        "den",
        "climate.x",
    }


# ---------------------------------------------------------------------------
# Bulk snapshot
# ---------------------------------------------------------------------------


def test_snapshot_adds_only_climate_entities(
    reconciler: StateReconciler, recorder: Recorder
) -> None:
    reconciler.apply_snapshot(_snapshot())
    assert recorder.events == [("added", "climate.office"), ("added", "climate.den")]
    assert len(reconciler) == 2
    assert "sensor.outside" not in reconciler


def test_snapshot_twice_is_idempotent(
    reconciler: StateReconciler, recorder: Recorder
) -> None:
    reconciler.apply_snapshot(_snapshot())
    first = reconciler.snapshot()
    reconciler.apply_snapshot(_snapshot())
    assert recorder.events == [
        ("added", "climate.office"),
        ("added", "climate.den"),
        ("changed", "climate.office"),
        ("changed", "climate.den"),
    ]
    assert reconciler.snapshot() == first


def test_snapshot_prunes_vanished_entities(
    reconciler: StateReconciler, recorder: Recorder
) -> None:
    reconciler.apply_snapshot(
        [make_state("climate.a", "heat"), make_state("climate.b", "cool")]
    )
    recorder.events.clear()
    reconciler.apply_snapshot([make_state("climate.a", "heat")])
    assert recorder.events == [("changed", "climate.a"), ("removed", "climate.b")]
    assert list(reconciler.snapshot()) == ["climate.a"]


def test_snapshot_skips_garbage_entries(
    reconciler: StateReconciler, recorder: Recorder
) -> None:
    reconciler.apply_snapshot(
        [None, "climate.x", {"state": "heat"}, make_state("climate.ok")]  # type: ignore[list-item]
    )
    assert recorder.events == [("added", "climate.ok")]


def test_snapshot_case_insensitive_identity(
    reconciler: StateReconciler, recorder: Recorder
) -> None:
    reconciler.apply_snapshot([make_state("climate.Office")])
    reconciler.apply_snapshot([make_state("CLIMATE.OFFICE")])
    assert [kind for kind, _ in recorder.events] == ["added", "changed"]
    assert len(reconciler) == 1


# ---------------------------------------------------------------------------
# Incremental events
# ---------------------------------------------------------------------------


def test_event_adds_unknown_entity(
    reconciler: StateReconciler, recorder: Recorder
) -> None:
    reconciler.apply_state_changed(
        make_state_changed("climate.new", make_state("climate.new", "heat"))
    )
    assert recorder.events == [("added", "climate.new")]
    state = reconciler.get("CLIMATE.NEW")
    assert state is not None
    assert state.hvac_mode == "heat"


def test_event_ignores_other_domains(
    reconciler: StateReconciler, recorder: Recorder
) -> None:
    reconciler.apply_state_changed(
        make_state_changed("sensor.temp", make_state("sensor.temp", "20"))
    )
    reconciler.apply_state_changed({"new_state": make_state()})  # no entity_id
    assert recorder.events == []
    assert len(reconciler) == 0


def test_tolerant_temperature_equality(
    reconciler: StateReconciler, recorder: Recorder
) -> None:
    reconciler.apply_snapshot([make_state(current_temperature=21.50)])
    recorder.events.clear()

    reconciler.apply_state_changed(
        make_state_changed("climate.office", make_state(current_temperature=21.505))
    )
    assert recorder.events == []

    reconciler.apply_state_changed(
        make_state_changed("climate.office", make_state(current_temperature=21.52))
    )
    assert recorder.events == [("changed", "climate.office")]


def test_unreported_change_still_updates_table(
    reconciler: StateReconciler, recorder: Recorder
) -> None:
    reconciler.apply_snapshot([make_state(friendly_name="Office", max_temp=30)])
    recorder.events.clear()
    reconciler.apply_state_changed(
        make_state_changed(
            "climate.office", make_state(friendly_name="Study", max_temp=28)
        )
    )
    assert recorder.events == []
    state = reconciler.get("climate.office")
    assert state is not None
    assert state.name == "Study"
    assert state.max_temp == 28


def test_removal_on_null_new_state(
    reconciler: StateReconciler, recorder: Recorder
) -> None:
    reconciler.apply_snapshot([make_state()])
    recorder.events.clear()
    reconciler.apply_state_changed(make_state_changed("climate.office", None))
    assert recorder.events == [("removed", "climate.office")]
    assert "climate.office" not in reconciler

    reconciler.apply_state_changed(make_state_changed("climate.office", None))
    assert recorder.events == [("removed", "climate.office")]


def test_removal_unknown_entity_is_noop(
    reconciler: StateReconciler, recorder: Recorder
) -> None:
    reconciler.apply_state_changed(make_state_changed("climate.ghost", None))
    assert recorder.events == []


def test_snapshot_returns_copy(reconciler: StateReconciler) -> None:
    reconciler.apply_snapshot([make_state()])
    copy = reconciler.snapshot()
    copy.clear()
    assert len(reconciler) == 1


# ---------------------------------------------------------------------------
# Include filter
# ---------------------------------------------------------------------------


def test_include_filter_by_id_and_name() -> None:
    reconciler = StateReconciler(include={"climate.office", "den"})
    recorder = Recorder(reconciler)
    reconciler.apply_snapshot(
        [
            make_state("climate.office"),
            make_state("climate.x", friendly_name="Den"),
            make_state("climate.garage"),
        ]
    )
    assert recorder.events == [("added", "climate.office"), ("added", "climate.x")]


def test_include_filter_removes_entity_that_stops_matching() -> None:
    reconciler = StateReconciler(include={"den"})
    recorder = Recorder(reconciler)
    reconciler.apply_snapshot([make_state("climate.x", friendly_name="Den")])
    reconciler.apply_state_changed(
        make_state_changed("climate.x", make_state("climate.x", friendly_name="Attic"))
    )
    assert recorder.events == [("added", "climate.x"), ("removed", "climate.x")]


# ---------------------------------------------------------------------------
# Meaningful-change predicate
# ---------------------------------------------------------------------------


BASE = ClimateState(
    entity_id="climate.a",
    hvac_mode="heat",
    action="heating",
    fan_mode="auto",
    current_temperature=20.0,
    target_temperature=21.0,
)


@pytest.mark.parametrize(
    ("changes", "expected"),
    [
        ({}, False),
        ({"hvac_mode": "HEAT"}, False),
        ({"fan_mode": "AUTO", "action": "Heating"}, False),
        ({"hvac_mode": "cool"}, True),
        ({"fan_mode": "high"}, True),
        ({"action": None}, True),
        ({"current_temperature": 20.009}, False),
        ({"current_temperature": 20.02}, True),
        ({"current_temperature": None}, True),
        ({"target_temperature": None, "heat_setpoint": 19.0}, True),
        ({"cool_setpoint": 24.0}, True),
        ({"name": "Other", "min_temp": 5.0, "step": 1.0}, False),
        ({"supported_hvac_modes": ("off",), "temperature_unit": "°F"}, False),
    ],
)
def test_has_meaningful_change(changes: dict[str, Any], expected: bool) -> None:
    import dataclasses

    assert has_meaningful_change(BASE, dataclasses.replace(BASE, **changes)) is expected


def test_missing_text_equals_empty_text() -> None:
    import dataclasses

    previous = dataclasses.replace(BASE, fan_mode=None)
    assert not has_meaningful_change(previous, dataclasses.replace(BASE, fan_mode=""))


def test_event_id_wins_over_payload_id(
    reconciler: StateReconciler, recorder: Recorder
) -> None:
    reconciler.apply_state_changed(
        make_state_changed("climate.office", make_state("climate.den", "cool"))
    )
    assert recorder.events == [("added", "climate.office")]
    state = reconciler.get("climate.office")
    assert state is not None
    assert state.entity_id == "climate.office"
    assert state.hvac_mode == "cool"
    assert "climate.den" not in reconciler
    assert list(reconciler.snapshot()) == ["climate.office"]


def test_event_fills_missing_payload_id(
    reconciler: StateReconciler, recorder: Recorder
) -> None:
    raw = make_state()
    del raw["entity_id"]
    reconciler.apply_state_changed(make_state_changed("climate.office", raw))
    assert recorder.events == [("added", "climate.office")]
