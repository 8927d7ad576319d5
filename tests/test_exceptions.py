"""Tests for exception hierarchy."""

from __future__ import annotations

import pytest

from hassclimate.exceptions import (
    CommandError,
    CommandTimeoutError,
    HassClimateConnectionError,
    HassClimateError,
)


def test_exception_hierarchy() -> None:
    assert issubclass(HassClimateConnectionError, HassClimateError)
    assert issubclass(CommandError, HassClimateError)
    assert issubclass(CommandTimeoutError, CommandError)
    assert issubclass(HassClimateError, Exception)


@pytest.mark.parametrize(
    "exc_class",
    [HassClimateConnectionError, CommandError, CommandTimeoutError],
)
def test_exceptions_are_catchable(exc_class: type[HassClimateError]) -> None:
    with pytest.raises(HassClimateError):
        raise exc_class("test")
