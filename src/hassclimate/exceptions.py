"""Exception classes for hassclimate."""


class HassClimateError(Exception):
    """Base exception for hassclimate."""


class HassClimateConnectionError(HassClimateError):
    """Connection to the hub failed or was lost."""


class CommandError(HassClimateError):
    """A request sent to the hub was rejected."""


class CommandTimeoutError(CommandError):
    """A request sent to the hub was not answered in time."""
