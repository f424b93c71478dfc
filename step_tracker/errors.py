"""Exception types raised by sources and permission gates."""


class TrackerError(Exception):
    """Base class for step tracker errors."""

    code = "tracker_error"


class PermissionDeniedError(TrackerError):
    """A capability required to start a session was refused."""

    code = "permission_denied"


class SensorUnavailableError(TrackerError):
    """A sensor source could not be attached or stopped delivering."""

    code = "sensor_unavailable"
