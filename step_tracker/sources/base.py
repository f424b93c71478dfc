"""
Interfaces between the session controller and the outside world.

A source pushes events to the callbacks handed to subscribe(), possibly from
its own reader thread, and returns a Subscription the controller releases on
stop. Sources never touch session state directly.
"""

from abc import ABC, abstractmethod
import logging
import threading

from ..utils import haversine_distance

logger = logging.getLogger(__name__)


class Subscription:
    """
    Handle for one live stream subscription.

    cancel() releases the underlying resource exactly once; further calls are
    no-ops, so every exit path may call it without bookkeeping.
    """

    def __init__(self, cancel_fn=None, name=""):
        self.name = name
        self._cancel_fn = cancel_fn
        self._lock = threading.Lock()
        self.cancelled = False

    @property
    def active(self):
        return not self.cancelled

    def cancel(self):
        with self._lock:
            if self.cancelled:
                return
            self.cancelled = True
            cancel_fn, self._cancel_fn = self._cancel_fn, None
        if cancel_fn is not None:
            cancel_fn()
        logger.debug("Subscription %s cancelled", self.name)

    def __repr__(self):
        state = "cancelled" if self.cancelled else "active"
        return f"<Subscription {self.name} {state}>"


class SensorSource(ABC):
    """
    Abstract event stream.

    Subclasses must implement:
    - subscribe(on_event, on_error) -> Subscription

    on_event receives StepEvent / PositionEvent / PressureEvent instances.
    on_error receives an exception describing a stream problem; the
    subscription stays alive afterwards.
    """

    kind = None

    @abstractmethod
    def subscribe(self, on_event, on_error=None):
        """
        Start delivering events.

        Raises:
            SensorUnavailableError: If the stream cannot be attached at all
        """
        pass


class PressureSource(SensorSource):
    """Pressure stream with a capability probe run before subscribing."""

    @abstractmethod
    def is_available(self):
        """Return True when the device has a usable barometer."""
        pass


class PermissionGate(ABC):
    """Answers which capabilities the platform has granted."""

    @abstractmethod
    def request(self, capabilities):
        """
        Ask for the given capabilities.

        Args:
            capabilities (list[Capability]): Capabilities the session needs

        Returns:
            dict: Capability -> bool (granted)
        """
        pass

    def location_services_enabled(self):
        return True


class StaticPermissionGate(PermissionGate):
    """Gate with fixed answers, for replays and for hosts without a permission model."""

    def __init__(self, granted=None, location_services=True):
        self.granted = dict(granted or {})
        self.location_services = location_services
        self.requests = 0

    def request(self, capabilities):
        self.requests += 1
        return {cap: self.granted.get(cap, True) for cap in capabilities}

    def location_services_enabled(self):
        return self.location_services


class MovementFilter:
    """
    Minimum-movement gate for position fixes.

    The first fix always passes; later fixes pass only once they are at least
    min_distance_m away from the last fix that passed.
    """

    def __init__(self, min_distance_m=2.0):
        self.min_distance_m = min_distance_m
        self.last_emitted = None
        self.suppressed = 0

    def accept(self, sample):
        if self.last_emitted is not None and self.min_distance_m > 0:
            moved = haversine_distance(
                self.last_emitted.latitude, self.last_emitted.longitude,
                sample.latitude, sample.longitude
            )
            if moved < self.min_distance_m:
                self.suppressed += 1
                return False
        self.last_emitted = sample
        return True

    def reset(self):
        self.last_emitted = None
        self.suppressed = 0
