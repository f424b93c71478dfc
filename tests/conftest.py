import pytest

from step_tracker.models import Capability, PositionEvent, PositionSample, SensorKind, StepEvent, PressureEvent
from step_tracker.session import SessionController
from step_tracker.sources import StaticPermissionGate
from step_tracker.sources.replay import PushPositionSource, PushPressureSource, PushSource


class Rig:
    """Controller wired to push sources so tests can feed events by hand."""

    def __init__(self, barometer=True, granted=None, location_services=True):
        self.steps = PushSource(SensorKind.STEPS)
        self.positions = PushPositionSource()
        self.pressure = PushPressureSource(available=barometer)
        self.gate = StaticPermissionGate(granted, location_services=location_services)
        self.controller = SessionController(self.steps, self.positions, self.pressure, self.gate)
        self.snapshots = []
        self.controller.add_listener(self.snapshots.append)

    def step(self, value):
        self.steps.emit(StepEvent(value))
        self.controller.drain()

    def position(self, lat, lon, alt=None):
        self.positions.emit(PositionEvent(PositionSample(lat, lon, alt)))
        self.controller.drain()

    def pressure_reading(self, hpa):
        self.pressure.emit(PressureEvent(hpa))
        self.controller.drain()

    @property
    def state(self):
        return self.controller.state


@pytest.fixture
def rig():
    return Rig()


@pytest.fixture
def gps_rig():
    return Rig(barometer=False)


@pytest.fixture
def denied_rig():
    return Rig(granted={Capability.LOCATION: False})


@pytest.fixture
def make_rig():
    return Rig
