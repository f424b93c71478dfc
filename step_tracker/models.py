"""
Value objects shared by the session controller, its components and the sources.

SessionState is the only thing the presentation layer sees: an immutable
snapshot rebuilt by the controller after every mutation.
"""

from dataclasses import dataclass, field
from enum import Enum
import time
from typing import Optional


class ElevationSource(Enum):
    """Which elevation strategy a session uses."""

    NONE = "none"
    BAROMETRIC = "barometric"
    GPS = "gps"


class Capability(Enum):
    """Permissions the session asks the platform gate for."""

    LOCATION = "location"
    ACTIVITY_RECOGNITION = "activity_recognition"


class SensorKind(Enum):
    STEPS = "steps"
    POSITION = "position"
    PRESSURE = "pressure"


ELEVATION_CAPTIONS = {
    ElevationSource.NONE: "",
    ElevationSource.BAROMETRIC: "Barometer-based",
    ElevationSource.GPS: "GPS altitude (fallback)",
}


@dataclass(frozen=True)
class SessionState:
    step_count: int = 0
    distance_meters: float = 0.0
    elevation_gain_meters: float = 0.0
    elevation_source: ElevationSource = ElevationSource.NONE
    tracking: bool = False
    status_message: str = ""
    error_code: Optional[str] = None

    @property
    def distance_km(self) -> float:
        return self.distance_meters / 1000

    def format_lines(self):
        """Display rows: steps, km to 3 decimals, gain to 1 decimal, status."""
        lines = [
            f"Steps:          {self.step_count}",
            f"Distance:       {self.distance_km:.3f} km",
            f"Elevation Gain: {self.elevation_gain_meters:.1f} m",
        ]
        caption = ELEVATION_CAPTIONS[self.elevation_source]
        if caption:
            lines[-1] += f"  ({caption})"
        if self.status_message:
            lines.append(self.status_message)
        return lines


@dataclass(frozen=True)
class PositionSample:
    latitude: float
    longitude: float
    altitude: Optional[float] = None
    accuracy: Optional[float] = None
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class StepEvent:
    cumulative_steps: int
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class PositionEvent:
    sample: PositionSample

    @property
    def timestamp(self) -> float:
        return self.sample.timestamp


@dataclass(frozen=True)
class PressureEvent:
    pressure_hpa: float
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class SensorErrorEvent:
    """Delivered through a source's error channel; the stream stays subscribed."""

    sensor: SensorKind
    message: str
    timestamp: float = field(default_factory=time.time)
