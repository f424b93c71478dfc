"""
Replay a recorded sensor log through the session controller.

Recordings are JSON lines, one reading per line, optionally gzip-compressed:

    {"t": 0.0, "kind": "meta", "barometer": true}
    {"t": 0.5, "kind": "steps", "steps": 10432}
    {"t": 1.0, "kind": "position", "lat": 47.61, "lon": -122.33, "alt": 52.0, "accuracy": 4.0}
    {"t": 1.2, "kind": "pressure", "hpa": 1008.91}
    {"t": 9.0, "kind": "error", "sensor": "steps", "message": "sensor unavailable"}

Readings are delivered synchronously, in timestamp order, to whatever is
subscribed at the time play() runs, so a replay is deterministic.
"""

from __future__ import annotations

import gzip
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import orjson

from .base import MovementFilter, PressureSource, SensorSource, Subscription
from ..errors import SensorUnavailableError
from ..models import PositionEvent, PositionSample, PressureEvent, SensorKind, StepEvent
from ..utils import track_distance, uphill_gain

logger = logging.getLogger(__name__)

# kind -> (required fields, numeric fields that may be absent)
READING_FIELDS = {
    "steps": (("steps",), ()),
    "position": (("lat", "lon"), ("alt", "accuracy")),
    "pressure": (("hpa",), ()),
    "error": (("sensor",), ()),
}


class PushSource(SensorSource):
    """Source whose events are pushed in by the caller (replay, tests, embedding hosts)."""

    def __init__(self, kind: SensorKind, fail_subscribe: Optional[str] = None) -> None:
        self.kind = kind
        self.fail_subscribe = fail_subscribe
        self._subscribers: List[tuple] = []
        self.subscribe_count = 0

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, on_event, on_error=None) -> Subscription:
        if self.fail_subscribe:
            raise SensorUnavailableError(self.fail_subscribe)
        entry = (on_event, on_error)
        self._subscribers.append(entry)
        self.subscribe_count += 1
        return Subscription(lambda: self._subscribers.remove(entry), name=self.kind.value)

    def emit(self, event) -> None:
        for on_event, _ in list(self._subscribers):
            on_event(event)

    def fail(self, message: str) -> None:
        exc = SensorUnavailableError(message)
        for _, on_error in list(self._subscribers):
            if on_error is not None:
                on_error(exc)


class PushPressureSource(PushSource):
    def __init__(self, available: bool = True, fail_subscribe: Optional[str] = None) -> None:
        super().__init__(SensorKind.PRESSURE, fail_subscribe=fail_subscribe)
        self.available = available
        self.probe_count = 0

    def is_available(self) -> bool:
        self.probe_count += 1
        return self.available


class PushPositionSource(PushSource):
    """Push source that applies the minimum-movement filter like a live GPS source."""

    def __init__(self, distance_filter_m: float = 0.0) -> None:
        super().__init__(SensorKind.POSITION)
        self.movement_filter = MovementFilter(distance_filter_m)

    def subscribe(self, on_event, on_error=None) -> Subscription:
        self.movement_filter.reset()
        return super().subscribe(on_event, on_error)

    def emit(self, event) -> None:
        if self.movement_filter.accept(event.sample):
            super().emit(event)


@dataclass
class ReplayReading:
    timestamp: float
    kind: str
    payload: Dict


def parse_reading(data) -> Optional[ReplayReading]:
    """Build a reading from one decoded line; None when fields are missing or not numeric."""
    kind = data.get("kind") if isinstance(data, dict) else None
    if not isinstance(kind, str) or kind not in READING_FIELDS:
        return None
    required, optional = READING_FIELDS[kind]
    if any(data.get(key) is None for key in required):
        return None
    if kind == "error" and not isinstance(data["sensor"], str):
        return None
    numeric = [key for key in required if kind != "error"]
    numeric += [key for key in optional if data.get(key) is not None]
    try:
        timestamp = float(data.get("t", 0.0))
        for key in numeric:
            float(data[key])
    except (TypeError, ValueError):
        return None
    return ReplayReading(timestamp, kind, data)


def _optional_float(value) -> Optional[float]:
    return None if value is None else float(value)


@dataclass
class ReplayReport:
    """Offline summary of a recording, computed without the controller."""

    readings: int
    duration_s: float
    gps_distance_m: float
    gps_uphill_m: float
    raw_steps: int


class ReplayRecording:
    """A loaded recording plus one push source per stream."""

    def __init__(self, readings: List[ReplayReading], barometer: Optional[bool] = None,
                 distance_filter_m: float = 0.0) -> None:
        self.readings = sorted(readings, key=lambda r: r.timestamp)
        if barometer is None:
            barometer = any(r.kind == "pressure" for r in self.readings)
        self.step_source = PushSource(SensorKind.STEPS)
        self.position_source = PushPositionSource(distance_filter_m)
        self.pressure_source = PushPressureSource(available=barometer)

    @classmethod
    def load(cls, path, distance_filter_m: float = 0.0) -> "ReplayRecording":
        path = Path(path)
        opener = gzip.open if path.suffix == ".gz" else open
        readings: List[ReplayReading] = []
        barometer = None
        with opener(path, "rt", encoding="utf-8") as handle:
            for line_no, line in enumerate(handle, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    data = orjson.loads(line)
                except orjson.JSONDecodeError:
                    logger.warning("%s:%d: skipping malformed line", path, line_no)
                    continue
                if isinstance(data, dict) and data.get("kind") == "meta":
                    barometer = data.get("barometer", barometer)
                    continue
                reading = parse_reading(data)
                if reading is None:
                    logger.warning("%s:%d: skipping unusable reading", path, line_no)
                    continue
                readings.append(reading)
        if not readings:
            raise RuntimeError(f"Recording {path} has no readings to replay")
        logger.info("Loaded %d readings from %s", len(readings), path)
        return cls(readings, barometer=barometer, distance_filter_m=distance_filter_m)

    def _event_for(self, reading: ReplayReading):
        data = reading.payload
        if reading.kind == "steps":
            return self.step_source, StepEvent(int(float(data["steps"])), reading.timestamp)
        if reading.kind == "position":
            sample = PositionSample(
                latitude=float(data["lat"]),
                longitude=float(data["lon"]),
                altitude=_optional_float(data.get("alt")),
                accuracy=_optional_float(data.get("accuracy")),
                timestamp=reading.timestamp,
            )
            return self.position_source, PositionEvent(sample)
        return self.pressure_source, PressureEvent(float(data["hpa"]), reading.timestamp)

    def play(self, on_reading=None) -> int:
        """
        Deliver every reading to the current subscribers.

        Args:
            on_reading: Optional callback run after each reading (e.g. controller.drain)

        Returns:
            int: Number of readings delivered
        """
        delivered = 0
        sources = {
            "steps": self.step_source,
            "position": self.position_source,
            "pressure": self.pressure_source,
        }
        for reading in self.readings:
            if reading.kind == "error":
                source = sources.get(reading.payload.get("sensor"))
                if source is not None:
                    source.fail(reading.payload.get("message", "sensor error"))
            else:
                source, event = self._event_for(reading)
                source.emit(event)
            delivered += 1
            if on_reading is not None:
                on_reading()
        return delivered

    def report(self) -> ReplayReport:
        positions = [r.payload for r in self.readings if r.kind == "position"]
        altitudes = [p["alt"] for p in positions if p.get("alt") is not None]
        steps = [int(float(r.payload["steps"])) for r in self.readings if r.kind == "steps"]
        return ReplayReport(
            readings=len(self.readings),
            duration_s=self.readings[-1].timestamp - self.readings[0].timestamp,
            gps_distance_m=track_distance([p["lat"] for p in positions], [p["lon"] for p in positions]),
            gps_uphill_m=uphill_gain(altitudes),
            raw_steps=max(0, steps[-1] - steps[0]) if steps else 0,
        )
