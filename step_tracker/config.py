"""Tracker configuration (sensor names, polling rates, filters, timeouts)."""

from dataclasses import dataclass


@dataclass
class TrackerConfig:
    # termux-sensor names (substring match against `termux-sensor -l`)
    step_sensor: str = "step_counter"
    pressure_sensor: str = "pressure"
    sensor_delay_ms: int = 1000

    # termux-location polling
    gps_provider: str = "gps"
    gps_poll_interval: float = 1.0  # Target 1 Hz polling
    gps_max_request_duration: float = 5.0  # Kill requests that stall longer
    gps_quality_threshold: float = 100.0  # Reject fixes with accuracy worse than this (m)
    distance_filter_m: float = 2.0  # Minimum movement before a fix is emitted

    # Permission checks and the barometer probe
    probe_timeout: float = 10.0

    # Controller loop
    drain_interval: float = 0.1
    drain_batch: int = 200  # Max inbox events per drain() call
    display_interval: float = 1.0
