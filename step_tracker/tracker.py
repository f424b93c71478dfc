#!/usr/bin/env python3
"""
Step / distance / elevation tracker - command line front end.

Live mode runs on Android under Termux (termux-api package required):

    step-tracker                 # continuous, Ctrl+C to stop
    step-tracker --duration 30   # stop after 30 minutes

Replay mode feeds a recorded JSON-lines log through the same session logic:

    step-tracker --replay walk.jsonl.gz
"""

import argparse
import logging
import signal
import subprocess
import sys
import threading
import time
from datetime import datetime

import psutil

from .config import TrackerConfig
from .session import SessionController
from .sources import StaticPermissionGate, termux_sources
from .sources.replay import ReplayRecording

logger = logging.getLogger(__name__)


def read_battery():
    """Battery percentage, or None when the platform does not report one."""
    try:
        battery = psutil.sensors_battery()
    except (AttributeError, NotImplementedError, OSError):
        return None
    return battery.percent if battery else None


def print_state(state):
    print("-" * 40)
    for line in state.format_lines():
        print(line)
    sys.stdout.flush()


def print_summary(state, started_at, battery_start=None):
    duration = (datetime.now() - started_at).total_seconds()

    print("\n" + "=" * 60)
    print("TRACKING SESSION SUMMARY")
    print("=" * 60)
    print(f"Session duration:     {int(duration//60)}m {int(duration%60)}s")
    print(f"Steps:                {state.step_count}")
    print(f"Total distance:       {state.distance_km:.3f} km ({state.distance_meters:.0f} m)")
    print(f"Elevation gain:       {state.elevation_gain_meters:.1f} m ({state.elevation_source.value})")
    if state.status_message:
        print(f"Last status:          {state.status_message}")

    battery_end = read_battery()
    if battery_start is not None and battery_end is not None:
        print(f"\nBattery:")
        print(f"  Start: {battery_start:.0f}%")
        print(f"  End:   {battery_end:.0f}%")
        print(f"  Drop:  {battery_start - battery_end:.0f}%")
    print("=" * 60)


def run_live(config, duration_minutes=None):
    """Track on-device until Ctrl+C or the duration elapses."""
    shutdown = threading.Event()

    def _signal_handler(signum, frame):
        signal_name = "SIGTERM" if signum == signal.SIGTERM else "SIGINT"
        print(f"\n\n⚠ Received {signal_name}, stopping session...")
        shutdown.set()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    controller = SessionController(*termux_sources(config))
    state = controller.start()
    print(state.status_message)
    if not state.tracking:
        return 1

    # Keep the CPU awake while the screen is off
    try:
        subprocess.run(['termux-wake-lock'], check=False, capture_output=True, timeout=5)
    except (OSError, subprocess.TimeoutExpired) as exc:
        logger.warning("Could not acquire wakelock: %s", exc)

    started_at = datetime.now()
    battery_start = read_battery()
    deadline = time.time() + duration_minutes * 60 if duration_minutes else None
    next_display = time.time()

    print("Tracking... (Press Ctrl+C to stop)\n")

    def on_tick(state):
        nonlocal next_display
        now = time.time()
        if now >= next_display:
            print_state(state)
            next_display = now + config.display_interval
        if deadline is not None and now >= deadline:
            shutdown.set()

    try:
        controller.run(shutdown, on_tick=on_tick, poll_interval=config.drain_interval,
                       max_events=config.drain_batch)
    finally:
        controller.drain(max_events=config.drain_batch)
        controller.stop()
        try:
            subprocess.run(['termux-wake-unlock'], check=False, capture_output=True, timeout=5)
        except (OSError, subprocess.TimeoutExpired) as exc:
            logger.warning("Could not release wakelock: %s", exc)

    print_summary(controller.state, started_at, battery_start)
    return 0


def run_replay(path, config):
    """Replay a recording and compare the session against an offline recomputation."""
    recording = ReplayRecording.load(path, distance_filter_m=config.distance_filter_m)
    controller = SessionController(
        recording.step_source,
        recording.position_source,
        recording.pressure_source,
        StaticPermissionGate(),
    )

    started_at = datetime.now()
    state = controller.start()
    print(state.status_message)
    if not state.tracking:
        return 1

    recording.play(on_reading=controller.drain)
    controller.drain()
    state = controller.stop()
    print_summary(state, started_at)

    report = recording.report()
    print(f"\nRecording: {report.readings} readings over {report.duration_s:.0f}s")
    print(f"  Raw step delta:        {report.raw_steps}")
    print(f"  Unfiltered GPS track:  {report.gps_distance_m:.0f} m")
    print(f"  Unfiltered GPS uphill: {report.gps_uphill_m:.1f} m")
    return 0


def build_parser():
    defaults = TrackerConfig()
    parser = argparse.ArgumentParser(
        prog="step-tracker",
        description="Track steps, distance and elevation gain from phone sensors.",
    )
    parser.add_argument("--duration", type=float, default=None,
                        help="Minutes to track (default: until Ctrl+C)")
    parser.add_argument("--replay", metavar="PATH",
                        help="Replay a JSON-lines recording instead of live sensors")
    parser.add_argument("--distance-filter", type=float, default=defaults.distance_filter_m,
                        help="Minimum movement in meters before a GPS fix counts (default: %(default)s)")
    parser.add_argument("--gps-interval", type=float, default=defaults.gps_poll_interval,
                        help="Seconds between location requests (default: %(default)s)")
    parser.add_argument("--gps-accuracy", type=float, default=defaults.gps_quality_threshold,
                        help="Reject fixes with worse reported accuracy in meters (default: %(default)s)")
    parser.add_argument("--sensor-delay", type=int, default=defaults.sensor_delay_ms,
                        help="termux-sensor delay in ms (default: %(default)s)")
    parser.add_argument("--step-sensor", default=defaults.step_sensor,
                        help="Step counter sensor name (default: %(default)s)")
    parser.add_argument("--pressure-sensor", default=defaults.pressure_sensor,
                        help="Pressure sensor name (default: %(default)s)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def config_from_args(args):
    return TrackerConfig(
        step_sensor=args.step_sensor,
        pressure_sensor=args.pressure_sensor,
        sensor_delay_ms=args.sensor_delay,
        gps_poll_interval=args.gps_interval,
        gps_quality_threshold=args.gps_accuracy,
        distance_filter_m=args.distance_filter,
    )


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = config_from_args(args)

    if args.replay:
        return run_replay(args.replay, config)
    return run_live(config, duration_minutes=args.duration)


if __name__ == "__main__":
    sys.exit(main())
