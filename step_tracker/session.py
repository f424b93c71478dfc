"""
Session controller - lifecycle and state ownership for one tracking session.

Sources deliver events from their own threads, but they only post into the
controller's inbox queue. drain() processes the inbox one event at a time on
the caller's thread, so the aggregates have a single writer and need no locks.

States:
    IDLE --start()--> TRACKING --stop()--> IDLE
    reset() from any state: stop, then clear every aggregate and baseline

Each start() opens a new generation; events posted by subscriptions from an
earlier generation are dropped, so stop() followed by start() never delivers
an event twice.
"""

import logging
from queue import Empty, Queue

from .baseline import StepBaselineTracker
from .distance import DistanceAccumulator
from .elevation import get_estimator
from .errors import PermissionDeniedError, SensorUnavailableError, TrackerError
from .models import (
    Capability, ElevationSource, PositionEvent, PressureEvent, SensorErrorEvent, SensorKind,
    SessionState, StepEvent,
)

logger = logging.getLogger(__name__)

STATUS_BAROMETRIC = "Tracking (barometer + GPS)"
STATUS_GPS_ONLY = "Tracking (GPS; barometer not available)"
STATUS_STEPS_UNAVAILABLE = "Step counter not available on this device."
STATUS_LOCATION_SERVICES_OFF = "Please enable Location Services."
STATUS_ACTIVITY_DENIED = "Activity recognition permission denied; steps may stay at 0."


class SessionController:
    """
    Owns the three leaf components and every sensor subscription.

    Args:
        step_source (SensorSource): Cumulative step counts
        position_source (SensorSource): GPS fixes (pre-filtered for movement)
        pressure_source (PressureSource): Barometer readings + availability probe
        permission_gate (PermissionGate): Platform permission answers
    """

    def __init__(self, step_source, position_source, pressure_source, permission_gate):
        self.step_source = step_source
        self.position_source = position_source
        self.pressure_source = pressure_source
        self.permission_gate = permission_gate

        self.inbox = Queue()
        self.generation = 0
        self._subscriptions = []
        self._listeners = []

        self.steps = StepBaselineTracker()
        self.distance = DistanceAccumulator()
        self.elevation = None
        self.elevation_source = ElevationSource.NONE

        self.tracking = False
        self.status_message = ""
        self.error_code = None

        self.events_processed = 0
        self.events_dropped = 0
        self._state = SessionState()

    # ------------------------------------------------------------------
    # Observable state

    @property
    def state(self):
        return self._state

    def add_listener(self, callback):
        """Register callback(SessionState), called after every mutation."""
        self._listeners.append(callback)

    def remove_listener(self, callback):
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _publish(self):
        self._state = SessionState(
            step_count=self.steps.steps,
            distance_meters=self.distance.total_meters,
            elevation_gain_meters=self.elevation.gain_meters if self.elevation else 0.0,
            elevation_source=self.elevation_source,
            tracking=self.tracking,
            status_message=self.status_message,
            error_code=self.error_code,
        )
        for callback in list(self._listeners):
            try:
                callback(self._state)
            except Exception:
                logger.exception("Session listener %r failed", callback)
        return self._state

    # ------------------------------------------------------------------
    # Lifecycle

    def start(self):
        """
        Begin (or resume) tracking.

        Returns:
            SessionState: Snapshot after the attempt; tracking stays False and
            status_message explains why if the session could not start
        """
        if self.tracking:
            logger.info("start() ignored: already tracking")
            return self._state

        notices = []
        try:
            granted = self.permission_gate.request(
                [Capability.LOCATION, Capability.ACTIVITY_RECOGNITION]
            )
            if not granted.get(Capability.LOCATION):
                raise PermissionDeniedError("Location permission denied")
            if not granted.get(Capability.ACTIVITY_RECOGNITION):
                notices.append(STATUS_ACTIVITY_DENIED)

            self.generation += 1
            generation = self.generation

            # Re-seed baselines and cursors; totals carry over from a stopped run
            self.steps.rebaseline()
            self.distance.rebaseline()

            try:
                self._subscribe(self.step_source, SensorKind.STEPS, generation)
            except SensorUnavailableError as exc:
                logger.warning("Step counter unavailable: %s", exc)
                notices.append(STATUS_STEPS_UNAVAILABLE)

            if not self.permission_gate.location_services_enabled():
                notices.append(STATUS_LOCATION_SERVICES_OFF)
            self._subscribe(self.position_source, SensorKind.POSITION, generation)

            source = ElevationSource.GPS
            if self._probe_barometer():
                try:
                    self._subscribe(self.pressure_source, SensorKind.PRESSURE, generation)
                    source = ElevationSource.BAROMETRIC
                except SensorUnavailableError as exc:
                    logger.warning("Barometer listed but not readable: %s", exc)

            carried_gain = self.elevation.gain_meters if self.elevation else 0.0
            self.elevation = get_estimator(source, initial_gain=carried_gain)
            self.elevation_source = source

        except TrackerError as exc:
            self._release_subscriptions()
            logger.error("Session failed to start: %s", exc)
            self.tracking = False
            self.status_message = f"Error starting: {exc}"
            self.error_code = exc.code
            return self._publish()
        except Exception:
            self._release_subscriptions()
            raise

        self.tracking = True
        self.error_code = None
        mode_status = STATUS_BAROMETRIC if source == ElevationSource.BAROMETRIC else STATUS_GPS_ONLY
        self.status_message = " ".join(notices + [mode_status])
        logger.info("Session generation %d tracking with %s elevation", generation, source.value)
        return self._publish()

    def stop(self):
        """Cancel every subscription; accumulated values and baselines are kept."""
        released = self._release_subscriptions()
        was_tracking = self.tracking
        self.tracking = False
        if was_tracking or released:
            logger.info("Session stopped (%d subscriptions released)", released)
        return self._publish()

    def reset(self):
        """Stop and clear all aggregates, baselines and status."""
        self.stop()
        self.steps.reset()
        self.distance.reset()
        self.elevation = None
        self.elevation_source = ElevationSource.NONE
        self.status_message = ""
        self.error_code = None
        self._discard_inbox()
        return self._publish()

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False

    def _probe_barometer(self):
        try:
            return bool(self.pressure_source.is_available())
        except TrackerError as exc:
            logger.warning("Barometer probe failed, using GPS altitude: %s", exc)
            return False

    def _subscribe(self, source, kind, generation):
        def on_event(event):
            self.inbox.put((generation, event))

        def on_error(exc):
            self.inbox.put((generation, SensorErrorEvent(kind, str(exc))))

        subscription = source.subscribe(on_event, on_error)
        self._subscriptions.append(subscription)
        return subscription

    def _release_subscriptions(self):
        released = 0
        while self._subscriptions:
            subscription = self._subscriptions.pop()
            subscription.cancel()
            released += 1
        return released

    def _discard_inbox(self):
        while True:
            try:
                self.inbox.get_nowait()
            except Empty:
                return

    # ------------------------------------------------------------------
    # Event processing

    def drain(self, timeout=0.0, max_events=None):
        """
        Process queued events in arrival order.

        Args:
            timeout (float): Seconds to wait for the first event when the inbox
                             is empty (0 returns immediately)
            max_events (int): Take at most this many events from the inbox per
                              call; None drains until empty

        Returns:
            int: Number of events applied to the session
        """
        applied = 0
        taken = 0
        wait = timeout
        while max_events is None or taken < max_events:
            try:
                if wait:
                    generation, event = self.inbox.get(timeout=wait)
                else:
                    generation, event = self.inbox.get_nowait()
            except Empty:
                break
            wait = 0
            taken += 1
            if self.handle_event(event, generation):
                applied += 1
        return applied

    def run(self, shutdown_event, on_tick=None, poll_interval=0.1, max_events=200):
        """
        Process events on the calling thread until shutdown_event is set.

        Args:
            shutdown_event (threading.Event): Set by another thread or a signal handler
            on_tick: Optional callback(SessionState) after every batch
            poll_interval (float): Seconds to wait for events per batch
            max_events (int): Batch cap, so on_tick runs even under a flood of events

        Returns:
            int: Number of events applied
        """
        applied = 0
        while not shutdown_event.is_set():
            applied += self.drain(timeout=poll_interval, max_events=max_events)
            if on_tick is not None:
                on_tick(self._state)
        return applied

    def handle_event(self, event, generation=None):
        """
        Route one event to its component and publish the new snapshot.

        Returns:
            bool: False when the event was dropped (idle or stale generation)
        """
        if generation is None:
            generation = self.generation
        if not self.tracking or generation != self.generation:
            self.events_dropped += 1
            return False

        if isinstance(event, StepEvent):
            self.steps.on_raw_step_count(event.cumulative_steps)
        elif isinstance(event, PositionEvent):
            self.distance.on_position(event.sample)
            if event.sample.altitude is not None:
                self.elevation.on_gps_altitude(event.sample.altitude)
        elif isinstance(event, PressureEvent):
            self.elevation.on_pressure(event.pressure_hpa)
        elif isinstance(event, SensorErrorEvent):
            self._on_sensor_error(event)
        else:
            logger.warning("Dropping unknown event type %s", type(event).__name__)
            self.events_dropped += 1
            return False

        self.events_processed += 1
        self._publish()
        return True

    def _on_sensor_error(self, event):
        logger.warning("%s stream error: %s", event.sensor.value, event.message)
        if event.sensor == SensorKind.STEPS:
            self.status_message = STATUS_STEPS_UNAVAILABLE
        elif event.sensor == SensorKind.POSITION:
            self.status_message = f"Location error: {event.message}"
        else:
            self.status_message = f"Barometer error: {event.message}"
        self.error_code = SensorUnavailableError.code
