"""
Termux:API sensor sources (Android).

termux-sensor is started ONCE per stream and read continuously; it prints
pretty-printed (multi-line) JSON objects, so the reader tracks brace depth to
find object boundaries. termux-location has no usable streaming mode on most
devices, so a background thread polls it with non-blocking requests.
"""

import logging
import shutil
import subprocess
import threading
import time

import orjson

from .base import (
    MovementFilter, PermissionGate, PressureSource, SensorSource, Subscription,
)
from ..config import TrackerConfig
from ..errors import SensorUnavailableError
from ..models import (
    Capability, PositionEvent, PositionSample, PressureEvent, SensorKind, StepEvent,
)

logger = logging.getLogger(__name__)


def iter_json_objects(lines):
    """
    Yield dicts from a stream of lines holding multi-line JSON objects.

    Malformed objects are skipped and buffering restarts at the next line.
    """
    json_buffer = ""
    brace_depth = 0

    for line in lines:
        if not line:
            continue

        json_buffer += line + '\n'

        # Track brace depth to detect complete JSON objects
        brace_depth += line.count('{') - line.count('}')

        if brace_depth == 0 and '{' in json_buffer and '}' in json_buffer:
            try:
                data = orjson.loads(json_buffer)
            except orjson.JSONDecodeError:
                logger.debug("Skipping malformed sensor JSON: %r", json_buffer[:80])
                data = None
            json_buffer = ""
            if isinstance(data, dict):
                yield data
        elif brace_depth < 0:
            json_buffer = ""
            brace_depth = 0


def sensor_values(data, sensor_name):
    """Return the 'values' list for the first sensor key containing sensor_name."""
    needle = sensor_name.lower()
    for sensor_key, sensor_data in data.items():
        if needle in sensor_key.lower() and isinstance(sensor_data, dict):
            values = sensor_data.get('values')
            if values:
                return values
    return None


def _run(cmd, timeout):
    """Run a short termux-api command; None when missing or stalled."""
    try:
        return subprocess.run(
            cmd,
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except FileNotFoundError:
        logger.info("%s not found in PATH", cmd[0])
    except subprocess.TimeoutExpired:
        logger.warning("%s did not answer within %.1fs", ' '.join(cmd), timeout)
    return None


def list_sensors(timeout):
    """Output of `termux-sensor -l`, or '' if unavailable."""
    result = _run(['termux-sensor', '-l'], timeout)
    if result is None or result.returncode != 0:
        return ""
    return result.stdout


def _terminate(process):
    """Stop a child process and close its pipes."""
    try:
        process.terminate()
        process.wait(timeout=1)
    except subprocess.TimeoutExpired:
        process.kill()
        process.wait(timeout=1)
    except OSError as exc:
        logger.debug("Process %s already gone: %s", process.pid, exc)
    finally:
        # Close file descriptors explicitly to prevent FD leaks across restarts
        for pipe in (process.stdout, process.stderr, process.stdin):
            if pipe:
                pipe.close()


class TermuxSensorDaemon:
    """
    Persistent termux-sensor process for one sensor.

    Calls on_values(values) from the reader thread for every reading, and
    on_error(exc) if the stream ends while the daemon is still wanted.
    """

    def __init__(self, sensor_name, on_values, on_error=None, delay_ms=1000):
        self.sensor_name = sensor_name
        self.delay_ms = delay_ms
        self.on_values = on_values
        self.on_error = on_error
        self.reader_thread = None
        self.stop_event = threading.Event()
        self.sensor_process = None
        self.readings = 0

    def start(self):
        """
        Start the sensor process and its reader thread.

        Raises:
            SensorUnavailableError: If termux-sensor is missing or exits immediately
        """
        self.stop_event.clear()
        try:
            self.sensor_process = subprocess.Popen(
                ['termux-sensor', '-s', self.sensor_name, '-d', str(self.delay_ms)],
                stdin=subprocess.DEVNULL,  # Prevent stdin blocking
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                universal_newlines=True,
                bufsize=1,  # Line buffered
                close_fds=True,
            )
        except OSError as exc:
            raise SensorUnavailableError(f"Cannot start termux-sensor: {exc}") from exc

        if self.sensor_process.poll() is not None:
            stderr_out = self.sensor_process.stderr.read() if self.sensor_process.stderr else ""
            _terminate(self.sensor_process)
            self.sensor_process = None
            raise SensorUnavailableError(f"termux-sensor exited immediately: {stderr_out.strip()}")

        self.reader_thread = threading.Thread(
            target=self._read_loop, name=f"termux-sensor:{self.sensor_name}", daemon=True
        )
        self.reader_thread.start()
        logger.info("Sensor daemon started (%s, PID %s)", self.sensor_name, self.sensor_process.pid)

    def _read_loop(self):
        stdout = self.sensor_process.stdout
        try:
            for data in iter_json_objects(line.rstrip('\n') for line in stdout):
                if self.stop_event.is_set():
                    break
                values = sensor_values(data, self.sensor_name)
                if values is not None:
                    self.readings += 1
                    self.on_values(values)
        except (OSError, ValueError) as exc:
            # Pipe closed underneath us during stop()
            if not self.stop_event.is_set():
                self._report(SensorUnavailableError(f"{self.sensor_name} stream failed: {exc}"))
            return

        logger.info("Sensor daemon %s read loop exited after %d readings",
                    self.sensor_name, self.readings)
        if not self.stop_event.is_set():
            self._report(SensorUnavailableError(f"{self.sensor_name} stream ended"))

    def _report(self, exc):
        logger.warning("%s", exc)
        if self.on_error is not None:
            self.on_error(exc)

    def stop(self):
        self.stop_event.set()
        if self.sensor_process:
            _terminate(self.sensor_process)
        if self.reader_thread and self.reader_thread is not threading.current_thread():
            self.reader_thread.join(timeout=2)

    def is_alive(self):
        return self.sensor_process is not None and self.sensor_process.poll() is None


class TermuxStepSource(SensorSource):
    """Cumulative step counter from the platform step_counter sensor."""

    kind = SensorKind.STEPS

    def __init__(self, config=None):
        self.config = config or TrackerConfig()

    def subscribe(self, on_event, on_error=None):
        def on_values(values):
            on_event(StepEvent(int(values[0])))

        daemon = TermuxSensorDaemon(
            self.config.step_sensor, on_values, on_error, delay_ms=self.config.sensor_delay_ms
        )
        daemon.start()
        return Subscription(daemon.stop, name="steps")


class TermuxPressureSource(PressureSource):
    """Barometer readings in hPa."""

    kind = SensorKind.PRESSURE

    def __init__(self, config=None):
        self.config = config or TrackerConfig()

    def is_available(self):
        listing = list_sensors(self.config.probe_timeout)
        return self.config.pressure_sensor.lower() in listing.lower()

    def subscribe(self, on_event, on_error=None):
        def on_values(values):
            on_event(PressureEvent(float(values[0])))

        daemon = TermuxSensorDaemon(
            self.config.pressure_sensor, on_values, on_error, delay_ms=self.config.sensor_delay_ms
        )
        daemon.start()
        return Subscription(daemon.stop, name="pressure")


class TermuxLocationPoller(threading.Thread):
    """Non-blocking GPS poller - tolerates LocationAPI stalls by killing slow requests"""

    def __init__(self, on_event, on_error, config):
        super().__init__(name="termux-location", daemon=True)
        self.on_event = on_event
        self.on_error = on_error
        self.config = config
        self.stop_event = threading.Event()
        self.movement_filter = MovementFilter(config.distance_filter_m)

        self.current_process = None
        self.request_start_time = None

        # Statistics (for health monitoring)
        self.requests_sent = 0
        self.requests_completed = 0
        self.requests_timeout = 0
        self.low_quality_rejections = 0

    def start_request(self):
        """Start a new location request without blocking"""
        if self.current_process is not None:
            return False
        try:
            self.current_process = subprocess.Popen(
                ['termux-location', '-p', self.config.gps_provider],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
            )
        except OSError as exc:
            self.on_error(SensorUnavailableError(f"Failed to start location request: {exc}"))
            return False
        self.request_start_time = time.time()
        self.requests_sent += 1
        return True

    def check_request(self):
        """Poll the current request; returns a PositionSample when one finished"""
        if self.current_process is None:
            return None

        returncode = self.current_process.poll()
        if returncode is None:
            if time.time() - self.request_start_time > self.config.gps_max_request_duration:
                logger.warning("Location request exceeded %.1fs, killing",
                               self.config.gps_max_request_duration)
                _terminate(self.current_process)
                self.current_process = None
                self.requests_timeout += 1
            return None

        process, self.current_process = self.current_process, None
        stdout, _ = process.communicate()
        if returncode != 0 or not stdout:
            return None
        return self.parse_fix(stdout)

    def parse_fix(self, text):
        try:
            data = orjson.loads(text)
        except orjson.JSONDecodeError:
            logger.debug("Unparseable location output: %r", text[:80])
            return None
        if not isinstance(data, dict) or data.get('latitude') is None or data.get('longitude') is None:
            return None

        accuracy = data.get('accuracy')
        if accuracy is not None and accuracy > self.config.gps_quality_threshold:
            self.low_quality_rejections += 1
            logger.info("Rejected low-quality fix (accuracy %.1fm > %.1fm)",
                        accuracy, self.config.gps_quality_threshold)
            return None

        self.requests_completed += 1
        return PositionSample(
            latitude=float(data['latitude']),
            longitude=float(data['longitude']),
            altitude=data.get('altitude'),
            accuracy=accuracy,
        )

    def run(self):
        next_poll_time = time.time()
        while not self.stop_event.is_set():
            sample = self.check_request()
            if sample is not None and self.movement_filter.accept(sample):
                self.on_event(PositionEvent(sample))

            current_time = time.time()
            if current_time >= next_poll_time:
                if self.start_request():
                    next_poll_time = current_time + self.config.gps_poll_interval
                else:
                    next_poll_time = current_time + 0.5

            self.stop_event.wait(0.1)

        if self.current_process is not None:
            _terminate(self.current_process)
            self.current_process = None

    def stop(self):
        self.stop_event.set()
        if self is not threading.current_thread():
            self.join(timeout=2)

    def get_health_status(self):
        return {
            'requests_sent': self.requests_sent,
            'requests_completed': self.requests_completed,
            'requests_timeout': self.requests_timeout,
            'low_quality_rejections': self.low_quality_rejections,
            'suppressed_by_movement_filter': self.movement_filter.suppressed,
        }


class TermuxLocationSource(SensorSource):
    """GPS fixes via termux-location with a minimum-movement filter."""

    kind = SensorKind.POSITION

    def __init__(self, config=None):
        self.config = config or TrackerConfig()

    def subscribe(self, on_event, on_error=None):
        if shutil.which('termux-location') is None:
            raise SensorUnavailableError("termux-location not found in PATH")

        poller = TermuxLocationPoller(on_event, on_error or (lambda exc: None), self.config)
        poller.start()
        return Subscription(poller.stop, name="position")


class TermuxPermissionGate(PermissionGate):
    """
    Permission answers derived from what Termux:API can actually do.

    Location is granted when termux-location returns a last-known fix without
    an error; activity recognition when the step sensor is listed.
    """

    def __init__(self, config=None):
        self.config = config or TrackerConfig()

    def _location_answer(self, provider):
        result = _run(['termux-location', '-p', provider, '-r', 'last'], self.config.probe_timeout)
        if result is None or result.returncode != 0:
            return None
        return result.stdout

    def request(self, capabilities):
        granted = {}
        for capability in capabilities:
            if capability == Capability.LOCATION:
                output = self._location_answer('network')
                granted[capability] = output is not None and 'permission' not in output.lower()
            elif capability == Capability.ACTIVITY_RECOGNITION:
                listing = list_sensors(self.config.probe_timeout)
                granted[capability] = self.config.step_sensor.lower() in listing.lower()
            else:
                granted[capability] = False
        logger.info("Permission answers: %s", {cap.value: ok for cap, ok in granted.items()})
        return granted

    def location_services_enabled(self):
        output = self._location_answer(self.config.gps_provider)
        return bool(output and output.strip())
