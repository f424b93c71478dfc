"""
Base class for elevation strategies.

Subclasses decide which sensor input produces an altitude; the uphill-only
gain bookkeeping lives here so both strategies accumulate identically.
"""

from abc import ABC, abstractmethod
import logging
import math

logger = logging.getLogger(__name__)


class ElevationStrategy(ABC):
    """
    Tracks cumulative uphill-only gain from successive altitude samples.

    All subclasses must implement:
    - on_pressure(pressure_hpa) -> gain
    - on_gps_altitude(altitude_m) -> gain

    A strategy ignores the input that belongs to the other source. Each
    instance owns its altitude cursor; nothing is shared between strategies.
    """

    source = None

    def __init__(self, initial_gain=0.0):
        # Gain carried over when a stopped session is resumed
        self.gain_meters = float(initial_gain)
        self.altitude_cursor = None  # Last altitude fed into update_gain
        self.rejected_samples = 0

    @abstractmethod
    def on_pressure(self, pressure_hpa):
        """
        Update with a barometer reading.

        Args:
            pressure_hpa (float): Pressure in hPa

        Returns:
            float: Cumulative gain in meters
        """
        pass

    @abstractmethod
    def on_gps_altitude(self, altitude_m):
        """
        Update with a GPS altitude.

        Args:
            altitude_m (float): Altitude from the position fix in meters

        Returns:
            float: Cumulative gain in meters
        """
        pass

    def update_gain(self, altitude):
        """Shared gain step: add positive deltas, always move the cursor."""
        if altitude is None or not math.isfinite(altitude):
            self._reject("altitude", altitude)
            return self.gain_meters

        if self.altitude_cursor is not None:
            delta = altitude - self.altitude_cursor
            if delta > 0:
                self.gain_meters += delta
        self.altitude_cursor = altitude
        return self.gain_meters

    def _reject(self, what, value):
        self.rejected_samples += 1
        logger.warning("Ignoring unusable %s reading: %r", what, value)

    def get_state(self):
        """
        Get current strategy state.

        Returns:
            dict: 'source', 'gain', 'altitude_cursor', 'rejected_samples'
        """
        return {
            'source': self.source,
            'gain': self.gain_meters,
            'altitude_cursor': self.altitude_cursor,
            'rejected_samples': self.rejected_samples,
        }
