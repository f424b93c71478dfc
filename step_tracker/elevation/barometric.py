"""
Barometric elevation strategy.

Altitude comes from the hypsometric formula relative to the first pressure
reading of the session (P0). Pressure resolution on phone barometers is fine
enough to pick up a flight of stairs, which GPS altitude cannot.
"""

from .base import ElevationStrategy
from ..models import ElevationSource
from ..utils import is_valid_pressure, pressure_to_altitude


class BarometricElevation(ElevationStrategy):
    """Uphill gain from pressure readings, baselined at the first valid one."""

    source = ElevationSource.BAROMETRIC

    def __init__(self, initial_gain=0.0):
        super().__init__(initial_gain)
        self.base_pressure = None  # P0 in hPa, fixed once set

    def on_pressure(self, pressure_hpa):
        # Non-positive or non-finite readings would make the formula undefined
        if not is_valid_pressure(pressure_hpa):
            self._reject("pressure", pressure_hpa)
            return self.gain_meters

        if self.base_pressure is None:
            self.base_pressure = pressure_hpa
            return self.gain_meters

        altitude = pressure_to_altitude(pressure_hpa, self.base_pressure)
        return self.update_gain(altitude)

    def on_gps_altitude(self, altitude_m):
        return self.gain_meters

    def get_state(self):
        state = super().get_state()
        state['base_pressure'] = self.base_pressure
        return state
