"""GPS-altitude elevation strategy, used when the device has no barometer."""

from .base import ElevationStrategy
from ..models import ElevationSource


class GpsElevation(ElevationStrategy):
    """Uphill gain from the raw altitude field of position fixes."""

    source = ElevationSource.GPS

    def on_pressure(self, pressure_hpa):
        return self.gain_meters

    def on_gps_altitude(self, altitude_m):
        return self.update_gain(altitude_m)
