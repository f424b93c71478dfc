"""
Horizontal distance accumulation from successive GPS fixes.

No smoothing or outlier rejection happens here: a single noisy jump is counted
in full. Sources apply the minimum-movement filter before fixes reach this
component.
"""

from .utils import haversine_distance


class DistanceAccumulator:
    """Sums great-circle distance between consecutive position samples."""

    def __init__(self):
        self.total_meters = 0.0
        self.last_position = None
        self.sample_count = 0

    def on_position(self, sample):
        """
        Add the leg from the previous fix to this one.

        Args:
            sample (PositionSample): New position

        Returns:
            float: Total distance in meters (unchanged for the bootstrap sample)
        """
        if self.last_position is not None:
            self.total_meters += haversine_distance(
                self.last_position.latitude, self.last_position.longitude,
                sample.latitude, sample.longitude
            )
        self.last_position = sample
        self.sample_count += 1
        return self.total_meters

    def rebaseline(self):
        """Forget the last fix so movement while paused is not counted."""
        self.last_position = None

    def reset(self):
        self.total_meters = 0.0
        self.last_position = None
        self.sample_count = 0
