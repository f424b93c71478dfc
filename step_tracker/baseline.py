"""
Step counter baseline tracking.

Hardware step counters report a cumulative count since device boot, so the
first reading of a session becomes the zero reference.
"""


class StepBaselineTracker:
    """Converts raw cumulative step counts into steps since session start."""

    def __init__(self):
        self.baseline = None  # First raw count seen this run
        self.carried_steps = 0  # Steps counted before the last resume
        self.steps = 0

    def on_raw_step_count(self, value):
        """
        Feed one raw cumulative count.

        Args:
            value (int): Cumulative step count reported by the sensor

        Returns:
            int: Steps since the first reading, floored at zero when the counter
                 goes backwards (reboot, overflow)
        """
        value = int(value)
        if self.baseline is None:
            self.baseline = value
        self.steps = self.carried_steps + max(0, value - self.baseline)
        return self.steps

    def rebaseline(self):
        """Keep the count but take the next reading as the new zero reference."""
        self.carried_steps = self.steps
        self.baseline = None

    def reset(self):
        self.baseline = None
        self.carried_steps = 0
        self.steps = 0
