"""
Step Tracker
Fuses step counter, GPS and barometer streams into running step count,
distance and uphill elevation gain for one tracking session.
"""

__version__ = "1.0.0"

from .models import ElevationSource, PositionSample, SessionState
from .session import SessionController

__all__ = ["ElevationSource", "PositionSample", "SessionController", "SessionState"]
