"""
Pluggable elevation-gain strategies.

This module provides a factory that builds the strategy for a session's
elevation source. Both strategies share the same uphill-only gain step and
differ only in where the altitude comes from.

Example usage:
    estimator = get_estimator(ElevationSource.BAROMETRIC)
    gain = estimator.on_pressure(1012.8)

    estimator = get_estimator(ElevationSource.GPS)
    gain = estimator.on_gps_altitude(231.0)
"""

from ..models import ElevationSource


def get_estimator(source, **kwargs):
    """
    Factory function to get an elevation strategy by source.

    Args:
        source (ElevationSource): BAROMETRIC or GPS
        **kwargs: Additional arguments passed to the strategy constructor

    Returns:
        ElevationStrategy instance with on_pressure(), on_gps_altitude(), get_state()

    Raises:
        ValueError: If source is NONE or not recognized
    """
    if source == ElevationSource.BAROMETRIC:
        from .barometric import BarometricElevation
        return BarometricElevation(**kwargs)
    elif source == ElevationSource.GPS:
        from .gps import GpsElevation
        return GpsElevation(**kwargs)
    else:
        raise ValueError(f"No elevation strategy for source: {source}. Use BAROMETRIC or GPS")


__all__ = ['get_estimator']
