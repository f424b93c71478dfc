"""
Shared geodesy and barometric helpers.

Contains the distance and altitude math used by the distance accumulator, the
elevation strategies and the replay report, so every component computes the
same numbers (haversine distance, hypsometric altitude, uphill-only gain).
"""

import math

import numpy as np

EARTH_RADIUS_M = 6371000  # Mean Earth radius in meters

# Standard-atmosphere constants for the barometric formula
HYPSOMETRIC_SCALE_M = 44330.0
HYPSOMETRIC_EXPONENT = 1 / 5.255


def haversine_distance(lat1, lon1, lat2, lon2):
    """
    Calculate distance between two GPS coordinates in meters.

    Args:
        lat1, lon1: First coordinate (latitude, longitude in degrees)
        lat2, lon2: Second coordinate (latitude, longitude in degrees)

    Returns:
        float: Distance in meters (0.0 for identical coordinates)
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = (math.sin(delta_phi/2) ** 2 +
         math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda/2) ** 2)
    # Rounding can push a a hair above 1.0 for antipodal points
    a = min(1.0, a)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1-a))

    return EARTH_RADIUS_M * c


def pressure_to_altitude(pressure_hpa, base_pressure_hpa):
    """
    Convert a pressure reading to altitude relative to a baseline pressure.

    Uses the hypsometric approximation h = 44330 * (1 - (P/P0)^(1/5.255)).

    Args:
        pressure_hpa (float): Current pressure in hPa
        base_pressure_hpa (float): Baseline pressure P0 in hPa

    Returns:
        float: Altitude in meters above the baseline

    Raises:
        ValueError: If either pressure is non-positive or not finite
    """
    if not is_valid_pressure(pressure_hpa) or not is_valid_pressure(base_pressure_hpa):
        raise ValueError(
            f"Pressure must be positive and finite (P={pressure_hpa}, P0={base_pressure_hpa})"
        )
    ratio = pressure_hpa / base_pressure_hpa
    return HYPSOMETRIC_SCALE_M * (1.0 - ratio ** HYPSOMETRIC_EXPONENT)


def is_valid_pressure(pressure_hpa):
    """True when a reading can be used in the barometric formula."""
    return pressure_hpa is not None and math.isfinite(pressure_hpa) and pressure_hpa > 0


def track_distance(latitudes, longitudes):
    """
    Total great-circle length of a track, vectorized.

    Args:
        latitudes, longitudes: Sequences of coordinates in degrees (same length)

    Returns:
        float: Sum of pairwise haversine distances in meters (0.0 for < 2 points)
    """
    lat = np.radians(np.asarray(latitudes, dtype=float))
    lon = np.radians(np.asarray(longitudes, dtype=float))
    if lat.size < 2:
        return 0.0

    delta_phi = np.diff(lat)
    delta_lambda = np.diff(lon)
    a = (np.sin(delta_phi / 2) ** 2 +
         np.cos(lat[:-1]) * np.cos(lat[1:]) * np.sin(delta_lambda / 2) ** 2)
    a = np.clip(a, 0.0, 1.0)
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))
    return float(np.sum(EARTH_RADIUS_M * c))


def uphill_gain(altitudes):
    """Sum of positive deltas of an altitude series (0.0 for < 2 samples)."""
    alt = np.asarray(altitudes, dtype=float)
    if alt.size < 2:
        return 0.0
    return float(np.sum(np.clip(np.diff(alt), 0.0, None)))
