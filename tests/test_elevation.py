import math

import pytest

from step_tracker.elevation import get_estimator
from step_tracker.elevation.barometric import BarometricElevation
from step_tracker.elevation.gps import GpsElevation
from step_tracker.models import ElevationSource
from step_tracker.utils import pressure_to_altitude


def test_hypsometric_formula_reference_value():
    assert pressure_to_altitude(1000.0, 1013.25) == pytest.approx(110.9, abs=0.1)


def test_formula_is_zero_at_baseline():
    assert pressure_to_altitude(1013.25, 1013.25) == 0.0


@pytest.mark.parametrize("pressure, base", [(0.0, 1013.25), (1000.0, 0.0), (-5.0, 1013.25), (math.nan, 1000.0)])
def test_formula_rejects_unusable_pressures(pressure, base):
    with pytest.raises(ValueError):
        pressure_to_altitude(pressure, base)


@pytest.mark.parametrize("altitudes", [
    [],
    [100.0],
    [100.0, 105.0, 103.0, 110.0],
    [50.0, 40.0, 30.0],
    [10.0, 10.0, 12.5, 11.0, 11.0, 20.0],
])
def test_gps_gain_is_sum_of_positive_deltas(altitudes):
    estimator = GpsElevation()
    gain = 0.0
    for alt in altitudes:
        gain = estimator.on_gps_altitude(alt)
    expected = sum(max(0.0, b - a) for a, b in zip(altitudes, altitudes[1:]))
    assert gain == pytest.approx(expected)


def test_cursor_moves_on_descent():
    estimator = GpsElevation()
    estimator.on_gps_altitude(100.0)
    estimator.on_gps_altitude(90.0)
    assert estimator.altitude_cursor == 90.0
    assert estimator.on_gps_altitude(95.0) == pytest.approx(5.0)


def test_barometric_first_reading_sets_baseline_only():
    estimator = BarometricElevation()
    assert estimator.on_pressure(1013.25) == 0.0
    assert estimator.base_pressure == 1013.25
    assert estimator.altitude_cursor is None


def test_barometric_gain_from_falling_pressure():
    estimator = BarometricElevation()
    estimator.on_pressure(1013.25)
    estimator.on_pressure(1013.25)  # seeds cursor at 0 m
    gain = estimator.on_pressure(1000.0)
    assert gain == pytest.approx(110.9, abs=0.1)
    # Pressure rising again is a descent
    assert estimator.on_pressure(1013.25) == pytest.approx(gain)
    assert estimator.base_pressure == 1013.25


@pytest.mark.parametrize("bad", [0.0, -1.0, math.inf, math.nan, None])
def test_barometric_ignores_unusable_readings(bad):
    estimator = BarometricElevation()
    assert estimator.on_pressure(bad) == 0.0
    assert estimator.base_pressure is None
    assert estimator.rejected_samples == 1
    estimator.on_pressure(1010.0)
    assert estimator.base_pressure == 1010.0


def test_strategies_ignore_other_source():
    baro = BarometricElevation()
    baro.on_gps_altitude(100.0)
    baro.on_gps_altitude(200.0)
    assert baro.gain_meters == 0.0

    gps = GpsElevation()
    gps.on_pressure(1013.25)
    gps.on_pressure(900.0)
    assert gps.gain_meters == 0.0


def test_non_finite_altitude_is_rejected():
    estimator = GpsElevation()
    estimator.on_gps_altitude(10.0)
    estimator.on_gps_altitude(math.inf)
    assert estimator.altitude_cursor == 10.0
    assert estimator.rejected_samples == 1


def test_factory_builds_strategy_for_source():
    assert isinstance(get_estimator(ElevationSource.BAROMETRIC), BarometricElevation)
    assert isinstance(get_estimator(ElevationSource.GPS), GpsElevation)
    assert get_estimator(ElevationSource.GPS, initial_gain=12.5).gain_meters == 12.5


def test_factory_rejects_none_source():
    with pytest.raises(ValueError):
        get_estimator(ElevationSource.NONE)


def test_get_state_reports_baseline():
    estimator = BarometricElevation()
    estimator.on_pressure(1005.0)
    state = estimator.get_state()
    assert state['source'] == ElevationSource.BAROMETRIC
    assert state['base_pressure'] == 1005.0
    assert state['gain'] == 0.0
