from datetime import datetime, timedelta

import pytest

from chamber_flux.regression import calculate_linear_regression, fit_linear_window
from chamber_flux.types import ChamberMeasurement, GasField, RawMeasurement


def _chamber(elapsed, co2, n2o=None):
    t0 = datetime(2024, 3, 15, 6, 0, 0)
    n2o = n2o if n2o is not None else [330.0] * len(co2)
    measurements = tuple(
        RawMeasurement(timestamp=t0 + timedelta(seconds=t), chamber=1, co2_ppm=c, n2o_ppb=n, h2o_ppm=15000.0)
        for t, c, n in zip(elapsed, co2, n2o)
    )
    return ChamberMeasurement(chamber=1, measurements=measurements, time_elapsed=tuple(elapsed))


def test_recovers_exact_line() -> None:
    res = fit_linear_window([0, 1, 2], [400, 402, 404], time_head=0, time_tail=2)

    assert res.slope == pytest.approx(2.0)
    assert res.intercept == pytest.approx(400.0)
    assert res.r_squared == pytest.approx(1.0)
    assert res.points_used == 3
    assert all(p.included for p in res.data_points)


def test_window_outside_data_is_degenerate() -> None:
    x = list(range(0, 301, 10))
    res = fit_linear_window(x, [400 + 0.1 * t for t in x], time_head=1000, time_tail=2000)

    assert res.points_used == 0
    assert res.slope == 0.0
    assert res.intercept == 0.0
    assert res.r_squared == 0.0
    assert len(res.data_points) == len(x)
    assert not any(p.included for p in res.data_points)


def test_single_point_in_window_is_degenerate() -> None:
    res = fit_linear_window([0, 100, 200], [1, 2, 3], time_head=50, time_tail=150)

    assert res.points_used == 0
    assert [p.included for p in res.data_points] == [False, True, False]


def test_window_bounds_are_inclusive_and_exclude_mixing_phase() -> None:
    x = [0, 10, 20, 30, 40]
    y = [500, 300, 404, 406, 408]
    res = fit_linear_window(x, y, time_head=20, time_tail=40)

    assert res.points_used == 3
    assert res.slope == pytest.approx(0.2)
    assert res.r_squared == pytest.approx(1.0)


def test_constant_series_is_perfect_fit() -> None:
    res = fit_linear_window([0, 1, 2, 3], [330, 330, 330, 330], 0, 3)

    assert res.slope == 0.0
    assert res.r_squared == 1.0


def test_identical_x_values_coerce_to_zero() -> None:
    res = fit_linear_window([5, 5, 5], [1.0, 2.0, 3.0], 0, 10)

    assert res.slope == 0.0
    assert res.intercept == 0.0
    assert res.r_squared == 0.0
    assert res.points_used == 3


def test_noisy_series_r_squared_in_unit_interval() -> None:
    res = fit_linear_window([0, 1, 2, 3, 4, 5], [1, -1, 1, -1, 1, -1], 0, 5)

    assert 0.0 <= res.r_squared < 0.5


def test_calculate_for_chamber_gas_channel() -> None:
    elapsed = [0, 100, 200, 250, 300, 350]
    co2 = [400 + 0.05 * t for t in elapsed]
    n2o = [330 + 0.002 * t for t in elapsed]
    chamber = _chamber(elapsed, co2, n2o)

    co2_res = calculate_linear_regression(chamber, GasField.CO2, 200, 300)
    n2o_res = calculate_linear_regression(chamber, "n2o_ppb", 200, 300)

    assert co2_res.slope == pytest.approx(0.05)
    assert co2_res.points_used == 3
    assert n2o_res.slope == pytest.approx(0.002)
