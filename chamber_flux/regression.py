"""
regression.py
-------------

Concentration-vs-elapsed-time least squares over the [time_head, time_tail]
fitting window of one chamber closure.

Every candidate point is returned with its `included` flag so callers can
plot the full closure next to the fitted window.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from .types import ChamberMeasurement, GasField, LinearRegressionResult, RegressionPoint


def _degenerate(points) -> LinearRegressionResult:
    return LinearRegressionResult(
        slope=0.0,
        intercept=0.0,
        r_squared=0.0,
        points_used=0,
        data_points=tuple(points),
    )


def _finite_or_zero(value) -> float:
    value = float(value)
    return value if np.isfinite(value) else 0.0


def fit_linear_window(
    x_vals: Sequence[float],
    y_vals: Sequence[float],
    time_head: float,
    time_tail: float,
) -> LinearRegressionResult:
    """
    Ordinary least squares of y on x using only time_head <= x <= time_tail.

    Fewer than two points in the window gives the zero result. A constant y
    is a perfect fit (r2 = 1); non-finite slope/intercept/r2 become 0 and r2
    is clamped to [0, 1].
    """
    x = np.asarray(x_vals, dtype=float)
    y = np.asarray(y_vals, dtype=float)
    mask = (x >= time_head) & (x <= time_tail)

    points = [
        RegressionPoint(x=float(xi), y=float(yi), included=bool(inc))
        for xi, yi, inc in zip(x, y, mask)
    ]

    n = int(mask.sum())
    if n < 2:
        return _degenerate(points)

    xs = x[mask]
    ys = y[mask]
    sum_x = xs.sum()
    sum_y = ys.sum()
    sum_xy = (xs * ys).sum()
    sum_xx = (xs * xs).sum()

    with np.errstate(divide="ignore", invalid="ignore"):
        slope = (n * sum_xy - sum_x * sum_y) / np.float64(n * sum_xx - sum_x * sum_x)
        intercept = (sum_y - slope * sum_x) / n

        mean_y = sum_y / n
        ss_res = ((ys - (slope * xs + intercept)) ** 2).sum()
        ss_tot = ((ys - mean_y) ** 2).sum()
        r_squared = 1.0 if ss_tot == 0 else 1.0 - ss_res / ss_tot

    r_squared = min(1.0, max(0.0, _finite_or_zero(r_squared)))

    return LinearRegressionResult(
        slope=_finite_or_zero(slope),
        intercept=_finite_or_zero(intercept),
        r_squared=r_squared,
        points_used=n,
        data_points=tuple(points),
    )


def calculate_linear_regression(
    chamber: ChamberMeasurement,
    gas: GasField,
    time_head: float = 200.0,
    time_tail: float = 300.0,
) -> LinearRegressionResult:
    """Fit one gas channel of a chamber series against its elapsed time."""
    gas = GasField(gas)
    y = [m.value(gas) for m in chamber.measurements]
    return fit_linear_window(chamber.time_elapsed, y, time_head, time_tail)


__all__ = ["fit_linear_window", "calculate_linear_regression"]
