"""
results.py
----------

Treatment-level aggregation of chamber-cycle fluxes:
    - Filter to good-quality cycles inside [start_date, end_date]
    - Per-chamber linear interpolation onto a regular sub-daily grid
    - Daily flux per chamber (mean over that day's grid points)
    - Daily and cumulative treatment mean +/- SE across chamber replicates
    - Per-run treatment statistics (sub-daily dynamics)

Every stage returns a new list; inputs are never modified.

Grid instants before a chamber's first cycle or after its last one take the
nearest observed value (edge hold). At the ends of a date range this keeps
cumulative curves rising at a flat rate rather than dropping to zero, which
can look smoother than the data warrants.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np

from .errors import FluxInputError, MissingInputError
from .types import (
    CumulativeTreatmentFlux,
    DailyFluxPerChamber,
    DailyTreatmentFlux,
    FluxResult,
    InterpolatedFluxPoint,
    QualityFlag,
    TreatmentRunFlux,
)

DEFAULT_MEASUREMENTS_PER_DAY = 6

_EPOCH = datetime(1970, 1, 1)


def _mean(values) -> float:
    arr = np.array(values, dtype=float)
    if arr.size == 0:
        return np.nan
    return float(arr.mean())


def _standard_error(values) -> float:
    """Sample standard error; variance denominator max(1, n - 1)."""
    arr = np.array(values, dtype=float)
    n = arr.size
    if n == 0:
        return np.nan
    ss = float(((arr - arr.mean()) ** 2).sum())
    return float(np.sqrt(ss / max(1, n - 1)) / np.sqrt(n))


def _as_date(value, field: str) -> date:
    if value is None or value == "":
        raise MissingInputError(field)
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise FluxInputError(field, f"Invalid date for {field}: {value!r}") from None


def _date_bounds(start_date, end_date) -> Tuple[date, date]:
    start = _as_date(start_date, "startDate")
    end = _as_date(end_date, "endDate")
    if end < start:
        raise FluxInputError("endDate", f"endDate {end} is before startDate {start}")
    return start, end


def _per_day(measurements_per_day) -> int:
    try:
        per_day = int(measurements_per_day)
    except (TypeError, ValueError, OverflowError):
        per_day = 0
    if per_day < 1:
        raise FluxInputError(
            "measurements_per_day",
            f"measurements_per_day must be an integer >= 1, got {measurements_per_day!r}",
        )
    return per_day


def _seconds(ts: datetime) -> float:
    return (ts - _EPOCH).total_seconds()


# --------------------------------------------------------------
# Filtering
# --------------------------------------------------------------

def filter_results(
    results: Iterable[FluxResult],
    start_date=None,
    end_date=None,
    good_only: bool = True,
) -> List[FluxResult]:
    """
    Results inside the whole days [start_date, end_date] (either bound may
    be None), optionally only quality_flag == good; sorted by timestamp.
    """
    lo = datetime.combine(_as_date(start_date, "startDate"), datetime.min.time()) if start_date else None
    hi = datetime.combine(_as_date(end_date, "endDate") + timedelta(days=1), datetime.min.time()) if end_date else None

    kept = []
    for r in results:
        if good_only and r.quality_flag != QualityFlag.GOOD:
            continue
        if lo is not None and r.timestamp < lo:
            continue
        if hi is not None and r.timestamp >= hi:
            continue
        kept.append(r)
    return sorted(kept, key=lambda r: (r.timestamp, r.chamber))


# --------------------------------------------------------------
# Stage 1: per-chamber interpolation
# --------------------------------------------------------------

def interpolation_grid(start_date, end_date, measurements_per_day: int = DEFAULT_MEASUREMENTS_PER_DAY) -> List[datetime]:
    """measurements_per_day evenly spaced instants per day, from start_date 00:00."""
    per_day = _per_day(measurements_per_day)
    start, end = _date_bounds(start_date, end_date)
    n_days = (end - start).days + 1
    step = timedelta(days=1) / per_day
    origin = datetime.combine(start, datetime.min.time())
    return [origin + i * step for i in range(n_days * per_day)]


def interpolate_chamber_fluxes(
    results: Iterable[FluxResult],
    start_date,
    end_date,
    measurements_per_day: int = DEFAULT_MEASUREMENTS_PER_DAY,
) -> List[InterpolatedFluxPoint]:
    """
    Linearly interpolate each chamber's CO2/N2O flux and H2O onto the grid.

    A grid instant equal to a cycle timestamp takes that cycle's values and
    is not flagged; every other instant is flagged interpolated. Chambers
    without results are absent from the output.
    """
    grid = interpolation_grid(start_date, end_date, measurements_per_day)
    grid_x = np.array([_seconds(t) for t in grid], dtype=float)

    by_chamber: Dict[int, List[FluxResult]] = defaultdict(list)
    for r in results:
        by_chamber[r.chamber].append(r)

    points: List[InterpolatedFluxPoint] = []
    for chamber in sorted(by_chamber):
        series = sorted(by_chamber[chamber], key=lambda r: r.timestamp)
        treatment = series[0].treatment
        replicate = series[0].replicate

        # collapse cycles sharing a timestamp so xp is strictly increasing
        by_time: Dict[datetime, List[FluxResult]] = defaultdict(list)
        for r in series:
            by_time[r.timestamp].append(r)
        times = sorted(by_time)
        exact = {
            t: (
                _mean([r.co2_flux for r in by_time[t]]),
                _mean([r.n2o_flux for r in by_time[t]]),
                _mean([r.h2o_avg for r in by_time[t]]),
            )
            for t in times
        }

        xp = np.array([_seconds(t) for t in times], dtype=float)
        co2 = np.interp(grid_x, xp, [exact[t][0] for t in times])
        n2o = np.interp(grid_x, xp, [exact[t][1] for t in times])
        h2o = np.interp(grid_x, xp, [exact[t][2] for t in times])

        for i, target in enumerate(grid):
            if target in exact:
                c, n, h = exact[target]
                interpolated = False
            else:
                c, n, h = float(co2[i]), float(n2o[i]), float(h2o[i])
                interpolated = True
            points.append(InterpolatedFluxPoint(
                timestamp=target,
                chamber=chamber,
                treatment=treatment,
                replicate=replicate,
                co2_flux=c,
                n2o_flux=n,
                h2o_avg=h,
                interpolated=interpolated,
            ))
    return points


# --------------------------------------------------------------
# Stage 2: daily flux per chamber
# --------------------------------------------------------------

def daily_flux_per_chamber(points: Iterable[InterpolatedFluxPoint]) -> List[DailyFluxPerChamber]:
    groups: Dict[Tuple[int, date], List[InterpolatedFluxPoint]] = defaultdict(list)
    for p in points:
        groups[(p.chamber, p.timestamp.date())].append(p)

    out = []
    for (chamber, day), pts in groups.items():
        out.append(DailyFluxPerChamber(
            date=day,
            chamber=chamber,
            treatment=pts[0].treatment,
            replicate=pts[0].replicate,
            co2_flux=_mean([p.co2_flux for p in pts]),
            n2o_flux=_mean([p.n2o_flux for p in pts]),
            measurement_count=len(pts),
        ))
    return sorted(out, key=lambda d: (d.date, d.chamber))


# --------------------------------------------------------------
# Stage 3: treatment rollup
# --------------------------------------------------------------

def daily_treatment_flux(daily: Iterable[DailyFluxPerChamber]) -> List[DailyTreatmentFlux]:
    groups: Dict[Tuple[date, str], List[DailyFluxPerChamber]] = defaultdict(list)
    for d in daily:
        groups[(d.date, d.treatment)].append(d)

    out = []
    for (day, treatment) in sorted(groups):
        rows = groups[(day, treatment)]
        co2 = [r.co2_flux for r in rows]
        n2o = [r.n2o_flux for r in rows]
        out.append(DailyTreatmentFlux(
            date=day,
            treatment=treatment,
            co2_flux_mean=_mean(co2),
            co2_flux_se=_standard_error(co2),
            n2o_flux_mean=_mean(n2o),
            n2o_flux_se=_standard_error(n2o),
            chamber_count=len(rows),
        ))
    return out


def cumulative_treatment_flux(daily: Iterable[DailyFluxPerChamber]) -> List[CumulativeTreatmentFlux]:
    """
    Running per-chamber totals of daily flux, then treatment mean +/- SE of
    those totals at each date (over the chambers reporting that date).
    """
    by_date: Dict[date, List[DailyFluxPerChamber]] = defaultdict(list)
    for d in daily:
        by_date[d.date].append(d)

    running_co2: Dict[int, float] = defaultdict(float)
    running_n2o: Dict[int, float] = defaultdict(float)

    out = []
    for day in sorted(by_date):
        per_treatment: Dict[str, List[int]] = defaultdict(list)
        for d in sorted(by_date[day], key=lambda d: d.chamber):
            running_co2[d.chamber] += d.co2_flux
            running_n2o[d.chamber] += d.n2o_flux
            per_treatment[d.treatment].append(d.chamber)

        for treatment in sorted(per_treatment):
            chambers = per_treatment[treatment]
            co2 = [running_co2[c] for c in chambers]
            n2o = [running_n2o[c] for c in chambers]
            out.append(CumulativeTreatmentFlux(
                date=day,
                treatment=treatment,
                co2_flux_cumulative_mean=_mean(co2),
                co2_flux_cumulative_se=_standard_error(co2),
                n2o_flux_cumulative_mean=_mean(n2o),
                n2o_flux_cumulative_se=_standard_error(n2o),
                chamber_count=len(chambers),
            ))
    return out


def aggregate_daily_cumulative(
    results: Iterable[FluxResult],
    start_date,
    end_date,
    measurements_per_day: int = DEFAULT_MEASUREMENTS_PER_DAY,
) -> Dict:
    """
    Full pipeline: good results in range -> interpolation -> daily per
    chamber -> daily and cumulative treatment statistics.

    Returns {"daily": [...], "cumulative": [...], "metadata": {...}}.
    """
    per_day = _per_day(measurements_per_day)
    start, end = _date_bounds(start_date, end_date)
    kept = filter_results(results, start, end, good_only=True)

    points = interpolate_chamber_fluxes(kept, start, end, per_day)
    daily_chamber = daily_flux_per_chamber(points)

    return {
        "daily": daily_treatment_flux(daily_chamber),
        "cumulative": cumulative_treatment_flux(daily_chamber),
        "metadata": {
            "total_interpolated_points": len(points),
            "daily_chamber_points": len(daily_chamber),
            "measPerDay": per_day,
            "date_range": {"startDate": start.isoformat(), "endDate": end.isoformat()},
        },
    }


# --------------------------------------------------------------
# Per-run treatment statistics
# --------------------------------------------------------------

def treatment_run_statistics(results: Iterable[FluxResult]) -> List[TreatmentRunFlux]:
    """Mean +/- SE across replicates for each (treatment, run_id)."""
    groups: Dict[Tuple[str, str], List[FluxResult]] = defaultdict(list)
    for r in results:
        groups[(r.treatment, r.run_id)].append(r)

    out = []
    for (treatment, run_id), rows in groups.items():
        rows = sorted(rows, key=lambda r: r.timestamp)
        co2 = [r.co2_flux for r in rows]
        n2o = [r.n2o_flux for r in rows]
        h2o = [r.h2o_avg for r in rows]
        out.append(TreatmentRunFlux(
            timestamp=rows[0].timestamp,
            run_id=run_id,
            treatment=treatment,
            co2_flux_mean=_mean(co2),
            co2_flux_se=_standard_error(co2),
            n2o_flux_mean=_mean(n2o),
            n2o_flux_se=_standard_error(n2o),
            h2o_avg_mean=_mean(h2o),
            h2o_avg_se=_standard_error(h2o),
            replicate_count=len(rows),
            chamber_list=tuple(sorted(r.chamber for r in rows)),
        ))
    return sorted(out, key=lambda t: (t.timestamp, t.treatment))


__all__ = [
    "DEFAULT_MEASUREMENTS_PER_DAY",
    "filter_results",
    "interpolation_grid",
    "interpolate_chamber_fluxes",
    "daily_flux_per_chamber",
    "daily_treatment_flux",
    "cumulative_treatment_flux",
    "aggregate_daily_cumulative",
    "treatment_run_statistics",
]
