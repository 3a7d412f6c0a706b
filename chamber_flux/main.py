"""
main.py
-------

Request-level entry points of chamber_flux.

- Validates caller input (date range, chamber config, file, chamber)
- Runs the per-file flux engine over a site's run files
- Applies the quality/date filters and the treatment aggregation

A run source is either a data directory of analyzer CSV files or an
in-memory mapping {file name: csv text}. Only FluxInputError subclasses
escape from here.
"""

from __future__ import annotations

from datetime import date, datetime
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Union

import pandas as pd

from .conversion import DEFAULT_CHAMBER_HEIGHT_CM
from .errors import FluxInputError, MissingInputError, UnknownChamberError, UnknownFileError
from .io_chamber import (
    list_data_files,
    load_raw_records,
    parse_and_group_by_chamber,
    read_file_text,
    run_id_from_filename,
)
from .regression import calculate_linear_regression
from .results import (
    DEFAULT_MEASUREMENTS_PER_DAY,
    aggregate_daily_cumulative,
    filter_results,
    interpolation_grid,
    treatment_run_statistics,
)
from .site_runner import process_file_texts, run_site
from .types import (
    ChamberConfig,
    DataFileSummary,
    FluxResult,
    GasField,
    QualityControlCriteria,
    TreatmentRunFlux,
)

RunSource = Union[str, Path, Mapping[str, str]]


def _require_configs(chamber_configs) -> List[ChamberConfig]:
    configs = list(chamber_configs or [])
    if not configs:
        raise MissingInputError("chamber_configs", "No chamber configuration supplied")
    return configs


def _require_dir(data_dir) -> Path:
    if data_dir is None:
        raise MissingInputError("data_dir")
    path = Path(data_dir)
    if not path.is_dir():
        raise UnknownFileError(path)
    return path


def _file_text(source: RunSource, filename: str) -> str:
    if not filename:
        raise MissingInputError("file")
    if isinstance(source, Mapping):
        if filename not in source:
            raise UnknownFileError(filename)
        return source[filename]

    data_dir = _require_dir(source)
    # plain file names only, no paths out of the data directory
    if Path(filename).name != filename:
        raise UnknownFileError(filename)
    path = data_dir / filename
    if not path.is_file():
        raise UnknownFileError(path)
    return read_file_text(path)


def _as_datetime(value, field: str) -> Optional[datetime]:
    """Optional query bound as a naive datetime (ISO text, date or datetime)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time())
    try:
        ts = pd.Timestamp(str(value))
    except (TypeError, ValueError):
        raise FluxInputError(field, f"Invalid datetime for {field}: {value!r}") from None
    if pd.isna(ts):
        raise FluxInputError(field, f"Invalid datetime for {field}: {value!r}")
    if ts.tzinfo is not None:
        ts = ts.tz_convert(None)
    return ts.to_pydatetime()


_GAS_NAMES = {"co2": GasField.CO2, "n2o": GasField.N2O, "h2o": GasField.H2O}


def _gas_field(gas) -> GasField:
    """GasField from an enum member, its value ("co2_ppm") or a short name ("co2")."""
    if gas is None or gas == "":
        raise MissingInputError("gas")
    if isinstance(gas, GasField):
        return gas
    key = str(gas).strip().lower()
    if key in _GAS_NAMES:
        return _GAS_NAMES[key]
    try:
        return GasField(key)
    except ValueError:
        raise FluxInputError("gas", f"Unknown gas: {gas!r}") from None


def compute_flux_results(
    source: RunSource,
    chamber_configs: Sequence[ChamberConfig],
    criteria: Optional[QualityControlCriteria] = None,
    start_date=None,
    end_date=None,
    chamber_height_cm: float = DEFAULT_CHAMBER_HEIGHT_CM,
    use_measured_conditions: bool = False,
    max_workers: int | None = None,
) -> List[FluxResult]:
    """
    Every chamber-cycle FluxResult of a site, all quality flags, optionally
    restricted to the whole days [start_date, end_date].
    """
    configs = _require_configs(chamber_configs)
    criteria = criteria or QualityControlCriteria()

    if isinstance(source, Mapping):
        results = process_file_texts(
            dict(source),
            configs,
            criteria,
            chamber_height_cm=chamber_height_cm,
            use_measured_conditions=use_measured_conditions,
        )
    else:
        results = run_site(
            _require_dir(source),
            configs,
            criteria,
            chamber_height_cm=chamber_height_cm,
            use_measured_conditions=use_measured_conditions,
            max_workers=max_workers,
        )

    if start_date is None and end_date is None:
        return results
    return filter_results(results, start_date, end_date, good_only=False)


def filtered_flux(
    source: RunSource,
    chamber_configs: Sequence[ChamberConfig],
    criteria: Optional[QualityControlCriteria] = None,
    start_date=None,
    end_date=None,
    chamber_height_cm: float = DEFAULT_CHAMBER_HEIGHT_CM,
    use_measured_conditions: bool = False,
    max_workers: int | None = None,
) -> List[FluxResult]:
    """Good-quality FluxResults in [start_date, end_date], by timestamp."""
    results = compute_flux_results(
        source, chamber_configs, criteria,
        chamber_height_cm=chamber_height_cm,
        use_measured_conditions=use_measured_conditions,
        max_workers=max_workers,
    )
    return filter_results(results, start_date, end_date, good_only=True)


def subdaily_treatment_flux(
    source: RunSource,
    chamber_configs: Sequence[ChamberConfig],
    criteria: Optional[QualityControlCriteria] = None,
    start_date=None,
    end_date=None,
    chamber_height_cm: float = DEFAULT_CHAMBER_HEIGHT_CM,
    use_measured_conditions: bool = False,
    max_workers: int | None = None,
) -> List[TreatmentRunFlux]:
    """Treatment mean +/- SE per measurement run, good cycles only."""
    return treatment_run_statistics(filtered_flux(
        source, chamber_configs, criteria, start_date, end_date,
        chamber_height_cm=chamber_height_cm,
        use_measured_conditions=use_measured_conditions,
        max_workers=max_workers,
    ))


def daily_cumulative_flux(
    source: RunSource,
    chamber_configs: Sequence[ChamberConfig],
    start_date,
    end_date,
    criteria: Optional[QualityControlCriteria] = None,
    measurements_per_day: int = DEFAULT_MEASUREMENTS_PER_DAY,
    chamber_height_cm: float = DEFAULT_CHAMBER_HEIGHT_CM,
    use_measured_conditions: bool = False,
    max_workers: int | None = None,
) -> Dict:
    """
    Daily and cumulative treatment flux statistics over [start_date, end_date].

    Returns {"daily": [DailyTreatmentFlux], "cumulative":
    [CumulativeTreatmentFlux], "metadata": {...}}.
    """
    if start_date is None or start_date == "":
        raise MissingInputError("startDate")
    if end_date is None or end_date == "":
        raise MissingInputError("endDate")
    # fail on a bad range or grid rate before any file is processed
    interpolation_grid(start_date, end_date, measurements_per_day)

    results = compute_flux_results(
        source, chamber_configs, criteria,
        chamber_height_cm=chamber_height_cm,
        use_measured_conditions=use_measured_conditions,
        max_workers=max_workers,
    )
    return aggregate_daily_cumulative(results, start_date, end_date, measurements_per_day)


def data_files(data_dir) -> List[DataFileSummary]:
    return list_data_files(_require_dir(data_dir))


def raw_data(
    source: RunSource,
    filename: str,
    start=None,
    end=None,
    chamber: Optional[int] = None,
) -> List[dict]:
    """Parsed rows of one run file, optionally limited in time and chamber."""
    start = _as_datetime(start, "startDate")
    end = _as_datetime(end, "endDate")
    text = _file_text(source, filename)
    return load_raw_records(
        text,
        start=start,
        end=end,
        chamber=chamber,
        run_id=run_id_from_filename(filename),
        source=filename,
    )


def chamber_regression(
    source: RunSource,
    filename: str,
    chamber: int,
    gas: GasField = GasField.CO2,
    time_head: float = 200.0,
    time_tail: float = 300.0,
) -> Dict:
    """
    Closure series and window regression of one chamber in one run file.
    """
    if chamber is None:
        raise MissingInputError("chamber")
    gas = _gas_field(gas)
    text = _file_text(source, filename)

    for series in parse_and_group_by_chamber(text, source=filename):
        if series.chamber != chamber:
            continue
        return {
            "chamber": series.chamber,
            "start_time": series.start_time.isoformat(),
            "end_time": series.end_time.isoformat(),
            "regression": calculate_linear_regression(series, gas, time_head, time_tail),
        }
    raise UnknownChamberError(chamber, filename)


__all__ = [
    "compute_flux_results",
    "filtered_flux",
    "subdaily_treatment_flux",
    "daily_cumulative_flux",
    "data_files",
    "raw_data",
    "chamber_regression",
]
