"""
chamber_processor.py
--------------------

Per-file flux engine for chamber_flux.

Pipeline (one file = one sweep of the chamber array):
    - parse the file and group samples by chamber
    - for each chamber with a treatment assignment:
        - fit CO2 and N2O against elapsed time over the QC window
        - convert both slopes to areal flux
        - average H2O over the closure
        - flag quality
    - return one FluxResult per (file, chamber)
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np

from .conversion import (
    DEFAULT_CHAMBER_HEIGHT_CM,
    DEFAULT_PRESSURE_KPA,
    DEFAULT_TEMPERATURE_C,
    co2_flux,
    n2o_flux,
)
from .io_chamber import parse_and_group_by_chamber, run_id_from_filename
from .qc import classify_quality
from .regression import calculate_linear_regression
from .types import (
    ChamberConfig,
    ChamberMeasurement,
    FluxResult,
    GasField,
    QualityControlCriteria,
)


def measured_conditions(chamber: ChamberMeasurement) -> Tuple[float, float]:
    """
    Mean chamber temperature [degC] and pressure [kPa] from the samples that
    report them; defaults where a channel is absent.
    """
    temps = [m.temperature_c for m in chamber.measurements if m.temperature_c is not None]
    press = [m.pressure_kpa for m in chamber.measurements
             if m.pressure_kpa is not None and m.pressure_kpa > 0]
    temp_c = float(np.mean(temps)) if temps else DEFAULT_TEMPERATURE_C
    pressure_kpa = float(np.mean(press)) if press else DEFAULT_PRESSURE_KPA
    return temp_c, pressure_kpa


def calculate_chamber_flux(
    chamber: ChamberMeasurement,
    config: ChamberConfig,
    criteria: QualityControlCriteria,
    run_id: str,
    chamber_height_cm: float = DEFAULT_CHAMBER_HEIGHT_CM,
    use_measured_conditions: bool = False,
) -> FluxResult:
    co2_reg = calculate_linear_regression(chamber, GasField.CO2, criteria.time_head, criteria.time_tail)
    n2o_reg = calculate_linear_regression(chamber, GasField.N2O, criteria.time_head, criteria.time_tail)

    if use_measured_conditions:
        temp_c, pressure_kpa = measured_conditions(chamber)
    else:
        temp_c, pressure_kpa = DEFAULT_TEMPERATURE_C, DEFAULT_PRESSURE_KPA

    f_co2 = co2_flux(co2_reg.slope, chamber_height_cm, temp_c, pressure_kpa)
    f_n2o = n2o_flux(n2o_reg.slope, chamber_height_cm, temp_c, pressure_kpa)
    h2o_avg = float(np.mean([m.h2o_ppm for m in chamber.measurements]))

    return FluxResult(
        timestamp=chamber.start_time,
        run_id=run_id,
        chamber=chamber.chamber,
        treatment=config.treatment,
        replicate=config.replicate,
        co2_flux=f_co2,
        n2o_flux=f_n2o,
        h2o_avg=h2o_avg,
        co2_r2=co2_reg.r_squared,
        n2o_r2=n2o_reg.r_squared,
        co2_slope=co2_reg.slope,
        n2o_slope=n2o_reg.slope,
        quality_flag=classify_quality(co2_reg.r_squared, n2o_reg.r_squared, f_n2o, criteria),
        points_used=min(co2_reg.points_used, n2o_reg.points_used),
        points_total=len(chamber),
        duration_seconds=chamber.duration_seconds,
    )


def _config_map(chamber_configs: Iterable[ChamberConfig]) -> Dict[int, ChamberConfig]:
    configs = {}
    for c in chamber_configs:
        # first assignment wins, like a lookup over the config list
        configs.setdefault(c.chamber, c)
    return configs


def process_flux_text(
    text: str,
    chamber_configs: Iterable[ChamberConfig],
    criteria: QualityControlCriteria,
    run_id: str,
    chamber_height_cm: float = DEFAULT_CHAMBER_HEIGHT_CM,
    use_measured_conditions: bool = False,
    source: str = "<text>",
) -> List[FluxResult]:
    """
    All chamber fluxes of one file's text. Chambers without a config entry
    are skipped; an unusable file gives an empty list.
    """
    configs = _config_map(chamber_configs)
    results = []
    for chamber in parse_and_group_by_chamber(text, source=source):
        config = configs.get(chamber.chamber)
        if config is None:
            continue
        results.append(calculate_chamber_flux(
            chamber,
            config,
            criteria,
            run_id,
            chamber_height_cm=chamber_height_cm,
            use_measured_conditions=use_measured_conditions,
        ))
    return results


def process_flux_file(
    path,
    text: str,
    chamber_configs: Iterable[ChamberConfig],
    criteria: QualityControlCriteria,
    chamber_height_cm: float = DEFAULT_CHAMBER_HEIGHT_CM,
    use_measured_conditions: bool = False,
    run_id: Optional[str] = None,
) -> List[FluxResult]:
    """
    Wrapper that derives the run id from the file name, then calls the
    per-text engine.
    """
    path = Path(path)
    return process_flux_text(
        text,
        chamber_configs,
        criteria,
        run_id=run_id if run_id is not None else run_id_from_filename(path),
        chamber_height_cm=chamber_height_cm,
        use_measured_conditions=use_measured_conditions,
        source=path.name,
    )


__all__ = [
    "measured_conditions",
    "calculate_chamber_flux",
    "process_flux_text",
    "process_flux_file",
]
