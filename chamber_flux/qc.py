"""
qc.py
------

Quality flag for one chamber-cycle flux.

    good   : CO2 r2, N2O r2 and N2O flux all meet their minimums
    poor   : CO2 r2 meets its minimum, the N2O criteria do not
    failed : CO2 r2 below its minimum

The CO2 fit gates the poor/failed split; the N2O flux minimum is only
consulted together with the N2O r2 on the way to `good`.
"""

from __future__ import annotations

from .types import QualityControlCriteria, QualityFlag


def classify_quality(
    co2_r2: float,
    n2o_r2: float,
    n2o_flux: float,
    criteria: QualityControlCriteria,
) -> QualityFlag:
    co2_ok = co2_r2 >= criteria.co2_r2_min
    n2o_ok = n2o_r2 >= criteria.n2o_r2_min
    n2o_flux_ok = n2o_flux >= criteria.n2o_flux_min

    if co2_ok and n2o_ok and n2o_flux_ok:
        return QualityFlag.GOOD
    if co2_ok:
        return QualityFlag.POOR
    return QualityFlag.FAILED


__all__ = ["classify_quality"]
