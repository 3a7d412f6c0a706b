"""
conversion.py
-------------

Slope -> areal flux conversion for a static chamber.

    CO2 : ppm/s -> kg C ha-1 d-1
    N2O : ppb/s -> g N ha-1 d-1

Fluxes are reported per element (C, N) rather than per molecule. Molar
volume is 22.4 L/mol at 0 degC / 101.325 kPa, rescaled with the ideal gas
law to the chamber temperature and pressure.
"""

from __future__ import annotations

from typing import Optional

MOLAR_VOLUME_STP = 22.4     # L/mol
T_STP = 273.15              # K
P_STP = 101.325             # kPa

DEFAULT_TEMPERATURE_C = 25.0
DEFAULT_PRESSURE_KPA = 101.325
DEFAULT_CHAMBER_HEIGHT_CM = 15.0

M_CO2 = 44.01               # g/mol
M_C = 12.01
M_N2O = 44.013
M_N2 = 28.014               # two N atoms per N2O

SECONDS_PER_DAY = 86400.0
M2_PER_HA = 10000.0


def molar_volume(temperature_c: float = DEFAULT_TEMPERATURE_C, pressure_kpa: float = DEFAULT_PRESSURE_KPA) -> float:
    """Gas-law corrected molar volume [L/mol]; ~24.45 at 25 degC, 101.325 kPa."""
    temp_k = temperature_c + 273.15
    return MOLAR_VOLUME_STP * (temp_k / T_STP) * (P_STP / pressure_kpa)


def co2_flux(
    slope_ppm_s: float,
    chamber_height_cm: float = DEFAULT_CHAMBER_HEIGHT_CM,
    temperature_c: float = DEFAULT_TEMPERATURE_C,
    pressure_kpa: float = DEFAULT_PRESSURE_KPA,
) -> float:
    """CO2 concentration slope [ppm/s] -> kg C/ha/d."""
    height_m = chamber_height_cm / 100.0
    v_m = molar_volume(temperature_c, pressure_kpa)
    return (
        slope_ppm_s * height_m * M2_PER_HA
        * (M_CO2 / v_m) * (M_C / M_CO2)
        * SECONDS_PER_DAY / 1e6
    )


def n2o_flux(
    slope_ppb_s: float,
    chamber_height_cm: float = DEFAULT_CHAMBER_HEIGHT_CM,
    temperature_c: float = DEFAULT_TEMPERATURE_C,
    pressure_kpa: float = DEFAULT_PRESSURE_KPA,
) -> float:
    """N2O concentration slope [ppb/s] -> g N/ha/d."""
    height_m = chamber_height_cm / 100.0
    v_m = molar_volume(temperature_c, pressure_kpa)
    return (
        (slope_ppb_s / 1000.0) * height_m * M2_PER_HA
        * (M_N2O / v_m) * (M_N2 / M_N2O)
        * SECONDS_PER_DAY / 1000.0
    )


def convert_to_flux(
    slope: float,
    gas_type: str,
    chamber_height_cm: float = DEFAULT_CHAMBER_HEIGHT_CM,
    temperature_c: float = DEFAULT_TEMPERATURE_C,
    pressure_kpa: float = DEFAULT_PRESSURE_KPA,
) -> float:
    if gas_type == "co2":
        return co2_flux(slope, chamber_height_cm, temperature_c, pressure_kpa)
    if gas_type == "n2o":
        return n2o_flux(slope, chamber_height_cm, temperature_c, pressure_kpa)
    raise ValueError(f"Unknown gas_type: {gas_type}")


def chamber_height_cm(
    height: Optional[float] = None,
    volume_cm3: Optional[float] = None,
    area_cm2: Optional[float] = None,
    default: float = DEFAULT_CHAMBER_HEIGHT_CM,
) -> float:
    """
    Effective chamber height: explicit height if given, else volume / area,
    else the default.
    """
    if height:
        return float(height)
    if volume_cm3 and area_cm2:
        return float(volume_cm3) / float(area_cm2)
    return default


__all__ = [
    "molar_volume",
    "co2_flux",
    "n2o_flux",
    "convert_to_flux",
    "chamber_height_cm",
]
