"""
site_config.py
--------------

Site configuration: chamber -> treatment/replicate assignments, chamber
geometry, sampling rate and quality thresholds, read from a YAML file.

    site: {id: FIELD-A, name: Field A}
    chamber_specs: {height: 15, measPerDay: 6}
    quality_thresholds: {co2_r2_min: 0.6, n2o_r2_min: 0.6, n2o_flux_min: -5,
                         time_head: 200, time_tail: 300}
    chambers:
      - {chamber: 1, treatment: N0, replicate: 1}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .conversion import chamber_height_cm
from .errors import FluxInputError, MissingInputError
from .results import DEFAULT_MEASUREMENTS_PER_DAY
from .types import ChamberConfig, QualityControlCriteria


@dataclass
class SiteConfig:
    site_id: str
    name: str
    chamber_configs: List[ChamberConfig]
    criteria: QualityControlCriteria = field(default_factory=QualityControlCriteria)
    chamber_height_cm: float = 15.0
    measurements_per_day: int = DEFAULT_MEASUREMENTS_PER_DAY

    @property
    def treatments(self) -> List[str]:
        seen = []
        for c in self.chamber_configs:
            if c.treatment not in seen:
                seen.append(c.treatment)
        return seen


def load_config(config_path) -> Dict[str, Any]:
    """
    Load a YAML configuration file into a dict (empty file -> {}).
    """
    path = Path(config_path)
    if not path.is_file():
        raise FileNotFoundError(f"Configuration file not found at: {path}")

    with open(path, "r", encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}

    return config


def parse_chamber_configs(entries) -> List[ChamberConfig]:
    if not entries:
        raise MissingInputError("chambers", "No chamber configuration supplied")

    configs = []
    for i, entry in enumerate(entries):
        try:
            configs.append(ChamberConfig(
                chamber=int(entry["chamber"]),
                treatment=str(entry["treatment"]),
                replicate=int(entry.get("replicate", 1)),
            ))
        except (KeyError, TypeError, ValueError) as e:
            raise FluxInputError("chambers", f"Invalid chamber entry #{i + 1}: {e}") from None
    return configs


def parse_quality_criteria(thresholds: Optional[dict], base: Optional[QualityControlCriteria] = None) -> QualityControlCriteria:
    """Overlay threshold values onto `base` (defaults when None)."""
    base = base or QualityControlCriteria()
    values = dict(base.__dict__)
    for key, val in (thresholds or {}).items():
        if key not in values or val is None:
            continue
        try:
            values[key] = float(val)
        except (TypeError, ValueError):
            raise FluxInputError(key, f"Invalid value for {key}: {val!r}") from None
    return QualityControlCriteria(**values)


def _measurements_per_day(value) -> int:
    if value is None or value == "":
        return DEFAULT_MEASUREMENTS_PER_DAY
    try:
        per_day = int(value)
    except (TypeError, ValueError, OverflowError):
        per_day = 0
    if per_day < 1:
        raise FluxInputError("measPerDay", f"measPerDay must be an integer >= 1, got {value!r}")
    return per_day


def site_config_from_dict(config: Dict[str, Any]) -> SiteConfig:
    site = config.get("site") or {}
    specs = config.get("chamber_specs") or {}

    return SiteConfig(
        site_id=str(site.get("id", "")),
        name=str(site.get("name", site.get("id", ""))),
        chamber_configs=parse_chamber_configs(config.get("chambers")),
        criteria=parse_quality_criteria(config.get("quality_thresholds")),
        chamber_height_cm=chamber_height_cm(
            height=specs.get("height"),
            volume_cm3=specs.get("volume"),
            area_cm2=specs.get("area"),
        ),
        measurements_per_day=_measurements_per_day(specs.get("measPerDay")),
    )


def load_site_config(config_path) -> SiteConfig:
    return site_config_from_dict(load_config(config_path))


__all__ = [
    "SiteConfig",
    "load_config",
    "parse_chamber_configs",
    "parse_quality_criteria",
    "site_config_from_dict",
    "load_site_config",
]
