from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional, Tuple


class GasField(str, Enum):
    CO2 = "co2_ppm"
    N2O = "n2o_ppb"
    H2O = "h2o_ppm"


class QualityFlag(str, Enum):
    GOOD = "good"
    POOR = "poor"
    FAILED = "failed"


@dataclass(frozen=True)
class RawMeasurement:
    timestamp: datetime
    chamber: int
    co2_ppm: float
    n2o_ppb: float
    h2o_ppm: float
    status: str = "0"
    pressure_kpa: Optional[float] = None
    temperature_c: Optional[float] = None

    def value(self, gas: GasField) -> float:
        return getattr(self, GasField(gas).value)


@dataclass(frozen=True)
class ChamberMeasurement:
    """
    Time-ordered samples of one chamber within one file.

    time_elapsed[i] is whole seconds since measurements[0].
    """
    chamber: int
    measurements: Tuple[RawMeasurement, ...]
    time_elapsed: Tuple[int, ...]

    @property
    def start_time(self) -> datetime:
        return self.measurements[0].timestamp

    @property
    def end_time(self) -> datetime:
        return self.measurements[-1].timestamp

    @property
    def duration_seconds(self) -> int:
        return self.time_elapsed[-1] if self.time_elapsed else 0

    def __len__(self) -> int:
        return len(self.measurements)


@dataclass(frozen=True)
class QualityControlCriteria:
    co2_r2_min: float = 0.6
    n2o_r2_min: float = 0.6
    n2o_flux_min: float = -5.0
    time_head: float = 200.0
    time_tail: float = 300.0


@dataclass(frozen=True)
class RegressionPoint:
    x: float
    y: float
    included: bool


@dataclass(frozen=True)
class LinearRegressionResult:
    slope: float
    intercept: float
    r_squared: float
    points_used: int
    data_points: Tuple[RegressionPoint, ...] = ()


@dataclass(frozen=True)
class ChamberConfig:
    chamber: int
    treatment: str
    replicate: int


@dataclass(frozen=True)
class FluxResult:
    """One measurement cycle of one chamber (one file, one chamber)."""
    timestamp: datetime
    run_id: str
    chamber: int
    treatment: str
    replicate: int
    co2_flux: float     # kg C/ha/d
    n2o_flux: float     # g N/ha/d
    h2o_avg: float      # ppm
    co2_r2: float
    n2o_r2: float
    co2_slope: float    # ppm/s
    n2o_slope: float    # ppb/s
    quality_flag: QualityFlag
    points_used: int
    points_total: int
    duration_seconds: int = 0

    @property
    def measurement_start_time(self) -> str:
        return self.timestamp.strftime("%H:%M")

    def to_dict(self) -> dict:
        return {
            "datetime": self.timestamp.isoformat(),
            "run_id": self.run_id,
            "chamber": self.chamber,
            "treatment": self.treatment,
            "replicate": self.replicate,
            "co2_flux": self.co2_flux,
            "n2o_flux": self.n2o_flux,
            "h2o_avg": self.h2o_avg,
            "co2_r2": self.co2_r2,
            "n2o_r2": self.n2o_r2,
            "co2_slope": self.co2_slope,
            "n2o_slope": self.n2o_slope,
            "measurement_start_time": self.measurement_start_time,
            "duration_seconds": self.duration_seconds,
            "quality_flag": self.quality_flag.value,
            "points_used": self.points_used,
            "points_total": self.points_total,
        }


@dataclass(frozen=True)
class InterpolatedFluxPoint:
    timestamp: datetime
    chamber: int
    treatment: str
    replicate: int
    co2_flux: float
    n2o_flux: float
    h2o_avg: float
    interpolated: bool


@dataclass(frozen=True)
class DailyFluxPerChamber:
    date: date
    chamber: int
    treatment: str
    replicate: int
    co2_flux: float
    n2o_flux: float
    measurement_count: int


@dataclass(frozen=True)
class DailyTreatmentFlux:
    date: date
    treatment: str
    co2_flux_mean: float
    co2_flux_se: float
    n2o_flux_mean: float
    n2o_flux_se: float
    chamber_count: int


@dataclass(frozen=True)
class CumulativeTreatmentFlux:
    date: date
    treatment: str
    co2_flux_cumulative_mean: float
    co2_flux_cumulative_se: float
    n2o_flux_cumulative_mean: float
    n2o_flux_cumulative_se: float
    chamber_count: int


@dataclass(frozen=True)
class TreatmentRunFlux:
    """Cross-replicate statistics of one treatment within one run."""
    timestamp: datetime
    run_id: str
    treatment: str
    co2_flux_mean: float
    co2_flux_se: float
    n2o_flux_mean: float
    n2o_flux_se: float
    h2o_avg_mean: float
    h2o_avg_se: float
    replicate_count: int
    chamber_list: Tuple[int, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class DataFileSummary:
    filename: str
    date: str
    time: str
    run_id: str
    chambers: Tuple[int, ...]
    record_count: int
