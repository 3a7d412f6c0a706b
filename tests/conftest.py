from datetime import datetime, timedelta

import pytest

from chamber_flux.types import ChamberConfig, QualityControlCriteria

HEADER = "date,time,chamber id,co2[ppm],n2o avg [ppb],h2o avg[ppm],status"


def build_run_csv(chambers, start=datetime(2024, 3, 15, 6, 0, 0), duration=360, step=10, h2o=15000.0, noisy_n2o=()):
    """
    Synthetic analyzer export: chambers are closed one after another, each
    sampled every `step` seconds for `duration` seconds with linear gas
    rises {chamber: (co2 ppm/s, n2o ppb/s)}.
    """
    lines = [HEADER]
    t_chamber = start
    for chamber, (co2_rate, n2o_rate) in chambers.items():
        for i, t in enumerate(range(0, duration + 1, step)):
            ts = t_chamber + timedelta(seconds=t)
            n2o = 330.0 + n2o_rate * t
            if chamber in noisy_n2o:
                n2o = 330.0 + (4.0 if i % 2 else -4.0)
            lines.append(
                f"{ts:%d/%m/%Y},{ts:%H:%M:%S},{chamber},{400.0 + co2_rate * t:.4f},{n2o:.4f},{h2o},0"
            )
        t_chamber = t_chamber + timedelta(seconds=duration + 60)
    return "\n".join(lines) + "\n"


@pytest.fixture
def run_csv():
    return build_run_csv


@pytest.fixture
def criteria():
    return QualityControlCriteria(co2_r2_min=0.6, n2o_r2_min=0.6, n2o_flux_min=-5.0, time_head=200, time_tail=300)


@pytest.fixture
def chamber_configs():
    return [
        ChamberConfig(chamber=1, treatment="N0", replicate=1),
        ChamberConfig(chamber=2, treatment="N200", replicate=1),
        ChamberConfig(chamber=3, treatment="N0", replicate=2),
        ChamberConfig(chamber=4, treatment="N200", replicate=2),
    ]
