from datetime import datetime

import pytest

from chamber_flux.chamber_processor import measured_conditions, process_flux_file, process_flux_text
from chamber_flux.conversion import co2_flux, n2o_flux
from chamber_flux.io_chamber import parse_and_group_by_chamber
from chamber_flux.types import ChamberConfig, QualityFlag


def test_one_result_per_configured_chamber(run_csv, chamber_configs, criteria) -> None:
    text = run_csv({1: (0.05, 0.01), 2: (0.08, 0.02), 9: (0.05, 0.01)})
    results = process_flux_text(text, chamber_configs, criteria, run_id="20240315_060000")

    # chamber 9 is present in the file but has no treatment assignment
    assert [r.chamber for r in results] == [1, 2]
    first = results[0]
    assert first.run_id == "20240315_060000"
    assert first.treatment == "N0"
    assert first.replicate == 1
    assert first.timestamp == datetime(2024, 3, 15, 6, 0, 0)
    assert first.measurement_start_time == "06:00"


def test_flux_values_and_quality(run_csv, chamber_configs, criteria) -> None:
    text = run_csv({1: (0.05, 0.01)})
    (res,) = process_flux_text(text, chamber_configs, criteria, run_id="r")

    assert res.co2_slope == pytest.approx(0.05)
    assert res.n2o_slope == pytest.approx(0.01)
    assert res.co2_flux == pytest.approx(co2_flux(0.05))
    assert res.n2o_flux == pytest.approx(n2o_flux(0.01))
    assert res.co2_r2 == pytest.approx(1.0)
    assert res.h2o_avg == pytest.approx(15000.0)
    assert res.quality_flag is QualityFlag.GOOD
    # 10 s sampling, window 200..300 s
    assert res.points_used == 11
    assert res.points_total == 37
    assert res.duration_seconds == 360


def test_noisy_n2o_is_poor(run_csv, chamber_configs, criteria) -> None:
    text = run_csv({1: (0.05, 0.0)}, noisy_n2o=(1,))
    (res,) = process_flux_text(text, chamber_configs, criteria, run_id="r")

    assert res.n2o_r2 < 0.6
    assert res.quality_flag is QualityFlag.POOR


def test_short_closure_fails(run_csv, chamber_configs, criteria) -> None:
    text = run_csv({1: (0.05, 0.01)}, duration=150)
    (res,) = process_flux_text(text, chamber_configs, criteria, run_id="r")

    assert res.points_used == 0
    assert res.co2_flux == 0.0
    assert res.quality_flag is QualityFlag.FAILED


def test_chamber_height_scales_flux(run_csv, chamber_configs, criteria) -> None:
    text = run_csv({1: (0.05, 0.01)})
    (low,) = process_flux_text(text, chamber_configs, criteria, run_id="r", chamber_height_cm=15)
    (high,) = process_flux_text(text, chamber_configs, criteria, run_id="r", chamber_height_cm=30)

    assert high.co2_flux == pytest.approx(2 * low.co2_flux)


def test_run_id_from_file_name(run_csv, chamber_configs, criteria) -> None:
    text = run_csv({2: (0.05, 0.01)})
    (res,) = process_flux_file("exports/GHG_20240315_060000.csv", text, chamber_configs, criteria)

    assert res.run_id == "20240315_060000"


def test_first_config_entry_wins(run_csv, criteria) -> None:
    configs = [ChamberConfig(1, "A", 1), ChamberConfig(1, "B", 2)]
    (res,) = process_flux_text(run_csv({1: (0.05, 0.01)}), configs, criteria, run_id="r")

    assert res.treatment == "A"


def test_measured_conditions_fall_back_to_defaults(run_csv) -> None:
    (chamber,) = parse_and_group_by_chamber(run_csv({1: (0.05, 0.01)}, duration=20))

    assert measured_conditions(chamber) == (25.0, 101.325)


def test_measured_conditions_change_flux(chamber_configs, criteria) -> None:
    header = "date,time,chamber id,co2[ppm],n2o avg [ppb],h2o avg[ppm],status,pair[kpa],temp[c]"
    rows = [header] + [
        f"15/03/2024,06:{t // 60:02d}:{t % 60:02d},1,{400 + 0.05 * t},{330 + 0.01 * t},15000,0,95.0,10.0"
        for t in range(0, 361, 10)
    ]
    text = "\n".join(rows) + "\n"

    (default,) = process_flux_text(text, chamber_configs, criteria, run_id="r")
    (measured,) = process_flux_text(text, chamber_configs, criteria, run_id="r", use_measured_conditions=True)

    assert measured.co2_flux == pytest.approx(co2_flux(0.05, 15, 10.0, 95.0))
    assert measured.co2_flux != pytest.approx(default.co2_flux)


def test_to_dict_uses_wire_names(run_csv, chamber_configs, criteria) -> None:
    (res,) = process_flux_text(run_csv({1: (0.05, 0.01)}), chamber_configs, criteria, run_id="r")
    d = res.to_dict()

    assert d["datetime"] == "2024-03-15T06:00:00"
    assert d["quality_flag"] == "good"
    assert d["measurement_start_time"] == "06:00"
