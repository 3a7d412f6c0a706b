from pathlib import Path

import pytest

from chamber_flux.errors import FluxInputError, MissingInputError
from chamber_flux.site_config import (
    load_config,
    load_site_config,
    parse_quality_criteria,
    site_config_from_dict,
)
from chamber_flux.types import ChamberConfig, QualityControlCriteria

EXAMPLE = Path(__file__).resolve().parent.parent / "config" / "example_site.yaml"


def test_example_site_config_loads() -> None:
    site = load_site_config(EXAMPLE)

    assert site.site_id == "FIELD-A"
    assert len(site.chamber_configs) == 6
    assert site.treatments == ["N0", "N200"]
    assert site.chamber_height_cm == 15.0
    assert site.measurements_per_day == 6
    assert site.criteria == QualityControlCriteria()


def test_defaults_when_sections_absent(tmp_path) -> None:
    path = tmp_path / "site.yaml"
    path.write_text("chambers:\n  - {chamber: 1, treatment: T1}\n")

    site = load_site_config(path)

    assert site.chamber_configs == [ChamberConfig(chamber=1, treatment="T1", replicate=1)]
    assert site.criteria.time_head == 200.0
    assert site.criteria.time_tail == 300.0
    assert site.chamber_height_cm == 15.0


def test_height_from_volume_and_area() -> None:
    site = site_config_from_dict({
        "chamber_specs": {"volume": 24000, "area": 1600},
        "chambers": [{"chamber": 1, "treatment": "T1"}],
    })

    assert site.chamber_height_cm == pytest.approx(15.0)


def test_missing_chambers_is_an_input_error(tmp_path) -> None:
    path = tmp_path / "empty.yaml"
    path.write_text("")

    assert load_config(path) == {}
    with pytest.raises(MissingInputError) as exc:
        load_site_config(path)
    assert exc.value.field == "chambers"


def test_invalid_chamber_entry() -> None:
    with pytest.raises(FluxInputError, match="entry #2"):
        site_config_from_dict({"chambers": [{"chamber": 1, "treatment": "T1"}, {"chamber": "x", "treatment": "T1"}]})


def test_threshold_overrides() -> None:
    criteria = parse_quality_criteria({"co2_r2_min": "0.8", "time_tail": 240, "unknown": 1})

    assert criteria.co2_r2_min == 0.8
    assert criteria.time_tail == 240.0
    assert criteria.n2o_r2_min == 0.6

    with pytest.raises(FluxInputError) as exc:
        parse_quality_criteria({"n2o_flux_min": "low"})
    assert exc.value.field == "n2o_flux_min"


def test_missing_config_file(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")


@pytest.mark.parametrize("value", [0, -6, "often"])
def test_invalid_measurements_per_day(value) -> None:
    with pytest.raises(FluxInputError) as exc:
        site_config_from_dict({
            "chamber_specs": {"measPerDay": value},
            "chambers": [{"chamber": 1, "treatment": "T1"}],
        })
    assert exc.value.field == "measPerDay"
