import logging
from datetime import datetime

from chamber_flux.site_runner import process_file_texts, run_site


def test_corrupt_file_does_not_stop_batch(run_csv, chamber_configs, criteria, caplog) -> None:
    files = {
        "GHG_20240315_060000.csv": run_csv({1: (0.05, 0.01), 2: (0.05, 0.01)}),
        "GHG_20240315_100000.csv": "%%% corrupted transfer %%%\n\x1b[0m???\n",
        "GHG_20240315_140000.csv": run_csv({1: (0.05, 0.01)}, start=datetime(2024, 3, 15, 14, 0)),
    }
    with caplog.at_level(logging.WARNING):
        results = process_file_texts(files, chamber_configs, criteria)

    assert sorted({r.run_id for r in results}) == ["20240315_060000", "20240315_140000"]
    assert len(results) == 3
    assert "GHG_20240315_100000.csv" in caplog.text


def test_results_sorted_by_time_then_chamber(run_csv, chamber_configs, criteria) -> None:
    files = {
        "GHG_20240316_060000.csv": run_csv({2: (0.05, 0.01), 1: (0.05, 0.01)}, start=datetime(2024, 3, 16, 6, 0)),
        "GHG_20240315_060000.csv": run_csv({1: (0.05, 0.01)}),
    }
    results = process_file_texts(files, chamber_configs, criteria)

    assert [(r.timestamp.day, r.chamber) for r in results] == [(15, 1), (16, 2), (16, 1)]


def test_run_site_reads_directory(tmp_path, run_csv, chamber_configs, criteria, caplog) -> None:
    (tmp_path / "GHG_20240315_060000.csv").write_text(run_csv({1: (0.05, 0.01), 3: (0.05, 0.01)}))
    (tmp_path / "GHG_20240315_100000.csv").write_bytes(b"\xff\xfe\x00broken")
    (tmp_path / "readme.txt").write_text("not a run file")

    with caplog.at_level(logging.WARNING):
        results = run_site(tmp_path, chamber_configs, criteria, max_workers=1)

    assert [r.chamber for r in results] == [1, 3]
    assert {r.treatment for r in results} == {"N0"}
    assert "GHG_20240315_100000.csv" in caplog.text


def test_run_site_process_pool(tmp_path, run_csv, chamber_configs, criteria, caplog, capsys) -> None:
    for hour in (6, 10, 14):
        start = datetime(2024, 3, 15, hour, 0)
        (tmp_path / f"GHG_{start:%Y%m%d_%H%M%S}.csv").write_text(run_csv({2: (0.10, 0.02), 1: (0.05, 0.01)}, start=start))
    (tmp_path / "GHG_20240315_120000.csv").write_bytes(b"\xff\xfe\x00broken")

    with caplog.at_level(logging.WARNING):
        pooled = run_site(tmp_path, chamber_configs, criteria, max_workers=2, verbose=True)
    serial = run_site(tmp_path, chamber_configs, criteria, max_workers=1)

    assert pooled == serial
    assert [(r.timestamp.hour, r.chamber) for r in pooled] == [(6, 2), (6, 1), (10, 2), (10, 1), (14, 2), (14, 1)]
    assert "GHG_20240315_120000.csv" in caplog.text
    assert "[site_runner] 4/4 files (100%) done" in capsys.readouterr().out
