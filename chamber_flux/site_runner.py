"""
site_runner.py
--------------

Run the flux engine over every run file of ONE site.

    Parallel over all run files:
        - read the file text
        - compute per-chamber FluxResults (process_flux_file)
    A file that fails is logged and contributes nothing; the batch goes on.
    Sort all results chronologically (then by chamber).
"""

from __future__ import annotations

import logging
from concurrent.futures import ProcessPoolExecutor, as_completed
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .chamber_processor import process_flux_file
from .conversion import DEFAULT_CHAMBER_HEIGHT_CM
from .io_chamber import iter_site_files, read_file_text
from .types import ChamberConfig, FluxResult, QualityControlCriteria

logger = logging.getLogger(__name__)


def _sort_results(results: List[FluxResult]) -> List[FluxResult]:
    return sorted(results, key=lambda r: (r.timestamp, r.chamber))


def _process_file_all(
    path: Path,
    chamber_configs: Sequence[ChamberConfig],
    criteria: QualityControlCriteria,
    chamber_height_cm: float,
    use_measured_conditions: bool,
    text: Optional[str] = None,
) -> Tuple[Path, List[FluxResult], Optional[str]]:
    """
    Worker helper: read one run file and compute all chamber fluxes.
    Returns (path, results, error message or None); never raises.
    """
    try:
        if text is None:
            text = read_file_text(path)
        results = process_flux_file(
            path,
            text,
            chamber_configs,
            criteria,
            chamber_height_cm=chamber_height_cm,
            use_measured_conditions=use_measured_conditions,
        )
    except Exception as e:  # one bad file must not stop the batch
        return path, [], f"{type(e).__name__}: {e}"
    return path, results, None


def _collect(path: Path, results: List[FluxResult], error: Optional[str], out: List[FluxResult]) -> None:
    if error is not None:
        logger.warning("[site_runner] %s: skipped (%s)", Path(path).name, error)
        return
    if not results:
        logger.warning("[site_runner] %s: no usable chambers", Path(path).name)
    out.extend(results)


def process_file_texts(
    files: Dict[str, str],
    chamber_configs: Sequence[ChamberConfig],
    criteria: QualityControlCriteria,
    chamber_height_cm: float = DEFAULT_CHAMBER_HEIGHT_CM,
    use_measured_conditions: bool = False,
) -> List[FluxResult]:
    """
    In-process batch over already loaded files {file name: csv text}.
    """
    chamber_configs = list(chamber_configs)
    collected: List[FluxResult] = []
    for name, text in files.items():
        path, results, error = _process_file_all(
            Path(name), chamber_configs, criteria, chamber_height_cm, use_measured_conditions, text=text,
        )
        _collect(path, results, error, collected)
    return _sort_results(collected)


def process_files(
    file_paths: Iterable[Path],
    chamber_configs: Sequence[ChamberConfig],
    criteria: QualityControlCriteria,
    chamber_height_cm: float = DEFAULT_CHAMBER_HEIGHT_CM,
    use_measured_conditions: bool = False,
    max_workers: int | None = None,
    verbose: bool = False,
) -> List[FluxResult]:
    """
    Compute FluxResults for many run files.

    max_workers=1 runs in-process; anything else uses a process pool.
    """
    file_paths = [Path(p) for p in file_paths]
    chamber_configs = list(chamber_configs)
    total_files = len(file_paths)
    collected: List[FluxResult] = []

    if max_workers == 1:
        for path in file_paths:
            _collect(*_process_file_all(path, chamber_configs, criteria, chamber_height_cm, use_measured_conditions),
                     out=collected)
        return _sort_results(collected)

    with ProcessPoolExecutor(max_workers=max_workers) as ex:
        futures = {
            ex.submit(_process_file_all, path, chamber_configs, criteria, chamber_height_cm, use_measured_conditions): path
            for path in file_paths
        }
        processed = 0
        report_every = max(1, total_files // 10) if total_files else 1
        for f in as_completed(futures):
            try:
                path, results, error = f.result()
            except Exception as e:
                path, results, error = futures[f], [], f"{type(e).__name__}: {e}"
            _collect(path, results, error, collected)
            processed += 1
            if verbose and (processed % report_every == 0 or processed == total_files):
                pct = processed / total_files * 100
                print(f"[site_runner] {processed}/{total_files} files ({pct:.0f}%) done")

    return _sort_results(collected)


def run_site(
    data_dir: Path,
    chamber_configs: Sequence[ChamberConfig],
    criteria: QualityControlCriteria,
    chamber_height_cm: float = DEFAULT_CHAMBER_HEIGHT_CM,
    use_measured_conditions: bool = False,
    file_pattern: str = "*.csv",
    max_files: Optional[int] = None,
    max_workers: int | None = None,
    verbose: bool = False,
) -> List[FluxResult]:
    """
    Compute FluxResults for every run file in one site's data directory.

    Parameters
    ----------
    data_dir : Path
        directory holding the analyzer CSV exports, one file per run
    chamber_configs : list[ChamberConfig]
        chamber -> treatment/replicate assignments; unassigned chambers are skipped
    criteria : QualityControlCriteria
        regression window and quality thresholds
    chamber_height_cm : float
        effective chamber height used for flux conversion
    max_files : int or None
        optional cap on number of files, for test runs
    max_workers : int or None
        number of worker processes (1 = in-process)

    Returns
    -------
    list[FluxResult] sorted by timestamp then chamber
    """
    file_paths = list(iter_site_files(data_dir, pattern=file_pattern, max_files=max_files))
    if verbose:
        print(
            f"[site_runner] {data_dir}: {len(file_paths)} file(s); "
            f"max_workers={max_workers if max_workers is not None else 'default'}"
        )
    return process_files(
        file_paths,
        chamber_configs,
        criteria,
        chamber_height_cm=chamber_height_cm,
        use_measured_conditions=use_measured_conditions,
        max_workers=max_workers,
        verbose=verbose,
    )


__all__ = ["process_file_texts", "process_files", "run_site"]
