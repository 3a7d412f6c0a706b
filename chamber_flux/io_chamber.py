"""
io_chamber.py
-------------

Gas-analyzer file IO for chamber_flux:

- Discover run files in a site data directory
- Parse one file's CSV text into RawMeasurement rows
- Group rows into per-chamber, time-ordered ChamberMeasurement series
- Derive the run id from the date/time segment encoded in the file name

Each file is one sweep of the chamber array. Malformed rows are dropped and
an unreadable file yields zero chambers; nothing here raises on bad content.
"""

from __future__ import annotations

import io
import logging
import os
import re
from datetime import datetime
from pathlib import Path
from typing import Dict, Generator, List, Optional

import numpy as np
import pandas as pd

from .types import ChamberMeasurement, DataFileSummary, RawMeasurement

logger = logging.getLogger(__name__)

DEFAULT_DATA_ROOT = Path(os.getenv("FLUX_DATA_ROOT", "data"))

# Analyzer export column names (matched after strip + lower-case)
DATE_COLUMN = "date"
TIME_COLUMN = "time"
CHAMBER_COLUMN = "chamber id"
CO2_COLUMN = "co2[ppm]"
N2O_COLUMN = "n2o avg [ppb]"
H2O_COLUMN = "h2o avg[ppm]"
STATUS_COLUMN = "status"
PRESSURE_COLUMN = "pair[kpa]"
TEMPERATURE_COLUMN = "temp[c]"

REQUIRED_COLUMNS = [DATE_COLUMN, TIME_COLUMN, CHAMBER_COLUMN]

GAS_COLUMNS = {
    "co2_ppm": CO2_COLUMN,
    "n2o_ppb": N2O_COLUMN,
    "h2o_ppm": H2O_COLUMN,
}

# e.g. GHG_20240315_063000.csv, site-a_20240315-0630.csv
RUN_STAMP_PATTERN = re.compile(r"(\d{8})[_-]?(\d{4})(\d{2})?(?!\d)")


def run_datetime_from_filename(path) -> Optional[datetime]:
    """
    Extract the run start from the YYYYMMDD_HHMM[SS] segment of a file name.

    Returns None when the name carries no such segment.
    """
    stem = Path(path).stem
    match = RUN_STAMP_PATTERN.search(stem)
    if match is None:
        return None
    day, hhmm, ss = match.groups()
    try:
        return datetime.strptime(day + hhmm + (ss or "00"), "%Y%m%d%H%M%S")
    except ValueError:
        return None


def run_id_from_filename(path) -> str:
    """
    Opaque run identifier for one file: YYYYMMDD_HHMMSS when the name
    encodes a run time, otherwise the bare file stem.
    """
    ts = run_datetime_from_filename(path)
    if ts is None:
        return Path(path).stem
    return ts.strftime("%Y%m%d_%H%M%S")


#=====================================================================
# Site directory traversal
#=====================================================================

def iter_site_files(
    data_dir: Path = DEFAULT_DATA_ROOT,
    pattern: str = "*.csv",
    max_files: Optional[int] = None,
) -> Generator[Path, None, None]:
    data_dir = Path(data_dir)
    if not data_dir.is_dir():
        raise FileNotFoundError(f"Data directory not found: {data_dir}")

    files = sorted(data_dir.glob(pattern))
    for idx, f in enumerate(files):
        if max_files is not None and idx >= max_files:
            break
        yield f


def read_file_text(path: Path) -> str:
    return Path(path).read_text(encoding="utf-8")


#=====================================================================
# Parsing
#=====================================================================

def _read_table(text: str, source: str) -> Optional[pd.DataFrame]:
    """Read CSV text as strings; None if the text is not a usable table."""
    try:
        df = pd.read_csv(
            io.StringIO(text),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            skipinitialspace=True,
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeError) as e:
        logger.warning("[io_chamber] %s: unparsable file (%s)", source, e)
        return None

    df.columns = [str(c).strip().lower() for c in df.columns]
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        logger.warning("[io_chamber] %s: missing column(s) %s", source, ", ".join(missing))
        return None
    return df


def _numeric(df: pd.DataFrame, column: str, fill: Optional[float]) -> pd.Series:
    if column not in df.columns:
        return pd.Series(fill, index=df.index, dtype=float)
    values = pd.to_numeric(df[column].str.strip(), errors="coerce")
    if fill is not None:
        values = values.fillna(fill)
    return values.astype(float)


def _timestamps(df: pd.DataFrame) -> pd.Series:
    """Resolve DD/MM/YYYY date plus time-of-day into absolute instants."""
    day = df[DATE_COLUMN].str.strip()
    stamp = day + " " + df[TIME_COLUMN].str.strip()
    parsed = pd.to_datetime(stamp, dayfirst=True, errors="coerce", format="mixed")
    # a bare time would otherwise resolve against today's date
    return parsed.where(day != "")


def parse_measurements(text: str, source: str = "<text>") -> List[RawMeasurement]:
    """
    Parse one analyzer file into RawMeasurement rows (file order).

    - Rows whose chamber id is empty, non-numeric, infinite or <= 0 are dropped.
    - Rows whose date/time cannot be resolved are dropped.
    - Gas concentrations that fail to parse become 0.
    - Pressure / temperature are optional; unparsable values become None.
    """
    df = _read_table(text, source)
    if df is None or df.empty:
        return []

    chamber = _numeric(df, CHAMBER_COLUMN, fill=None)
    timestamps = _timestamps(df)

    keep = chamber.notna() & np.isfinite(chamber) & (chamber >= 1) & timestamps.notna()
    dropped = int((~keep).sum())
    if dropped:
        logger.debug("[io_chamber] %s: dropped %d row(s) without chamber or timestamp", source, dropped)

    gases = {name: _numeric(df, col, fill=0.0) for name, col in GAS_COLUMNS.items()}
    pressure = _numeric(df, PRESSURE_COLUMN, fill=None)
    temperature = _numeric(df, TEMPERATURE_COLUMN, fill=None)
    if STATUS_COLUMN in df.columns:
        status = df[STATUS_COLUMN].str.strip().replace("", "0")
    else:
        status = pd.Series("0", index=df.index)

    rows = []
    for idx in df.index[keep.to_numpy()]:
        p = pressure[idx]
        t = temperature[idx]
        rows.append(RawMeasurement(
            timestamp=timestamps[idx].to_pydatetime(),
            chamber=int(chamber[idx]),
            co2_ppm=float(gases["co2_ppm"][idx]),
            n2o_ppb=float(gases["n2o_ppb"][idx]),
            h2o_ppm=float(gases["h2o_ppm"][idx]),
            status=str(status[idx]),
            pressure_kpa=float(p) if np.isfinite(p) else None,
            temperature_c=float(t) if np.isfinite(t) else None,
        ))
    return rows


#=====================================================================
# Chamber grouping
#=====================================================================

def group_measurements(measurements: List[RawMeasurement]) -> List[ChamberMeasurement]:
    groups: Dict[int, List[RawMeasurement]] = {}
    for m in measurements:
        groups.setdefault(m.chamber, []).append(m)

    out = []
    for chamber in sorted(groups):
        series = sorted(groups[chamber], key=lambda m: m.timestamp)
        t0 = series[0].timestamp
        elapsed = tuple(
            int(round((m.timestamp - t0).total_seconds())) for m in series
        )
        out.append(ChamberMeasurement(
            chamber=chamber,
            measurements=tuple(series),
            time_elapsed=elapsed,
        ))
    return out


def parse_and_group_by_chamber(text: str, source: str = "<text>") -> List[ChamberMeasurement]:
    """
    Parse a file and return its chamber series, ascending by chamber id.

    Each series is sorted by timestamp with time_elapsed in whole seconds
    since the chamber's first sample in this file.
    """
    return group_measurements(parse_measurements(text, source))


#=====================================================================
# File summaries and raw record queries
#=====================================================================

def summarize_data_file(path: Path, text: Optional[str] = None) -> DataFileSummary:
    path = Path(path)
    if text is None:
        text = read_file_text(path)
    rows = parse_measurements(text, source=path.name)

    run_ts = run_datetime_from_filename(path)
    if run_ts is None and rows:
        run_ts = min(m.timestamp for m in rows)

    return DataFileSummary(
        filename=path.name,
        date=run_ts.strftime("%Y-%m-%d") if run_ts else "",
        time=run_ts.strftime("%H:%M:%S") if run_ts else "",
        run_id=run_id_from_filename(path),
        chambers=tuple(sorted({m.chamber for m in rows})),
        record_count=len(rows),
    )


def list_data_files(data_dir: Path = DEFAULT_DATA_ROOT, pattern: str = "*.csv") -> List[DataFileSummary]:
    summaries = []
    for path in iter_site_files(data_dir, pattern=pattern):
        try:
            summaries.append(summarize_data_file(path))
        except (OSError, UnicodeError) as e:
            logger.warning("[io_chamber] %s: skipped (%s)", path.name, e)
    return summaries


def load_raw_records(
    text: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    chamber: Optional[int] = None,
    run_id: str = "",
    source: str = "<text>",
) -> List[dict]:
    """
    Parsed rows of one file as plain records, sorted by timestamp and
    optionally limited to [start, end] and a single chamber.
    """
    records = []
    for m in parse_measurements(text, source):
        if start is not None and m.timestamp < start:
            continue
        if end is not None and m.timestamp > end:
            continue
        if chamber is not None and m.chamber != chamber:
            continue
        records.append({
            "datetime": m.timestamp.isoformat(),
            "chamber": m.chamber,
            "chamber_label": f"C{m.chamber:02d}",
            "co2_ppm": m.co2_ppm,
            "n2o_ppb": m.n2o_ppb,
            "n2o_ppm": m.n2o_ppb / 1000.0,
            "h2o_ppm": m.h2o_ppm,
            "status": m.status,
            "pair_kpa": m.pressure_kpa,
            "run_id": run_id,
        })
    records.sort(key=lambda r: r["datetime"])
    return records


__all__ = [
    "DEFAULT_DATA_ROOT",
    "run_datetime_from_filename",
    "run_id_from_filename",
    "iter_site_files",
    "read_file_text",
    "parse_measurements",
    "group_measurements",
    "parse_and_group_by_chamber",
    "summarize_data_file",
    "list_data_files",
    "load_raw_records",
]
