"""
writer.py
---------

Write result records to a single CSV file.

Input: a list of result dataclasses of one kind (FluxResult,
DailyTreatmentFlux, CumulativeTreatmentFlux, TreatmentRunFlux, ...).

Output: one flat CSV with a row per record, identifying columns first.
"""

import dataclasses
from enum import Enum

import pandas as pd

META_COLUMNS = ["date", "timestamp", "run_id", "treatment", "chamber", "replicate"]


def _row(record) -> dict:
    row = {}
    for f in dataclasses.fields(record):
        value = getattr(record, f.name)
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, tuple):
            value = ";".join(str(v) for v in value)
        row[f.name] = value
    return row


def results_to_dataframe(records):
    """
    Flatten result records into a single DataFrame.

    Parameters
    ----------
    records : list
        dataclass instances of one result type.
    """
    df = pd.DataFrame([_row(r) for r in records])

    if df.empty:
        return df

    # Reorder columns: metadata -> everything else
    meta_cols = [c for c in META_COLUMNS if c in df.columns]
    remaining = [c for c in df.columns if c not in meta_cols]
    df = df[meta_cols + remaining]

    # Sort output for readability
    sort_cols = [c for c in ["date", "timestamp", "treatment", "chamber"] if c in df.columns]
    return df.sort_values(sort_cols).reset_index(drop=True)


def write_results_to_csv(records, out_path):
    """
    Flatten result records into a single DataFrame and write to CSV.
    """
    df = results_to_dataframe(records)
    df.to_csv(out_path, index=False)
    print(f"[writer] Results saved to {out_path}")
    return df
