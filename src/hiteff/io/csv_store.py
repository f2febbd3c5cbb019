"""
hiteff.io.csv_store

Row-oriented CSV outputs of the efficiency and region-split pipelines, and
the pandas loaders the plotting side reads them back with.

Writers keep the file open for the lifetime of a dataset and append one line
per accepted (track, plane) pair under a lock, so several producer threads
could share one writer. Only computed results reach this layer; there is no
sentinel value to filter here.
"""
from __future__ import annotations
from dataclasses import dataclass, astuple
from pathlib import Path
from threading import Lock
from typing import Callable, List, Optional, Sequence

import numpy as np
import pandas as pd

EFFICIENCY_HEADER = [
    "TrackID", "Plane", "TPC", "TrackLength", "ValidHits",
    "NonDeadWires", "Efficiency", "AvgPitch",
]

REGION_HEADER = [
    "TrackID", "Plane", "TPC", "TrackLength", "ValidHits",
    "MinX", "MaxX", "MinY", "MaxY", "MinZ", "MaxZ",
    "AvgPitch", "HitEfficiency",
    "AnodeTPC0_Hits", "Cathode_Hits", "AnodeTPC1_Hits", "Other_Hits",
]

# zone name (geometry.regions.ZONES) -> region CSV column
ZONE_COLUMNS = {
    "anode_tpc0": "AnodeTPC0_Hits",
    "cathode": "Cathode_Hits",
    "anode_tpc1": "AnodeTPC1_Hits",
    "other": "Other_Hits",
}


@dataclass(slots=True)
class EfficiencyRow:
    track_id: int
    plane: int
    tpc: int
    track_length: float
    valid_hits: int
    non_dead_wires: int
    efficiency: float
    avg_pitch: float


@dataclass(slots=True)
class RegionRow:
    track_id: int
    plane: int
    tpc: int
    track_length: float
    valid_hits: int
    min_x: float
    max_x: float
    min_y: float
    max_y: float
    min_z: float
    max_z: float
    avg_pitch: float
    hit_efficiency: float
    anode_tpc0_hits: int
    cathode_hits: int
    anode_tpc1_hits: int
    other_hits: int


def _fmt(v) -> str:
    if isinstance(v, (float, np.floating)):
        return repr(float(v))
    return str(int(v)) if isinstance(v, (bool, np.integer)) else str(v)


class CsvRowWriter:
    """
    Append-only CSV writer with a fixed header.

    Usage:
        with CsvRowWriter(path, EFFICIENCY_HEADER) as w:
            w.append(EfficiencyRow(...))
    """

    def __init__(self, path: str | Path, header: Sequence[str]):
        self.path = Path(path)
        self.header = list(header)
        self.rows_written = 0
        self._lock = Lock()
        self._fh = None

    def open(self) -> "CsvRowWriter":
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._fh = open(self.path, "w", encoding="utf-8")
        self._fh.write(",".join(self.header) + "\n")
        return self

    def append(self, row) -> None:
        values = astuple(row) if hasattr(row, "__dataclass_fields__") else tuple(row)
        if len(values) != len(self.header):
            raise ValueError(
                f"Row has {len(values)} fields, header of {self.path.name} has {len(self.header)}"
            )
        line = ",".join(_fmt(v) for v in values) + "\n"
        with self._lock:
            if self._fh is None:
                raise ValueError(f"Writer for {self.path} is not open")
            self._fh.write(line)
            self.rows_written += 1

    def close(self) -> None:
        with self._lock:
            if self._fh is not None:
                self._fh.close()
                self._fh = None

    def __enter__(self) -> "CsvRowWriter":
        return self.open()

    def __exit__(self, *exc) -> None:
        self.close()


def efficiency_writer(path: str | Path) -> CsvRowWriter:
    return CsvRowWriter(path, EFFICIENCY_HEADER)


def region_writer(path: str | Path) -> CsvRowWriter:
    return CsvRowWriter(path, REGION_HEADER)


# ---------------------------------------------------------------------------
# Loaders
# ---------------------------------------------------------------------------

def _read_numeric_csv(
    path: str | Path,
    required: List[str],
    *,
    echo: Optional[Callable[[str], None]] = print,
) -> pd.DataFrame:
    p = Path(path)
    say = echo or (lambda _msg: None)
    df = pd.read_csv(p, dtype=str, on_bad_lines="skip", skipinitialspace=True)
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise KeyError(f"{p.name} is missing columns: {missing}")

    num = df.apply(pd.to_numeric, errors="coerce")
    bad = num[required].isna().any(axis=1)
    if bad.any():
        say(f"[csv] Warning: Skipped {int(bad.sum())} invalid line(s) in {p.name}")
    return num.loc[~bad].reset_index(drop=True)


def read_efficiency_csv(path: str | Path, *, echo: Optional[Callable[[str], None]] = print) -> pd.DataFrame:
    """
    Load an efficiency CSV written by the efficiency pipeline.

    Rows with a non-numeric Plane, Efficiency or AvgPitch are reported and dropped.
    Plane/TrackID/TPC come back as integers.
    """
    df = _read_numeric_csv(path, ["Plane", "Efficiency", "AvgPitch"], echo=echo)
    for col in ("TrackID", "Plane", "TPC", "ValidHits", "NonDeadWires"):
        if col in df.columns and not df[col].isna().any():
            df[col] = df[col].astype(np.int64)
    return df


def read_region_csv(path: str | Path, *, echo: Optional[Callable[[str], None]] = print) -> pd.DataFrame:
    """Load one region-split CSV; same invalid-row policy as read_efficiency_csv."""
    df = _read_numeric_csv(path, ["Plane", "AvgPitch", "HitEfficiency"], echo=echo)
    for col in ("TrackID", "Plane", "TPC", "ValidHits", *ZONE_COLUMNS.values()):
        if col in df.columns and not df[col].isna().any():
            df[col] = df[col].astype(np.int64)
    return df
