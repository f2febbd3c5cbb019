from __future__ import annotations
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict

import h5py
import numpy as np

from hiteff.physics.occupancy import WireOccupancy

FORMAT_VERSION = "1.0"


def write_occupancy(path: str | Path, occupancy: Dict[int, WireOccupancy], *, n_tracks: int = 0) -> Path:
    """
    Store wire-occupancy histograms.

    Layout
    ------
    /occupancy/tpc{t}/plane{p}     int64 counts, one bin per wire
    /occupancy/combined/plane{p}   int64 counts, TPCs summed
    Each dataset carries `wire_min`, `wire_max` and `plane` attributes.
    """
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with h5py.File(p, "w") as f:
        f.attrs["format_version"] = FORMAT_VERSION
        f.attrs["created_utc"] = datetime.now(timezone.utc).isoformat()
        f.attrs["software"] = "caloskim-hiteff 0.1.0"
        f.attrs["n_tracks"] = int(n_tracks)

        grp = f.require_group("occupancy")
        for plane, occ in sorted(occupancy.items()):
            targets = [(grp.require_group(f"tpc{t}"), hist) for t, hist in sorted(occ.per_tpc.items())]
            targets.append((grp.require_group("combined"), occ.combined))
            for g, hist in targets:
                ds = g.create_dataset(f"plane{plane}", data=hist.astype(np.int64), compression="gzip")
                ds.attrs["wire_min"] = occ.wire_min
                ds.attrs["wire_max"] = occ.wire_max
                ds.attrs["plane"] = plane
    return p


def read_occupancy(path: str | Path, dataset: str) -> tuple[np.ndarray, np.ndarray]:
    """Return (wires, counts) for e.g. dataset="/occupancy/tpc0/plane2"."""
    with h5py.File(str(path), "r") as f:
        if dataset not in f:
            raise KeyError(f"{dataset} not found in {path}")
        ds = f[dataset]
        counts = np.array(ds, dtype=np.int64)
        wire_min = int(ds.attrs["wire_min"])
    return np.arange(wire_min, wire_min + len(counts), dtype=np.int64), counts
