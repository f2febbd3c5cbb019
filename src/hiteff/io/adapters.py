"""
hiteff.io.adapters

Readers that turn TrackCaloSkim ntuples into physics-layer tracks
(hiteff.physics.hits.Track with one HitBatch per wire plane).

Design goals
------------
- Keep I/O concerns isolated from the efficiency logic.
- Stream large files chunk by chunk; never hold a whole file in memory.
- Be tolerant to schema variants through an explicit, overridable branch map.
- Read only the branches a caller asks for.

Entry points
------------
- read_filelist(path): one path/URI per line, blank lines ignored.
- class TrackCaloSkimAdapter: reads the `caloskim/TrackCaloSkim` tree.
- function make_adapter(io_cfg): factory from the [io] TOML section.

Config (example)
----------------
[io]
tree      = "caloskim/TrackCaloSkim"
step_size = "100 MB"

[io.branches]
length = "trk.length"
"""
from __future__ import annotations
from pathlib import Path
from typing import Dict, Iterator, Iterable, List, Mapping, Optional, Sequence, Any

import numpy as np
import awkward as ak
import uproot

from hiteff.physics.hits import PLANES, HitBatch, Track

# ---------------------------------------------------------------------------
# Branch map
# ---------------------------------------------------------------------------

_TRACK_KEYS = {
    "run": "trk.meta.run",
    "subrun": "trk.meta.subrun",
    "evt": "trk.meta.evt",
    "id": "trk.id",
    "length": "trk.length",
    "start_x": "trk.start.x", "start_y": "trk.start.y", "start_z": "trk.start.z",
    "end_x": "trk.end.x", "end_y": "trk.end.y", "end_z": "trk.end.z",
}

# per-plane fields; "{p}" is the plane index
_HIT_KEYS = {
    "wire": "trk.hits{p}.h.wire",
    "plane": "trk.hits{p}.h.plane",
    "pitch": "trk.hits{p}.pitch",
    "tpc": "trk.hits{p}.h.tpc",
    "ontraj": "trk.hits{p}.ontraj",
    "x": "trk.hits{p}.h.sp.x",
    "y": "trk.hits{p}.h.sp.y",
    "z": "trk.hits{p}.h.sp.z",
    "time": "trk.hits{p}.h.time",
    "hit_id": "trk.hits{p}.h.id",
}

DEFAULT_BRANCHES: Dict[str, str] = dict(_TRACK_KEYS)
for _p in PLANES:
    for _k, _v in _HIT_KEYS.items():
        DEFAULT_BRANCHES[f"{_k}{_p}"] = _v.format(p=_p)

# Canonical-key groups used by the pipelines
EFFICIENCY_KEYS = ["id", "length"] + [f"{k}{p}" for p in PLANES for k in ("wire", "pitch", "tpc", "ontraj")]
REGION_KEYS = EFFICIENCY_KEYS + [f"{k}{p}" for p in PLANES for k in ("x", "y", "z")]
OCCUPANCY_KEYS = ["start_x", "start_y", "start_z", "end_x", "end_y", "end_z"] + [
    f"{k}{p}" for p in PLANES for k in ("wire", "tpc", "plane")
]
INSPECT_KEYS = list(_TRACK_KEYS) + [
    f"{k}{p}" for p in PLANES for k in ("wire", "pitch", "tpc", "ontraj", "time", "hit_id")
]

_REQUIRED_TRACK_KEYS = ("id", "length")


def _plane_key(key: str) -> tuple[str, int] | None:
    if key and key[-1].isdigit() and key[:-1] in _HIT_KEYS:
        return key[:-1], int(key[-1])
    return None


# ---------------------------------------------------------------------------
# File lists
# ---------------------------------------------------------------------------

def read_filelist(path: str | Path) -> List[str]:
    """
    Read a plain-text file list (one path/URI per line; blank lines ignored).
    Raises OSError if the list cannot be opened.
    """
    with open(Path(path), "r", encoding="utf-8") as f:
        return [ln.strip() for ln in f if ln.strip()]


# ---------------------------------------------------------------------------
# Array -> Track conversion
# ---------------------------------------------------------------------------

def _flat_and_offsets(arr) -> tuple[np.ndarray, np.ndarray]:
    counts = np.asarray(ak.num(arr, axis=1), dtype=np.int64)
    offsets = np.zeros(len(counts) + 1, dtype=np.int64)
    np.cumsum(counts, out=offsets[1:])
    flat = ak.to_numpy(ak.flatten(arr, axis=1))
    return flat, offsets


def tracks_from_arrays(
    arrays: Mapping[str, Any],
    *,
    meta: Optional[Dict[str, Any]] = None,
    entry_offset: int = 0,
) -> Iterator[Track]:
    """
    Convert one chunk of columns into Track objects.

    `arrays` maps canonical keys (see DEFAULT_BRANCHES) to per-entry columns:
    flat for track-level keys, jagged (one list per entry) for hit keys.
    Missing optional keys are simply left unset on the resulting HitBatch.
    """
    meta = meta or {}
    A = {k: v for k, v in arrays.items() if v is not None}
    if not A:
        return
    n = len(next(iter(A.values())))

    scalars: Dict[str, np.ndarray] = {}
    jagged: Dict[str, tuple[np.ndarray, np.ndarray]] = {}
    for key, col in A.items():
        if _plane_key(key) is not None:
            jagged[key] = _flat_and_offsets(ak.Array(col))
        else:
            scalars[key] = ak.to_numpy(ak.Array(col))

    def scalar(key: str, i: int, default=0):
        col = scalars.get(key)
        return default if col is None else col[i].item()

    for i in range(n):
        planes: Dict[int, HitBatch] = {}
        for p in PLANES:
            if f"wire{p}" not in jagged:
                continue

            def hits(name: str):
                pair = jagged.get(f"{name}{p}")
                if pair is None:
                    return None
                flat, off = pair
                return flat[off[i]:off[i + 1]]

            wire = hits("wire")
            pitch = hits("pitch")
            tpc = hits("tpc")
            planes[p] = HitBatch(
                wire=wire,
                pitch=pitch if pitch is not None else np.full(len(wire), -1.0),
                tpc=tpc if tpc is not None else np.zeros(len(wire), dtype=np.int64),
                ontraj=hits("ontraj"),
                x=hits("x"), y=hits("y"), z=hits("z"),
                time=hits("time"),
                hit_id=hits("hit_id"),
                plane_id=hits("plane"),
            )

        start = np.array([scalar("start_x", i, np.nan), scalar("start_y", i, np.nan), scalar("start_z", i, np.nan)], dtype=float)
        end = np.array([scalar("end_x", i, np.nan), scalar("end_y", i, np.nan), scalar("end_z", i, np.nan)], dtype=float)
        entry_meta = dict(meta)
        entry_meta.update({
            "entry_index": entry_offset + i,
            "run": int(scalar("run", i, -1)),
            "subrun": int(scalar("subrun", i, -1)),
            "evt": int(scalar("evt", i, -1)),
        })
        yield Track(
            track_id=int(scalar("id", i, -1)),
            length=float(scalar("length", i, np.nan)),
            start=start,
            end=end,
            planes=planes,
            meta=entry_meta,
        )


# ---------------------------------------------------------------------------
# ROOT adapter
# ---------------------------------------------------------------------------

class TrackCaloSkimAdapter:
    """
    Read TrackCaloSkim ntuples with uproot.

    Parameters
    ----------
    tree : str
        Path of the TTree inside the file.
    branches : dict
        Canonical key -> branch name overrides on top of DEFAULT_BRANCHES.
    step_size : str | int
        uproot chunk size for streaming.
    """

    def __init__(
        self,
        tree: str = "caloskim/TrackCaloSkim",
        branches: Optional[Mapping[str, str]] = None,
        step_size: str | int = "100 MB",
    ) -> None:
        self.tree_key = tree
        self.keys = dict(DEFAULT_BRANCHES)
        self.keys.update(branches or {})
        self.step_size = step_size

    def _tree(self, f, path: str):
        try:
            return f[self.tree_key]
        except KeyError as exc:
            raise KeyError(f"Cannot find tree '{self.tree_key}' in file: {path}") from exc

    def _available(self, tree) -> set[str]:
        return set(tree.keys(recursive=True, full_paths=False))

    def missing_branches(self, path: str, keys: Iterable[str]) -> List[str]:
        """Branch names (not canonical keys) requested but absent from the tree."""
        with uproot.open(path) as f:
            present = self._available(self._tree(f, path))
        return [self.keys[k] for k in keys if self.keys[k] not in present]

    def count_entries(self, path: str) -> int:
        with uproot.open(path) as f:
            return int(self._tree(f, path).num_entries)

    def iter_tracks(self, path: str, keys: Sequence[str] = EFFICIENCY_KEYS) -> Iterator[Track]:
        """
        Stream Track objects from one file, reading only `keys` (canonical names).
        Optional hit keys absent from the file are skipped; the track id, the
        length and the per-plane wire branches are required.
        """
        with uproot.open(path) as f:
            tree = self._tree(f, path)
            present = self._available(tree)

            wanted = {k: self.keys[k] for k in keys}
            missing_required = [
                b for k, b in wanted.items()
                if b not in present and (k in _REQUIRED_TRACK_KEYS or k.startswith("wire"))
            ]
            if missing_required:
                raise KeyError(f"Missing required branches in {path}: {missing_required}")
            wanted = {k: b for k, b in wanted.items() if b in present}
            by_branch = {b: k for k, b in wanted.items()}

            meta = {"source": "ROOT", "file": str(path), "tree": self.tree_key}
            offset = 0
            for arrays in tree.iterate(
                filter_name=list(wanted.values()), library="ak", step_size=self.step_size
            ):
                A = {by_branch[b]: arrays[b] for b in arrays.fields}
                n = len(arrays)
                yield from tracks_from_arrays(A, meta=meta, entry_offset=offset)
                offset += n


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def make_adapter(io_cfg) -> TrackCaloSkimAdapter:
    """Create an adapter from an IOCfg (or a plain dict with the same keys)."""
    get = io_cfg.get if isinstance(io_cfg, dict) else (lambda k, d=None: getattr(io_cfg, k, d))
    return TrackCaloSkimAdapter(
        tree=get("tree", "caloskim/TrackCaloSkim"),
        branches=get("branches", None),
        step_size=get("step_size", "100 MB"),
    )
