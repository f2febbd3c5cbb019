from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence
import numpy as np

PITCH_INVALID = -1.0
PLANES = (0, 1, 2)


def _as_array(values: Sequence | np.ndarray | None, dtype) -> Optional[np.ndarray]:
    if values is None:
        return None
    return np.asarray(values, dtype=dtype)


@dataclass(slots=True)
class HitBatch:
    """
    Hits of one track on one wire plane, stored as parallel arrays.

    wire:   readout wire number (uint)
    pitch:  local hit spacing along the track [cm]; -1 marks an invalid pitch
    tpc:    TPC id of each hit
    ontraj: hit attributed to the fitted trajectory (optional)
    x,y,z:  space point [cm] (optional)
    time:   hit peak time (optional)
    hit_id: reconstruction hit id (optional)
    plane_id: plane recorded on the hit itself (optional)

    Index i refers to the same physical hit in every array.
    """
    wire: np.ndarray
    pitch: np.ndarray
    tpc: np.ndarray
    ontraj: Optional[np.ndarray] = None
    x: Optional[np.ndarray] = None
    y: Optional[np.ndarray] = None
    z: Optional[np.ndarray] = None
    time: Optional[np.ndarray] = None
    hit_id: Optional[np.ndarray] = None
    plane_id: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        self.wire = _as_array(self.wire, np.int64)
        self.pitch = _as_array(self.pitch, np.float64)
        self.tpc = _as_array(self.tpc, np.int64)
        self.ontraj = _as_array(self.ontraj, bool)
        self.x = _as_array(self.x, np.float64)
        self.y = _as_array(self.y, np.float64)
        self.z = _as_array(self.z, np.float64)
        self.time = _as_array(self.time, np.float64)
        self.hit_id = _as_array(self.hit_id, np.int64)
        self.plane_id = _as_array(self.plane_id, np.int64)

        n = len(self.wire)
        for name in ("pitch", "tpc", "ontraj", "x", "y", "z", "time", "hit_id", "plane_id"):
            arr = getattr(self, name)
            if arr is not None and len(arr) != n:
                raise ValueError(
                    f"HitBatch length mismatch: wire has {n} entries, {name} has {len(arr)}"
                )

    def __len__(self) -> int:
        return len(self.wire)

    @property
    def has_xyz(self) -> bool:
        return self.x is not None and self.y is not None and self.z is not None

    def subset(self, idx: np.ndarray) -> "HitBatch":
        """Return a new batch holding only hits at integer/boolean index `idx`."""
        def take(a):
            return None if a is None else a[idx]
        return HitBatch(
            wire=self.wire[idx], pitch=self.pitch[idx], tpc=self.tpc[idx],
            ontraj=take(self.ontraj), x=take(self.x), y=take(self.y), z=take(self.z),
            time=take(self.time), hit_id=take(self.hit_id), plane_id=take(self.plane_id),
        )

    @classmethod
    def empty(cls) -> "HitBatch":
        return cls(wire=np.zeros(0), pitch=np.zeros(0), tpc=np.zeros(0))


@dataclass(slots=True)
class Track:
    """
    One reconstructed track from the TrackCaloSkim tree.

    length:      trk.length [cm]
    start / end: track endpoints [cm], shape (3,)
    planes:      plane index (0, 1, 2) -> HitBatch
    meta:        run / subrun / evt and source bookkeeping
    """
    track_id: int
    length: float
    start: np.ndarray
    end: np.ndarray
    planes: Dict[int, HitBatch] = field(default_factory=dict)
    meta: Dict[str, Any] = field(default_factory=dict)

    def endpoint_length(self) -> float:
        """Straight-line distance between the endpoints."""
        d = np.asarray(self.end, dtype=float) - np.asarray(self.start, dtype=float)
        return float(np.sqrt(d @ d))

    def direction(self) -> Optional[np.ndarray]:
        d = np.asarray(self.end, dtype=float) - np.asarray(self.start, dtype=float)
        n = float(np.sqrt(d @ d))
        if n == 0:
            return None
        return d / n

    def hits(self, plane: int) -> HitBatch:
        """Hits on `plane`; an empty batch when the plane saw none."""
        if plane not in PLANES:
            raise ValueError(f"unknown wire plane {plane!r}, expected one of {PLANES}")
        return self.planes.get(plane, HitBatch.empty())

    def num_hits(self, plane: int) -> int:
        return len(self.hits(plane))
