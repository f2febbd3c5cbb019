"""
Per-wire hit occupancy and the dead channels it implies.

A histogram has one unit-width bin per wire over [wire_min, wire_max + 1).
A wire inside the observed range that never collects a hit in a given TPC is
reported as dead for that (plane, tpc).
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np

from hiteff.io.dead_channels import ChannelKey
from hiteff.physics.hits import HitBatch

TPCS = (0, 1)


@dataclass(slots=True)
class WireOccupancy:
    """Hit counts for one plane: one histogram per TPC plus the TPC-combined one."""
    plane: int
    wire_min: int
    wire_max: int
    per_tpc: Dict[int, np.ndarray] = field(default_factory=dict)
    combined: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.int64))

    def __post_init__(self) -> None:
        if self.wire_max < self.wire_min:
            raise ValueError(f"empty wire range [{self.wire_min}, {self.wire_max}] for plane {self.plane}")
        n = self.n_bins
        self.per_tpc = {t: np.zeros(n, dtype=np.int64) for t in TPCS}
        self.combined = np.zeros(n, dtype=np.int64)

    @property
    def n_bins(self) -> int:
        return self.wire_max - self.wire_min + 1

    @property
    def wires(self) -> np.ndarray:
        return np.arange(self.wire_min, self.wire_max + 1, dtype=np.int64)

    def fill(self, batch: HitBatch) -> None:
        """Add the hits of one track on this plane; hits tagged with another plane are ignored."""
        if len(batch) == 0:
            return
        keep = (batch.wire >= self.wire_min) & (batch.wire <= self.wire_max)
        if batch.plane_id is not None:
            keep &= batch.plane_id == self.plane
        bins = batch.wire[keep] - self.wire_min
        tpcs = batch.tpc[keep]
        np.add.at(self.combined, bins, 1)
        for t, hist in self.per_tpc.items():
            np.add.at(hist, bins[tpcs == t], 1)

    def dead_wires(self, tpc: int) -> np.ndarray:
        return self.wires[self.per_tpc[tpc] == 0]


def wire_range(batches: Iterable[HitBatch]) -> Optional[Tuple[int, int]]:
    """Global (min, max) wire over all batches, or None when there are no hits."""
    lo: Optional[int] = None
    hi: Optional[int] = None
    for b in batches:
        if len(b) == 0:
            continue
        bmin, bmax = int(b.wire.min()), int(b.wire.max())
        lo = bmin if lo is None else min(lo, bmin)
        hi = bmax if hi is None else max(hi, bmax)
    return None if lo is None else (lo, hi)


def find_dead_channels(occupancy: Dict[int, WireOccupancy]) -> List[ChannelKey]:
    """
    Dead (wire, plane, tpc) triples, ordered TPC 0 planes 0..2, then TPC 1 planes 0..2,
    wires ascending within each block.
    """
    out: List[ChannelKey] = []
    for t in TPCS:
        for p in sorted(occupancy):
            out.extend((int(w), p, t) for w in occupancy[p].dead_wires(t))
    return out
