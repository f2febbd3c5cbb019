"""
hiteff.physics.efficiency

Dead-channel-aware hit-finding efficiency for one track on one wire plane.

For the valid hits of a track, the estimate compares the number of distinct
wires that were hit with the number of live (non-dead) wires spanned by those
hits. A sequence of quality gates rejects tracks whose estimate would not be
meaningful; a rejected track yields ``None`` instead of a result.

Gates (defaults)
----------------
- at least 25 distinct valid wires
- no gap larger than 11 between consecutive distinct wires
- at least 25 live wires in the spanned range
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Literal, Optional, Sequence

import numpy as np

from hiteff.filters.selection import valid_hit_mask, PitchRule
from hiteff.io.dead_channels import DeadChannelMap
from hiteff.physics.hits import HitBatch

TpcMode = Literal["first", "per_tpc"]


@dataclass(frozen=True, slots=True)
class EfficiencyResult:
    efficiency: float        # in [0, 1]
    average_pitch: float     # mean of positive valid pitches, 0 if none [cm]
    n_valid_hits: int        # distinct live wires that were hit
    n_non_dead_wires: int    # live wires in the spanned range(s)
    n_unique_wires: int      # distinct wires among valid hits
    tpc: int                 # representative TPC (first valid hit)


def has_large_holes(sorted_wires: Sequence[int] | np.ndarray, max_gap: int = 11) -> bool:
    """True when two consecutive (sorted, distinct) wires are more than max_gap apart."""
    w = np.asarray(sorted_wires, dtype=np.int64)
    if w.size < 2:
        return False
    return bool(np.any(np.diff(w) > max_gap))


def mean_positive_pitch(pitches: np.ndarray) -> float:
    p = np.asarray(pitches, dtype=np.float64)
    p = p[p > 0]
    return float(p.mean()) if p.size else 0.0


@dataclass(frozen=True)
class EfficiencyEstimator:
    """
    Holds the dead-channel map and gate settings; `estimate` is a pure function
    of its inputs, so one estimator can be shared by all workers.
    """
    dead_map: DeadChannelMap = DeadChannelMap()
    min_unique_wires: int = 25
    max_wire_gap: int = 11
    min_live_wires: int = 25
    tpc_mode: TpcMode = "per_tpc"
    pitch_rule: PitchRule = "positive"

    @classmethod
    def from_cfg(cls, cfg, dead_map: DeadChannelMap) -> "EfficiencyEstimator":
        """Build from an EfficiencyCfg section."""
        return cls(
            dead_map=dead_map,
            min_unique_wires=cfg.min_unique_wires,
            max_wire_gap=cfg.max_wire_gap,
            min_live_wires=cfg.min_live_wires,
            tpc_mode=cfg.tpc_mode,
            pitch_rule=cfg.pitch_rule,
        )

    def estimate(
        self,
        wires: Sequence[int] | np.ndarray,
        pitches: Sequence[float] | np.ndarray,
        tpcs: Sequence[int] | np.ndarray,
        ontraj: Optional[Sequence[bool] | np.ndarray] = None,
        *,
        plane: int,
    ) -> Optional[EfficiencyResult]:
        try:
            batch = HitBatch(wire=wires, pitch=pitches, tpc=tpcs, ontraj=ontraj)
        except ValueError:
            return None
        return self.estimate_batch(batch, plane)

    def estimate_batch(self, batch: HitBatch, plane: int) -> Optional[EfficiencyResult]:
        if len(batch) == 0:
            return None

        keep = valid_hit_mask(batch, plane, self.dead_map, pitch_rule=self.pitch_rule)
        wires = batch.wire[keep]
        tpcs = batch.tpc[keep]
        pitches = batch.pitch[keep]

        unique_wires = np.unique(wires)
        if unique_wires.size < self.min_unique_wires:
            return None
        if has_large_holes(unique_wires, self.max_wire_gap):
            return None

        rep_tpc = int(tpcs[0])
        dead = self.dead_map
        if self.tpc_mode == "first":
            n_live = dead.count_live(int(unique_wires[0]), int(unique_wires[-1]), plane, rep_tpc)
            hit_live = {int(w) for w in unique_wires if (int(w), plane, rep_tpc) not in dead.channels}
        else:
            n_live = 0
            hit_live = set()
            for tpc_id in np.unique(tpcs).tolist():
                w_t = wires[tpcs == tpc_id]
                n_live += dead.count_live(int(w_t.min()), int(w_t.max()), plane, int(tpc_id))
                hit_live.update(int(w) for w in np.unique(w_t) if (int(w), plane, int(tpc_id)) not in dead.channels)

        if n_live < self.min_live_wires or n_live <= 0:
            return None

        n_hit = len(hit_live)
        eff = min(n_hit / n_live, 1.0)
        return EfficiencyResult(
            efficiency=float(eff),
            average_pitch=mean_positive_pitch(pitches),
            n_valid_hits=n_hit,
            n_non_dead_wires=int(n_live),
            n_unique_wires=int(unique_wires.size),
            tpc=rep_tpc,
        )


def estimate_efficiency(
    wires, pitches, tpcs, ontraj=None, *, plane: int,
    dead_map: DeadChannelMap | None = None, **gates,
) -> Optional[EfficiencyResult]:
    """Functional shortcut around EfficiencyEstimator(...).estimate(...)."""
    est = EfficiencyEstimator(dead_map=dead_map or DeadChannelMap(), **gates)
    return est.estimate(wires, pitches, tpcs, ontraj, plane=plane)
