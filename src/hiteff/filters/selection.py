# src/hiteff/filters/selection.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Literal

import numpy as np

from hiteff.io.dead_channels import DeadChannelMap
from hiteff.physics.hits import HitBatch, Track, PITCH_INVALID

PitchRule = Literal["positive", "not_sentinel"]
LengthSource = Literal["branch", "endpoints"]


@dataclass
class SelectionDiagnostics:
    tracks_in: int = 0
    tracks_selected: int = 0
    planes_seen: int = 0
    planes_computed: int = 0
    reasons: Dict[str, int] = field(default_factory=dict)

    def inc(self, reason: str) -> None:
        self.reasons[reason] = self.reasons.get(reason, 0) + 1


def track_length(track: Track, source: LengthSource = "branch") -> float:
    if source == "endpoints":
        return track.endpoint_length()
    return float(track.length)


def passes_length(track: Track, min_length_cm: float, source: LengthSource = "branch") -> bool:
    """Strict cut: keep tracks longer than min_length_cm."""
    return track_length(track, source) > min_length_cm


def pitch_mask(pitch: np.ndarray, rule: PitchRule = "positive") -> np.ndarray:
    if rule == "positive":
        return pitch > 0.0
    if rule == "not_sentinel":
        return pitch != PITCH_INVALID
    raise ValueError(f"Unknown pitch rule: {rule}")


def dead_mask(wires: np.ndarray, tpcs: np.ndarray, plane: int, dead_map: DeadChannelMap | None) -> np.ndarray:
    """True where (wire, plane, tpc) is a known dead channel."""
    out = np.zeros(len(wires), dtype=bool)
    if not dead_map:
        return out
    for i, (w, t) in enumerate(zip(wires.tolist(), tpcs.tolist())):
        out[i] = (w, plane, t) in dead_map.channels
    return out


def valid_hit_mask(
    batch: HitBatch,
    plane: int,
    dead_map: DeadChannelMap | None = None,
    *,
    pitch_rule: PitchRule = "positive",
    require_xyz: bool = False,
) -> np.ndarray:
    """
    Boolean mask of hits usable for efficiency:
      on-trajectory (when the flag is present), pitch passes `pitch_rule`,
      channel not dead, and (optionally) finite x/y/z.
    """
    n = len(batch)
    keep = np.ones(n, dtype=bool)
    if n == 0:
        return keep
    if batch.ontraj is not None:
        keep &= batch.ontraj
    keep &= pitch_mask(batch.pitch, pitch_rule)
    if require_xyz:
        if not batch.has_xyz:
            return np.zeros(n, dtype=bool)
        keep &= np.isfinite(batch.x) & np.isfinite(batch.y) & np.isfinite(batch.z)
    keep &= ~dead_mask(batch.wire, batch.tpc, plane, dead_map)
    return keep
