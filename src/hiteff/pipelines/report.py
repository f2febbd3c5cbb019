"""
Human-readable per-track reports (the text behind `hiteff-inspect inspect`).
"""
from __future__ import annotations
from typing import List, Optional, TextIO

import numpy as np
import pandas as pd

from hiteff.io.adapters import INSPECT_KEYS, PLANES, TrackCaloSkimAdapter
from hiteff.io.dead_channels import DeadChannelMap
from hiteff.physics.efficiency import EfficiencyEstimator
from hiteff.physics.hits import HitBatch, Track

RULE_WIDE = "=" * 80
RULE = "-" * 60


def _plane_lines(batch: HitBatch, plane: int, estimator: Optional[EfficiencyEstimator]) -> List[str]:
    out = [f"\n--- Plane {plane} ---", f"Total hits: {len(batch)}"]
    if len(batch) == 0:
        out.append("No hits on this plane")
        return out

    ontraj = batch.ontraj if batch.ontraj is not None else np.ones(len(batch), dtype=bool)
    out.append(f"On-trajectory hits: {int(ontraj.sum())}")

    wmin, wmax = int(batch.wire.min()), int(batch.wire.max())
    n_unique = len(np.unique(batch.wire))
    out.append(f"Wire range: {wmin} - {wmax} (span: {wmax - wmin + 1}, unique: {n_unique})")
    out.append("TPCs: " + " ".join(str(t) for t in np.unique(batch.tpc).tolist()))

    valid = ontraj & (batch.pitch > 0)
    vp = batch.pitch[valid]
    if vp.size:
        out.append(f"Pitch: min={vp.min():.6f}, max={vp.max():.6f}, avg={vp.mean():.6f} cm ({vp.size} valid)")
        if estimator is not None:
            res = estimator.estimate_batch(batch, plane)
            if res is not None:
                out.append(f"Efficiency: {res.efficiency * 100:.6f}% (avg pitch: {res.average_pitch:.6f} cm)")

    if batch.time is not None and len(batch.time):
        out.append(f"Hit time range: {batch.time.min():.3f} - {batch.time.max():.3f} us")
    else:
        out.append("No hit times available on this plane")

    idx = np.flatnonzero(valid)
    if idx.size:
        out.append(f"All {idx.size} valid hits (on-trajectory, pitch > 0):")
        out.append("  #    Wire  TPC  Pitch     Time      HitID")
        for n, i in enumerate(idx.tolist(), start=1):
            t = batch.time[i] if batch.time is not None else -1.0
            hid = int(batch.hit_id[i]) if batch.hit_id is not None else -1
            out.append(
                f"  {n:>3}  {int(batch.wire[i]):>4}  {int(batch.tpc[i]):>3}"
                f"  {batch.pitch[i]:>9.6f}  {t:>9.3f}  {hid}"
            )
    else:
        out.append("No valid hits found on this plane")
    return out


def format_track(track: Track, number: int, estimator: Optional[EfficiencyEstimator] = None) -> str:
    """Multi-line report for one track. `estimator=None` skips the efficiency line."""
    m = track.meta
    s, e = track.start, track.end
    lines = [
        "", RULE, f"TRACK #{number}", RULE,
        "Event Info:",
        f"  Run: {m.get('run', -1)}, Subrun: {m.get('subrun', -1)}, Event: {m.get('evt', -1)}",
        f"  Track ID: {track.track_id}",
        f"  Track Length: {track.length:.2f} cm",
        "",
        "Track Endpoints:",
        f"  Start: ({s[0]:.2f}, {s[1]:.2f}, {s[2]:.2f}) cm",
        f"  End:   ({e[0]:.2f}, {e[1]:.2f}, {e[2]:.2f}) cm",
    ]
    d = track.direction()
    if d is not None:
        lines.append(f"  Direction: ({d[0]:.3f}, {d[1]:.3f}, {d[2]:.3f})")
    for p in PLANES:
        lines += _plane_lines(track.hits(p), p, estimator)
    return "\n".join(lines)


def write_report(
    path: str,
    out: TextIO,
    adapter: TrackCaloSkimAdapter,
    dead_map: DeadChannelMap,
    *,
    estimator: Optional[EfficiencyEstimator] = None,
) -> int:
    """
    Write the report for every track in `path` to `out`.

    Raises KeyError listing the missing branches when the file lacks any
    branch the report needs. Returns the number of tracks written.
    """
    if dead_map.available:
        out.write(f"Loaded {len(dead_map)} dead channels for efficiency calculation\n")
    else:
        out.write("Note: dead channel file not found - efficiency calculation will be skipped\n")

    missing = adapter.missing_branches(path, INSPECT_KEYS)
    if missing:
        out.write("Error: The following required columns are missing in the ROOT file:\n")
        out.writelines(f"  - {b}\n" for b in missing)
        out.write("Please check the ROOT file schema and update the branch names in the config.\n")
        raise KeyError(f"Missing required branches in {path}: {missing}")

    if estimator is None and dead_map.available:
        estimator = EfficiencyEstimator(dead_map=dead_map, tpc_mode="per_tpc", pitch_rule="positive")

    out.write(f"\n{RULE_WIDE}\nDETAILED TRACK INFORMATION\nFile: {path}\n")
    out.write(f"Entries in tree: {adapter.count_entries(path)}\n{RULE_WIDE}\n")
    n = 0
    for trk in adapter.iter_tracks(path, INSPECT_KEYS):
        n += 1
        out.write(format_track(trk, n, estimator) + "\n")
    out.write(f"\n{'=' * 60}\nSUMMARY: Displayed information for {n} tracks\n{'=' * 60}\n")
    return n



def preview_frame(path: str, adapter: TrackCaloSkimAdapter, n: int = 11):
    """
    First `n` entries of a handful of columns plus the derived track_length_cm
    (endpoint distance) and the hit count per plane.
    """
    rows = []
    for trk in adapter.iter_tracks(path, INSPECT_KEYS):
        rows.append({
            "evt": trk.meta.get("evt", -1),
            "id": trk.track_id,
            "length": trk.length,
            "track_length_cm": trk.endpoint_length(),
            **{f"num_hits{p}": trk.num_hits(p) for p in PLANES},
        })
        if len(rows) >= n:
            break
    return pd.DataFrame(rows, columns=["evt", "id", "length", "track_length_cm", "num_hits0", "num_hits1", "num_hits2"])
