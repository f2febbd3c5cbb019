from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import ExitStack
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import numpy as np
import typer
from tqdm import tqdm

from hiteff.config.load import load_config
from hiteff.config.schemas import Config, DatasetCfg
from hiteff.filters.selection import passes_length, track_length, valid_hit_mask
from hiteff.geometry.regions import BOXES, ZONES, classify_box, classify_longitudinal
from hiteff.io.adapters import PLANES, REGION_KEYS, TrackCaloSkimAdapter, make_adapter, read_filelist
from hiteff.io.csv_store import CsvRowWriter, RegionRow, region_writer
from hiteff.io.dead_channels import DeadChannelMap, load_dead_channels
from hiteff.physics.efficiency import has_large_holes, mean_positive_pitch
from hiteff.physics.hits import HitBatch
from hiteff.pipelines.console import Console
from hiteff.pipelines.core import resolve_workers, select_datasets


def region_csv_path(output_dir: str | Path, region: str, label: str) -> Path:
    return Path(output_dir) / f"{region}_hits_{label.lower()}.csv"


def split_plane_hits(
    batch: HitBatch,
    plane: int,
    dead_map: DeadChannelMap,
    *,
    track_id: int,
    length: float,
    min_region_hits: int = 10,
    min_unique_wires: int = 25,
    max_wire_gap: int = 11,
) -> Dict[int, RegionRow]:
    """
    Group the valid hits of one track/plane by detector box and summarise each box.

    Valid hits are on-trajectory with pitch != -1, finite x/y/z and a live
    channel. A box is skipped when it holds fewer than `min_region_hits` hits,
    fewer than `min_unique_wires` distinct wires, or a wire gap > `max_wire_gap`.

    Returns
    -------
    box index (into BOXES) -> RegionRow
    """
    out: Dict[int, RegionRow] = {}
    if len(batch) == 0 or not batch.has_xyz:
        return out

    keep = valid_hit_mask(batch, plane, dead_map, pitch_rule="not_sentinel", require_xyz=True)
    idx = np.flatnonzero(keep)
    if idx.size == 0:
        return out

    groups: Dict[int, List[int]] = {}
    for i in idx.tolist():
        r = classify_box(int(batch.tpc[i]), float(batch.y[i]), float(batch.z[i]))
        if r is not None:
            groups.setdefault(r, []).append(i)

    for r, hits in sorted(groups.items()):
        if len(hits) < min_region_hits:
            continue
        sub = batch.subset(np.asarray(hits))
        unique_wires = np.unique(sub.wire)
        if unique_wires.size < min_unique_wires:
            continue
        if has_large_holes(unique_wires, max_wire_gap):
            continue

        zones = {z: 0 for z in ZONES}
        for x in sub.x.tolist():
            zones[classify_longitudinal(x)] += 1

        box = BOXES[r]
        n_live = dead_map.count_live(int(unique_wires[0]), int(unique_wires[-1]), plane, box.tpc_id)
        eff = min(unique_wires.size / n_live, 1.0) if n_live > 0 else 0.0

        out[r] = RegionRow(
            track_id=track_id,
            plane=plane,
            tpc=box.tpc_id,
            track_length=length,
            valid_hits=len(sub),
            min_x=float(sub.x.min()), max_x=float(sub.x.max()),
            min_y=float(sub.y.min()), max_y=float(sub.y.max()),
            min_z=float(sub.z.min()), max_z=float(sub.z.max()),
            avg_pitch=mean_positive_pitch(sub.pitch),
            hit_efficiency=float(eff),
            anode_tpc0_hits=zones["anode_tpc0"],
            cathode_hits=zones["cathode"],
            anode_tpc1_hits=zones["anode_tpc1"],
            other_hits=zones["other"],
        )
    return out


@dataclass
class RegionSummary:
    label: str
    files: int = 0
    events: int = 0
    entries: Dict[str, int] = field(default_factory=dict)
    paths: Dict[str, Path] = field(default_factory=dict)


def process_dataset_regions(
    ds: DatasetCfg,
    cfg: Config,
    dead_map: DeadChannelMap,
    adapter: TrackCaloSkimAdapter,
) -> RegionSummary:
    say = Console(ds.label, cfg.run.diagnostics_level)
    summary = RegionSummary(label=ds.label)

    try:
        files = read_filelist(ds.filelist)
    except OSError:
        say.raw(f"Error: Could not open {ds.filelist}", level=0)
        return summary
    say(f"Loaded {len(files)} files from {ds.filelist}")

    eff = cfg.efficiency
    with ExitStack() as stack:
        writers: List[CsvRowWriter] = [
            stack.enter_context(region_writer(region_csv_path(cfg.regions.output_dir, box.name, ds.label)))
            for box in BOXES
        ]
        it = tqdm(files, desc=f"{ds.label} regions", unit="file") if cfg.run.progress else files
        for path in it:
            for trk in adapter.iter_tracks(path, REGION_KEYS):
                if not passes_length(trk, cfg.selection.min_length_cm, cfg.selection.length_source):
                    continue
                length = track_length(trk, cfg.selection.length_source)
                for p in PLANES:
                    rows = split_plane_hits(
                        trk.hits(p), p, dead_map,
                        track_id=trk.track_id,
                        length=length,
                        min_region_hits=cfg.regions.min_region_hits,
                        min_unique_wires=eff.min_unique_wires,
                        max_wire_gap=eff.max_wire_gap,
                    )
                    for r, row in rows.items():
                        writers[r].append(row)
                        summary.events += 1
            summary.files += 1
            if summary.files % 10 == 0:
                say(f"Processed {summary.files} samples")

    for box, w in zip(BOXES, writers):
        summary.entries[box.name] = w.rows_written
        summary.paths[box.name] = w.path

    lines = [
        f"\n=== Processing Statistics for {ds.label} ===",
        f"Total samples processed: {summary.files}",
        f"Total events recorded: {summary.events}",
        "",
        "=== Region Statistics ===",
    ]
    lines += [f"{box.name} (TPC {box.tpc_id}, {box.coord_range}): {summary.entries[box.name]} entries" for box in BOXES]
    say.raw("\n".join(lines))
    return summary


def run_regions(
    cfg_path: Optional[str] = None,
    *,
    cfg: Optional[Config] = None,
    datasets: Optional[Sequence[str]] = None,
    adapter: Optional[TrackCaloSkimAdapter] = None,
) -> Dict[str, RegionSummary]:
    """
    Write one region-split CSV per detector box and dataset under [regions].output_dir.
    Unlike the efficiency run, a missing dead-channel file only disables the filtering.
    """
    if cfg is None:
        cfg = load_config(cfg_path)
    say = Console("regions", cfg.run.diagnostics_level)

    dead_map = load_dead_channels(cfg.io.dead_channels, echo=say.raw)
    selected = select_datasets(cfg, datasets)

    adapter = adapter or make_adapter(cfg.io)
    workers = resolve_workers(cfg.run.workers, len(selected))

    summaries: Dict[str, RegionSummary] = {}
    with ThreadPoolExecutor(max_workers=workers) as ex:
        futs = {ex.submit(process_dataset_regions, ds, cfg, dead_map, adapter): ds.label for ds in selected}
        for fut in as_completed(futs):
            summaries[futs[fut]] = fut.result()

    say(f"CSV files saved in {cfg.regions.output_dir}/ directory")
    return summaries


app = typer.Typer(help="Split hit efficiency by detector region (hiteff.pipelines.regions)")


@app.command()
def main(
    cfg_path: Optional[str] = typer.Argument(None, help="Path to TOML config file"),
    dataset: Optional[List[str]] = typer.Option(
        None, "--dataset", "-d", help="Only process this dataset label (repeatable)"
    ),
    output_dir: Optional[str] = typer.Option(None, "--out-dir", "-o", help="Override [regions].output_dir"),
):
    """Write per-region CSVs ({region}_hits_{label}.csv) for every configured dataset."""
    try:
        cfg = load_config(cfg_path)
        if output_dir is not None:
            cfg.regions.output_dir = output_dir
        run_regions(cfg_path, cfg=cfg, datasets=dataset or None)
    except Exception as exc:
        typer.echo(f"Error: {exc}", err=True)
        typer.echo("Please check that the config, file lists and input paths are correct.", err=True)
        raise typer.Exit(1)
    typer.echo(cfg.regions.output_dir)


if __name__ == "__main__":
    app()
