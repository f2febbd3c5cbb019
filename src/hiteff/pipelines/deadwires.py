from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

import typer

from hiteff.config.load import load_config
from hiteff.config.schemas import Config
from hiteff.filters.selection import passes_length
from hiteff.io.adapters import OCCUPANCY_KEYS, PLANES, TrackCaloSkimAdapter, make_adapter, read_filelist
from hiteff.io.dead_channels import write_dead_channels
from hiteff.io.occupancy_store import write_occupancy
from hiteff.physics.occupancy import WireOccupancy, find_dead_channels, wire_range
from hiteff.pipelines.console import Console


def _selected_tracks(adapter: TrackCaloSkimAdapter, files: List[str], min_length_cm: float):
    for path in files:
        for trk in adapter.iter_tracks(path, OCCUPANCY_KEYS):
            if passes_length(trk, min_length_cm, "endpoints"):
                yield trk


def build_occupancy(
    files: List[str],
    adapter: TrackCaloSkimAdapter,
    *,
    min_length_cm: float = 50.0,
    say: Optional[Console] = None,
) -> tuple[Dict[int, WireOccupancy], int]:
    """
    Two passes over the files: the first fixes each plane's global wire range
    and counts selected tracks, the second fills the histograms.

    Returns
    -------
    (plane -> WireOccupancy, number of selected tracks)
    Planes that never see a hit are absent from the mapping.
    """
    say = say or Console("deadwires")

    lo: Dict[int, int] = {}
    hi: Dict[int, int] = {}
    total = 0
    for trk in _selected_tracks(adapter, files, min_length_cm):
        total += 1
        for p in PLANES:
            r = wire_range([trk.hits(p)])
            if r is None:
                continue
            lo[p] = min(lo.get(p, r[0]), r[0])
            hi[p] = max(hi.get(p, r[1]), r[1])

    occupancy = {p: WireOccupancy(p, lo[p], hi[p]) for p in PLANES if p in lo}
    for p, occ in occupancy.items():
        say(f"plane {p}: wires [{occ.wire_min}, {occ.wire_max}]", level=2)

    step = total // 10
    done = 0
    for trk in _selected_tracks(adapter, files, min_length_cm):
        for p, occ in occupancy.items():
            occ.fill(trk.hits(p))
        done += 1
        if step > 0 and done % step == 0:
            say.raw(f"Processed {done * 100 // total}% of entries ({done}/{total})")
    say.raw(f"Processed 100% of entries ({done}/{total})")
    return occupancy, total


def run_deadwires(
    cfg_path: Optional[str] = None,
    *,
    cfg: Optional[Config] = None,
    filelist: Optional[str] = None,
    adapter: Optional[TrackCaloSkimAdapter] = None,
) -> Path:
    """
    Find dead channels from hit occupancy and write them as a Wire,Plane,TPC CSV.

    Returns
    -------
    Path to the written dead-channel CSV.
    """
    if cfg is None:
        cfg = load_config(cfg_path)
    dw = cfg.deadwires
    say = Console("deadwires", cfg.run.diagnostics_level)

    files = read_filelist(filelist or dw.filelist)
    say(f"Loaded {len(files)} files from {filelist or dw.filelist}")
    adapter = adapter or make_adapter(cfg.io)

    occupancy, n_tracks = build_occupancy(files, adapter, min_length_cm=dw.min_length_cm, say=say)
    dead = find_dead_channels(occupancy)

    out_csv = write_dead_channels(dw.output_csv, dead)
    say(f"Wrote {len(dead)} dead channels to {out_csv}")
    if dw.histograms_h5:
        out_h5 = write_occupancy(dw.histograms_h5, occupancy, n_tracks=n_tracks)
        say(f"Wrote occupancy histograms to {out_h5}")
    return out_csv


app = typer.Typer(help="Dead-channel finder from wire occupancy (hiteff.pipelines.deadwires)")


@app.command()
def main(
    cfg_path: Optional[str] = typer.Argument(None, help="Path to TOML config file"),
    filelist: Optional[str] = typer.Option(None, "--filelist", "-f", help="Override [deadwires].filelist"),
    out: Optional[str] = typer.Option(None, "--out", "-o", help="Override [deadwires].output_csv"),
):
    """Histogram hit wires per TPC/plane and write empty wires to the dead-channel CSV."""
    try:
        cfg = load_config(cfg_path)
        if out is not None:
            cfg.deadwires.output_csv = out
        out_csv = run_deadwires(cfg_path, cfg=cfg, filelist=filelist)
    except Exception as exc:
        typer.echo(f"Error: {exc}", err=True)
        typer.echo("Please check that the file list and input paths are correct.", err=True)
        raise typer.Exit(1)
    typer.echo(str(out_csv))


if __name__ == "__main__":
    app()
