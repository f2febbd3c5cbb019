from __future__ import annotations

import typer
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from hiteff.config.load import load_config
from hiteff.geometry.regions import BOXES, XBANDS, box_by_name
from hiteff.io.csv_store import ZONE_COLUMNS, read_efficiency_csv, read_region_csv
from hiteff.pipelines.regions import region_csv_path
from hiteff.vis.occupancy import save_occupancy_png
from hiteff.vis.profiles import plot_efficiency_profiles, plot_mean_efficiency, zone_rows

app = typer.Typer(help="Hit-efficiency plotting tools")


def _labels_and_csvs(cfg, labels: Optional[List[str]]) -> Dict[str, str]:
    out = {ds.label: ds.output_csv for ds in cfg.datasets}
    if labels:
        out = {k: v for k, v in out.items() if k in labels}
    return out


@app.command("efficiency")
def efficiency(
    cfg_path: Optional[str] = typer.Argument(None, help="Path to TOML config file"),
    dataset: Optional[List[str]] = typer.Option(None, "--dataset", "-d", help="Dataset label to plot (repeatable)"),
    out_dir: Optional[str] = typer.Option(None, "--out-dir", "-o", help="Override [plots].output_dir"),
):
    """Efficiency-vs-pitch profiles per plane and the binned mean efficiency, from the efficiency CSVs."""
    cfg = load_config(cfg_path)
    pc = cfg.plots
    out = Path(out_dir or pc.output_dir)

    series: Dict[str, pd.DataFrame] = {}
    for label, csv in _labels_and_csvs(cfg, dataset).items():
        try:
            series[label] = read_efficiency_csv(csv)
        except OSError as exc:
            typer.echo(f"Error: Could not open {csv}: {exc}", err=True)
            raise typer.Exit(1)

    png1 = plot_efficiency_profiles(
        series, out / "hit_efficiency_vs_pitch.png",
        bins=pc.profile_bins, pitch_range=pc.pitch_range, eff_range=pc.eff_range, dpi=pc.dpi,
    )
    png2 = plot_mean_efficiency(
        series, out / "mean_hit_efficiency.png",
        nbins=pc.binned_bins, pitch_range=pc.binned_range, eff_range=pc.binned_eff_range, dpi=pc.dpi,
    )
    typer.echo(f"Wrote {png1}")
    typer.echo(f"Wrote {png2}")


@app.command("regions")
def regions(
    cfg_path: Optional[str] = typer.Argument(None, help="Path to TOML config file"),
    dataset: Optional[List[str]] = typer.Option(None, "--dataset", "-d", help="Dataset label to plot (repeatable)"),
    out_dir: Optional[str] = typer.Option(None, "--out-dir", "-o", help="Override [plots].regions_output_dir"),
    region: Optional[List[str]] = typer.Option(
        None, "--region", "-r", help="Only plot this detector box, e.g. TPC0_01 (repeatable)"
    ),
):
    """Per-region and per-zone efficiency profiles from the region-split CSVs."""
    cfg = load_config(cfg_path)
    pc = cfg.plots
    out = Path(out_dir or pc.regions_output_dir)
    labels = list(_labels_and_csvs(cfg, dataset))
    try:
        boxes = [box_by_name(name) for name in region] if region else list(BOXES)
    except KeyError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1)
    kw = dict(eff_col="HitEfficiency", bins=pc.region_profile_bins,
              pitch_range=pc.region_pitch_range, eff_range=pc.eff_range, dpi=pc.dpi, show_counts=True)

    all_rows: Dict[str, List[pd.DataFrame]] = {label: [] for label in labels}
    for box in boxes:
        series: Dict[str, pd.DataFrame] = {}
        for label in labels:
            csv = region_csv_path(cfg.regions.output_dir, box.name, label)
            if not csv.exists():
                typer.echo(f"Warning: Cannot open {csv}, skipping...")
                continue
            df = read_region_csv(csv)
            series[label] = df
            all_rows[label].append(df)
        if not any(len(df) for df in series.values()):
            typer.echo(f"No valid data found for region {box.name}, skipping...")
            continue
        png = plot_efficiency_profiles(
            series, out / f"hit_efficiency_{box.name}.png",
            title=f"{box.display_name} - {box.coord_range}", **kw,
        )
        typer.echo(f"Saved plot: {png}")

    for band in XBANDS:
        col = ZONE_COLUMNS[band.name]
        series = {
            label: zone_rows(pd.concat(frames, ignore_index=True), col)
            for label, frames in all_rows.items() if frames
        }
        if not any(len(df) for df in series.values()):
            typer.echo(f"No valid data found for special region {band.name}, skipping...")
            continue
        png = plot_efficiency_profiles(
            series, out / f"hit_efficiency_{band.name}.png", title=band.display_name, **kw,
        )
        typer.echo(f"Saved plot: {png}")

    typer.echo(f"All region plots saved in {out}/ directory")


@app.command("occupancy")
def occupancy(
    h5_path: str = typer.Argument(..., help="HDF5 file written by the dead-wire finder"),
    dataset: str = typer.Option("/occupancy/combined/plane0", "--dataset", "-d", help="Histogram dataset path"),
    out: Optional[str] = typer.Option(None, "--out", "-o", help="Output PNG path"),
):
    """Render one wire-occupancy histogram to a PNG."""
    out_png = save_occupancy_png(h5_path, out_png=out, dataset=dataset)
    typer.echo(f"Wrote {out_png}")


if __name__ == "__main__":
    app()
