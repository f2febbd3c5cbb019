from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import typer
from tqdm import tqdm

from hiteff.config.load import load_config
from hiteff.config.schemas import Config, DatasetCfg
from hiteff.filters.selection import SelectionDiagnostics, passes_length, track_length
from hiteff.io.adapters import EFFICIENCY_KEYS, PLANES, TrackCaloSkimAdapter, make_adapter, read_filelist
from hiteff.io.csv_store import EfficiencyRow, efficiency_writer
from hiteff.io.dead_channels import load_dead_channels
from hiteff.physics.efficiency import EfficiencyEstimator
from hiteff.pipelines.console import Console


@dataclass
class DatasetSummary:
    """
    Per-dataset statistics, printed at the end of each worker.

    `events` counts every (track, plane) pair with a computed efficiency;
    pitch and efficiency extrema only include rows with a positive average
    pitch, which are exactly the rows written to CSV.
    """
    label: str
    output_csv: Optional[Path] = None
    files: int = 0
    events: int = 0
    rows_written: int = 0
    min_pitch: Optional[float] = None
    max_pitch: Optional[float] = None
    min_wires: Optional[int] = None
    max_wires: Optional[int] = None
    min_hits: Optional[int] = None
    max_hits: Optional[int] = None
    efficiency_sum: float = 0.0
    efficiency_count: int = 0
    selection: SelectionDiagnostics = field(default_factory=SelectionDiagnostics)

    @property
    def mean_efficiency(self) -> float:
        return self.efficiency_sum / self.efficiency_count if self.efficiency_count else 0.0

    def update(self, *, avg_pitch: float, efficiency: float, n_unique_wires: int, n_valid_hits: int) -> None:
        self.events += 1
        if avg_pitch > 0:
            self.min_pitch = avg_pitch if self.min_pitch is None else min(self.min_pitch, avg_pitch)
            self.max_pitch = avg_pitch if self.max_pitch is None else max(self.max_pitch, avg_pitch)
            self.efficiency_sum += efficiency
            self.efficiency_count += 1
        self.min_wires = n_unique_wires if self.min_wires is None else min(self.min_wires, n_unique_wires)
        self.max_wires = n_unique_wires if self.max_wires is None else max(self.max_wires, n_unique_wires)
        self.min_hits = n_valid_hits if self.min_hits is None else min(self.min_hits, n_valid_hits)
        self.max_hits = n_valid_hits if self.max_hits is None else max(self.max_hits, n_valid_hits)

    def lines(self) -> List[str]:
        return [
            f"=== Processing Statistics for {self.label} ===",
            f"Total samples processed: {self.files}",
            f"Total events recorded: {self.events}",
            f"Average pitch: min = {self.min_pitch or 0:g}, max = {self.max_pitch or 0:g}",
            f"Wires per track: min = {self.min_wires or 0}, max = {self.max_wires or 0}",
            f"Valid hits per track: min = {self.min_hits or 0}, max = {self.max_hits or 0}",
            f"Average efficiency: {self.mean_efficiency:g}",
        ]


def process_dataset(
    ds: DatasetCfg,
    cfg: Config,
    estimator: EfficiencyEstimator,
    adapter: TrackCaloSkimAdapter,
) -> DatasetSummary:
    """
    Run the efficiency analysis over every file of one dataset.

    An unreadable file list is reported and yields an empty summary with no
    CSV written. Files are processed strictly in list order; a file that
    cannot be opened propagates its exception.
    """
    say = Console(ds.label, cfg.run.diagnostics_level)
    summary = DatasetSummary(label=ds.label)
    say.raw(f"\n=== Processing {ds.label} dataset ===")

    try:
        files = read_filelist(ds.filelist)
    except OSError:
        say.raw(f"Error: Could not open {ds.filelist}", level=0)
        return summary
    say(f"Loaded {len(files)} files from {ds.filelist}")

    sel = summary.selection
    min_len = cfg.selection.min_length_cm
    length_source = cfg.selection.length_source

    with efficiency_writer(ds.output_csv) as writer:
        summary.output_csv = writer.path
        it = tqdm(files, desc=ds.label, unit="file") if cfg.run.progress else files
        for path in it:
            for trk in adapter.iter_tracks(path, EFFICIENCY_KEYS):
                sel.tracks_in += 1
                if not passes_length(trk, min_len, length_source):
                    sel.inc("short_track")
                    continue
                sel.tracks_selected += 1
                length = track_length(trk, length_source)

                for p in PLANES:
                    sel.planes_seen += 1
                    res = estimator.estimate_batch(trk.hits(p), p)
                    if res is None:
                        sel.inc("rejected_by_gates")
                        continue
                    sel.planes_computed += 1
                    summary.update(
                        avg_pitch=res.average_pitch,
                        efficiency=res.efficiency,
                        n_unique_wires=res.n_unique_wires,
                        n_valid_hits=res.n_valid_hits,
                    )
                    if res.average_pitch > 0:
                        writer.append(EfficiencyRow(
                            track_id=trk.track_id,
                            plane=p,
                            tpc=res.tpc,
                            track_length=length,
                            valid_hits=res.n_valid_hits,
                            non_dead_wires=res.n_non_dead_wires,
                            efficiency=res.efficiency,
                            avg_pitch=res.average_pitch,
                        ))

            summary.files += 1
            if summary.files % 10 == 0:
                say(f"Processed {summary.files} samples")
        summary.rows_written = writer.rows_written

    say.raw("\n" + "\n".join(summary.lines()))
    if cfg.run.diagnostics_level >= 2:
        say(f"selection: in={sel.tracks_in} selected={sel.tracks_selected} "
            f"planes={sel.planes_seen} computed={sel.planes_computed} reasons={sel.reasons}", level=2)
    return summary


def resolve_workers(workers, n_datasets: int) -> int:
    if workers == "auto":
        return max(1, n_datasets)
    if isinstance(workers, int):
        return max(1, workers)
    raise ValueError("workers must be int or 'auto'")


def select_datasets(cfg: Config, labels: Optional[Sequence[str]] = None) -> List[DatasetCfg]:
    """Configured datasets, restricted to `labels` when given. Any unknown label is a KeyError."""
    if not labels:
        return list(cfg.datasets)
    unknown = [d for d in labels if cfg.dataset(d) is None]
    if unknown:
        raise KeyError(f"Unknown dataset label(s): {unknown}")
    wanted = set(labels)
    return [ds for ds in cfg.datasets if ds.label in wanted]


def run_efficiency(
    cfg_path: Optional[str] = None,
    *,
    cfg: Optional[Config] = None,
    datasets: Optional[Sequence[str]] = None,
    dead_channels: Optional[str] = None,
    adapter: Optional[TrackCaloSkimAdapter] = None,
) -> Dict[str, DatasetSummary]:
    """
    Orchestrate the efficiency analysis from a TOML config file.

    One worker per dataset; the dead-channel map is loaded once and shared
    read-only. `datasets` restricts the run to the given labels and
    `dead_channels` overrides [io].dead_channels.

    Returns
    -------
    label -> DatasetSummary (an empty dict when efficiency is skipped)
    """
    if cfg is None:
        cfg = load_config(cfg_path)
    if dead_channels is not None:
        cfg.io.dead_channels = dead_channels

    say = Console("run", cfg.run.diagnostics_level)
    say(f"config = {cfg_path or '<defaults>'}")

    dead_map = load_dead_channels(cfg.io.dead_channels, echo=say.raw)
    if not dead_map.available and cfg.efficiency.require_dead_channels:
        say("No dead channel map available; skipping efficiency computation", level=0)
        return {}

    selected = select_datasets(cfg, datasets)

    estimator = EfficiencyEstimator.from_cfg(cfg.efficiency, dead_map)
    adapter = adapter or make_adapter(cfg.io)
    workers = resolve_workers(cfg.run.workers, len(selected))

    summaries: Dict[str, DatasetSummary] = {}
    with ThreadPoolExecutor(max_workers=workers) as ex:
        futs = {ex.submit(process_dataset, ds, cfg, estimator, adapter): ds.label for ds in selected}
        for fut in as_completed(futs):
            summaries[futs[fut]] = fut.result()

    say.raw("\n=== Analysis Complete ===")
    for label in (ds.label for ds in selected):
        s = summaries[label]
        if s.output_csv is not None:
            say(f"{label}: wrote {s.rows_written} rows to {s.output_csv}")
    return summaries


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

app = typer.Typer(help="Hit-finding efficiency analysis (hiteff.pipelines.core)")


@app.command()
def main(
    cfg_path: Optional[str] = typer.Argument(
        None,
        help="Path to TOML config file (defaults apply when omitted)",
    ),
    dataset: Optional[List[str]] = typer.Option(
        None,
        "--dataset",
        "-d",
        help="Only process this dataset label (repeatable)",
    ),
    dead_channels: Optional[str] = typer.Option(
        None,
        "--dead-channels",
        help="Override [io].dead_channels",
    ),
):
    """
    Compute per-track, per-plane hit efficiency for every configured dataset.
    """
    try:
        summaries = run_efficiency(cfg_path, datasets=dataset or None, dead_channels=dead_channels)
    except Exception as exc:
        typer.echo(f"Error: {exc}", err=True)
        typer.echo("Please check that the config, file lists and input paths are correct.", err=True)
        raise typer.Exit(1)
    for s in summaries.values():
        if s.output_csv is not None:
            typer.echo(str(s.output_csv))


if __name__ == "__main__":
    app()
