from __future__ import annotations

import typer
from pathlib import Path
from typing import Optional

import pandas as pd

from hiteff.config.load import load_config
from hiteff.io.adapters import make_adapter
from hiteff.io.dead_channels import load_dead_channels
from hiteff.pipelines.report import preview_frame, write_report

app = typer.Typer(help="Inspect TrackCaloSkim files track by track")


@app.command("inspect")
def inspect_file(
    root_path: str = typer.Argument(..., help="TrackCaloSkim ROOT file (path or xrootd URI)"),
    out: str = typer.Option("event_info.txt", "--out", "-o", help="Report file"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="TOML config ([io] section is used)"),
    dead_channels: Optional[str] = typer.Option(None, "--dead-channels", help="Override [io].dead_channels"),
):
    """Write a detailed per-track report (hits, wires, pitch, efficiency) to a text file."""
    cfg = load_config(config)
    out_path = Path(out)
    try:
        fh = open(out_path, "w", encoding="utf-8")
    except OSError:
        typer.echo(f"Error: Cannot open {out_path} for writing", err=True)
        raise typer.Exit(1)

    with fh:
        dead_map = load_dead_channels(dead_channels or cfg.io.dead_channels, echo=None)
        try:
            n = write_report(root_path, fh, make_adapter(cfg.io), dead_map)
        except Exception as exc:
            typer.echo(f"Error processing file: {exc}", err=True)
            typer.echo("Please check that the file path is correct and accessible.", err=True)
            raise typer.Exit(1)
    typer.echo(f"Wrote {n} tracks to {out_path}")


@app.command("preview")
def preview(
    root_path: str = typer.Argument(..., help="TrackCaloSkim ROOT file"),
    n: int = typer.Option(11, "--n", "-n", help="Number of tracks to show"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="TOML config ([io] section is used)"),
):
    """Print the first tracks with the derived endpoint length and hits per plane."""
    cfg = load_config(config)
    try:
        df = preview_frame(root_path, make_adapter(cfg.io), n=n)
    except Exception as exc:
        typer.echo(f"Error processing file: {exc}", err=True)
        typer.echo("Please check that the file path is correct and accessible.", err=True)
        raise typer.Exit(1)
    with pd.option_context("display.max_columns", None, "display.width", 120):
        typer.echo(df.to_string(index=False))


if __name__ == "__main__":
    app()
