"""
Efficiency-vs-pitch profiles and binned means, and the PNG plots built on them.

Inputs are the DataFrames returned by hiteff.io.csv_store.read_efficiency_csv /
read_region_csv; `eff_col` selects "Efficiency" or "HitEfficiency".
"""
from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping, Sequence, Tuple

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt

PLANES = (0, 1, 2)

# (dataset index, plane) -> color; first dataset reads as "data", second as "mc"
_COLORS = [
    ("tab:blue", "tab:red", "tab:green"),
    ("tab:cyan", "tab:purple", "tab:olive"),
    ("tab:gray", "tab:orange", "tab:brown"),
]
_BINNED_COLORS = ("black", "tab:blue", "tab:red", "tab:green")


@dataclass(frozen=True)
class BinnedMean:
    """Per-bin mean of y with its standard error; only non-empty bins are kept."""
    centers: np.ndarray
    mean: np.ndarray
    err: np.ndarray
    counts: np.ndarray
    half_width: float

    def __len__(self) -> int:
        return len(self.centers)


def binned_mean(
    x: Sequence[float] | np.ndarray,
    y: Sequence[float] | np.ndarray,
    nbins: int,
    range: Tuple[float, float],
) -> BinnedMean:
    """
    Bin y by x over [lo, hi) in `nbins` equal bins; for each non-empty bin
    return the mean of y and the error on the mean, std(y) / sqrt(n) with
    the population std.
    """
    lo, hi = float(range[0]), float(range[1])
    if nbins <= 0 or hi <= lo:
        raise ValueError(f"invalid binning: nbins={nbins}, range=({lo}, {hi})")
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    if x.shape != y.shape:
        raise ValueError("x and y must have the same length")

    width = (hi - lo) / nbins
    ok = np.isfinite(x) & np.isfinite(y) & (x >= lo) & (x < hi)
    idx = np.minimum(np.floor((x[ok] - lo) / width).astype(np.int64), nbins - 1)
    yv = y[ok]

    counts = np.bincount(idx, minlength=nbins)
    sums = np.bincount(idx, weights=yv, minlength=nbins)
    sq = np.bincount(idx, weights=yv * yv, minlength=nbins)

    nz = counts > 0
    n = counts[nz].astype(np.float64)
    mean = sums[nz] / n
    var = np.clip(sq[nz] / n - mean * mean, 0.0, None)
    err = np.sqrt(var) / np.sqrt(n)
    centers = lo + (np.flatnonzero(nz) + 0.5) * width
    return BinnedMean(centers=centers, mean=mean, err=err, counts=counts[nz], half_width=width / 2)


def profile(x, y, bins: int, range: Tuple[float, float]) -> BinnedMean:
    """Mean efficiency per pitch bin (a fine-grained binned mean)."""
    return binned_mean(x, y, bins, range)


@dataclass(frozen=True)
class PitchStats:
    n: int
    min_pitch: float
    max_pitch: float
    mean_pitch: float
    mean_eff: float

    @classmethod
    def from_frame(cls, df: pd.DataFrame, eff_col: str = "Efficiency") -> "PitchStats":
        if df is None or len(df) == 0:
            return cls(0, 0.0, 0.0, 0.0, 0.0)
        p = df["AvgPitch"].to_numpy(dtype=np.float64)
        e = df[eff_col].to_numpy(dtype=np.float64)
        return cls(len(df), float(p.min()), float(p.max()), float(p.mean()), float(e.mean()))

    def lines(self, label: str) -> List[str]:
        return [
            f"{label} Statistics:",
            f"Total Tracks: {self.n}",
            f"Pitches - Min: {self.min_pitch:.6f}, Max: {self.max_pitch:.5f}",
            f"Mean: {self.mean_pitch:.6f}",
            f"Efficiency - Mean: {self.mean_eff:.5f}",
        ]


# ---------------------------------------------------------------------------
# Plots
# ---------------------------------------------------------------------------

def plot_efficiency_profiles(
    series: Mapping[str, pd.DataFrame],
    out_png: str | Path,
    *,
    title: str = "SBND TPC Hit Efficiency",
    eff_col: str = "Efficiency",
    bins: int = 200,
    pitch_range: Tuple[float, float] = (0.28, 0.8),
    eff_range: Tuple[float, float] = (0.95, 1.002),
    dpi: int = 150,
    show_counts: bool = False,
) -> Path:
    """
    One profile per (dataset, plane) on shared axes, with a statistics box per dataset.
    """
    out_png = Path(out_png)
    out_png.parent.mkdir(parents=True, exist_ok=True)

    fig, ax = plt.subplots(figsize=(10, 7))
    text: List[str] = []
    for k, (label, df) in enumerate(series.items()):
        colors = _COLORS[k % len(_COLORS)]
        for p in PLANES:
            sub = df[df["Plane"] == p]
            if len(sub) == 0:
                continue
            prof = profile(sub["AvgPitch"], sub[eff_col], bins, pitch_range)
            name = f"Plane {p} ({label})"
            if show_counts:
                name = f"Plane {p} {label} ({len(sub)} tracks)"
            ax.errorbar(prof.centers, prof.mean, yerr=prof.err, fmt="o", ms=3,
                        color=colors[p], label=name)
        text += PitchStats.from_frame(df, eff_col).lines(label) + [""]

    ax.set_xlim(*pitch_range)
    ax.set_ylim(*eff_range)
    ax.set_xlabel("Average Pitch [cm]")
    ax.set_ylabel("Efficiency")
    ax.set_title(title)
    ax.grid(True, alpha=0.3)
    if ax.get_legend_handles_labels()[0]:
        ax.legend(loc="lower right", frameon=False)
    ax.text(0.55, 0.95, "\n".join(text).strip(), transform=ax.transAxes,
            va="top", fontsize=8, family="monospace")
    fig.tight_layout()
    fig.savefig(out_png, dpi=dpi)
    plt.close(fig)
    return out_png


def plot_mean_efficiency(
    series: Mapping[str, pd.DataFrame],
    out_png: str | Path,
    *,
    eff_col: str = "Efficiency",
    nbins: int = 30,
    pitch_range: Tuple[float, float] = (0.3, 2.5),
    eff_range: Tuple[float, float] = (0.96, 1.0),
    dpi: int = 150,
) -> Path:
    """Binned mean efficiency vs pitch, all planes combined, one series per dataset."""
    out_png = Path(out_png)
    out_png.parent.mkdir(parents=True, exist_ok=True)

    fig, ax = plt.subplots(figsize=(10, 7))
    for k, (label, df) in enumerate(series.items()):
        bm = binned_mean(df["AvgPitch"], df[eff_col], nbins, pitch_range)
        if len(bm) == 0:
            continue
        ax.errorbar(bm.centers, bm.mean, xerr=bm.half_width, yerr=bm.err, fmt="o", ms=4,
                    color=_BINNED_COLORS[k % len(_BINNED_COLORS)], label=label)
    ax.set_xlim(*pitch_range)
    ax.set_ylim(*eff_range)
    ax.set_xlabel("Average Pitch [cm]")
    ax.set_ylabel("Efficiency")
    ax.set_title("Mean Hit Efficiency vs Pitch (All planes)")
    ax.grid(True, alpha=0.3)
    if ax.get_legend_handles_labels()[0]:
        ax.legend(loc="lower left", frameon=False)
    fig.tight_layout()
    fig.savefig(out_png, dpi=dpi)
    plt.close(fig)
    return out_png


def zone_rows(df: pd.DataFrame, zone_column: str) -> pd.DataFrame:
    """Rows of a region CSV with at least one hit in the given zone column."""
    return df[df[zone_column] > 0]
