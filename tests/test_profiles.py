import math

import numpy as np
import pandas as pd
import pytest
from typer.testing import CliRunner

from hiteff.cli.viz import app as viz_app
from hiteff.vis.profiles import (
    PitchStats,
    binned_mean,
    plot_efficiency_profiles,
    plot_mean_efficiency,
    profile,
    zone_rows,
)


def test_binned_mean():
    x = [0.35, 0.36, 0.45, 0.9, 0.29]
    y = [1.0, 0.9, 0.8, 0.1, 0.1]
    bm = binned_mean(x, y, 2, (0.3, 0.5))
    assert len(bm) == 2
    assert np.allclose(bm.centers, [0.35, 0.45])
    assert np.allclose(bm.mean, [0.95, 0.8])
    assert bm.err[0] == pytest.approx(0.05 / math.sqrt(2))
    assert bm.err[1] == pytest.approx(0.0, abs=1e-6)
    assert bm.counts.tolist() == [2, 1]
    assert bm.half_width == pytest.approx(0.05)


def test_empty_bins_are_dropped():
    bm = profile([0.31, 0.79], [1.0, 0.5], 200, (0.28, 0.8))
    assert len(bm) == 2


def test_bad_binning():
    with pytest.raises(ValueError):
        binned_mean([1.0], [1.0], 0, (0.0, 1.0))


def test_pitch_stats():
    df = pd.DataFrame({"AvgPitch": [0.3, 0.5], "Efficiency": [1.0, 0.9]})
    s = PitchStats.from_frame(df)
    assert s.n == 2
    assert s.min_pitch == pytest.approx(0.3)
    assert s.mean_eff == pytest.approx(0.95)
    assert s.lines("MC")[1] == "Total Tracks: 2"
    assert PitchStats.from_frame(df.iloc[0:0]).n == 0


def test_zone_rows():
    df = pd.DataFrame({"Cathode_Hits": [0, 3, 1]})
    assert len(zone_rows(df, "Cathode_Hits")) == 2


def test_plots_written(tmp_path):
    rng = np.random.default_rng(1)
    def frame(n):
        return pd.DataFrame({
            "Plane": rng.integers(0, 3, n),
            "AvgPitch": rng.uniform(0.3, 0.8, n),
            "Efficiency": rng.uniform(0.95, 1.0, n),
        })
    series = {"Data": frame(50), "MC": frame(50)}
    p1 = plot_efficiency_profiles(series, tmp_path / "plots" / "hit_efficiency_vs_pitch.png")
    p2 = plot_mean_efficiency(series, tmp_path / "plots" / "mean_hit_efficiency.png")
    assert p1.exists() and p1.stat().st_size > 0
    assert p2.exists() and p2.stat().st_size > 0


def test_viz_regions_rejects_unknown_box():
    result = CliRunner().invoke(viz_app, ["regions", "--region", "TPC9_00"])
    assert result.exit_code == 1
