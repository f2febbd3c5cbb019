import pytest
from pydantic import ValidationError

from hiteff.config.load import load_config
from hiteff.config.schemas import Config, RunCfg


def test_defaults():
    cfg = load_config()
    assert cfg.io.tree == "caloskim/TrackCaloSkim"
    assert [d.label for d in cfg.datasets] == ["Data", "MC"]
    assert cfg.efficiency.min_unique_wires == 25
    assert cfg.efficiency.max_wire_gap == 11
    assert cfg.efficiency.tpc_mode == "first"
    assert cfg.selection.min_length_cm == 50.0
    assert cfg.dataset("MC").output_csv == "hiteff_mc.csv"
    assert cfg.dataset("Nope") is None


def test_toml_overrides(tmp_path):
    p = tmp_path / "cfg.toml"
    p.write_text(
        """
[run]
diagnostics_level = 0
workers = 2

[[datasets]]
label = "MC"
filelist = "mc.txt"
output_csv = "out/mc.csv"

[efficiency]
tpc_mode = "per_tpc"

[io.branches]
length = "trk.len"

[plots]
pitch_range = [0.3, 0.7]
"""
    )
    cfg = load_config(p)
    assert cfg.run.workers == 2
    assert [d.label for d in cfg.datasets] == ["MC"]
    assert cfg.efficiency.tpc_mode == "per_tpc"
    assert cfg.io.branches == {"length": "trk.len"}
    assert cfg.plots.pitch_range == (0.3, 0.7)


def test_validation():
    with pytest.raises(ValidationError):
        RunCfg(diagnostics_level=5)
    with pytest.raises(ValidationError):
        Config(efficiency={"tpc_mode": "all"})
    with pytest.raises(ValidationError):
        Config(efficiency={"min_live_wires": -1})
