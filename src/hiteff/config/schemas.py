from __future__ import annotations
from pydantic import BaseModel, Field, field_validator
from typing import Literal, Optional, Dict, List, Union, Tuple


class RunCfg(BaseModel):
    """
    Global run controls.
    """

    # Performance / execution
    workers: Union[int, Literal["auto"]] = "auto"  # "auto" = one worker per dataset
    progress: bool = True

    # Diagnostics
    diagnostics_level: int = 1  # 0=off, 1=minimal, 2=verbose

    @field_validator("diagnostics_level")
    def _diag_range(cls, v: int) -> int:
        if v not in (0, 1, 2):
            raise ValueError("diagnostics_level must be 0, 1, or 2")
        return v


class IOCfg(BaseModel):
    """
    Input tree and shared input files.

    TOML:

    [io]
    tree          = "caloskim/TrackCaloSkim"
    dead_channels = "dead_channels.csv"
    step_size     = "100 MB"

    [io.branches]
    length = "trk.length"     # override any canonical branch name
    """

    tree: str = "caloskim/TrackCaloSkim"
    dead_channels: str = "dead_channels.csv"
    step_size: str = "100 MB"

    # canonical key -> branch name overrides, see io.adapters.DEFAULT_BRANCHES
    branches: Dict[str, str] = Field(default_factory=dict)


class DatasetCfg(BaseModel):
    """
    One labelled dataset, processed by its own worker.

    TOML:

    [[datasets]]
    label      = "Data"
    filelist   = "filelist_xrootd_data.txt"
    output_csv = "hiteff_data.csv"
    """

    label: str
    filelist: str
    output_csv: str


def _default_datasets() -> List[DatasetCfg]:
    return [
        DatasetCfg(label="Data", filelist="filelist_xrootd_data.txt", output_csv="hiteff_data.csv"),
        DatasetCfg(label="MC", filelist="filelist_xrootd_mc.txt", output_csv="hiteff_mc.csv"),
    ]


class SelectionCfg(BaseModel):
    """
    Track-level selection.

    length_source = "branch"    -> use trk.length
    length_source = "endpoints" -> |trk.end - trk.start|
    """

    min_length_cm: float = 50.0
    length_source: Literal["branch", "endpoints"] = "branch"


class EfficiencyCfg(BaseModel):
    """
    Quality gates of the hit-efficiency estimate.

    tpc_mode:
      "first"   -> one representative TPC (first valid hit) over the global wire range
      "per_tpc" -> wire range and live-wire count taken separately for every TPC
    pitch_rule:
      "positive"     -> pitch > 0
      "not_sentinel" -> pitch != -1
    """

    min_unique_wires: int = 25
    max_wire_gap: int = 11
    min_live_wires: int = 25
    tpc_mode: Literal["first", "per_tpc"] = "first"
    pitch_rule: Literal["positive", "not_sentinel"] = "positive"
    require_dead_channels: bool = True

    @field_validator("min_unique_wires", "min_live_wires", "max_wire_gap")
    def _non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("efficiency gates must be >= 0")
        return v


class RegionsCfg(BaseModel):
    output_dir: str = "split_regions"
    min_region_hits: int = 10


class DeadWiresCfg(BaseModel):
    """
    Dead-wire finder outputs. The finder always cuts on the endpoint length.
    """

    filelist: str = "filelist_xrootd_small.txt"
    output_csv: str = "dead_channels.csv"
    histograms_h5: str = "hit_wires.h5"
    min_length_cm: float = 50.0


class PlotCfg(BaseModel):
    output_dir: str = "plots_hiteff"
    regions_output_dir: str = "plots_split_regions"

    # profile (efficiency vs pitch per plane)
    pitch_range: Tuple[float, float] = (0.28, 0.8)
    eff_range: Tuple[float, float] = (0.95, 1.002)
    profile_bins: int = 200

    # region profiles
    region_pitch_range: Tuple[float, float] = (0.295, 0.8)
    region_profile_bins: int = 100

    # binned mean efficiency
    binned_bins: int = 30
    binned_range: Tuple[float, float] = (0.3, 2.5)
    binned_eff_range: Tuple[float, float] = (0.96, 1.0)

    dpi: int = 150


class Config(BaseModel):
    """
    Top-level TOML configuration.
    """

    run: RunCfg = Field(default_factory=RunCfg)
    io: IOCfg = Field(default_factory=IOCfg)
    datasets: List[DatasetCfg] = Field(default_factory=_default_datasets)
    selection: SelectionCfg = Field(default_factory=SelectionCfg)
    efficiency: EfficiencyCfg = Field(default_factory=EfficiencyCfg)
    regions: RegionsCfg = Field(default_factory=RegionsCfg)
    deadwires: DeadWiresCfg = Field(default_factory=DeadWiresCfg)
    plots: PlotCfg = Field(default_factory=PlotCfg)

    def dataset(self, label: str) -> Optional[DatasetCfg]:
        for ds in self.datasets:
            if ds.label == label:
                return ds
        return None
