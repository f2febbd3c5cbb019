from __future__ import annotations
from dataclasses import dataclass
from typing import Literal, Optional, Tuple
import math

Zone = Literal["anode_tpc0", "cathode", "anode_tpc1", "other"]

ZONES: Tuple[Zone, ...] = ("anode_tpc0", "cathode", "anode_tpc1", "other")


@dataclass(frozen=True)
class Box:
    """
    Axis-aligned (y, z) box inside one TPC. Lower edges inclusive, upper edges exclusive.
    """
    name: str
    tpc_id: int
    y_min: float; y_max: float
    z_min: float; z_max: float

    def contains(self, tpc_id: int, y: float, z: float) -> bool:
        # NaN fails every comparison, so NaN coordinates never land in a box
        return (
            self.tpc_id == tpc_id
            and self.y_min <= y < self.y_max
            and self.z_min <= z < self.z_max
        )

    @property
    def coord_range(self) -> str:
        return f"y:[{self.y_min:.1f}, {self.y_max:.1f}], z:[{max(self.z_min, 0.0):.1f}, {self.z_max:.1f}]"

    @property
    def display_name(self) -> str:
        yz = self.name.split("_", 1)[1]
        return f"TPC {self.tpc_id} Region ({yz[0]},{yz[1]})"


@dataclass(frozen=True)
class XBand:
    """Longitudinal zone in x, inclusive on both ends."""
    name: Zone
    x_min: float
    x_max: float

    def contains(self, x: float) -> bool:
        return self.x_min <= x <= self.x_max

    @property
    def display_name(self) -> str:
        label = {
            "anode_tpc0": "Anode TPC0",
            "cathode": "Cathode",
            "anode_tpc1": "Anode TPC1",
        }.get(self.name, self.name)
        return f"{label} (x:[{self.x_min:g}, {self.x_max:g}])"


_Y_HALF = 203.732
_Z_LO = (-5.68434e-14, 244.7)
_Z_HI = (264.7, 500.1)

# Order matters: index in this tuple is the region index written to CSV file names.
BOXES: Tuple[Box, ...] = tuple(
    Box(f"TPC{tpc}_{zi}{yi}", tpc,
        -_Y_HALF if yi == 0 else 0.0, 0.0 if yi == 0 else _Y_HALF,
        *(_Z_LO if zi == 0 else _Z_HI))
    for tpc in (0, 1)
    for zi in (0, 1)
    for yi in (0, 1)
)

XBANDS: Tuple[XBand, ...] = (
    XBand("anode_tpc0", -202.2, -152.2),
    XBand("cathode", -50.0, 50.0),
    XBand("anode_tpc1", 152.2, 202.2),
)


def classify_box(tpc_id: int, y: float, z: float) -> Optional[int]:
    """Index into BOXES of the box holding (y, z) in this TPC, or None."""
    for i, box in enumerate(BOXES):
        if box.contains(tpc_id, y, z):
            return i
    return None


def classify_longitudinal(x: float) -> Zone:
    if x is None or math.isnan(x):
        return "other"
    for band in XBANDS:
        if band.contains(x):
            return band.name
    return "other"


def box_by_name(name: str) -> Box:
    for box in BOXES:
        if box.name == name:
            return box
    raise KeyError(f"Unknown region {name!r}; expected one of {[b.name for b in BOXES]}")
