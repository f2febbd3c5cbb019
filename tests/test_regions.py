import math

import numpy as np
import pytest

from hiteff.geometry.regions import BOXES, box_by_name, classify_box, classify_longitudinal
from hiteff.io.dead_channels import DeadChannelMap
from hiteff.physics.hits import HitBatch
from hiteff.pipelines.regions import region_csv_path, split_plane_hits


def test_longitudinal_zones():
    assert classify_longitudinal(-180.0) == "anode_tpc0"
    assert classify_longitudinal(0.0) == "cathode"
    assert classify_longitudinal(180.0) == "anode_tpc1"
    assert classify_longitudinal(1000.0) == "other"
    assert classify_longitudinal(-100.0) == "other"
    assert classify_longitudinal(math.nan) == "other"
    # zone edges are inclusive
    assert classify_longitudinal(50.0) == "cathode"
    assert classify_longitudinal(-202.2) == "anode_tpc0"


def test_boxes():
    assert len(BOXES) == 8
    assert BOXES[classify_box(0, -100.0, 100.0)].name == "TPC0_00"
    assert BOXES[classify_box(0, 50.0, 100.0)].name == "TPC0_01"
    assert BOXES[classify_box(0, -100.0, 300.0)].name == "TPC0_10"
    assert BOXES[classify_box(1, 100.0, 300.0)].name == "TPC1_11"
    # y = 0 belongs to the upper half
    assert BOXES[classify_box(1, 0.0, 100.0)].name == "TPC1_01"


def test_box_misses():
    assert classify_box(0, -100.0, 250.0) is None  # z gap between halves
    assert classify_box(2, -100.0, 100.0) is None
    assert classify_box(0, math.nan, 100.0) is None
    assert classify_box(0, 300.0, 100.0) is None


def test_box_by_name():
    box = box_by_name("TPC1_10")
    assert box.tpc_id == 1
    assert box.display_name == "TPC 1 Region (1,0)"
    with pytest.raises(KeyError):
        box_by_name("TPC2_00")


def _region_batch():
    # 30 hits in TPC0_00 near the TPC0 anode, 5 hits in TPC0_01
    n0, n1 = 30, 5
    wire = np.concatenate([np.arange(1, n0 + 1), np.arange(100, 100 + n1)])
    y = np.concatenate([np.full(n0, -100.0), np.full(n1, 100.0)])
    z = np.full(n0 + n1, 100.0)
    x = np.concatenate([np.linspace(-190.0, -160.0, n0), np.full(n1, 0.0)])
    return HitBatch(
        wire=wire,
        pitch=np.full(n0 + n1, 0.3),
        tpc=np.zeros(n0 + n1),
        ontraj=np.ones(n0 + n1, dtype=bool),
        x=x, y=y, z=z,
    )


def test_split_plane_hits():
    rows = split_plane_hits(_region_batch(), 2, DeadChannelMap(), track_id=4, length=75.0)
    assert list(rows) == [0]  # the 5-hit box is skipped
    row = rows[0]
    assert row.track_id == 4
    assert row.tpc == 0
    assert row.valid_hits == 30
    assert row.hit_efficiency == pytest.approx(1.0)
    assert row.avg_pitch == pytest.approx(0.3)
    assert row.min_x == pytest.approx(-190.0)
    assert row.max_x == pytest.approx(-160.0)
    assert row.anode_tpc0_hits == 30
    assert row.cathode_hits == row.anode_tpc1_hits == row.other_hits == 0


def test_split_plane_hits_filters_invalid_hits():
    b = _region_batch()
    b.x[0] = np.nan          # dropped: non-finite position
    b.pitch[1] = -1.0        # dropped: invalid pitch
    dead = DeadChannelMap.from_rows([(3, 2, 0)])
    rows = split_plane_hits(b, 2, dead, track_id=1, length=60.0)
    row = rows[0]
    assert row.valid_hits == 27
    # wires 4..30 hit; range 4..30 has 27 live wires
    assert row.hit_efficiency == pytest.approx(1.0)


def test_region_csv_path(tmp_path):
    assert region_csv_path(tmp_path, "TPC0_00", "MC") == tmp_path / "TPC0_00_hits_mc.csv"
