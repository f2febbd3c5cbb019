import numpy as np
import pytest

from hiteff.filters.selection import (
    SelectionDiagnostics,
    dead_mask,
    passes_length,
    pitch_mask,
    track_length,
    valid_hit_mask,
)
from hiteff.io.dead_channels import DeadChannelMap
from hiteff.physics.hits import HitBatch, Track


def _track(length, start=(0, 0, 0), end=(30, 40, 0)):
    return Track(track_id=1, length=length, start=np.array(start, float), end=np.array(end, float))


def test_length_cut_is_strict():
    assert not passes_length(_track(50.0), 50.0)
    assert passes_length(_track(50.1), 50.0)


def test_endpoint_length():
    trk = _track(10.0)
    assert track_length(trk, "endpoints") == 50.0
    assert track_length(trk, "branch") == 10.0
    assert not passes_length(trk, 50.0, "endpoints")
    assert np.allclose(trk.direction(), [0.6, 0.8, 0.0])


def test_pitch_mask():
    p = np.array([-1.0, 0.0, 0.3])
    assert pitch_mask(p, "positive").tolist() == [False, False, True]
    assert pitch_mask(p, "not_sentinel").tolist() == [False, True, True]


def test_dead_mask_uses_plane_and_tpc():
    dmap = DeadChannelMap.from_rows([(5, 1, 0)])
    m = dead_mask(np.array([5, 5, 6]), np.array([0, 1, 0]), 1, dmap)
    assert m.tolist() == [True, False, False]
    assert not dead_mask(np.array([5]), np.array([0]), 0, dmap).any()


def test_valid_hit_mask():
    b = HitBatch(
        wire=[1, 2, 3, 4, 5],
        pitch=[0.3, 0.3, -1.0, 0.3, 0.3],
        tpc=[0, 0, 0, 0, 0],
        ontraj=[True, False, True, True, True],
        x=[0.0, 0.0, 0.0, np.nan, 0.0],
        y=[0.0] * 5,
        z=[0.0] * 5,
    )
    dmap = DeadChannelMap.from_rows([(5, 0, 0)])
    assert valid_hit_mask(b, 0, dmap).tolist() == [True, False, False, True, False]
    assert valid_hit_mask(b, 0, dmap, require_xyz=True).tolist() == [True, False, False, False, False]


def test_hitbatch_length_mismatch():
    with pytest.raises(ValueError):
        HitBatch(wire=[1, 2], pitch=[0.3], tpc=[0, 0])


def test_unknown_plane_rejected():
    trk = _track(60.0)
    assert trk.num_hits(2) == 0
    with pytest.raises(ValueError):
        trk.hits(9)


def test_diagnostics_counter():
    d = SelectionDiagnostics()
    d.inc("short_track")
    d.inc("short_track")
    assert d.reasons == {"short_track": 2}
