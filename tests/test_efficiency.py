import numpy as np
import pytest

from hiteff.io.dead_channels import DeadChannelMap
from hiteff.physics.efficiency import (
    EfficiencyEstimator,
    estimate_efficiency,
    has_large_holes,
    mean_positive_pitch,
)
from hiteff.physics.hits import HitBatch


def _hits(wires, tpc=0, pitch=0.3):
    n = len(wires)
    return dict(
        wires=np.asarray(wires),
        pitches=np.full(n, pitch),
        tpcs=np.full(n, tpc),
        ontraj=np.ones(n, dtype=bool),
    )


def test_too_few_unique_wires():
    h = _hits(list(range(1, 25)) * 3)  # 24 distinct wires
    assert estimate_efficiency(h["wires"], h["pitches"], h["tpcs"], h["ontraj"], plane=0) is None


def test_large_gap_rejected():
    h = _hits(list(range(1, 21)) + list(range(40, 61)))  # 20 -> 40
    assert estimate_efficiency(h["wires"], h["pitches"], h["tpcs"], h["ontraj"], plane=0) is None


def test_gap_of_eleven_is_allowed():
    h = _hits(list(range(1, 21)) + list(range(31, 51)))
    res = estimate_efficiency(h["wires"], h["pitches"], h["tpcs"], h["ontraj"], plane=0)
    assert res is not None
    assert res.n_non_dead_wires == 50
    assert res.n_valid_hits == 40
    assert res.efficiency == pytest.approx(0.8)


def test_dead_wire_scenario():
    dead = DeadChannelMap.from_rows([(10, 0, 0)])
    wires = list(range(1, 10)) + list(range(11, 36))
    h = _hits(wires)
    for mode in ("first", "per_tpc"):
        res = estimate_efficiency(
            h["wires"], h["pitches"], h["tpcs"], h["ontraj"],
            plane=0, dead_map=dead, tpc_mode=mode,
        )
        assert res is not None
        assert res.efficiency == pytest.approx(1.0)
        assert res.n_non_dead_wires == 34
        assert res.n_valid_hits == 34
        assert res.average_pitch == pytest.approx(0.3)


def test_hits_on_dead_or_off_trajectory_are_ignored():
    dead = DeadChannelMap.from_rows([(10, 0, 0)])
    wires = np.arange(1, 36)
    ontraj = np.ones(len(wires), dtype=bool)
    ontraj[-1] = False  # wire 35 off trajectory
    est = EfficiencyEstimator(dead_map=dead)
    res = est.estimate(wires, np.full(35, 0.3), np.zeros(35), ontraj, plane=0)
    assert res is not None
    # range 1..34, wire 10 dead
    assert res.n_non_dead_wires == 33
    assert res.n_valid_hits == 33
    assert res.efficiency == pytest.approx(1.0)


def test_first_vs_per_tpc():
    dead = DeadChannelMap.from_rows([(30, 0, 0)])
    wires = np.arange(1, 46)
    tpcs = np.where(wires <= 20, 0, 1)
    batch = HitBatch(wire=wires, pitch=np.full(45, 0.4), tpc=tpcs, ontraj=np.ones(45, dtype=bool))

    first = EfficiencyEstimator(dead_map=dead, tpc_mode="first").estimate_batch(batch, 0)
    per_tpc = EfficiencyEstimator(dead_map=dead, tpc_mode="per_tpc").estimate_batch(batch, 0)

    assert first.n_non_dead_wires == 44
    assert first.tpc == 0
    assert per_tpc.n_non_dead_wires == 45
    assert per_tpc.efficiency == pytest.approx(1.0)


def test_efficiency_never_exceeds_one():
    rng = np.random.default_rng(7)
    dead = DeadChannelMap.from_rows([(w, 1, t) for w in range(0, 200, 17) for t in (0, 1)])
    for _ in range(50):
        wires = np.sort(rng.choice(np.arange(0, 120), size=80, replace=True))
        tpcs = rng.integers(0, 2, size=80)
        pitches = rng.uniform(0.3, 0.8, size=80)
        for mode in ("first", "per_tpc"):
            res = EfficiencyEstimator(dead_map=dead, tpc_mode=mode).estimate(
                wires, pitches, tpcs, plane=1
            )
            if res is not None:
                assert 0.0 <= res.efficiency <= 1.0


def test_pitch_rules():
    wires = np.arange(1, 31)
    pitches = np.full(30, 0.5)
    pitches[0] = -1.0
    pitches[1] = 0.0
    tpcs = np.zeros(30)

    pos = EfficiencyEstimator(pitch_rule="positive").estimate(wires, pitches, tpcs, plane=2)
    assert pos.n_unique_wires == 28
    assert pos.average_pitch == pytest.approx(0.5)

    sentinel = EfficiencyEstimator(pitch_rule="not_sentinel").estimate(wires, pitches, tpcs, plane=2)
    assert sentinel.n_unique_wires == 29
    # zero pitch stays out of the average
    assert sentinel.average_pitch == pytest.approx(0.5)


def test_mismatched_lengths_give_none():
    assert estimate_efficiency(np.arange(30), np.full(29, 0.3), np.zeros(30), plane=0) is None


def test_helpers():
    assert not has_large_holes([1, 12, 23])
    assert has_large_holes([1, 13])
    assert not has_large_holes([5])
    assert mean_positive_pitch(np.array([-1.0, 0.0, 0.2, 0.4])) == pytest.approx(0.3)
    assert mean_positive_pitch(np.array([-1.0])) == 0.0
