import awkward as ak
import numpy as np
import pytest
import uproot

from hiteff.io.adapters import (
    DEFAULT_BRANCHES,
    EFFICIENCY_KEYS,
    TrackCaloSkimAdapter,
    make_adapter,
    read_filelist,
    tracks_from_arrays,
)


def test_read_filelist(tmp_path):
    p = tmp_path / "files.txt"
    p.write_text("a.root\n\n  root://host//b.root  \n")
    assert read_filelist(p) == ["a.root", "root://host//b.root"]
    with pytest.raises(OSError):
        read_filelist(tmp_path / "missing.txt")


def test_default_branch_names():
    assert DEFAULT_BRANCHES["wire2"] == "trk.hits2.h.wire"
    assert DEFAULT_BRANCHES["pitch0"] == "trk.hits0.pitch"
    assert DEFAULT_BRANCHES["x1"] == "trk.hits1.h.sp.x"
    adapter = make_adapter({"branches": {"length": "trk.len"}})
    assert adapter.keys["length"] == "trk.len"
    assert adapter.tree_key == "caloskim/TrackCaloSkim"


def test_tracks_from_arrays():
    arrays = {
        "id": [3, 4],
        "length": [60.0, 20.0],
        "wire0": ak.Array([[1, 2, 3], []]),
        "pitch0": ak.Array([[0.3, 0.3, -1.0], []]),
        "tpc0": ak.Array([[0, 0, 1], []]),
        "ontraj0": ak.Array([[True, False, True], []]),
    }
    tracks = list(tracks_from_arrays(arrays, meta={"file": "x.root"}))
    assert [t.track_id for t in tracks] == [3, 4]
    t0 = tracks[0]
    assert t0.hits(0).wire.tolist() == [1, 2, 3]
    assert t0.hits(0).ontraj.tolist() == [True, False, True]
    assert t0.hits(0).x is None
    assert t0.num_hits(1) == 0
    assert t0.meta["file"] == "x.root"
    assert t0.meta["entry_index"] == 0
    assert tracks[1].num_hits(0) == 0


def _write_tree(path):
    wires = ak.Array([list(range(1, 31)), [5, 6]])
    branches = {
        "trk.id": np.array([1, 2], dtype=np.int32),
        "trk.length": np.array([80.0, 10.0], dtype=np.float32),
        "trk.start.x": np.array([0.0, 0.0]),
        "trk.start.y": np.array([0.0, 0.0]),
        "trk.start.z": np.array([0.0, 0.0]),
        "trk.end.x": np.array([80.0, 10.0]),
        "trk.end.y": np.array([0.0, 0.0]),
        "trk.end.z": np.array([0.0, 0.0]),
    }
    for p in (0, 1, 2):
        branches[f"trk.hits{p}.h.wire"] = wires
        branches[f"trk.hits{p}.pitch"] = ak.Array([[0.3] * 30, [0.3, 0.3]])
        branches[f"trk.hits{p}.h.tpc"] = ak.Array([[0] * 30, [1, 1]])
    with uproot.recreate(path) as f:
        f["caloskim/TrackCaloSkim"] = branches


def test_iter_tracks_from_root(tmp_path):
    path = str(tmp_path / "skim.root")
    _write_tree(path)
    adapter = TrackCaloSkimAdapter()

    assert adapter.count_entries(path) == 2
    missing = adapter.missing_branches(path, ["id", "length", "ontraj0", "time2"])
    assert missing == ["trk.hits0.ontraj", "trk.hits2.h.time"]

    tracks = list(adapter.iter_tracks(path, EFFICIENCY_KEYS))
    assert len(tracks) == 2
    t = tracks[0]
    assert t.track_id == 1
    assert t.length == pytest.approx(80.0)
    assert t.hits(2).wire.tolist() == list(range(1, 31))
    assert t.hits(0).ontraj is None
    assert tracks[1].hits(1).tpc.tolist() == [1, 1]
    assert t.meta["file"] == path


def test_missing_tree(tmp_path):
    path = str(tmp_path / "skim.root")
    _write_tree(path)
    with pytest.raises(KeyError):
        list(TrackCaloSkimAdapter(tree="other/Tree").iter_tracks(path))
