import pytest

from hiteff.io.csv_store import (
    EFFICIENCY_HEADER,
    EfficiencyRow,
    RegionRow,
    efficiency_writer,
    read_efficiency_csv,
    read_region_csv,
    region_writer,
)


def test_efficiency_row_reads_back(tmp_path):
    p = tmp_path / "hiteff_mc.csv"
    with efficiency_writer(p) as w:
        w.append(EfficiencyRow(7, 2, 1, 123.456, 40, 42, 40 / 42, 0.3125))
        w.append(EfficiencyRow(8, 0, 0, 60.0, 30, 30, 1.0, 0.47))
    assert w.rows_written == 2
    assert p.read_text().splitlines()[0] == ",".join(EFFICIENCY_HEADER)

    df = read_efficiency_csv(p, echo=None)
    assert len(df) == 2
    assert df["Plane"].tolist() == [2, 0]
    assert df["Efficiency"].iloc[0] == pytest.approx(40 / 42)
    assert df["AvgPitch"].iloc[0] == pytest.approx(0.3125)
    assert df["TrackID"].tolist() == [7, 8]


def test_invalid_lines_are_dropped(tmp_path):
    p = tmp_path / "eff.csv"
    with efficiency_writer(p) as w:
        w.append(EfficiencyRow(1, 0, 0, 55.0, 30, 31, 30 / 31, 0.4))
    with open(p, "a") as f:
        f.write("x,y,z,1,2,3,bad,0.3\n")
        f.write("1,2\n")
    msgs = []
    df = read_efficiency_csv(p, echo=msgs.append)
    assert len(df) == 1
    assert msgs and "Skipped 2 invalid" in msgs[0]


def test_row_width_is_checked(tmp_path):
    with efficiency_writer(tmp_path / "eff.csv") as w:
        with pytest.raises(ValueError):
            w.append((1, 2, 3))


def test_region_row(tmp_path):
    p = tmp_path / "TPC0_00_hits_data.csv"
    row = RegionRow(3, 1, 0, 80.0, 30, -190.0, -160.0, -120.0, -90.0, 10.0, 50.0,
                    0.33, 0.97, 30, 0, 0, 0)
    with region_writer(p) as w:
        w.append(row)
    df = read_region_csv(p, echo=None)
    assert df["HitEfficiency"].iloc[0] == pytest.approx(0.97)
    assert df["AnodeTPC0_Hits"].iloc[0] == 30
    assert df["MinX"].iloc[0] == pytest.approx(-190.0)
