"""
hiteff.io.dead_channels

Known non-functioning readout channels, keyed by (wire, plane, tpc).

The map is built once per process (from the CSV written by the dead-wire
finder) and handed explicitly to whatever needs it; it is never mutated after
construction, so lookups are safe from any number of worker threads.

CSV format
----------
Wire,Plane,TPC
123,0,0
...
"""
from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import FrozenSet, Iterable, Iterator, Tuple, Callable, Optional

ChannelKey = Tuple[int, int, int]  # (wire, plane, tpc)

CSV_HEADER = "Wire,Plane,TPC"


@dataclass(frozen=True)
class DeadChannelMap:
    """
    channels:  frozen set of (wire, plane, tpc)
    available: False when the source could not be opened; callers use this
               to decide whether efficiency computation is meaningful at all
    source:    where the map came from (for diagnostics)
    """
    channels: FrozenSet[ChannelKey] = frozenset()
    available: bool = True
    source: str = ""

    @classmethod
    def from_rows(cls, rows: Iterable[Tuple[int, int, int]], source: str = "<rows>") -> "DeadChannelMap":
        return cls(
            channels=frozenset((int(w), int(p), int(t)) for w, p, t in rows),
            available=True,
            source=source,
        )

    @classmethod
    def unavailable(cls, source: str = "") -> "DeadChannelMap":
        return cls(channels=frozenset(), available=False, source=source)

    def contains(self, wire: int, plane: int, tpc: int) -> bool:
        return (int(wire), int(plane), int(tpc)) in self.channels

    def __contains__(self, key) -> bool:
        return key in self.channels

    def __len__(self) -> int:
        return len(self.channels)

    def __iter__(self) -> Iterator[ChannelKey]:
        return iter(sorted(self.channels, key=lambda k: (k[2], k[1], k[0])))

    def __bool__(self) -> bool:
        # Truthiness means "there is something to filter on"
        return len(self.channels) > 0

    def count_live(self, wire_lo: int, wire_hi: int, plane: int, tpc: int) -> int:
        """Number of wires in the inclusive range [wire_lo, wire_hi] not in the map."""
        if wire_hi < wire_lo:
            return 0
        n_dead = sum(
            1 for w in range(int(wire_lo), int(wire_hi) + 1)
            if (w, int(plane), int(tpc)) in self.channels
        )
        return int(wire_hi) - int(wire_lo) + 1 - n_dead


def _split_row(line: str) -> Tuple[int, int, int]:
    parts = [p.strip() for p in line.split(",")]
    if len(parts) < 3:
        raise ValueError(f"expected 3 fields, got {len(parts)}")
    return int(parts[0]), int(parts[1]), int(parts[2])


def load_dead_channels(
    path: str | Path,
    *,
    echo: Optional[Callable[[str], None]] = print,
) -> DeadChannelMap:
    """
    Read a dead-channel CSV.

    - Header line is skipped.
    - A row that does not parse as three integers (including rows with
      undecodable bytes) is reported and skipped.
    - A file that cannot be opened gives an empty, unavailable map.
    """
    p = Path(path)
    say = echo or (lambda _msg: None)
    rows = []
    try:
        # undecodable bytes become U+FFFD so the row fails int() and is skipped
        with open(p, "r", encoding="utf-8", errors="replace") as f:
            f.readline()  # header
            for raw in f:
                line = raw.strip()
                if not line:
                    continue
                try:
                    rows.append(_split_row(line))
                except ValueError:
                    say(f"[dead] Warning: Invalid line in {p.name}: {line}")
    except OSError:
        say(f"[dead] Warning: Could not open {p}, proceeding without dead channel filtering")
        return DeadChannelMap.unavailable(str(p))

    dmap = DeadChannelMap.from_rows(rows, source=str(p))
    say(f"[dead] Loaded {len(dmap)} dead channels from {p}")
    return dmap


def write_dead_channels(path: str | Path, channels: Iterable[ChannelKey]) -> Path:
    """Write (wire, plane, tpc) rows in the order given."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with open(p, "w", encoding="utf-8") as f:
        f.write(CSV_HEADER + "\n")
        for wire, plane, tpc in channels:
            f.write(f"{int(wire)},{int(plane)},{int(tpc)}\n")
    return p
