from pathlib import Path

import matplotlib.pyplot as plt

from hiteff.io.occupancy_store import read_occupancy


def save_occupancy_png(h5_path: str, out_png: str | None = None, dataset: str = "/occupancy/combined/plane0"):
    wires, counts = read_occupancy(h5_path, dataset)

    if out_png is None:
        out_png = str(Path(h5_path).with_suffix("")) + "_" + dataset.strip("/").replace("/", "_") + ".png"

    plt.figure(figsize=(10, 5))
    plt.step(wires, counts, where="mid")
    plt.xlabel("Wire Number")
    plt.ylabel("Entries")
    plt.title(Path(h5_path).name + " : " + dataset)
    plt.tight_layout()
    plt.savefig(out_png, dpi=150)
    plt.close()
    return out_png
