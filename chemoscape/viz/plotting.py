from __future__ import annotations
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from pathlib import Path
from typing import Optional

def save_heatmap(arr: np.ndarray, path: str | Path, title: str = "", cmap: str = "viridis",
                 z: Optional[int] = None, extent: Optional[tuple] = None):
    """
    Save a 2D heatmap for arr shaped (Z,Y,X) (slice `z`, default the middle one) or (Y,X).
    """
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    if arr.ndim == 3:
        a2d = arr[arr.shape[0] // 2 if z is None else z]
    else:
        a2d = arr
    plt.figure()
    plt.imshow(a2d, origin="lower", cmap=cmap, extent=extent)
    plt.title(title)
    plt.colorbar(label="concentration")
    plt.tight_layout()
    plt.savefig(path, dpi=180)
    plt.close()

def save_trace(trace: pd.DataFrame, path: str | Path, column: str = "total_mass", title: str = ""):
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    plt.figure()
    for name, g in trace.groupby("substance"):
        plt.plot(g["step"], g[column], label=str(name))
    plt.xlabel("Step")
    plt.ylabel(column.replace("_", " "))
    plt.title(title)
    plt.legend()
    plt.tight_layout()
    plt.savefig(path, dpi=180)
    plt.close()
