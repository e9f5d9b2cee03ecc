"""QC preview images for a finished cube."""

from pathlib import Path

import matplotlib
import numpy as np
from astropy.io import fits

matplotlib.use("Agg")
import matplotlib.pyplot as plt

from .config import QC_PERCENTILES


def slice_means(cube: np.ndarray) -> np.ndarray:
    return cube.reshape(cube.shape[0], -1).mean(axis=1, dtype=np.float64)


def generate_qc(cube_path: Path, qc_dir: Path, verbose: bool = True):
    qc_dir = Path(qc_dir)
    qc_dir.mkdir(parents=True, exist_ok=True)
    cube = np.asarray(fits.getdata(str(cube_path)), dtype=np.float32)
    if cube.ndim == 2:
        cube = cube[None]
    n = cube.shape[0]

    lo, hi = QC_PERCENTILES
    vmin = float(np.percentile(cube, lo))
    vmax = float(np.percentile(cube, hi))
    if vmax <= vmin:
        vmax = vmin + 1.0

    written = []
    for k in sorted({0, n // 2, n - 1}):
        out = qc_dir / f"slice_{k:04d}.png"
        plt.imsave(out, cube[k], vmin=vmin, vmax=vmax, cmap="gray")
        written.append(out)

    means = slice_means(cube)
    fig, ax = plt.subplots(figsize=(6, 3))
    ax.plot(np.arange(n), means, marker="o", ms=3)
    ax.set_xlabel("slice")
    ax.set_ylabel("mean intensity")
    ax.set_title(Path(cube_path).name)
    fig.tight_layout()
    out = qc_dir / "slice_means.png"
    fig.savefig(out, dpi=100)
    plt.close(fig)
    written.append(out)

    if verbose:
        print(f"QC images saved to: {qc_dir}")
    return written
