"""I/O and utility helpers used by the framecube pipeline."""

import time
from contextlib import contextmanager
from datetime import timedelta
from pathlib import Path

from .config import CUBE_SUFFIX, IMAGE_PATTERNS


def fmt_t(sec: float) -> str:
    return str(timedelta(seconds=int(sec)))


@contextmanager
def timer(label: str, verbose: bool = True):
    t0 = time.time()
    yield
    dt = time.time() - t0
    if verbose:
        print(f"[{label}] {fmt_t(dt)}")


def derive_output_path(video_path: Path, suffix: str = CUBE_SUFFIX) -> Path:
    """Replace everything from the last dot of the file name with the cube suffix.

    Names without a dot get the suffix appended. Dots in parent directories
    are never touched.
    """
    video_path = Path(video_path)
    name = video_path.name
    if "." in name:
        name = name[:name.rindex(".")]
    return video_path.with_name(name + suffix)


def load_numeric_sorted_images(folder: Path, verbose: bool = True):
    files = []
    folder = Path(folder)
    if not folder.exists() or not folder.is_dir():
        if verbose:
            print(f"[WARNING] Invalid images directory: {folder}")
        return []

    seen = set()
    for pat in IMAGE_PATTERNS:
        for p in folder.glob(pat):
            if p not in seen:
                seen.add(p)
                files.append(p)

    if files:
        filtered = [p for p in files if not p.name.startswith("._")]
        if len(filtered) != len(files) and verbose:
            print(f"[INFO] Skipped {len(files) - len(filtered)} hidden resource files (._*)")
        files = filtered

    if not files:
        if verbose:
            print(f"[WARNING] No images found in: {folder}")
        return []

    def num_key(p: Path):
        s = p.stem
        try:
            return (0, int(s), "")
        except ValueError:
            return (1, 0, s)

    return sorted(files, key=num_key)


def resolve_paths_from_args(args):
    video_path = Path(args.video_path)
    output_path = args.output if args.output is not None else derive_output_path(video_path)
    return video_path, Path(output_path)
