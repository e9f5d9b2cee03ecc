"""Frame sources: decoded RGB frames from video files, image folders or arrays.

Every source exposes its frames as a nested sequence. ``units()`` yields one
list per decoded unit (a packet, an image file, a chunk of an array), and each
unit may hold zero or more ``(height, width, 3)`` uint8 RGB frames. Callers
that need exact early termination check their stop condition both between
units and between the frames of a unit.
"""

from pathlib import Path
from typing import Iterator, List

import cv2
import imageio.v3 as iio
import numpy as np

from .errors import DecodeError, OpenError, ValidationError
from .io_utils import load_numeric_sorted_images


class FrameSource:
    width: int = 0
    height: int = 0
    fps: float = 0.0
    duration: float = 0.0
    name: str = ""

    def units(self) -> Iterator[List[np.ndarray]]:
        raise NotImplementedError

    def frames(self) -> Iterator[np.ndarray]:
        for unit in self.units():
            yield from unit

    def exhausted(self) -> bool:
        """True once every frame has been handed out. Sources that cannot tell say False."""
        return False

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def print_summary(self):
        print(f"[SOURCE] {self.name}")
        print(f"[SOURCE] resolution: {self.width}x{self.height}")
        print(f"[SOURCE] fps: {self.fps:.2f}")
        print(f"[SOURCE] duration: {self.duration:.2f} s")


def _check_fps(fps, name):
    if fps is None or not np.isfinite(fps) or fps <= 0:
        raise DecodeError(f"Invalid FPS {fps} detected for {name}")
    return float(fps)


def _as_rgb(img: np.ndarray) -> np.ndarray:
    if img.ndim == 2:
        img = np.stack([img, img, img], axis=2)
    elif img.shape[2] == 1:
        img = np.repeat(img, 3, axis=2)
    elif img.shape[2] > 3:
        img = img[..., :3]
    if img.dtype != np.uint8:
        raise DecodeError(f"Unsupported pixel type {img.dtype}; expected 8-bit channels")
    return np.ascontiguousarray(img)


class VideoFrameSource(FrameSource):
    """Video file decoded with OpenCV, converted to RGB24."""

    def __init__(self, path, fps: float | None = None):
        self.path = Path(path)
        self.name = str(self.path)
        if not self.path.is_file():
            raise OpenError(f"Could not open video file '{self.path}'")

        self._cap = cv2.VideoCapture(str(self.path))
        if not self._cap.isOpened():
            self._cap.release()
            raise OpenError(f"Could not open video file '{self.path}'")

        try:
            ok, first = self._cap.read()
            if not ok or first is None:
                raise DecodeError(f"Could not find a decodable video stream in '{self.path}'")
            self._pending = first
            self.height, self.width = first.shape[:2]

            native_fps = self._cap.get(cv2.CAP_PROP_FPS)
            self.fps = _check_fps(fps if fps is not None else native_fps, self.name)

            n_frames = self._cap.get(cv2.CAP_PROP_FRAME_COUNT)
            self._n_frames = int(n_frames) if n_frames and n_frames > 0 else 0
            self.duration = self._n_frames / self.fps
        except Exception:
            self._cap.release()
            raise

    def units(self):
        if self._pending is not None:
            first, self._pending = self._pending, None
            yield [cv2.cvtColor(first, cv2.COLOR_BGR2RGB)]

        while self._cap.grab():
            ok, bgr = self._cap.retrieve()
            if not ok or bgr is None:
                yield []
                continue
            yield [cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)]

    def exhausted(self):
        if self._cap is None:
            return True
        if self._pending is not None or self._n_frames <= 0:
            return False
        return self._cap.get(cv2.CAP_PROP_POS_FRAMES) >= self._n_frames

    def close(self):
        if self._cap is not None:
            self._cap.release()
            self._cap = None


class ImageSequenceSource(FrameSource):
    """Numerically sorted still frames from a directory, played back at a given fps."""

    def __init__(self, directory, fps: float, verbose: bool = True):
        self.path = Path(directory)
        self.name = str(self.path)
        if not self.path.is_dir():
            raise OpenError(f"Image directory not found or not a directory: {self.path}")
        if fps is None:
            raise DecodeError(f"Image sequence {self.path} has no frame rate; pass an explicit fps")
        self.fps = _check_fps(fps, self.name)

        self.files = load_numeric_sorted_images(self.path, verbose=verbose)
        if not self.files:
            raise OpenError(f"No images found in {self.path}")

        first = self._read(self.files[0])
        self.height, self.width = first.shape[:2]
        self.duration = len(self.files) / self.fps
        self._pos = 0

    def _read(self, p: Path) -> np.ndarray:
        try:
            img = iio.imread(p)
        except Exception as e:
            raise DecodeError(f"Could not decode image {p}: {e}") from e
        return _as_rgb(img)

    def units(self):
        for k, p in enumerate(self.files):
            img = self._read(p)
            if img.shape[:2] != (self.height, self.width):
                raise DecodeError(
                    f"Inconsistent frame shape: {p.name} has {img.shape[:2]}, expected {(self.height, self.width)}"
                )
            self._pos = k + 1
            yield [img]

    def exhausted(self):
        return self._pos >= len(self.files)


class ArraySource(FrameSource):
    """In-memory (N, H, W, 3) frame stack, delivered ``unit_size`` frames at a time."""

    def __init__(self, frames, fps: float, unit_size: int = 1, name: str = "<array>"):
        frames = np.asarray(frames)
        if frames.ndim != 4 or frames.shape[3] < 3:
            raise ValidationError(f"Expected frames of shape (N, H, W, 3), got {frames.shape}")
        if unit_size < 1:
            raise ValidationError(f"unit_size must be >= 1, got {unit_size}")
        self._frames = frames
        self.unit_size = int(unit_size)
        self.name = name
        self.fps = _check_fps(fps, name)
        _, self.height, self.width = frames.shape[:3]
        self.duration = frames.shape[0] / self.fps
        self._pos = 0

    def units(self):
        for start in range(0, self._frames.shape[0], self.unit_size):
            unit = list(self._frames[start:start + self.unit_size])
            self._pos = start + len(unit)
            yield unit

    def exhausted(self):
        return self._pos >= self._frames.shape[0]


def open_source(path, fps: float | None = None, verbose: bool = True) -> FrameSource:
    path = Path(path)
    if path.is_dir():
        return ImageSequenceSource(path, fps=fps, verbose=verbose)
    return VideoFrameSource(path, fps=fps)
