"""Per-bin frame summation and normalized slice emission."""

from enum import Enum

import numpy as np

from .binning import BinMapper
from .config import TIME_EPSILON
from .errors import ValidationError


class ChannelMode(Enum):
    RED_ONLY = "R"
    RGB_MEAN = "RGB"

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value))
        except ValueError:
            raise ValidationError(f"Invalid color channel {value!r}. Use 'R' or 'RGB'.") from None


def frame_intensity(frame: np.ndarray, channel_mode: ChannelMode) -> np.ndarray:
    """Per-pixel intensity of an (H, W, 3) RGB frame as float64."""
    if channel_mode is ChannelMode.RGB_MEAN:
        return frame[..., :3].astype(np.float64).sum(axis=2) / 3.0
    return frame[..., 0].astype(np.float64)


class Accumulator:
    """Sums binned frame intensities until a time window is complete.

    Residual time past the window boundary is carried into the next window,
    so bin edges stay phase-locked to the stream rather than drifting.
    """

    def __init__(self, mapper: BinMapper, time_sampling: float):
        if not time_sampling > 0:
            raise ValidationError(f"Time sampling must be positive, got {time_sampling}")
        self.mapper = mapper
        self.time_sampling = float(time_sampling)
        self.buffer = np.zeros(mapper.out_size, dtype=np.float64)
        self.frame_count = 0
        self.time_accumulated = 0.0

        flat = mapper.flat_index.ravel()
        self._keep = flat >= 0
        self._dest = flat[self._keep]

    def add_frame(self, frame: np.ndarray, channel_mode: ChannelMode, fps: float):
        expected = (self.mapper.height, self.mapper.width)
        if frame.ndim != 3 or frame.shape[:2] != expected or frame.shape[2] < 3:
            raise ValidationError(f"Frame shape {frame.shape} does not match expected {expected + (3,)}")

        values = frame_intensity(frame, channel_mode).ravel()[self._keep]
        self.buffer += np.bincount(self._dest, weights=values, minlength=self.buffer.size)
        self.frame_count += 1
        self.time_accumulated += 1.0 / fps

    def should_emit(self, time_sampling: float | None = None) -> bool:
        ts = self.time_sampling if time_sampling is None else time_sampling
        return self.time_accumulated + TIME_EPSILON >= ts

    def _normalized(self, binning: int) -> np.ndarray:
        denom = float(self.frame_count * binning * binning)
        out = (self.buffer / denom).astype(np.float32)
        return out.reshape(self.mapper.out_shape)

    def emit(self, binning: int | None = None) -> np.ndarray:
        if self.frame_count <= 0:
            raise RuntimeError("emit() called on an empty accumulator")
        b = self.mapper.binning if binning is None else binning
        out = self._normalized(b)
        self.buffer[:] = 0.0
        self.frame_count = 0
        self.time_accumulated = max(self.time_accumulated - self.time_sampling, 0.0)
        return out

    def flush(self):
        if self.frame_count <= 0:
            return None
        out = self._normalized(self.mapper.binning)
        self.reset()
        return out

    def reset(self):
        self.buffer[:] = 0.0
        self.frame_count = 0
        self.time_accumulated = 0.0
