"""Source pixel to output bin mapping (spatial binning and flips)."""

import numpy as np

from .errors import ValidationError


def output_dims(width: int, height: int, binning: int) -> tuple:
    if int(binning) != binning or binning < 1:
        raise ValidationError(f"Binning factor must be an integer >= 1, got {binning}")
    ow = int(width) // int(binning)
    oh = int(height) // int(binning)
    if ow < 1 or oh < 1:
        raise ValidationError(
            f"Binning factor {binning} is too large for a {width}x{height} frame "
            f"(output would be {ow}x{oh})"
        )
    return ow, oh


class BinMapper:
    """Maps source coordinates to destination bins for one run.

    Remainder rows/columns of a frame whose size is not a multiple of the
    binning factor fall outside the output grid and are dropped.
    """

    def __init__(self, width: int, height: int, binning: int = 1, vflip: bool = False, hflip: bool = False):
        self.width = int(width)
        self.height = int(height)
        self.binning = int(binning)
        self.vflip = bool(vflip)
        self.hflip = bool(hflip)
        self.out_width, self.out_height = output_dims(self.width, self.height, self.binning)
        self._flat_index = None

    @property
    def out_shape(self) -> tuple:
        """(rows, cols) of an emitted slice."""
        return (self.out_height, self.out_width)

    @property
    def out_size(self) -> int:
        return self.out_width * self.out_height

    def map(self, x: int, y: int):
        sx = self.width - 1 - x if self.hflip else x
        sy = self.height - 1 - y if self.vflip else y
        dx = sx // self.binning
        dy = sy // self.binning
        if dx >= self.out_width or dy >= self.out_height:
            return None
        return dx, dy

    @property
    def flat_index(self) -> np.ndarray:
        """Per-source-pixel destination index into a raveled slice, -1 if discarded.

        Shape is (height, width), matching the source frame layout.
        """
        if self._flat_index is None:
            xs = np.arange(self.width, dtype=np.int64)
            ys = np.arange(self.height, dtype=np.int64)
            if self.hflip:
                xs = self.width - 1 - xs
            if self.vflip:
                ys = self.height - 1 - ys
            dx = xs // self.binning
            dy = ys // self.binning
            idx = dy[:, None] * self.out_width + dx[None, :]
            keep = (dy[:, None] < self.out_height) & (dx[None, :] < self.out_width)
            self._flat_index = np.where(keep, idx, -1)
        return self._flat_index

    def print_summary(self):
        flips = [name for name, on in (("vertical", self.vflip), ("horizontal", self.hflip)) if on]
        dropped_x = self.width - self.out_width * self.binning
        dropped_y = self.height - self.out_height * self.binning
        print(f"[BIN] {self.width}x{self.height} -> {self.out_width}x{self.out_height} (binning={self.binning})")
        print(f"[BIN] flips: {', '.join(flips) if flips else 'none'}")
        if dropped_x or dropped_y:
            print(f"[BIN] truncating {dropped_x} column(s) and {dropped_y} row(s) of remainder pixels")
