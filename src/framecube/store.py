"""FITS cube writer with a growable time axis.

The cube is laid out as a single primary HDU (``NAXIS1`` = width,
``NAXIS2`` = height, ``NAXIS3`` = time). The header is rendered by astropy
and the data region is written slice by slice through a big-endian
``numpy.memmap``, so nothing but the current slice is held in memory.

Depth is declared twice: a provisional estimate when the file is created and
the real slice count once the run ends. Writing past the provisional depth
grows the file and rewrites ``NAXIS3`` in place; the header block has a fixed
card count so its size never changes. ``COMPLETE`` stays F until the final
depth is written, so a cube left behind by an aborted run is recognisable.
"""

from pathlib import Path

import numpy as np
from astropy.io import fits

from .config import CUBE_BITPIX, FITS_BLOCK
from .errors import StoreError


def _padded(nbytes: int) -> int:
    return -(-nbytes // FITS_BLOCK) * FITS_BLOCK


class FitsCubeStore:
    def __init__(self, path, width: int, height: int, depth: int, header_cards=None, verbose: bool = True):
        self.path = Path(path)
        self.width = int(width)
        self.height = int(height)
        self.depth = max(int(depth), 1)
        self.verbose = verbose
        self.slices_written = 0
        self._data = None
        self._closed = False

        self.header = fits.PrimaryHDU(data=np.zeros((1, 1, 1), dtype=np.float32)).header
        if self.header["BITPIX"] != CUBE_BITPIX:
            raise StoreError(f"Unexpected BITPIX {self.header['BITPIX']} for float32 cube")
        self.header["NAXIS1"] = self.width
        self.header["NAXIS2"] = self.height
        self.header.set("NAXIS3", self.depth, "number of time steps")
        self.header.set("COMPLETE", False, "run finished and NAXIS3 is final")
        for key, value in (header_cards or {}).items():
            if isinstance(value, tuple):
                self.header.set(key, *value)
            else:
                self.header.set(key, value)

        self._header_len = len(self.header.tostring())
        self._plane_bytes = self.width * self.height * 4

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            if self.path.exists():
                self.path.unlink()
            self.header.tofile(str(self.path), overwrite=True)
            self._resize(self.depth)
            self._map()
        except OSError as e:
            raise StoreError(f"Could not create cube file {self.path}: {e}") from e

        if self.verbose:
            print(f"[CUBE] created {self.path} ({self.width}x{self.height}x{self.depth} provisional)")

    @classmethod
    def create(cls, path, dims, header_cards=None, verbose: bool = True):
        width, height, depth = dims
        return cls(path, width, height, depth, header_cards=header_cards, verbose=verbose)

    def _resize(self, depth: int):
        with open(self.path, "r+b") as f:
            f.truncate(self._header_len + _padded(depth * self._plane_bytes))

    def _map(self):
        self._data = np.memmap(
            self.path,
            dtype=">f4",
            mode="r+",
            offset=self._header_len,
            shape=(self.depth, self.height, self.width),
        )

    def _unmap(self):
        if self._data is not None:
            self._data.flush()
            self._data = None

    def _write_header(self, depth: int):
        self.header["NAXIS3"] = depth
        block = self.header.tostring().encode("ascii")
        if len(block) != self._header_len:
            raise StoreError("FITS header size changed while updating NAXIS3")
        with open(self.path, "r+b") as f:
            f.seek(0)
            f.write(block)

    def _extend(self, min_depth: int):
        new_depth = max(min_depth, self.depth * 2)
        if self.verbose:
            print(f"[WARNING] Estimated depth {self.depth} exceeded; extending cube to {new_depth} slices")
        self._unmap()
        self._resize(new_depth)
        self.depth = new_depth
        self._write_header(new_depth)
        self._map()

    def write_slice(self, index: int, pixels):
        if self._closed or self._data is None:
            raise StoreError(f"Cube {self.path} is closed or already finalized")
        pixels = np.asarray(pixels, dtype=np.float32)
        if pixels.size != self.width * self.height:
            raise StoreError(
                f"Slice has {pixels.size} pixels, cube plane holds {self.width * self.height}"
            )
        if index < 0:
            raise StoreError(f"Negative slice index {index}")
        try:
            if index >= self.depth:
                self._extend(index + 1)
            self._data[index] = pixels.reshape(self.height, self.width)
        except OSError as e:
            raise StoreError(f"Could not write slice {index} to {self.path}: {e}") from e
        self.slices_written = max(self.slices_written, index + 1)

    def update_depth_header(self, actual_depth: int):
        if self._closed or self._data is None:
            raise StoreError(f"Cube {self.path} is closed or already finalized")
        actual_depth = int(actual_depth)
        try:
            self._unmap()
            self.header["COMPLETE"] = True
            self._write_header(actual_depth)
            with open(self.path, "r+b") as f:
                f.truncate(self._header_len + _padded(actual_depth * self._plane_bytes))
        except OSError as e:
            raise StoreError(f"Could not finalize cube {self.path}: {e}") from e
        self.depth = actual_depth
        if self.verbose:
            print(f"[CUBE] NAXIS3 set to {actual_depth}")

    def close(self):
        if self._closed:
            return
        try:
            self._unmap()
        except OSError as e:
            raise StoreError(f"Could not flush cube {self.path}: {e}") from e
        finally:
            self._closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
