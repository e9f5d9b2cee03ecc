import numpy as np
import pytest
from astropy.io import fits

from framecube.errors import StoreError
from framecube.store import FitsCubeStore


def test_slices_read_back_with_final_depth(tmp_path):
    path = tmp_path / "cube.fits"
    planes = [np.full((3, 5), float(k), dtype=np.float32) for k in range(2)]
    with FitsCubeStore.create(path, (5, 3, 4), verbose=False) as store:
        for k, p in enumerate(planes):
            store.write_slice(k, p)
        store.update_depth_header(2)

    hdr = fits.getheader(path)
    assert hdr["NAXIS"] == 3
    assert (hdr["NAXIS1"], hdr["NAXIS2"], hdr["NAXIS3"]) == (5, 3, 2)
    assert hdr["BITPIX"] == -32
    data = fits.getdata(path)
    assert data.shape == (2, 3, 5)
    assert np.allclose(data[0], 0.0)
    assert np.allclose(data[1], 1.0)
    assert path.stat().st_size % 2880 == 0


def test_writing_past_estimate_extends_cube(tmp_path):
    path = tmp_path / "grow.fits"
    with FitsCubeStore.create(path, (2, 2, 1), verbose=False) as store:
        for k in range(5):
            store.write_slice(k, np.full(4, k, dtype=np.float32))
        assert store.depth >= 5
        store.update_depth_header(5)

    data = fits.getdata(path)
    assert data.shape == (5, 2, 2)
    assert np.allclose(data[:, 0, 0], np.arange(5))


def test_existing_file_is_overwritten(tmp_path):
    path = tmp_path / "old.fits"
    path.write_bytes(b"not a fits file" * 1000)
    with FitsCubeStore.create(path, (2, 2, 1), verbose=False) as store:
        store.write_slice(0, np.ones((2, 2)))
        store.update_depth_header(1)
    assert np.allclose(fits.getdata(path), 1.0)


def test_header_cards_are_recorded(tmp_path):
    path = tmp_path / "cards.fits"
    cards = {"CHANNEL": ("RGB", "intensity"), "BINNING": 2}
    with FitsCubeStore.create(path, (2, 2, 1), header_cards=cards, verbose=False) as store:
        store.write_slice(0, np.zeros((2, 2)))
        store.update_depth_header(1)
    hdr = fits.getheader(path)
    assert hdr["CHANNEL"] == "RGB"
    assert hdr["BINNING"] == 2


def test_bad_slice_size_and_closed_store_raise(tmp_path):
    store = FitsCubeStore.create(tmp_path / "bad.fits", (3, 3, 2), verbose=False)
    with pytest.raises(StoreError):
        store.write_slice(0, np.zeros(8))
    store.update_depth_header(0)
    with pytest.raises(StoreError):
        store.write_slice(0, np.zeros(9))
    store.close()
    store.close()


def test_unfinalized_cube_is_marked_incomplete(tmp_path):
    path = tmp_path / "aborted.fits"
    with FitsCubeStore.create(path, (2, 2, 3), verbose=False) as store:
        store.write_slice(0, np.ones((2, 2)))
    assert fits.getheader(path)["COMPLETE"] is False

    done = tmp_path / "done.fits"
    with FitsCubeStore.create(done, (2, 2, 3), verbose=False) as store:
        store.write_slice(0, np.ones((2, 2)))
        store.write_slice(3, np.ones((2, 2)))
        store.update_depth_header(4)
    assert fits.getheader(done)["COMPLETE"] is True
