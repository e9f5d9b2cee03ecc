import imageio.v3 as iio
import numpy as np
from astropy.io import fits

from framecube.cli import build_parser, main


def test_parser_defaults():
    args = build_parser().parse_args(["R", "2.5", "clip.mp4"])
    assert args.binning == 1
    assert args.max_frames == 0
    assert not args.vflip and not args.hflip
    assert args.output is None


def test_invalid_channel_exits_nonzero(tmp_path, capsys):
    assert main(["G", "1.0", str(tmp_path / "x.mp4")]) == 1
    assert "Invalid color channel" in capsys.readouterr().err


def test_missing_input_exits_nonzero(tmp_path, capsys):
    assert main(["R", "1.0", str(tmp_path / "missing.mp4"), "--quiet"]) == 1
    assert "ERROR" in capsys.readouterr().err


def test_non_positive_sampling_exits_nonzero(tmp_path):
    assert main(["R", "0", str(tmp_path / "x.mp4"), "--quiet"]) == 1


def test_end_to_end_with_cap_and_flips(tmp_path):
    folder = tmp_path / "seq"
    folder.mkdir()
    for k in range(8):
        frame = np.zeros((4, 4, 3), dtype=np.uint8)
        frame[0, 0, 0] = 200
        iio.imwrite(folder / f"{k}.png", frame)
    out = tmp_path / "out.fits"
    rc = main(["R", "1.0", str(folder), "--fps", "2", "-n", "3", "--vflip", "--hflip", "-o", str(out), "--quiet"])
    assert rc == 0
    data = fits.getdata(out)
    assert data.shape == (3, 4, 4)
    assert np.allclose(data[:, 3, 3], 200.0)
    assert np.allclose(data[:, 0, 0], 0.0)


def test_malformed_numbers_exit_one(tmp_path, capsys):
    clip = str(tmp_path / "clip.mp4")
    assert main(["R", "abc", clip, "--quiet"]) == 1
    assert main(["R", "1.0", clip, "-b", "2.5", "--quiet"]) == 1
    assert main(["R", "1.0", clip, "-n", "x", "--quiet"]) == 1
    err = capsys.readouterr().err
    assert err.count("ERROR") == 3


def test_missing_positional_exits_one(capsys):
    assert main(["R"]) == 1
    assert "ERROR" in capsys.readouterr().err
