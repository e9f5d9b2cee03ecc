import cv2
import imageio.v3 as iio
import numpy as np
import pytest

from framecube.errors import DecodeError, OpenError, SourceError, ValidationError
from framecube.source import ArraySource, ImageSequenceSource, VideoFrameSource, open_source


def test_array_source_groups_frames_into_units():
    frames = np.zeros((5, 2, 3, 3), dtype=np.uint8)
    src = ArraySource(frames, fps=5.0, unit_size=2)
    units = list(src.units())
    assert [len(u) for u in units] == [2, 2, 1]
    assert (src.width, src.height) == (3, 2)
    assert src.duration == pytest.approx(1.0)
    assert len(list(ArraySource(frames, fps=5.0).frames())) == 5


def test_array_source_rejects_bad_input():
    with pytest.raises(ValidationError):
        ArraySource(np.zeros((4, 4, 3), dtype=np.uint8), fps=5.0)
    with pytest.raises(DecodeError):
        ArraySource(np.zeros((1, 4, 4, 3), dtype=np.uint8), fps=0.0)


def _write_frames(folder, n, h=4, w=6, gray=False):
    folder.mkdir()
    for k in range(n):
        shape = (h, w) if gray else (h, w, 3)
        iio.imwrite(folder / f"{k}.png", np.full(shape, 10 * k, dtype=np.uint8))
    return folder


def test_image_sequence_source_reads_in_numeric_order(tmp_path):
    folder = _write_frames(tmp_path / "frames", 12)
    with ImageSequenceSource(folder, fps=6.0, verbose=False) as src:
        assert (src.width, src.height) == (6, 4)
        assert src.duration == pytest.approx(2.0)
        values = [int(f[0, 0, 0]) for f in src.frames()]
    assert values == [10 * k for k in range(12)]


def test_image_sequence_source_expands_grayscale(tmp_path):
    folder = _write_frames(tmp_path / "gray", 2, gray=True)
    src = ImageSequenceSource(folder, fps=1.0, verbose=False)
    frame = next(src.frames())
    assert frame.shape == (4, 6, 3)


def test_image_sequence_source_requires_fps(tmp_path):
    folder = _write_frames(tmp_path / "nofps", 1)
    with pytest.raises(DecodeError):
        ImageSequenceSource(folder, fps=None, verbose=False)


def test_missing_video_raises_open_error(tmp_path):
    with pytest.raises(OpenError):
        VideoFrameSource(tmp_path / "missing.mp4")


def test_garbage_file_is_not_decodable(tmp_path):
    path = tmp_path / "junk.mp4"
    path.write_bytes(b"\x00garbage" * 64)
    with pytest.raises(SourceError):
        VideoFrameSource(path)


def _write_video(path, n, w=16, h=8, fps=20.0):
    writer = cv2.VideoWriter(str(path), cv2.VideoWriter_fourcc(*"MJPG"), fps, (w, h))
    if not writer.isOpened():
        pytest.skip("MJPG encoder not available in this OpenCV build")
    for _ in range(n):
        frame = np.zeros((h, w, 3), dtype=np.uint8)
        frame[..., 2] = 200  # BGR: red channel
        writer.write(frame)
    writer.release()
    return path


def test_video_source_decodes_rgb_frames(tmp_path):
    path = _write_video(tmp_path / "clip.avi", 10)
    with open_source(path) as src:
        assert isinstance(src, VideoFrameSource)
        assert (src.width, src.height) == (16, 8)
        assert src.fps == pytest.approx(20.0)
        frames = list(src.frames())
    assert len(frames) == 10
    assert frames[0].shape == (8, 16, 3)
    assert frames[0][..., 0].mean() > frames[0][..., 2].mean()


def test_fps_override(tmp_path):
    path = _write_video(tmp_path / "clip.avi", 2)
    with VideoFrameSource(path, fps=50.0) as src:
        assert src.fps == 50.0


def test_open_source_picks_image_sequence_for_directories(tmp_path):
    folder = _write_frames(tmp_path / "seq", 3)
    assert isinstance(open_source(folder, fps=3.0, verbose=False), ImageSequenceSource)


def test_exhausted_tracks_handed_out_frames(tmp_path):
    src = ArraySource(np.zeros((3, 2, 2, 3), dtype=np.uint8), fps=3.0, unit_size=2)
    units = src.units()
    next(units)
    assert not src.exhausted()
    next(units)
    assert src.exhausted()

    seq = ImageSequenceSource(_write_frames(tmp_path / "ex", 2), fps=2.0, verbose=False)
    it = seq.units()
    next(it)
    assert not seq.exhausted()
    next(it)
    assert seq.exhausted()
