"""Pipeline orchestration: validate, open source and cube, run the controller."""

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from . import __version__
from .accumulator import Accumulator, ChannelMode
from .binning import BinMapper
from .config import DEFAULT_BINNING, DEFAULT_MAX_FRAMES, DO_QC
from .controller import Controller
from .errors import ValidationError
from .io_utils import derive_output_path, timer
from .source import open_source
from .store import FitsCubeStore


@dataclass(frozen=True)
class RunSettings:
    channel: ChannelMode
    time_sampling: float
    binning: int = DEFAULT_BINNING
    max_frames: int = DEFAULT_MAX_FRAMES
    vflip: bool = False
    hflip: bool = False
    fps: float | None = None

    @classmethod
    def build(cls, channel, time_sampling, binning=DEFAULT_BINNING, max_frames=DEFAULT_MAX_FRAMES,
              vflip=False, hflip=False, fps=None):
        settings = cls(
            channel=ChannelMode.parse(channel),
            time_sampling=float(time_sampling),
            binning=binning,
            max_frames=max_frames,
            vflip=bool(vflip),
            hflip=bool(hflip),
            fps=fps,
        )
        settings.validate()
        return settings

    def validate(self):
        if not self.time_sampling > 0:
            raise ValidationError(f"Time sampling must be positive, got {self.time_sampling}")
        if int(self.binning) != self.binning or self.binning < 1:
            raise ValidationError(f"Binning factor must be an integer >= 1, got {self.binning}")
        if int(self.max_frames) != self.max_frames or self.max_frames < 0:
            raise ValidationError(f"Max frames must be an integer >= 0, got {self.max_frames}")
        if self.fps is not None and not self.fps > 0:
            raise ValidationError(f"FPS override must be positive, got {self.fps}")


def estimate_depth(duration: float, time_sampling: float, max_frames: int = 0) -> int:
    depth = int(duration / time_sampling) + 1
    if max_frames > 0:
        depth = min(depth, max_frames)
    return max(depth, 1)


def header_cards(settings: RunSettings, source) -> dict:
    return {
        "CHANNEL": (settings.channel.value, "intensity: R only or mean of RGB"),
        "TSAMPLE": (settings.time_sampling, "[s] time sampling per slice"),
        "BINNING": (int(settings.binning), "spatial binning factor"),
        "FLIPV": (settings.vflip, "vertical flip applied"),
        "FLIPH": (settings.hflip, "horizontal flip applied"),
        "SRCFPS": (float(source.fps), "source frame rate"),
        "SRCW": (int(source.width), "source frame width"),
        "SRCH": (int(source.height), "source frame height"),
        "SOURCE": (Path(source.name).name.encode("ascii", "replace").decode("ascii")[:68], "input file"),
        "DATE": (datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S"), "file creation date (UTC)"),
        "CREATOR": (f"framecube {__version__}", ""),
    }


def run_pipeline(
    video_path: Path,
    channel,
    time_sampling: float,
    binning: int = DEFAULT_BINNING,
    max_frames: int = DEFAULT_MAX_FRAMES,
    vflip: bool = False,
    hflip: bool = False,
    output_path: Path | None = None,
    fps: float | None = None,
    do_qc: bool = DO_QC,
    verbose: bool = True,
):
    settings = RunSettings.build(channel, time_sampling, binning, max_frames, vflip, hflip, fps)
    video_path = Path(video_path)
    output_path = Path(output_path) if output_path is not None else derive_output_path(video_path)

    with open_source(video_path, fps=settings.fps, verbose=verbose) as source:
        mapper = BinMapper(source.width, source.height, settings.binning, settings.vflip, settings.hflip)
        accumulator = Accumulator(mapper, settings.time_sampling)
        depth = estimate_depth(source.duration, settings.time_sampling, settings.max_frames)

        if verbose:
            print("Processing:")
            source.print_summary()
            mapper.print_summary()

        with FitsCubeStore.create(
            output_path,
            (mapper.out_width, mapper.out_height, depth),
            header_cards=header_cards(settings, source),
            verbose=verbose,
        ) as store:
            controller = Controller(
                source,
                accumulator,
                store,
                settings.channel,
                max_frames=settings.max_frames,
                verbose=verbose,
            )
            with timer("Accumulate", verbose):
                summary = controller.run()

    if verbose:
        print(f"[DONE] Wrote {summary.slices} slices from {summary.frames} frames to {output_path}")

    if do_qc and summary.slices > 0:
        from .qc import generate_qc

        with timer("QC", verbose):
            generate_qc(output_path, output_path.parent / "QC", verbose=verbose)

    return summary
