"""Command line interface for framecube."""

import argparse
import sys
from pathlib import Path

import matplotlib

# Must be set before any pyplot import for headless environments.
matplotlib.use("Agg", force=True)

from .config import CHANNEL_CHOICES, DEFAULT_BINNING, DEFAULT_MAX_FRAMES
from .io_utils import resolve_paths_from_args


class UsageError(Exception):
    pass


class CubeArgumentParser(argparse.ArgumentParser):
    """Reports bad arguments as exit status 1, like every other failure."""

    def error(self, message):
        raise UsageError(message)


def build_parser():
    parser = CubeArgumentParser(
        prog="framecube",
        description="Average video frames over fixed time windows into a 3D FITS cube",
    )
    parser.add_argument("channel", help="Color channel(s): R (red only) or RGB (mean of R, G, B)")
    parser.add_argument("time_sampling", type=float, help="Time sampling per output slice in seconds")
    parser.add_argument("video_path", type=Path, help="Input video file (or directory of numbered frames with --fps)")

    parser.add_argument("-b", "--binning", type=int, default=DEFAULT_BINNING, help="Spatial binning factor")
    parser.add_argument("-n", "--max-frames", type=int, default=DEFAULT_MAX_FRAMES, help="Maximum output slices (0 = unlimited)")
    parser.add_argument("--vflip", action="store_true", help="Flip frames vertically")
    parser.add_argument("--hflip", action="store_true", help="Flip frames horizontally")
    parser.add_argument("-o", "--output", type=Path, default=None, help="Explicit output FITS path")
    parser.add_argument("--fps", type=float, default=None, help="Override the source frame rate")
    parser.add_argument("--qc", action="store_true", help="Write QC preview images next to the cube")
    parser.add_argument("--quiet", action="store_true", help="Less console output")
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except UsageError as e:
        parser.print_usage(sys.stderr)
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    if args.channel not in CHANNEL_CHOICES:
        print("ERROR: Invalid color channel. Use 'R' or 'RGB'.", file=sys.stderr)
        return 1

    video_path, output_path = resolve_paths_from_args(args)

    from .pipeline import run_pipeline

    try:
        run_pipeline(
            video_path=video_path,
            channel=args.channel,
            time_sampling=args.time_sampling,
            binning=args.binning,
            max_frames=args.max_frames,
            vflip=args.vflip,
            hflip=args.hflip,
            output_path=output_path,
            fps=args.fps,
            do_qc=args.qc,
            verbose=not args.quiet,
        )
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        if not args.quiet:
            import traceback

            traceback.print_exc()
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
