"""Frame-consumption loop: accumulate, emit, flush and finalize the cube."""

import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional

from .accumulator import Accumulator, ChannelMode
from .io_utils import fmt_t


class State(Enum):
    INIT = "init"
    RUNNING = "running"
    DRAIN = "drain"
    FLUSH_PARTIAL = "flush_partial"
    FINALIZE = "finalize"
    DONE = "done"


@dataclass
class RunSummary:
    slices: int = 0
    frames: int = 0
    frames_per_slice: List[int] = field(default_factory=list)
    partial_flushed: bool = False
    capped: bool = False
    elapsed_s: float = 0.0
    output_path: Optional[Path] = None


class Controller:
    """Drives one source through an accumulator into a cube store.

    ``max_frames`` caps the number of output slices (0 = unlimited). The cap
    is checked before each decoded unit is pulled and again before each frame
    inside a unit, so consumption stops on exactly the requested slice.
    """

    def __init__(
        self,
        source,
        accumulator: Accumulator,
        store,
        channel_mode: ChannelMode,
        max_frames: int = 0,
        verbose: bool = True,
        progress: Callable[[int, int, float], None] | None = None,
    ):
        self.source = source
        self.accumulator = accumulator
        self.store = store
        self.channel_mode = channel_mode
        self.max_frames = int(max_frames)
        self.verbose = verbose
        self.progress = progress
        self.state = State.INIT
        self.slice_index = 0
        self.summary = RunSummary(output_path=getattr(store, "path", None))
        self._t0 = None

    def _cap_reached(self) -> bool:
        return self.max_frames > 0 and self.slice_index >= self.max_frames

    def _report(self):
        elapsed = time.time() - self._t0
        if self.progress is not None:
            self.progress(self.slice_index, self.max_frames, elapsed)
        elif self.verbose:
            cap = f"/{self.max_frames}" if self.max_frames > 0 else ""
            print(f"[SLICE] {self.slice_index}{cap} written ({fmt_t(elapsed)} elapsed)")

    def _write(self, pixels, n_frames: int):
        self.store.write_slice(self.slice_index, pixels)
        self.slice_index += 1
        self.summary.frames_per_slice.append(n_frames)
        self._report()

    def _consume(self):
        acc = self.accumulator
        fps = self.source.fps
        units = iter(self.source.units())
        left_in_unit = False
        try:
            while not self._cap_reached():
                try:
                    unit = next(units)
                except StopIteration:
                    return
                left_in_unit = False
                for frame in unit:
                    if self._cap_reached():
                        left_in_unit = True
                        break
                    acc.add_frame(frame, self.channel_mode, fps)
                    self.summary.frames += 1
                    if acc.should_emit():
                        n = acc.frame_count
                        self._write(acc.emit(), n)
            # cap stopped the loop; it only counts if the source still had frames
            self.summary.capped = left_in_unit or not self.source.exhausted()
        finally:
            close = getattr(units, "close", None)
            if close is not None:
                close()

    def run(self) -> RunSummary:
        if self.state is not State.INIT:
            raise RuntimeError(f"Controller already ran (state={self.state.value})")
        self._t0 = time.time()

        self.state = State.RUNNING
        self._consume()

        self.state = State.DRAIN
        self.state = State.FLUSH_PARTIAL
        if self.accumulator.frame_count > 0 and not self._cap_reached():
            n = self.accumulator.frame_count
            self._write(self.accumulator.flush(), n)
            self.summary.partial_flushed = True

        self.state = State.FINALIZE
        self.store.update_depth_header(self.slice_index)
        self.store.close()

        self.state = State.DONE
        self.summary.slices = self.slice_index
        self.summary.elapsed_s = time.time() - self._t0
        return self.summary
