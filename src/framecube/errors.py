"""Exception types raised by framecube."""


class FramecubeError(Exception):
    pass


class ValidationError(FramecubeError, ValueError):
    """Run settings that cannot produce a cube (channel, sampling, binning)."""


class SourceError(FramecubeError, IOError):
    pass


class OpenError(SourceError):
    """Input could not be opened or is not a supported container."""


class DecodeError(SourceError):
    """No video stream, no usable decoder, or no valid frame rate."""


class StoreError(FramecubeError, IOError):
    """Cube file could not be created, written or finalized."""
