"""Default parameters and constants for framecube runs."""

CHANNEL_CHOICES = ("R", "RGB")

DEFAULT_BINNING = 1
DEFAULT_MAX_FRAMES = 0          # 0 = no cap on output slices

CUBE_SUFFIX = ".fits"
CUBE_BITPIX = -32               # float32 data
FITS_BLOCK = 2880               # FITS files are written in 2880-byte records

IMAGE_PATTERNS = ("*.png", "*.PNG", "*.jpg", "*.JPG", "*.jpeg", "*.JPEG", "*.tif", "*.tiff", "*.TIF", "*.TIFF")

# Tolerance when comparing accumulated 1/fps sums against the sampling window.
TIME_EPSILON = 1e-9

QC_PERCENTILES = (1.0, 99.7)
DO_QC = False
