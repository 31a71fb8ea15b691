"""Global histogram equalization on CUDA devices with numba."""

from .config import HIST_BINS, PipelineConfig
from .errors import (
    BackendError,
    BuildError,
    ConfigError,
    HistEqError,
    ImageDecodeError,
    SampleRangeError,
)
from .pipeline import EqualizationResult, HistogramEqualizer, equalize_image, repair_monotonic

__all__ = [
    "HIST_BINS",
    "PipelineConfig",
    "HistEqError",
    "ConfigError",
    "SampleRangeError",
    "BackendError",
    "BuildError",
    "ImageDecodeError",
    "EqualizationResult",
    "HistogramEqualizer",
    "equalize_image",
    "repair_monotonic",
]

__version__ = "0.1.0"
