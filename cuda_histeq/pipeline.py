"""
Four stage histogram equalization pipeline.

    histogram -> cumulative scan -> (host repair) -> LUT -> back projection

Each stage is a single kernel launch. The host blocks on every transfer and
every launch so that no stage starts before the previous one is visible.
"""

from dataclasses import dataclass, field
from typing import List

import numpy as np
import nvtx

from .backend import Backend, StageTiming
from .config import HIST_BINS, SCAN_BLOCK, PipelineConfig
from .errors import ConfigError, SampleRangeError
from .kernels import (
    back_projection_kernel,
    cumulative_kernel,
    cumulative_naive_kernel,
    equalize_kernel,
    histogram_kernel,
    histogram_shared_kernel,
    launch_config,
)


@dataclass
class EqualizationResult:
    histogram: np.ndarray
    raw_cumulative: np.ndarray
    cumulative: np.ndarray
    lut: np.ndarray
    output: np.ndarray
    timings: List[StageTiming] = field(default_factory=list)


def sample_dtype(bins):
    return np.uint8 if bins <= 256 else np.uint16


def validate_image(image, bins):
    """
    Flatten ``image`` into the sample vector sent to the device.

    Samples outside [0, bins - 1] are rejected, never clamped.
    """
    image = np.asarray(image)
    if not np.issubdtype(image.dtype, np.integer):
        raise SampleRangeError(f"integer samples required, got dtype {image.dtype}")
    if image.ndim not in (1, 2, 3):
        raise ConfigError(f"expected a 2-D image with optional channels, got shape {image.shape}")

    samples = np.ascontiguousarray(image).reshape(-1)
    if samples.size:
        lo, hi = int(samples.min()), int(samples.max())
        if lo < 0 or hi >= bins:
            raise SampleRangeError(f"samples must lie in [0, {bins - 1}], found [{lo}, {hi}]")
    return samples.astype(sample_dtype(bins), copy=False)


def repair_monotonic(cumulative):
    """Clamp every entry to at least its predecessor."""
    cumulative = np.asarray(cumulative)
    if cumulative.size == 0:
        raise ConfigError("cumulative histogram must have at least one bin")
    return np.maximum.accumulate(cumulative)


class HistogramEqualizer:
    def __init__(self, backend: Backend, config: PipelineConfig = None):
        self.backend = backend
        self.config = config or PipelineConfig()
        self.timings: List[StageTiming] = []

    @property
    def bins(self):
        return self.config.bins

    def _histogram_launch(self, d_samples, d_hist, n):
        blocks, threads = launch_config(n, self.config.threads_per_block)
        if self.bins == HIST_BINS:
            return "histogram", histogram_shared_kernel, blocks, threads, (d_samples, d_hist)
        return "histogram", histogram_kernel, blocks, threads, (d_samples, d_hist, self.bins)

    def _scan_launch(self, d_hist, d_cumulative):
        if self.config.scan == "naive":
            blocks, threads = launch_config(self.bins, self.config.threads_per_block)
            return "cumulative", cumulative_naive_kernel, blocks, threads, (d_hist, d_cumulative, self.bins)
        blocks, threads = launch_config(self.bins, SCAN_BLOCK)
        return "cumulative", cumulative_kernel, blocks, threads, (d_hist, d_cumulative, self.bins)

    def _equalize_launch(self, d_cumulative, d_lut):
        blocks, threads = launch_config(self.bins, self.config.threads_per_block)
        return "equalize", equalize_kernel, blocks, threads, (d_cumulative, d_lut, self.bins)

    def _back_projection_launch(self, d_samples, d_lut, d_out, n):
        blocks, threads = launch_config(n, self.config.threads_per_block)
        return "back_projection", back_projection_kernel, blocks, threads, (d_samples, d_lut, d_out)

    def _launch(self, launch):
        name, kernel, blocks, threads, args = launch
        timing = self.backend.launch(name, kernel, blocks, threads, *args)
        self.timings.append(timing)
        return timing

    def compile(self):
        """Compile all four kernels on a one-sample image; returns a BuildResult."""
        backend = self.backend
        d_samples = backend.to_device(np.zeros(1, dtype=sample_dtype(self.bins)))
        d_hist = backend.to_device(np.zeros(self.bins, dtype=np.int32))
        d_cumulative = backend.device_array(self.bins, np.int32)
        d_lut = backend.to_device(np.arange(self.bins, dtype=np.int32))
        d_out = backend.device_array(1, sample_dtype(self.bins))
        warmups = [
            self._histogram_launch(d_samples, d_hist, 1),
            self._scan_launch(d_hist, d_cumulative),
            self._equalize_launch(d_cumulative, d_lut),
            self._back_projection_launch(d_samples, d_lut, d_out, 1),
        ]
        options = {
            "bins": self.bins,
            "threads_per_block": self.config.threads_per_block,
            "scan": self.config.scan,
        }
        return backend.compile(warmups, options)

    def build_histogram(self, d_samples, n):
        d_hist = self.backend.to_device(np.zeros(self.bins, dtype=np.int32))
        # An empty image leaves the histogram all zero
        if n:
            self._launch(self._histogram_launch(d_samples, d_hist, n))
        return self.backend.copy_to_host(d_hist)

    def scan(self, hist):
        d_hist = self.backend.to_device(np.asarray(hist, dtype=np.int32))
        d_cumulative = self.backend.device_array(self.bins, np.int32)
        self._launch(self._scan_launch(d_hist, d_cumulative))
        return self.backend.copy_to_host(d_cumulative)

    def equalize(self, cumulative):
        d_cumulative = self.backend.to_device(np.asarray(cumulative, dtype=np.int32))
        d_lut = self.backend.device_array(self.bins, np.int32)
        self._launch(self._equalize_launch(d_cumulative, d_lut))
        return self.backend.copy_to_host(d_lut)

    def back_project(self, d_samples, lut, n):
        d_lut = self.backend.to_device(np.asarray(lut, dtype=np.int32))
        d_out = self.backend.device_array(n, d_samples.dtype)
        self._launch(self._back_projection_launch(d_samples, d_lut, d_out, n))
        return self.backend.copy_to_host(d_out)

    def run(self, image):
        image = np.asarray(image)
        samples = validate_image(image, self.bins)
        n = samples.size
        self.timings = []

        with nvtx.annotate("equalization", color="blue"):
            if n:
                d_samples = self.backend.to_device(samples)
            else:
                d_samples = None

            with nvtx.annotate("histogram_original", color="green"):
                hist = self.build_histogram(d_samples, n)

            with nvtx.annotate("cdf_compute", color="yellow"):
                raw = self.scan(hist)
                cumulative = repair_monotonic(raw)

            with nvtx.annotate("lut_compute", color="orange"):
                lut = self.equalize(cumulative)

            with nvtx.annotate("apply_equalization", color="red"):
                if n:
                    flat = self.back_project(d_samples, lut, n)
                else:
                    flat = samples.copy()

        output = flat.reshape(image.shape).astype(image.dtype, copy=False)
        return EqualizationResult(hist, raw, cumulative, lut, output, list(self.timings))


def equalize_image(image, config=None, backend=None):
    """Equalize ``image`` on the configured CUDA device."""
    config = config or PipelineConfig()
    backend = backend or Backend.create(config.device_id)
    return HistogramEqualizer(backend, config).run(image)
