"""
Pytest configuration and shared fixtures.

The kernels run on numba's CUDA simulator so the suite works without a GPU.
The variable has to be set before numba is imported for the first time.
"""

import os

os.environ.setdefault("NUMBA_ENABLE_CUDASIM", "1")

import numpy as np  # noqa: E402
import pytest  # noqa: E402

from cuda_histeq.backend import Backend  # noqa: E402
from cuda_histeq.config import PipelineConfig  # noqa: E402
from cuda_histeq.pipeline import HistogramEqualizer  # noqa: E402


@pytest.fixture
def backend():
    return Backend.create(0)


@pytest.fixture
def make_equalizer(backend):
    def _make(**kwargs):
        return HistogramEqualizer(backend, PipelineConfig(**kwargs))
    return _make


@pytest.fixture
def dark_image():
    """Low contrast 16x16 image crowded into intensities 40-71."""
    rng = np.random.default_rng(1234)
    return rng.integers(40, 72, size=(16, 16), dtype=np.uint8)
