"""CPU ground truth for the GPU pipeline, plus image comparison."""

from typing import Tuple

import numpy as np

from .config import HIST_BINS
from .pipeline import EqualizationResult, repair_monotonic


def reference_lut(cumulative, bins):
    cumulative = np.asarray(cumulative, dtype=np.int64)
    nonzero = cumulative[cumulative > 0]
    cmin = int(nonzero.min()) if nonzero.size else 0
    denom = int(cumulative[-1]) - cmin
    if denom <= 0:
        return np.arange(bins, dtype=np.int32)
    num = np.clip(cumulative - cmin, 0, None)
    lut = (2 * num * (bins - 1) + denom) // (2 * denom)
    return np.clip(lut, 0, bins - 1).astype(np.int32)


def reference_equalize(image, bins=HIST_BINS) -> EqualizationResult:
    """Same four stages as the GPU pipeline, computed with numpy."""
    image = np.asarray(image)
    samples = image.reshape(-1).astype(np.int64)

    hist = np.bincount(samples, minlength=bins).astype(np.int32)
    cumulative = np.cumsum(hist).astype(np.int32)
    repaired = repair_monotonic(cumulative)
    lut = reference_lut(repaired, bins)
    output = lut[samples].reshape(image.shape).astype(image.dtype)
    return EqualizationResult(hist, cumulative, repaired, lut, output)


def compare_images(img1: np.ndarray, img2: np.ndarray, tolerance: float = 0.0) -> Tuple[bool, float, float]:
    """
    Compare two images pixel by pixel
    Returns: (are_identical, max_diff, mean_diff)
    """
    if img1 is None or img2 is None:
        return False, float('inf'), float('inf')

    if img1.shape != img2.shape:
        return False, float('inf'), float('inf')

    if img1.size == 0:
        return True, 0.0, 0.0

    diff = np.abs(img1.astype(np.float32) - img2.astype(np.float32))
    max_diff = float(np.max(diff))
    mean_diff = float(np.mean(diff))

    return max_diff <= tolerance, max_diff, mean_diff
