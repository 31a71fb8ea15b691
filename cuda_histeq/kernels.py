import math

import numpy as np
from numba import cuda

from .config import HIST_BINS, SCAN_BLOCK

# ------------------------ CUDA Kernels ------------------------

# Histogram kernel, one thread per sample, atomics on global memory
@cuda.jit
def histogram_kernel(samples, hist, bins):
    idx = cuda.grid(1)

    if idx < samples.shape[0]:
        value = int(samples[idx])
        if value >= 0 and value < bins:
            cuda.atomic.add(hist, value, 1)


# Histogram kernel using shared memory (only for the canonical 256 bins)
@cuda.jit
def histogram_shared_kernel(samples, hist):
    # Shared memory size must be a compile time constant
    local_hist = cuda.shared.array(HIST_BINS, dtype=np.int32)

    tid = cuda.threadIdx.x
    idx = cuda.grid(1)

    # Initialize shared memory, blocks may be smaller than 256 threads
    for b in range(tid, HIST_BINS, cuda.blockDim.x):
        local_hist[b] = 0

    cuda.syncthreads()

    # Shared memory atomic (fast)
    if idx < samples.shape[0]:
        value = int(samples[idx])
        if value >= 0 and value < HIST_BINS:
            cuda.atomic.add(local_hist, value, 1)

    cuda.syncthreads()

    # Global memory atomic, only 256 per block
    for b in range(tid, HIST_BINS, cuda.blockDim.x):
        if local_hist[b] != 0:
            cuda.atomic.add(hist, b, local_hist[b])


# Cumulative histogram, Hillis-Steele scan of one SCAN_BLOCK chunk per block.
# Must be launched with SCAN_BLOCK threads per block.
@cuda.jit
def cumulative_kernel(hist, cumulative, bins):
    temp = cuda.shared.array(SCAN_BLOCK, dtype=np.int32)
    carry = cuda.shared.array(1, dtype=np.int32)

    tid = cuda.threadIdx.x
    start = cuda.blockIdx.x * SCAN_BLOCK
    i = start + tid

    if i < bins:
        temp[tid] = hist[i]
    else:
        temp[tid] = 0

    # Sum of every bin owned by the preceding blocks
    if tid == 0:
        total = 0
        for j in range(start):
            total += hist[j]
        carry[0] = total

    cuda.syncthreads()

    offset = 1
    while offset < SCAN_BLOCK:
        value = 0
        if tid >= offset:
            value = temp[tid - offset]
        cuda.syncthreads()
        temp[tid] += value
        cuda.syncthreads()
        offset *= 2

    if i < bins:
        cumulative[i] = temp[tid] + carry[0]


# Cumulative histogram, each work item sums its own prefix
@cuda.jit
def cumulative_naive_kernel(hist, cumulative, bins):
    i = cuda.grid(1)

    if i < bins:
        total = 0
        for j in range(i + 1):
            total += hist[j]
        cumulative[i] = total


# Normalized lookup table, one work item per bin
@cuda.jit
def equalize_kernel(cumulative, lut, bins):
    i = cuda.grid(1)

    if i < bins:
        total = int(cumulative[bins - 1])

        # Smallest non-zero cumulative count
        cmin = 0
        for j in range(bins):
            c = int(cumulative[j])
            if c > 0 and (cmin == 0 or c < cmin):
                cmin = c

        denom = total - cmin
        if denom <= 0:
            # Constant or empty image: identity mapping
            lut[i] = i
        else:
            num = int(cumulative[i]) - cmin
            if num <= 0:
                lut[i] = 0
            else:
                # round(num / denom * (bins - 1)), half up, integer only
                value = (2 * num * (bins - 1) + denom) // (2 * denom)
                if value > bins - 1:
                    value = bins - 1
                lut[i] = value


# Back projection, one work item per sample
@cuda.jit
def back_projection_kernel(samples, lut, out):
    idx = cuda.grid(1)

    if idx < samples.shape[0]:
        out[idx] = lut[samples[idx]]


def launch_config(n, threads_per_block):
    """Blocks and threads for a 1-D grid covering ``n`` work items."""
    blocks = max(1, math.ceil(n / threads_per_block))
    return blocks, threads_per_block
