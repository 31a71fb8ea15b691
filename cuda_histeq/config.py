from dataclasses import dataclass

from .errors import ConfigError

# 0-255 pixel values
HIST_BINS = 256

# 1-D launches, 256 threads per block
THREADS_PER_BLOCK = 256

# Chunk scanned by one block of the cumulative kernel (shared memory size)
SCAN_BLOCK = 256

# Change to a colour image to test the interleaved-channel path
INPUT_IMAGE = "./input/test.pgm"

SCAN_STRATEGIES = ("blocked", "naive")


@dataclass
class PipelineConfig:
    """Configuration for one equalization run."""
    bins: int = HIST_BINS
    threads_per_block: int = THREADS_PER_BLOCK
    scan: str = "blocked"
    device_id: int = 0
    verbose: bool = False

    def __post_init__(self):
        if self.bins < 1:
            raise ConfigError(f"bins must be positive, got {self.bins}")
        if self.bins > 65536:
            raise ConfigError(f"at most 65536 bins are supported, got {self.bins}")
        if self.threads_per_block < 1 or self.threads_per_block > 1024:
            raise ConfigError(f"threads_per_block must be in [1, 1024], got {self.threads_per_block}")
        if self.scan not in SCAN_STRATEGIES:
            raise ConfigError(f"unknown scan strategy {self.scan!r}, expected one of {SCAN_STRATEGIES}")
