"""Console diagnostics: stage arrays and per-stage profiling."""

import sys

import numpy as np


# Color codes for terminal output
class Colors:
    HEADER = '\033[95m'
    OKBLUE = '\033[94m'
    OKGREEN = '\033[92m'
    FAIL = '\033[91m'
    ENDC = '\033[0m'
    BOLD = '\033[1m'


def print_header(text: str):
    """Print formatted header"""
    print(f"\n{Colors.HEADER}{Colors.BOLD}{'='*80}{Colors.ENDC}")
    print(f"{Colors.HEADER}{Colors.BOLD}{text.center(80)}{Colors.ENDC}")
    print(f"{Colors.HEADER}{Colors.BOLD}{'='*80}{Colors.ENDC}\n")


def print_section(text: str):
    """Print formatted section"""
    print(f"\n{Colors.OKBLUE}{Colors.BOLD}{text}{Colors.ENDC}")
    print(f"{Colors.OKBLUE}{'-'*len(text)}{Colors.ENDC}")


def print_error(message: str):
    print(f"{Colors.FAIL}ERROR: {message}{Colors.ENDC}", file=sys.stderr)


def format_array(values) -> str:
    return np.array2string(np.asarray(values), max_line_width=100, threshold=1 << 16)


def format_timing(timing) -> str:
    return (f"Queued->Submitted [ns]: {timing.submit_time}, "
            f"Submitted->Started [ns]: {timing.start_delay}, "
            f"Execution [ns]: {timing.execution}, "
            f"Total [ns]: {timing.total_time}")


def print_stage(title: str, values=None, timing=None):
    print_section(title)
    if values is not None:
        print(format_array(values))
    if timing is not None:
        print(format_timing(timing))


def print_result(result):
    """Print every stage of an EqualizationResult in pipeline order."""
    timings = {t.name: t for t in result.timings}
    print_stage("Kernel 1: intensity histogram", result.histogram, timings.get("histogram"))
    print_stage("Kernel 2: cumulative histogram", result.cumulative, timings.get("cumulative"))
    print_stage("Kernel 3: equalised histogram", result.lut, timings.get("equalize"))
    print_stage("Kernel 4: back projection", None, timings.get("back_projection"))
