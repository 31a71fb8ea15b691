"""
cuda-histeq command line.

Runs one equalization attempt on the input image, prints the stage arrays
and timings, optionally checks the result against the CPU ground truth and
shows input and output until ESC is pressed or a window is closed.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np
import nvtx
import typer

from .backend import Backend, list_devices
from .codec import load_image, save_image, show_until_closed
from .config import INPUT_IMAGE, PipelineConfig
from .errors import HistEqError
from .pipeline import EqualizationResult, HistogramEqualizer
from .reference import compare_images, reference_equalize
from .report import Colors, print_error, print_header, print_result, print_section

app = typer.Typer(
    name="cuda-histeq",
    help="Global histogram equalization on a CUDA device",
    add_completion=False,
)


@dataclass
class RunOutcome:
    result: Optional[EqualizationResult] = None
    image: Optional[np.ndarray] = None
    error: Optional[HistEqError] = None

    @property
    def ok(self):
        return self.error is None


def run_once(path, config: PipelineConfig, output=None, check=False) -> RunOutcome:
    """One complete attempt: setup, compile, four stages. Never retries."""
    try:
        backend = Backend.create(config.device_id)
        print(list_devices())

        equalizer = HistogramEqualizer(backend, config)
        build = equalizer.compile()
        if not build.ok:
            print(f"build status: {build.status}")
            print(f"build options:\t{build.options}")
            print(f"build log:\t {build.log}")
        elif config.verbose:
            print(f"build log:\t {build.log}")
        build.raise_for_status()

        image = load_image(path)
        print(f"Processing Image Size: {'x'.join(str(d) for d in image.shape)}")

        result = equalizer.run(image)
        print_result(result)

        if check:
            expected = reference_equalize(image, config.bins)
            identical, max_diff, mean_diff = compare_images(result.output, expected.output)
            print_section("CPU ground truth")
            if not identical:
                raise HistEqError(f"output differs from CPU ground truth "
                                  f"(max_diff={max_diff:.2f}, mean_diff={mean_diff:.4f})")
            print(f"{Colors.OKGREEN}IDENTICAL{Colors.ENDC}")

        if output is not None:
            save_image(output, result.output)
            print(f"Output saved to {output}")
        return RunOutcome(result=result, image=image)
    except HistEqError as err:
        print_error(str(err))
        return RunOutcome(error=err)


@app.command()
def main(
    image: str = typer.Argument(INPUT_IMAGE, help="Input image file"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Write the equalised image here"),
    bins: int = typer.Option(256, "--bins", help="Number of intensity bins"),
    scan: str = typer.Option("blocked", "--scan", help="Scan strategy: blocked or naive"),
    device: int = typer.Option(0, "--device", help="CUDA device id"),
    check: bool = typer.Option(False, "--check", help="Compare against the CPU ground truth"),
    display: bool = typer.Option(True, "--display/--no-display", help="Show input and output windows"),
    retries: int = typer.Option(0, "--retries", min=0, help="Extra attempts after a failed run"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Print the kernel build log"),
) -> None:
    """Equalize IMAGE and display the result."""
    try:
        config = PipelineConfig(bins=bins, scan=scan, device_id=device, verbose=verbose)
    except HistEqError as err:
        print_error(str(err))
        raise typer.Exit(code=1)

    print_header("Histogram Equalization")

    outcome = RunOutcome()
    for attempt in range(retries + 1):
        with nvtx.annotate(f"attempt_{attempt}"):
            outcome = run_once(image, config, output=output, check=check)
        if outcome.ok:
            break

    if not outcome.ok:
        raise typer.Exit(code=1)

    if display:
        show_until_closed({"Input": outcome.image, "Equalised Output": outcome.result.output})


if __name__ == "__main__":
    app()
