"""Tests for the cuda-histeq command."""

from unittest.mock import patch

import cv2
import numpy as np
from typer.testing import CliRunner

from cuda_histeq.__main__ import RunOutcome, app, run_once
from cuda_histeq.codec import load_image
from cuda_histeq.config import PipelineConfig
from cuda_histeq.errors import HistEqError, ImageDecodeError

runner = CliRunner()


def write_image(tmp_path, image):
    path = tmp_path / "input.png"
    cv2.imwrite(str(path), image)
    return path


def test_equalises_and_checks_against_cpu(tmp_path, dark_image):
    path = write_image(tmp_path, dark_image)
    out = tmp_path / "out.png"

    result = runner.invoke(app, [str(path), "--no-display", "--check", "-o", str(out)])

    assert result.exit_code == 0, result.output
    assert "Kernel 1" in result.output
    assert "IDENTICAL" in result.output
    saved = cv2.imread(str(out), cv2.IMREAD_UNCHANGED)
    assert saved.shape == dark_image.shape
    assert saved.max() == 255


def test_missing_input_fails(tmp_path):
    result = runner.invoke(app, [str(tmp_path / "missing.pgm"), "--no-display"])
    assert result.exit_code == 1


def test_invalid_scan_strategy(tmp_path, dark_image):
    path = write_image(tmp_path, dark_image)
    result = runner.invoke(app, [str(path), "--no-display", "--scan", "blelloch"])
    assert result.exit_code == 1


def test_retries_are_bounded(tmp_path):
    with patch("cuda_histeq.__main__.run_once") as mock_run:
        mock_run.return_value = RunOutcome(error=HistEqError("boom"))

        result = runner.invoke(app, [str(tmp_path / "x.png"), "--no-display", "--retries", "2"])

    assert result.exit_code == 1
    assert mock_run.call_count == 3


def test_no_retry_by_default(tmp_path):
    with patch("cuda_histeq.__main__.run_once") as mock_run:
        mock_run.return_value = RunOutcome(error=HistEqError("boom"))

        runner.invoke(app, [str(tmp_path / "x.png"), "--no-display"])

    assert mock_run.call_count == 1


def test_display_gets_input_and_output(tmp_path, dark_image):
    path = write_image(tmp_path, dark_image)

    with patch("cuda_histeq.__main__.show_until_closed") as mock_show:
        result = runner.invoke(app, [str(path)])

    assert result.exit_code == 0, result.output
    windows = mock_show.call_args[0][0]
    assert set(windows) == {"Input", "Equalised Output"}
    np.testing.assert_array_equal(windows["Input"], dark_image)


def test_display_reuses_decoded_input(tmp_path, dark_image):
    path = write_image(tmp_path, dark_image)

    with patch("cuda_histeq.__main__.show_until_closed") as mock_show, \
            patch("cuda_histeq.__main__.load_image", wraps=load_image) as mock_load:
        result = runner.invoke(app, [str(path)])

    assert result.exit_code == 0, result.output
    assert mock_load.call_count == 1
    assert mock_show.call_count == 1


def test_every_attempt_lists_devices(tmp_path, dark_image):
    path = write_image(tmp_path, dark_image)

    result = runner.invoke(app, [str(path), "--no-display"])

    assert result.exit_code == 0, result.output
    assert "Device 0: " in result.output


def test_run_once_returns_error_value(tmp_path):
    outcome = run_once(tmp_path / "missing.pgm", PipelineConfig())

    assert not outcome.ok
    assert outcome.result is None
    assert outcome.image is None
    assert isinstance(outcome.error, ImageDecodeError)
