class HistEqError(Exception):
    """Base class for every failure of an equalization run."""


class ConfigError(HistEqError):
    pass


class SampleRangeError(HistEqError):
    """Input samples outside [0, bins - 1]."""


class ImageDecodeError(HistEqError):
    """Input file missing or malformed, or output file not writable."""


class BackendError(HistEqError):
    """
    Failure of the CUDA driver during allocation, transfer or dispatch.

    Carries the numeric driver code and its symbolic name next to the
    driver message.
    """

    def __init__(self, message, code=None, name=None):
        self.message = message
        self.code = code
        self.name = name
        if code is None:
            super().__init__(message)
        else:
            super().__init__(f"{message}, {name} ({code})")


class BuildError(HistEqError):
    """Raised from a failed BuildResult on request."""

    def __init__(self, result):
        self.result = result
        super().__init__(
            f"kernel build failed\n"
            f"build status: {result.status}\n"
            f"build options:\t{result.options}\n"
            f"build log:\t {result.log}"
        )
