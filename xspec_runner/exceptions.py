"""Custom exception hierarchy for the XSpec runner."""


class XSpecRunnerError(Exception):
    """Base exception for all XSpec runner errors."""

    pass


class ConfigurationError(XSpecRunnerError):
    """Raised when configuration is invalid or a configured path is unusable."""

    pass


class ProgramLoadError(XSpecRunnerError):
    """Raised when the compiler or reporter stylesheet cannot be found or compiled."""

    pass


class FilterError(XSpecRunnerError):
    """Raised when filter counts are read before the document was consumed."""

    pass


class CompilationError(XSpecRunnerError):
    """Raised when an XSpec cannot be compiled into a test stylesheet."""

    pass


class TransformError(XSpecRunnerError):
    """Raised when a transformation aborts at runtime."""

    pass


class ResultAggregationError(XSpecRunnerError):
    """Raised when results are read or fed in the wrong collector state."""

    pass


class XSpecFailuresError(XSpecRunnerError):
    """Raised when some XSpec tests failed or were missed."""

    def __init__(self, message: str, summary=None):
        super().__init__(message)
        self.summary = summary
