"""
Errors raised by the harness.

Everything derives from :class:`HarnessError`; each subclass also
inherits from the builtin exception it is closest to, so callers that
only know about ``ValueError`` or ``OSError`` still catch them.
"""

__all__ = [
    "HarnessError",
    "ConfigurationError",
    "DriverBinaryMissing",
    "MalformedUpload",
    "StorageError",
    "ScenarioFailure",
    "ScenarioTimeout",
    "ScenarioAssertionFailure",
]


class HarnessError(Exception):
    """Base class for all harness errors."""


class ConfigurationError(HarnessError):
    """Missing or invalid settings; fatal at startup."""


class DriverBinaryMissing(HarnessError, FileNotFoundError):
    """The configured browser executable does not exist."""

    def __init__(self, path):
        self.path = path
        super().__init__("Driver binary missing: %s" % path)

    def __str__(self):
        return "Driver binary missing: %s" % self.path


class MalformedUpload(HarnessError, ValueError):
    """The request body could not be decoded as multipart data."""


class StorageError(HarnessError, OSError):
    """A captured part could not be written to the upload directory."""


class ScenarioFailure(HarnessError, AssertionError):
    """A verification scenario did not produce the expected outcome."""


class ScenarioTimeout(ScenarioFailure):
    """The page did not resolve an asynchronous call in time."""

    def __init__(self, message, timeout=None):
        self.timeout = timeout
        super().__init__(message)


class ScenarioAssertionFailure(ScenarioFailure):
    """Expected and actual values differ."""

    def __init__(self, message, expected=None, actual=None):
        self.expected = expected
        self.actual = actual
        super().__init__(
            "%s\nexpected: %r\n  actual: %r" % (message, expected, actual))
