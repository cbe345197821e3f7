"""Exceptions raised by the Cable Route System.

Soft findings (a failed compliance rule, a clash, an unroutable auto-route)
are returned as data. Only malformed input, bad configuration and storage
failures are raised.
"""


class RouteEngineError(Exception):
    """Base class for all cable route engine errors."""


class InputValidationError(RouteEngineError, ValueError):
    """Malformed route or pathfinder input (too few points, bad diameter, out of bounds)."""


class ConfigurationError(RouteEngineError, ValueError):
    """A cost template, rule set or engine config failed validation when loaded."""


class PersistenceError(RouteEngineError):
    """The version repository could not save, list or delete."""


class PartialConversionError(RouteEngineError):
    """One or more lines of a batch conversion failed.

    Only raised on request via BatchConversionResult.raise_for_errors();
    batch conversion itself always returns partial results.
    """

    def __init__(self, errors):
        self.errors = list(errors)
        details = "; ".join(f"line {e.line_index}: {e.message}" for e in self.errors)
        super().__init__(f"{len(self.errors)} line(s) failed to convert: {details}")


class VersionNotFoundError(RouteEngineError, KeyError):
    """No saved version with the requested id (or it belongs to another route)."""

    def __str__(self):
        return str(self.args[0]) if self.args else "version not found"
