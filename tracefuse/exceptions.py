"""tracefuse custom exceptions."""

class TraceFuseError(Exception):
    """Base exception for tracefuse."""
    pass

class HttpFileReadError(TraceFuseError):
    """Raised when the .http request file cannot be read at all."""
    pass

class LogReadError(TraceFuseError):
    """Raised when the execution log cannot be read at all."""
    pass

class ExecutionError(TraceFuseError):
    """Raised when the wrapped test runner cannot be started or times out."""
    pass

class RunInProgressError(TraceFuseError):
    """Raised when a run is requested for a target that is already running."""
    pass

class FormatterError(TraceFuseError):
    """Raised when output formatting fails."""
    pass

class ValidationError(TraceFuseError, ValueError):
    """Raised when validation fails."""
    pass
