"""
Custom exception classes and error handling.

Engine errors are meaningful without HTTP; main.py maps them to responses
via their ``error_code``.
"""
from typing import Optional


# =========================================================================
# ANALYTICS ENGINE ERRORS
# =========================================================================

class AnalyticsError(Exception):
    """Base class for failures surfaced by the training analytics engine."""

    error_code = "ANALYTICS_ERROR"


class SourceDataError(AnalyticsError):
    """
    The workout log store could not be read.

    The collaborator's exception is kept as ``__cause__``; the engine never retries.
    """

    error_code = "SOURCE_UNAVAILABLE"

    def __init__(self, operation: str, detail: Optional[str] = None):
        self.operation = operation
        message = f"Could not read source data ({operation})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class InvalidParameterError(AnalyticsError):
    """A caller-supplied parameter is outside its allowed range."""

    error_code = "VALIDATION_ERROR"

    def __init__(self, parameter: str, detail: str):
        self.parameter = parameter
        super().__init__(f"Invalid parameter '{parameter}': {detail}")

