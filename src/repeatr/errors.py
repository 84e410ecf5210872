"""Exceptions raised by repeatr.

Construction and parsing problems are raised synchronously where they are
detected. Iteration itself never raises; it only stops.
"""


class RepeatrError(Exception):
    """Base class for every error raised by repeatr."""


class ValidationError(RepeatrError, ValueError):
    """Bad or contradictory rule options, detected at construction."""

    def __init__(self, message: str, option: str | None = None):
        super().__init__(message)
        self.option = option


class UnknownOptionError(ValidationError):
    pass


class InvalidDateError(ValidationError):
    pass


class SetPositionError(ValidationError):
    pass


class WeekdayOrdinalError(ValidationError):
    pass


class ParseError(RepeatrError, ValueError):
    """Malformed canonical or natural-language text."""

    def __init__(self, message: str, token: str | None = None):
        super().__init__(message)
        self.token = token


class UnsupportedZoneError(RepeatrError, LookupError):
    """A named time zone could not be resolved."""

    def __init__(self, tzid: str):
        super().__init__(f"Unknown time zone: '{tzid}'")
        self.tzid = tzid
