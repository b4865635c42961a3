"""Error taxonomy for the reconstruction core.

Empty input is not an error: every component returns a well-typed empty
result instead of raising.
"""

from __future__ import annotations


class TimelineError(Exception):
    """Base class for errors raised by the reconstruction core."""


class ParseError(TimelineError, ValueError):
    """A timestamp or ``"HH:MM"`` time-of-day string could not be parsed.

    Also a ValueError so pydantic validators report it as a field error.
    """


class InconsistentWindow(TimelineError):
    """A time window whose start lies after its end.

    Not a ValueError, so pydantic validators let it propagate unwrapped.
    """

    def __init__(self, from_minute: int, to_minute: int) -> None:
        self.from_minute = from_minute
        self.to_minute = to_minute
        super().__init__(
            f"window start ({from_minute}) is after window end ({to_minute})"
        )
