"""Signal-core exceptions.

Every error is local to a single refresh or tick cycle.  Callers drop the
cycle's update and keep the prior valid state.
"""


class SignalError(Exception):
    """Base exception for the signal-derivation core."""


class InsufficientDataError(SignalError, ValueError):
    """The input series is shorter than the indicator window requires."""

    def __init__(self, indicator: str, required: int, got: int) -> None:
        self.indicator = indicator
        self.required = required
        self.got = got
        super().__init__(
            f"Need at least {required} values for {indicator}, got {got}"
        )


class MissingFieldError(SignalError, KeyError):
    """A classifier was invoked on a snapshot lacking a field it needs."""

    def __init__(self, field_name: str) -> None:
        self.field_name = field_name
        super().__init__(field_name)

    def __str__(self) -> str:
        return f"Snapshot is missing required field '{self.field_name}'"


class InvalidInputError(SignalError, ValueError):
    """Non-finite or negative observation, or malformed series input."""
