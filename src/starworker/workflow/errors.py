"""
Error taxonomy shared by every starworker layer.

- Configuration / registration errors are fatal at startup.
- CustomError carries a reason code and is visible to scripts.
- Engine and codec errors surface through futures.
"""

from typing import Any, Tuple


INVALID_ARGUMENT = "invalid-argument"
UNIMPLEMENTED = "unimplemented"


class StarworkerError(Exception):
    """Base class for starworker errors."""


class ConfigurationError(StarworkerError):
    """Bad connection location, transport scheme or config file."""


class RegistrationError(StarworkerError):
    """Malformed or duplicate workflow/activity registration."""


class CustomError(StarworkerError):
    """
    Error with a reason code and optional details.

    Raised by builtins for call-validation failures and translated to the
    engine's application error at the workflow boundary.
    """

    def __init__(self, reason: str, *details: Any):
        self.reason = reason
        self.details: Tuple[Any, ...] = details
        message = reason if not details else f"{reason}: {', '.join(str(d) for d in details)}"
        super().__init__(message)


class CanceledError(StarworkerError):
    """The context of a blocking primitive was cancelled."""


class AlreadyResolvedError(StarworkerError):
    """A future was resolved (or chained) more than once."""


class CodecError(StarworkerError):
    """Payload could not be encoded."""


class DecodeError(CodecError):
    """Payload could not be decoded into the requested type."""
