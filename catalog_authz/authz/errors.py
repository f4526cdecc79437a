"""Outcome taxonomy for authorization calls.

Every `authorize_*` call either returns (Allow) or raises one of the errors below.
Callers that prefer values can use `outcome_of()`.

- NotAuthorized: decision completed, nothing granted the request. Not transient.
- NetworkError / TimedOut: the privilege store could not be used. Transient; the
  caller owns retry/backoff.
- InvalidArgument: malformed resource identifier from the caller.
- ProtocolError: the store answered with something we can't interpret.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable


class Outcome(str, Enum):
    ALLOW = "allow"
    NOT_AUTHORIZED = "not_authorized"
    NETWORK_ERROR = "network_error"
    TIMED_OUT = "timed_out"
    INVALID_ARGUMENT = "invalid_argument"
    PROTOCOL_ERROR = "protocol_error"


class AuthzError(Exception):
    outcome: Outcome = Outcome.NOT_AUTHORIZED
    transient: bool = False


class NotAuthorizedError(AuthzError):
    outcome = Outcome.NOT_AUTHORIZED


class NetworkError(AuthzError):
    outcome = Outcome.NETWORK_ERROR
    transient = True


class TimedOutError(AuthzError):
    outcome = Outcome.TIMED_OUT
    transient = True


class InvalidArgumentError(AuthzError, ValueError):
    outcome = Outcome.INVALID_ARGUMENT


class StoreProtocolError(AuthzError):
    outcome = Outcome.PROTOCOL_ERROR


def outcome_of(fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Outcome:
    """Run an authorization call and report its outcome instead of raising."""
    try:
        fn(*args, **kwargs)
    except AuthzError as e:
        return e.outcome
    return Outcome.ALLOW
