"""Error taxonomy and the discriminated ``Outcome`` returned by services.

Decode and stale-snapshot errors never leave the projector; they only decide
which event wins.  Authorization and legality errors are returned to the
caller synchronously.  Broadcast errors are recoverable: the local state is
kept and the caller may retry.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


class RelayChessError(Exception):
    """Base class for every error surfaced by relaychess."""

    recoverable: bool = False


class NotAuthenticated(RelayChessError):
    """No signer is available for an operation that publishes."""


class NotAuthorized(RelayChessError):
    """Acting on a challenge or game not addressed to the caller."""


class NotYourTurn(RelayChessError):
    """The signer does not hold the side to move."""


class GameAlreadyOver(RelayChessError):
    """The game already has a terminal result."""


class SubmissionInFlight(RelayChessError):
    """Another submission for the same game is still being published."""

    recoverable = True


class IllegalMove(RelayChessError):
    """The legality oracle rejected a move."""


class DecodeFailure(RelayChessError):
    """Malformed notation text or challenge payload."""


class StaleSnapshot(RelayChessError):
    """A snapshot carrying a shorter history than the adopted one."""


class BroadcastError(RelayChessError):
    """Publishing a signed event failed; the caller may retry."""

    recoverable = True


class BroadcastTimeout(BroadcastError):
    """Publishing did not complete within the timeout budget."""


class SigningFailed(RelayChessError):
    """The signer refused or failed to sign a draft; nothing was published."""

    recoverable = True


class NotFound(RelayChessError):
    """No canonical state exists yet for an identifier."""


class QueryFailed(RelayChessError):
    """A relay query could not be served; the caller may retry."""

    recoverable = True


@dataclass(frozen=True, slots=True)
class Outcome(Generic[T]):
    """Either a success value or one of the errors above."""

    value: T | None = None
    error: RelayChessError | None = None

    @classmethod
    def success(cls, value: T) -> Outcome[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: RelayChessError) -> Outcome[T]:
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value or raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]
