"""Exception hierarchy for breakout rooms."""

from __future__ import annotations

from typing import Sequence


class BreakoutError(Exception):
    """Base class for all breakout errors."""


class PairingError(BreakoutError):
    """An invite could not be created, redeemed or confirmed.

    Fatal to the host/join attempt only. Retry with a fresh invite.
    """


class WriterAuthorizationError(BreakoutError):
    """Appending a writer grant failed.

    The room stays usable; the candidate is not a peer until a retry succeeds.
    """

    def __init__(self, key: str, message: str | None = None):
        self.key = key
        super().__init__(message or f"Failed to authorize writer {key}")


class StorageError(BreakoutError):
    """The underlying store or log failed. Fatal to the owning room."""


class LogAppendError(StorageError):
    """An entry could not be appended to the room log."""


class ResourceOwnershipError(BreakoutError):
    """A resource was released twice, or released by a non-owner."""


class TeardownError(BreakoutError):
    """One or more steps failed during best-effort teardown.

    Every step is attempted before this is raised; ``errors`` holds all
    failures in the order they happened.
    """

    def __init__(self, message: str, errors: Sequence[BaseException]):
        self.errors = list(errors)
        details = "; ".join(f"{type(e).__name__}: {e}" for e in self.errors)
        super().__init__(f"{message} ({len(self.errors)} failure(s): {details})")
