"""Exceptions raised by port implementations.

Adapters raise these; domain components catch them at their boundary and turn
them into :class:`animesync.domain.outcome.Failure` values.
"""

from __future__ import annotations


class RemoteError(RuntimeError):
    """A backing-store, storage or catalog request failed."""

    def __init__(self, message: str, *, code: str | None = None, status: int | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.status = status


class NotFoundError(RemoteError):
    """The requested row does not exist."""


class ConflictError(RemoteError):
    """A write raced with another write on the same unique key."""


class ChannelError(RemoteError):
    """A push channel dropped or could not be opened."""


class UploadRejectedError(ValueError):
    """An upload was refused before it reached object storage."""


class ValidationError(ValueError):
    """A user action was refused locally."""
