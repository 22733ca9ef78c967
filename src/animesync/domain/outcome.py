"""Typed results returned across component boundaries."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from logging import getLogger

from animesync.domain.errors import (
    ChannelError,
    ConflictError,
    NotFoundError,
    RemoteError,
    UploadRejectedError,
    ValidationError,
)

log = getLogger(__name__)


class FailureKind(StrEnum):
    RECOVERABLE = "recoverable"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    CHANNEL = "channel"
    INVALID = "invalid"


@dataclass(frozen=True, slots=True)
class Success[T]:
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class Failure:
    kind: FailureKind
    message: str
    cause: BaseException | None = None

    @property
    def ok(self) -> bool:
        return False


type Outcome[T] = Success[T] | Failure


def classify(exc: BaseException) -> FailureKind:
    if isinstance(exc, ConflictError):
        return FailureKind.CONFLICT
    if isinstance(exc, NotFoundError):
        return FailureKind.NOT_FOUND
    if isinstance(exc, ChannelError):
        return FailureKind.CHANNEL
    if isinstance(exc, UploadRejectedError | ValidationError):
        return FailureKind.INVALID
    return FailureKind.RECOVERABLE


def failure_from(exc: BaseException, message: str) -> Failure:
    kind = classify(exc)
    if kind is FailureKind.INVALID:
        log.info("%s: %s", message, exc)
    else:
        log.warning("%s (%s): %s", message, kind, exc)
    return Failure(kind=kind, message=message, cause=exc)


def invalid(message: str) -> Failure:
    return Failure(kind=FailureKind.INVALID, message=message)


# Exceptions a component boundary converts into Failure values. Anything else
# is a programming error and propagates.
BOUNDARY_ERRORS: tuple[type[Exception], ...] = (
    RemoteError,
    UploadRejectedError,
    ValidationError,
)
