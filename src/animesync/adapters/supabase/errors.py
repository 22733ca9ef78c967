"""Map PostgREST and storage error responses onto domain exceptions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from animesync.domain.errors import ConflictError, NotFoundError, RemoteError

if TYPE_CHECKING:
    import httpx

NO_ROWS_CODE = "PGRST116"
UNIQUE_VIOLATION_CODE = "23505"


class ErrorPayload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    code: str | None = None
    message: str | None = None
    details: str | None = None
    hint: str | None = None
    error: str | None = None
    statusCode: str | None = None  # noqa: N815


def _payload(response: httpx.Response) -> ErrorPayload:
    try:
        data = response.json()
    except ValueError:
        return ErrorPayload(message=response.text or response.reason_phrase)
    if not isinstance(data, dict):
        return ErrorPayload(message=str(data))
    try:
        return ErrorPayload.model_validate(data)
    except ValueError:
        return ErrorPayload(message=str(data))


def raise_for_backend(response: httpx.Response, *, context: str) -> None:
    """Raise the domain exception matching an error response; no-op on success."""

    if not response.is_error:
        return
    payload = _payload(response)
    message = f"{context}: {payload.message or payload.error or response.reason_phrase}"
    status = response.status_code
    if payload.code == NO_ROWS_CODE or status == 404:  # noqa: PLR2004
        raise NotFoundError(message, code=payload.code, status=status)
    if payload.code == UNIQUE_VIOLATION_CODE or status == 409:  # noqa: PLR2004
        raise ConflictError(message, code=payload.code, status=status)
    raise RemoteError(message, code=payload.code, status=status)
