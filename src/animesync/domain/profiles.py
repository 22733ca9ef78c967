"""Profile lookup, creation and avatar uploads."""

from __future__ import annotations

import mimetypes
from dataclasses import dataclass
from logging import getLogger
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

from animesync.config.backend import UploadPolicy
from animesync.domain.errors import ConflictError, NotFoundError, UploadRejectedError
from animesync.domain.model import Profile, Table, utcnow
from animesync.domain.outcome import BOUNDARY_ERRORS, Success, failure_from, invalid

if TYPE_CHECKING:
    from animesync.domain.outcome import Outcome
    from animesync.domain.ports import ObjectStorage, RowStore

log = getLogger(__name__)

ALLOWED_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "gif"})


@dataclass(frozen=True, slots=True)
class ImageUpload:
    filename: str
    content: bytes
    content_type: str

    @property
    def extension(self) -> str:
        return PurePosixPath(self.filename).suffix.lstrip(".").lower()

    @property
    def size(self) -> int:
        return len(self.content)


def validate_upload(
    filename: str,
    content: bytes,
    *,
    content_type: str | None = None,
    policy: UploadPolicy | None = None,
) -> ImageUpload:
    """Check type and size before anything is sent to object storage.

    Raises :class:`UploadRejectedError` describing the first violated rule.
    """

    policy = policy or UploadPolicy()
    resolved_type = content_type or mimetypes.guess_type(filename)[0]
    upload = ImageUpload(filename=filename, content=content, content_type=resolved_type or "")
    if upload.content_type not in policy.allowed_content_types:
        allowed = ", ".join(sorted(policy.allowed_content_types))
        raise UploadRejectedError(f"Unsupported image type {upload.content_type!r}; use {allowed}")
    if upload.extension not in ALLOWED_EXTENSIONS:
        raise UploadRejectedError(f"Unsupported file extension {upload.extension!r}")
    if upload.size == 0:
        raise UploadRejectedError("Image is empty")
    if upload.size > policy.max_bytes:
        limit_mib = policy.max_bytes / (1024 * 1024)
        raise UploadRejectedError(f"Image exceeds the {limit_mib:g} MiB limit")
    return upload


def avatar_path(user_id: str, upload: ImageUpload) -> str:
    """Object key for an avatar, unique per upload."""

    millis = int(utcnow().timestamp() * 1000)
    return f"{user_id}/{millis}.{upload.extension}"


async def get_profile(store: RowStore, user_id: str) -> Outcome[Profile]:
    try:
        row = await store.select_one(Table.PROFILES, filters={"id": user_id})
        return Success(Profile.from_row(row))
    except BOUNDARY_ERRORS as exc:
        return failure_from(exc, f"Failed to load profile {user_id}")


async def get_or_create_profile(
    store: RowStore,
    user_id: str,
    *,
    current_user_id: str | None,
    email: str | None = None,
) -> Outcome[Profile]:
    """Load a profile, creating the default one when the current user has none.

    Missing profiles of other users are reported as not-found.
    """

    try:
        row = await store.select_one(Table.PROFILES, filters={"id": user_id})
    except NotFoundError as exc:
        if user_id != current_user_id:
            return failure_from(exc, f"Profile {user_id} does not exist")
        return await _create_default_profile(store, user_id, email)
    except BOUNDARY_ERRORS as exc:
        return failure_from(exc, f"Failed to load profile {user_id}")
    return Success(Profile.from_row(row))


async def _create_default_profile(
    store: RowStore, user_id: str, email: str | None
) -> Outcome[Profile]:
    profile = Profile.default_for(user_id, email)
    log.info("Creating default profile for %s", user_id)
    try:
        row = await store.insert(Table.PROFILES, profile.to_row())
    except ConflictError:
        # created concurrently by another session
        log.info("Profile %s already exists, loading it", user_id)
        return await get_profile(store, user_id)
    except BOUNDARY_ERRORS as exc:
        return failure_from(exc, "Failed to create profile")
    return Success(Profile.from_row(row))


async def update_profile(
    store: RowStore,
    user_id: str,
    *,
    username: str | None = None,
    bio: str | None = None,
) -> Outcome[Profile]:
    values: dict[str, object] = {}
    if username is not None:
        if not username.strip():
            return invalid("Username must not be empty")
        values["username"] = username.strip()
    if bio is not None:
        values["bio"] = bio
    if not values:
        return await get_profile(store, user_id)
    return await _update_profile_row(store, user_id, values, "Failed to update profile")


async def upload_avatar(
    storage: ObjectStorage,
    store: RowStore,
    user_id: str,
    *,
    filename: str,
    content: bytes,
    content_type: str | None = None,
    policy: UploadPolicy | None = None,
) -> Outcome[Profile]:
    """Validate, upload and attach a new avatar to the user's profile."""

    try:
        upload = validate_upload(filename, content, content_type=content_type, policy=policy)
        url = await storage.upload(
            avatar_path(user_id, upload), upload.content, content_type=upload.content_type
        )
    except BOUNDARY_ERRORS as exc:
        return failure_from(exc, "Failed to upload avatar")
    log.info("Uploaded avatar for %s", user_id)
    return await _update_profile_row(
        store, user_id, {"avatar_url": url}, "Failed to save avatar"
    )


async def _update_profile_row(
    store: RowStore,
    user_id: str,
    values: dict[str, object],
    message: str,
) -> Outcome[Profile]:
    try:
        rows = await store.update(Table.PROFILES, values, filters={"id": user_id})
        if not rows:
            raise NotFoundError(f"Profile {user_id} does not exist")
        return Success(Profile.from_row(rows[0]))
    except BOUNDARY_ERRORS as exc:
        return failure_from(exc, message)


__all__ = [
    "ALLOWED_EXTENSIONS",
    "ImageUpload",
    "avatar_path",
    "get_or_create_profile",
    "get_profile",
    "update_profile",
    "upload_avatar",
    "validate_upload",
]
