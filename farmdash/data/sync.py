"""Record synchronizer for profiles and farms.

Every operation issues exactly the remote calls it needs, converts backend
failures into :class:`~farmdash.errors.FetchError`,
:class:`~farmdash.errors.PersistError` or :class:`~farmdash.errors.UploadError`
and, on success, replaces the local cache with what the backend returned.
Nothing is written to the cache before the backend confirms it, so a failed
call leaves the cache untouched. No operation retries.
"""

from __future__ import annotations

import datetime
import logging
import os
import uuid
from collections.abc import Callable, Mapping
from datetime import UTC
from typing import Any

import pydantic

from ..adapters.base import Backend
from ..core.models import AssetKind, Farm, NewFarm, Profile, ProfileUpdate, User
from ..errors import (
    BackendError,
    FetchError,
    PersistError,
    UploadError,
    ValidationError,
)

log = logging.getLogger(__name__)

PROFILES = "profiles"
FARMS = "farms"


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(tz=UTC)


def _first_error(exc: pydantic.ValidationError) -> str:
    err = exc.errors()[0]
    field = ".".join(str(p) for p in err.get("loc", ()))
    msg = str(err.get("msg", "invalid value")).removeprefix("Value error, ")
    return f"{field}: {msg}" if field else msg


def asset_path(user_id: str, kind: AssetKind, filename: str) -> str:
    """Storage path for a new ``kind`` asset of ``user_id``."""
    ext = os.path.splitext(filename)[1].lstrip(".").lower() or "bin"
    return f"{user_id}/{kind.value}/{uuid.uuid4().hex}.{ext}"


class RecordSynchronizer:
    """Remote CRUD for one signed-in identity plus its local cache."""

    def __init__(
        self,
        backend: Backend,
        *,
        bucket: str = "avatars",
        clock: Callable[[], datetime.datetime] = _utcnow,
    ) -> None:
        self.backend = backend
        self.bucket = bucket
        self.clock = clock
        self.profile: Profile | None = None
        self.farms: list[Farm] = []

    def clear(self) -> None:
        """Forget all cached records (used on sign out)."""
        self.profile = None
        self.farms = []

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------
    async def fetch_profile(self, user_id: str) -> Profile | None:
        try:
            rows = await self.backend.select(PROFILES, eq={"user_id": user_id})
        except BackendError as exc:
            raise FetchError(f"Could not load profile: {exc}", exc) from exc
        if not rows:
            return None
        self.profile = Profile.model_validate(rows[0])
        return self.profile

    async def fetch_or_create_profile(self, user: User) -> Profile:
        """Return the profile of ``user``, creating the default one if missing."""
        profile = await self.fetch_profile(user.id)
        if profile is not None:
            return profile
        default = Profile.default_for(user)
        row = default.model_dump(mode="json", exclude_none=True)
        try:
            created = await self.backend.insert(PROFILES, row)
        except BackendError as exc:
            raise PersistError(f"Could not create profile: {exc}", exc) from exc
        log.info("Created default profile user_id=%s", user.id)
        self.profile = Profile.model_validate(created)
        return self.profile

    async def save_profile(self, user_id: str, fields: Mapping[str, Any]) -> Profile:
        """Upsert the supplied ``fields`` of the profile keyed by ``user_id``."""
        try:
            update = ProfileUpdate.model_validate(dict(fields))
        except pydantic.ValidationError as exc:
            raise ValidationError(_first_error(exc)) from exc
        values = update.model_dump(mode="json", include=set(fields) & set(Profile.EDITABLE_FIELDS))
        if values.get("full_name") is None:
            values.pop("full_name", None)
        row = {**values, "user_id": user_id, "updated_at": self.clock().isoformat()}
        try:
            saved = await self.backend.upsert(PROFILES, row, on_conflict="user_id")
        except BackendError as exc:
            raise PersistError(f"Could not save profile: {exc}", exc) from exc
        log.info("Saved profile user_id=%s", user_id)
        self.profile = Profile.model_validate(saved)
        return self.profile

    async def upload_asset(
        self,
        user_id: str,
        data: bytes,
        filename: str,
        kind: AssetKind,
        content_type: str | None = None,
    ) -> str:
        """Upload an avatar or cover image and point the profile at it.

        The upload is not undone when patching the profile fails; the
        resulting :class:`PersistError` names the orphaned object.
        """
        path = asset_path(user_id, kind, filename)
        try:
            await self.backend.upload(self.bucket, path, data, content_type)
        except BackendError as exc:
            raise UploadError(f"Could not upload image: {exc}", exc) from exc
        url = self.backend.public_url(self.bucket, path)
        orphaned_path = f"{self.bucket}/{path}"
        try:
            rows = await self.backend.update(
                PROFILES, {kind.profile_field: url}, eq={"user_id": user_id}
            )
        except BackendError as exc:
            log.warning(
                "Uploaded %s but could not attach it to profile user_id=%s: %s",
                orphaned_path,
                user_id,
                exc,
            )
            raise PersistError(
                f"Image uploaded but profile was not updated: {exc}",
                exc,
                orphaned_path=orphaned_path,
            ) from exc
        if not rows:
            log.warning(
                "Uploaded %s but no profile row exists for user_id=%s",
                orphaned_path,
                user_id,
            )
            raise PersistError(
                "Image uploaded but no profile exists to attach it to.",
                orphaned_path=orphaned_path,
            )
        self.profile = Profile.model_validate(rows[0])
        return url

    # ------------------------------------------------------------------
    # Farms
    # ------------------------------------------------------------------
    async def list_farms(self, user_id: str) -> list[Farm]:
        """Farms owned by ``user_id``, newest first."""
        try:
            rows = await self.backend.select(
                FARMS, eq={"user_id": user_id}, order="created_at", descending=True
            )
        except BackendError as exc:
            raise FetchError(f"Could not load farms: {exc}", exc) from exc
        self.farms = [Farm.model_validate(r) for r in rows]
        return list(self.farms)

    async def create_farm(
        self, user_id: str, name: str, area: Any, location: str
    ) -> Farm:
        try:
            new_farm = NewFarm(name=name, area=area, location=location)
        except pydantic.ValidationError as exc:
            raise ValidationError(_first_error(exc)) from exc
        try:
            row = await self.backend.insert(
                FARMS, {"user_id": user_id, **new_farm.model_dump()}
            )
        except BackendError as exc:
            raise PersistError(f"Could not add farm: {exc}", exc) from exc
        farm = Farm.model_validate(row)
        log.info("Created farm id=%s user_id=%s", farm.id, user_id)
        self.farms.insert(0, farm)
        return farm

    async def delete_farm(self, farm_id: str, *, confirmed: bool = False) -> bool:
        """Delete a farm once the user confirmed it.

        Returns ``False`` without contacting the backend when ``confirmed`` is
        not set.
        """
        if not confirmed:
            log.debug("Delete of farm id=%s not confirmed", farm_id)
            return False
        try:
            await self.backend.delete(FARMS, eq={"id": farm_id})
        except BackendError as exc:
            raise PersistError(f"Could not delete farm: {exc}", exc) from exc
        log.info("Deleted farm id=%s", farm_id)
        self.farms = [f for f in self.farms if f.id != farm_id]
        return True
