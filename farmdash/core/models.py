"""Data models for farmdash's records and sessions.

The models are implemented using :mod:`pydantic` so that rows coming back
from the backend are validated on the way in and can be serialised back to
plain dictionaries with ``model_dump``.
"""

from __future__ import annotations

import math
import time
from datetime import date, datetime
from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator


class User(BaseModel):
    """Identity attached to a session."""

    model_config = ConfigDict(extra="ignore")

    id: str
    email: str | None = None

    @property
    def email_local_part(self) -> str | None:
        if not self.email:
            return None
        return self.email.split("@", 1)[0] or None


class Session(BaseModel):
    """Authenticated identity issued by the backend.

    Attributes
    ----------
    access_token:
        Bearer token sent with every data request.
    refresh_token:
        Token exchanged for a new session before ``expires_at``.
    expires_at:
        Epoch seconds after which ``access_token`` is rejected, when known.
    user:
        The signed-in :class:`User`.

    """

    model_config = ConfigDict(extra="ignore")

    access_token: str
    refresh_token: str | None = None
    expires_at: float | None = None
    user: User

    @property
    def user_id(self) -> str:
        return self.user.id

    def expires_within(self, seconds: float, now: float | None = None) -> bool:
        if self.expires_at is None:
            return False
        now = time.time() if now is None else now
        return self.expires_at - now <= seconds


class NotificationPreferences(BaseModel):
    email: bool = True
    push: bool = True


class Profile(BaseModel):
    """One row of the ``profiles`` table; at most one per user."""

    model_config = ConfigDict(extra="ignore")

    EDITABLE_FIELDS: ClassVar[tuple[str, ...]] = (
        "full_name",
        "display_name",
        "phone",
        "birth_date",
        "address",
        "professional_title",
        "company",
        "area_of_expertise",
        "bio",
        "notification_preferences",
    )

    id: str | None = None
    user_id: str
    full_name: str
    display_name: str | None = None
    avatar_url: str | None = None
    cover_image: str | None = None
    phone: str | None = None
    birth_date: date | None = None
    address: str | None = None
    professional_title: str | None = None
    company: str | None = None
    area_of_expertise: str | None = None
    bio: str | None = None
    notification_preferences: NotificationPreferences = Field(
        default_factory=NotificationPreferences
    )
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def default_for(cls, user: User) -> Profile:
        """Profile synthesised the first time ``user`` opens their profile."""
        return cls(
            user_id=user.id,
            full_name=user.email_local_part or "User",
            notification_preferences=NotificationPreferences(email=True, push=True),
        )

    @property
    def label(self) -> str:
        return self.display_name or self.full_name

    def editable(self) -> dict[str, Any]:
        """Copy of the user-editable fields, suitable for seeding a draft."""
        data = self.model_dump(include=set(self.EDITABLE_FIELDS))
        data["notification_preferences"] = dict(data["notification_preferences"])
        return data


class ProfileUpdate(BaseModel):
    """Validated set of profile fields submitted by the owner."""

    model_config = ConfigDict(extra="ignore")

    full_name: str | None = None
    display_name: str | None = None
    phone: str | None = None
    birth_date: date | None = None
    address: str | None = None
    professional_title: str | None = None
    company: str | None = None
    area_of_expertise: str | None = None
    bio: str | None = None
    notification_preferences: NotificationPreferences | None = None

    @field_validator(
        "display_name",
        "phone",
        "birth_date",
        "address",
        "professional_title",
        "company",
        "area_of_expertise",
        "bio",
        mode="before",
    )
    @classmethod
    def _blank_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("full_name")
    @classmethod
    def _full_name_not_blank(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            raise ValueError("full name must not be empty")
        return value.strip() if value is not None else None


class Farm(BaseModel):
    """One row of the ``farms`` table."""

    model_config = ConfigDict(extra="ignore")

    id: str
    user_id: str | None = None
    name: str
    area: float
    location: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class NewFarm(BaseModel):
    """Fields accepted by the new-farm form before they reach the backend."""

    name: str
    area: float
    location: str = ""

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("farm name must not be empty")
        return value

    @field_validator("area", mode="before")
    @classmethod
    def _parse_area(cls, value: Any) -> float:
        if isinstance(value, bool):
            raise ValueError("area must be a number")
        if isinstance(value, str):
            try:
                value = float(value.strip().replace(",", "."))
            except ValueError:
                raise ValueError("area must be a number") from None
        if not isinstance(value, (int, float)):
            raise ValueError("area must be a number")
        value = float(value)
        if not math.isfinite(value) or value < 0:
            raise ValueError("area must be a non-negative number")
        return value

    @field_validator("location")
    @classmethod
    def _strip_location(cls, value: str) -> str:
        return value.strip()


class AssetKind(str, Enum):
    AVATAR = "avatar"
    COVER = "cover"

    @property
    def profile_field(self) -> str:
        return "avatar_url" if self is AssetKind.AVATAR else "cover_image"
