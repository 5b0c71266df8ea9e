"""Edit/view state for the profile form and the new-farm form.

A form holds the committed record and, while editing, a draft copy of its
editable fields::

    VIEWING --begin_edit--> EDITING --save--> SAVING --ok--> VIEWING
                            |   ^               |
                            |   +----failed-----+
                            +--cancel--> VIEWING

Field mutation is only honoured in ``EDITING``. The UI is expected to
disable its inputs outside that state as well; :meth:`FormController.set_field`
returning ``False`` is the fallback, not the primary guard.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Generic, TypeVar

from ..core.models import Farm, Profile
from ..errors import StateError, ValidationError
from .sync import RecordSynchronizer

T = TypeVar("T")

_NO_RESET = object()


class FormState(str, Enum):
    VIEWING = "viewing"
    EDITING = "editing"
    SAVING = "saving"


class FormController(ABC, Generic[T]):
    """State machine shared by every editable entity."""

    fields: tuple[str, ...] = ()

    def __init__(self, records: RecordSynchronizer, committed: T | None = None) -> None:
        self.records = records
        self.committed = committed
        self.draft: dict[str, Any] | None = None
        self.state = FormState.VIEWING
        self._deferred_reset: Any = _NO_RESET

    @property
    def editing(self) -> bool:
        return self.state is FormState.EDITING

    def begin_edit(self) -> dict[str, Any]:
        if self.state is not FormState.VIEWING:
            raise StateError(f"Cannot start editing while {self.state.value}.")
        self.draft = self._seed()
        self.state = FormState.EDITING
        return self.draft

    def set_field(self, name: str, value: Any) -> bool:
        if self.state is not FormState.EDITING or self.draft is None:
            return False
        if name not in self.fields:
            raise ValidationError(f"Unknown field: {name}")
        self.draft[name] = value
        return True

    def update(self, values: dict[str, Any]) -> bool:
        """Set several draft fields at once."""
        if self.state is not FormState.EDITING or self.draft is None:
            return False
        unknown = [name for name in values if name not in self.fields]
        if unknown:
            raise ValidationError(f"Unknown field: {unknown[0]}")
        self.draft.update(values)
        return True

    async def save(self) -> T:
        if self.state is not FormState.EDITING or self.draft is None:
            raise StateError("There are no changes to save.")
        self.state = FormState.SAVING
        try:
            result = await self._commit(dict(self.draft))
        except Exception:
            # keep the draft so the user can correct it and retry
            self.state = FormState.EDITING
            self._apply_deferred_reset()
            raise
        self.committed = result
        self.draft = None
        self.state = FormState.VIEWING
        self._apply_deferred_reset()
        return result

    def cancel(self) -> None:
        if self.state is FormState.SAVING:
            raise StateError("A save is already in progress.")
        self.draft = None
        self.state = FormState.VIEWING

    def reset(self, committed: T | None) -> None:
        """Replace the committed record and drop any draft.

        While a save is in flight the reset is held back and applied once the
        save finishes, so the draft survives until the save outcome is known.
        """
        if self.state is FormState.SAVING:
            self._deferred_reset = committed
            return
        self.committed = committed
        self.draft = None
        self.state = FormState.VIEWING

    def _apply_deferred_reset(self) -> None:
        if self._deferred_reset is _NO_RESET:
            return
        committed, self._deferred_reset = self._deferred_reset, _NO_RESET
        self.reset(committed)

    @abstractmethod
    def _seed(self) -> dict[str, Any]:
        """Initial draft contents."""

    @abstractmethod
    async def _commit(self, draft: dict[str, Any]) -> T:
        """Submit ``draft`` and return the record the backend stored."""


class ProfileForm(FormController[Profile]):
    fields = Profile.EDITABLE_FIELDS

    def _seed(self) -> dict[str, Any]:
        if self.committed is None:
            raise StateError("Profile has not been loaded yet.")
        return self.committed.editable()

    async def _commit(self, draft: dict[str, Any]) -> Profile:
        return await self.records.save_profile(self.committed.user_id, draft)

    def toggle_notification(self, channel: str) -> bool:
        """Flip the ``email`` or ``push`` preference in the draft."""
        if not self.editing or self.draft is None:
            return False
        if channel not in ("email", "push"):
            raise ValidationError(f"Unknown notification channel: {channel}")
        prefs = dict(self.draft["notification_preferences"])
        prefs[channel] = not prefs[channel]
        self.draft["notification_preferences"] = prefs
        return True


class NewFarmForm(FormController[Farm]):
    """Form for adding a farm; ``committed`` is the last farm created."""

    fields = ("name", "area", "location")

    def __init__(self, records: RecordSynchronizer, user_id: str | None = None) -> None:
        super().__init__(records)
        self.user_id = user_id

    def _seed(self) -> dict[str, Any]:
        return {"name": "", "area": "", "location": ""}

    async def _commit(self, draft: dict[str, Any]) -> Farm:
        if self.user_id is None:
            raise StateError("Sign in to add farms.")
        return await self.records.create_farm(
            self.user_id, draft["name"], draft["area"], draft["location"]
        )
