"""Base adapter interface for the remote data service."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from ..core.models import Session

INITIAL_SESSION = "INITIAL_SESSION"
SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"
TOKEN_REFRESHED = "TOKEN_REFRESHED"

AuthListener = Callable[[str, "Session | None"], Awaitable[None]]
Unsubscribe = Callable[[], None]


class Backend(ABC):
    """Abstract adapter for the managed backend (auth, tables, storage).

    Implementations raise :class:`~farmdash.errors.BackendError` subclasses
    and never return error values.
    """

    def __init__(self) -> None:
        self._auth_listeners: list[AuthListener] = []

    # ------------------------------------------------------------------
    # Auth state events
    # ------------------------------------------------------------------
    def on_auth_state_change(self, callback: AuthListener) -> Unsubscribe:
        """Register ``callback`` for auth events and return an unsubscribe."""
        self._auth_listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._auth_listeners:
                self._auth_listeners.remove(callback)

        return unsubscribe

    async def _emit(self, event: str, session: Session | None) -> None:
        for listener in list(self._auth_listeners):
            await listener(event, session)

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------
    @abstractmethod
    async def get_session(self) -> Session | None:
        """Return the current session, if any."""

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> Session:
        """Exchange an email/password pair for a session."""

    @abstractmethod
    async def sign_up(self, email: str, password: str) -> Session | None:
        """Register an account.

        Returns ``None`` when the service requires email confirmation before
        a session is issued.
        """

    @abstractmethod
    async def sign_out(self) -> None:
        """End the current session."""

    @abstractmethod
    async def refresh_session(self) -> Session:
        """Exchange the refresh token for a new session."""

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------
    @abstractmethod
    async def select(
        self,
        table: str,
        *,
        eq: Mapping[str, Any] | None = None,
        order: str | None = None,
        descending: bool = False,
    ) -> list[dict[str, Any]]:
        """Return rows of ``table`` whose columns equal ``eq``."""

    @abstractmethod
    async def insert(self, table: str, row: Mapping[str, Any]) -> dict[str, Any]:
        """Insert ``row`` and return the stored row."""

    @abstractmethod
    async def update(
        self, table: str, values: Mapping[str, Any], *, eq: Mapping[str, Any]
    ) -> list[dict[str, Any]]:
        """Patch matching rows with ``values`` and return them."""

    @abstractmethod
    async def upsert(
        self, table: str, row: Mapping[str, Any], *, on_conflict: str
    ) -> dict[str, Any]:
        """Insert ``row`` or merge it into the row sharing ``on_conflict``."""

    @abstractmethod
    async def delete(self, table: str, *, eq: Mapping[str, Any]) -> None:
        """Delete matching rows."""

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------
    @abstractmethod
    async def upload(
        self, bucket: str, path: str, data: bytes, content_type: str | None = None
    ) -> None:
        """Store ``data`` under ``bucket``/``path``."""

    @abstractmethod
    def public_url(self, bucket: str, path: str) -> str:
        """Public URL for an object previously uploaded."""

    async def close(self) -> None:
        """Release any underlying resources."""
