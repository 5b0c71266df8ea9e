"""Tracking of the signed-in identity."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from ..adapters.base import INITIAL_SESSION, Backend, Unsubscribe
from ..core.models import Session
from ..errors import PasswordMismatch

log = logging.getLogger(__name__)

SessionListener = Callable[["Session | None"], Awaitable[None]]


class SessionManager:
    """Follows the backend's auth state and fans it out to listeners.

    Listeners are awaited for every transition: the value resolved by
    :meth:`start` (recorded as ``INITIAL_SESSION``), each sign in, sign out
    and token refresh. A listener that subscribes after :meth:`start`
    immediately receives the current value. :attr:`last_event` names the
    event behind the current value.
    """

    def __init__(self, backend: Backend) -> None:
        self.backend = backend
        self.session: Session | None = None
        self._listeners: list[SessionListener] = []
        self._resolved = False
        self.last_event: str | None = None
        self._backend_unsubscribe: Unsubscribe | None = None

    @property
    def user_id(self) -> str | None:
        return self.session.user_id if self.session else None

    async def start(self) -> Session | None:
        """Attach to the backend and resolve the initial session once."""
        if self._backend_unsubscribe is None:
            self._backend_unsubscribe = self.backend.on_auth_state_change(
                self._on_backend_event
            )
        session = await self.backend.get_session()
        self._resolved = True
        await self._on_backend_event(INITIAL_SESSION, session)
        return session

    async def subscribe(self, on_change: SessionListener) -> Unsubscribe:
        self._listeners.append(on_change)

        def unsubscribe() -> None:
            if on_change in self._listeners:
                self._listeners.remove(on_change)

        if self._resolved:
            await on_change(self.session)
        return unsubscribe

    async def _on_backend_event(self, event: str, session: Session | None) -> None:
        log.debug("auth event %s for %s", event, session.user_id if session else None)
        self.last_event = event
        await self._publish(session)

    async def _publish(self, session: Session | None) -> None:
        self.session = session
        for listener in list(self._listeners):
            await listener(session)

    # ------------------------------------------------------------------
    # Auth operations
    # ------------------------------------------------------------------
    async def sign_in(self, email: str, password: str) -> Session:
        """Sign in; raises ``InvalidCredentials`` or ``NetworkError``."""
        return await self.backend.sign_in(email.strip(), password)

    async def sign_up(
        self, email: str, password: str, confirm_password: str
    ) -> Session | None:
        if password != confirm_password:
            raise PasswordMismatch()
        return await self.backend.sign_up(email.strip(), password)

    async def sign_out(self) -> None:
        await self.backend.sign_out()

    async def refresh_if_expiring(self, margin: float = 300) -> bool:
        """Refresh the session when it expires within ``margin`` seconds."""
        if self.session is None or not self.session.expires_within(margin):
            return False
        await self.backend.refresh_session()
        return True

    def close(self) -> None:
        if self._backend_unsubscribe is not None:
            self._backend_unsubscribe()
            self._backend_unsubscribe = None
        self._listeners.clear()
