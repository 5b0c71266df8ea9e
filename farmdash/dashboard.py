"""Per-user dashboard context.

A :class:`Dashboard` bundles everything one signed-in person needs: the
session manager, the record synchronizer and its cache, the two forms and the
notifier. It is created around an injected backend and handed to views and
commands explicitly, so no module-level state is shared between users.

The user-facing methods never raise :class:`~farmdash.errors.FarmDashError`;
they return a :class:`~farmdash.data.notify.Notice` describing the outcome
and always clear :attr:`Dashboard.loading`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from .adapters.base import Backend
from .core.metrics import Metrics, MetricsProvider, RandomMetricsProvider, Weather
from .core.models import AssetKind, Farm, Profile, Session
from .data.forms import FormState, NewFarmForm, ProfileForm
from .data.notify import Notice, Notifier
from .data.session import SessionManager
from .data.sync import RecordSynchronizer
from .errors import FarmDashError, StateError

log = logging.getLogger(__name__)


class Dashboard:
    def __init__(
        self,
        backend: Backend,
        *,
        bucket: str = "avatars",
        metrics: MetricsProvider | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self.backend = backend
        self.sessions = SessionManager(backend)
        self.records = RecordSynchronizer(backend, bucket=bucket)
        self.profile_form = ProfileForm(self.records)
        self.farm_form = NewFarmForm(self.records)
        self.metrics_provider = metrics or RandomMetricsProvider()
        self.notifier = notifier or Notifier()
        self.loading = False
        self._unsubscribe = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def start(self) -> None:
        self._unsubscribe = await self.sessions.subscribe(self._on_session)
        await self.sessions.start()

    def close(self) -> None:
        """Detach from the backend; the backend itself is owned by the caller."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.sessions.close()

    @property
    def session(self) -> Session | None:
        return self.sessions.session

    @property
    def profile(self) -> Profile | None:
        return self.records.profile

    @property
    def farms(self) -> list[Farm]:
        return self.records.farms

    async def _on_session(self, session: Session | None) -> None:
        if session is None:
            self.records.clear()
            self.profile_form.reset(None)
            self.farm_form.reset(None)
            self.farm_form.user_id = None
            return
        self.farm_form.user_id = session.user_id
        try:
            profile = await self.records.fetch_or_create_profile(session.user)
            await self.records.list_farms(session.user_id)
        except FarmDashError as exc:
            self.notifier.error(str(exc))
            return
        self._sync_profile_form(profile)

    def _sync_profile_form(self, profile: Profile | None) -> None:
        # an open or in-flight draft is never replaced by fetched data
        if self.profile_form.state is FormState.VIEWING:
            self.profile_form.reset(profile)

    async def _run(self, op: Awaitable, success: str | None) -> Notice:
        self.loading = True
        try:
            await op
        except FarmDashError as exc:
            return self.notifier.error(str(exc))
        finally:
            self.loading = False
        return self.notifier.success(success) if success else Notice("success", "")

    def _require_user(self) -> str:
        if self.session is None:
            raise StateError("You are not signed in.")
        return self.session.user_id

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------
    async def sign_in(self, email: str, password: str) -> Notice:
        return await self._run(self.sessions.sign_in(email, password), "Signed in.")

    async def sign_up(self, email: str, password: str, confirm_password: str) -> Notice:
        self.loading = True
        try:
            session = await self.sessions.sign_up(email, password, confirm_password)
        except FarmDashError as exc:
            return self.notifier.error(str(exc))
        finally:
            self.loading = False
        if session is None:
            return self.notifier.success("Account created. Check your email to confirm it.")
        return self.notifier.success("Account created.")

    async def sign_out(self) -> Notice:
        return await self._run(self.sessions.sign_out(), "Signed out.")

    async def delete_account(self, *, confirmed: bool = False) -> Notice:
        """End the session; the account itself is kept by the backend."""
        if not confirmed:
            return Notice("error", "Account deletion cancelled.")
        return await self._run(self.sessions.sign_out(), "Account closed.")

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------
    async def refresh(self) -> Notice:
        async def op() -> None:
            user_id = self._require_user()
            await self.records.fetch_or_create_profile(self.session.user)
            await self.records.list_farms(user_id)
            self._sync_profile_form(self.records.profile)

        return await self._run(op(), None)

    async def save_profile(self) -> Notice:
        return await self._run(self.profile_form.save(), "Profile updated.")

    async def upload_asset(
        self, data: bytes, filename: str, kind: AssetKind, content_type: str | None = None
    ) -> Notice:
        async def op() -> None:
            user_id = self._require_user()
            await self.records.upload_asset(user_id, data, filename, kind, content_type)
            self._sync_profile_form(self.records.profile)

        label = "Profile picture" if kind is AssetKind.AVATAR else "Cover image"
        return await self._run(op(), f"{label} updated.")

    async def add_farm(self) -> Notice:
        return await self._run(self.farm_form.save(), "Farm added.")

    async def delete_farm(self, farm_id: str, *, confirmed: bool = False) -> Notice:
        if not confirmed:
            return Notice("error", "Farm was not deleted.")
        return await self._run(
            self.records.delete_farm(farm_id, confirmed=True), "Farm deleted."
        )

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------
    def metrics(self) -> Metrics:
        return self.metrics_provider.summarize(self.records.farms)

    def weather(self) -> Weather:
        location = self.records.farms[0].location if self.records.farms else None
        return self.metrics_provider.weather(location)


class DashboardRegistry:
    """One started :class:`Dashboard` per key (a Discord user id).

    Concurrent :meth:`get` calls for the same key share one start-up task, so
    no caller ever sees a dashboard whose session is not resolved yet. A key
    whose start-up failed is retried on the next call.
    """

    def __init__(
        self,
        backend_factory: Callable[[], Backend],
        *,
        bucket: str = "avatars",
        metrics: MetricsProvider | None = None,
    ) -> None:
        self.backend_factory = backend_factory
        self.bucket = bucket
        self.metrics = metrics
        self._starting: dict[int, asyncio.Task[Dashboard]] = {}

    async def _start(self, key: int, dashboard: Dashboard) -> Dashboard:
        await dashboard.start()
        log.debug("Started dashboard for %s", key)
        return dashboard

    async def get(self, key: int) -> Dashboard:
        task = self._starting.get(key)
        if task is None:
            dashboard = Dashboard(
                self.backend_factory(), bucket=self.bucket, metrics=self.metrics
            )
            task = asyncio.ensure_future(self._start(key, dashboard))
            self._starting[key] = task
        try:
            return await asyncio.shield(task)
        except Exception:
            if self._starting.get(key) is task:
                del self._starting[key]
            raise

    def all(self) -> list[Dashboard]:
        """Dashboards that finished starting, in creation order."""
        return [
            task.result()
            for task in self._starting.values()
            if task.done() and not task.cancelled() and task.exception() is None
        ]

    def close(self) -> None:
        for task in self._starting.values():
            if task.done() and not task.cancelled() and task.exception() is None:
                task.result().close()
            else:
                task.cancel()
        self._starting.clear()
