import asyncio
import random

from farmdash.adapters.local import LocalBackend, LocalStore
from farmdash.core.metrics import RandomMetricsProvider
from farmdash.core.models import AssetKind
from farmdash.dashboard import Dashboard, DashboardRegistry
from farmdash.data.forms import FormState
from farmdash.errors import BackendError


def run(coro):
    return asyncio.run(coro)


def started(backend) -> Dashboard:
    dashboard = Dashboard(backend, metrics=RandomMetricsProvider(random.Random(3)))
    run(dashboard.start())
    return dashboard


def test_sign_up_loads_default_profile(backend):
    dashboard = started(backend)
    assert dashboard.session is None

    notice = run(dashboard.sign_up("ana@example.com", "secret1", "secret1"))

    assert notice.ok
    assert dashboard.session is not None
    assert dashboard.profile.full_name == "ana"
    assert dashboard.profile_form.committed == dashboard.profile
    assert dashboard.farm_form.user_id == dashboard.session.user_id
    assert not dashboard.loading


def test_password_mismatch_notice(backend):
    dashboard = started(backend)
    notice = run(dashboard.sign_up("ana@example.com", "secret1", "other"))
    assert not notice.ok
    assert notice.message == "Passwords do not match."
    assert backend.calls["sign_up"] == 0
    assert dashboard.notifier.recent[-1] == notice
    assert not dashboard.loading


def test_sign_in_failure_is_reported(backend):
    dashboard = started(backend)
    notice = run(dashboard.sign_in("ghost@example.com", "secret1"))
    assert not notice.ok
    assert "Invalid login credentials" in notice.message
    assert dashboard.session is None


def test_profile_and_farm_flow(backend):
    dashboard = started(backend)
    run(dashboard.sign_up("ana@example.com", "secret1", "secret1"))

    dashboard.profile_form.begin_edit()
    dashboard.profile_form.set_field("full_name", "Ana Souza")
    assert run(dashboard.save_profile()).message == "Profile updated."
    assert dashboard.profile.full_name == "Ana Souza"

    dashboard.farm_form.begin_edit()
    dashboard.farm_form.update({"name": "North", "area": "x", "location": "GO"})
    bad = run(dashboard.add_farm())
    assert not bad.ok
    assert dashboard.farm_form.state is FormState.EDITING

    dashboard.farm_form.set_field("area", "10")
    assert run(dashboard.add_farm()).message == "Farm added."
    assert [f.name for f in dashboard.farms] == ["North"]

    metrics = dashboard.metrics()
    assert metrics.total_area == 10
    assert 50000 <= metrics.total_revenue <= 100000
    assert dashboard.weather().temperature == 28


def test_delete_farm_needs_confirmation(backend):
    dashboard = started(backend)
    run(dashboard.sign_up("ana@example.com", "secret1", "secret1"))
    dashboard.farm_form.begin_edit()
    dashboard.farm_form.update({"name": "North", "area": "1", "location": "GO"})
    run(dashboard.add_farm())
    farm_id = dashboard.farms[0].id

    declined = run(dashboard.delete_farm(farm_id))
    assert not declined.ok
    assert backend.calls["delete"] == 0
    assert dashboard.farms

    assert run(dashboard.delete_farm(farm_id, confirmed=True)).ok
    assert dashboard.farms == []


def test_upload_asset(backend):
    dashboard = started(backend)
    run(dashboard.sign_up("ana@example.com", "secret1", "secret1"))
    notice = run(dashboard.upload_asset(b"img", "me.png", AssetKind.AVATAR, "image/png"))
    assert notice.message == "Profile picture updated."
    assert dashboard.profile.avatar_url
    assert dashboard.profile_form.committed.avatar_url == dashboard.profile.avatar_url


def test_operations_require_sign_in(backend):
    dashboard = started(backend)
    assert not run(dashboard.refresh()).ok
    assert not run(dashboard.upload_asset(b"x", "a.png", AssetKind.COVER)).ok
    assert not run(dashboard.add_farm()).ok
    assert not dashboard.loading


def test_sign_out_clears_everything(backend):
    dashboard = started(backend)
    run(dashboard.sign_up("ana@example.com", "secret1", "secret1"))
    dashboard.farm_form.begin_edit()
    dashboard.farm_form.update({"name": "North", "area": "1", "location": "GO"})
    run(dashboard.add_farm())

    assert run(dashboard.sign_out()).message == "Signed out."
    assert dashboard.session is None
    assert dashboard.profile is None
    assert dashboard.farms == []
    assert dashboard.profile_form.committed is None
    assert dashboard.farm_form.user_id is None


def test_delete_account_signs_out(backend):
    dashboard = started(backend)
    run(dashboard.sign_up("ana@example.com", "secret1", "secret1"))
    assert not run(dashboard.delete_account()).ok
    assert dashboard.session is not None
    assert run(dashboard.delete_account(confirmed=True)).ok
    assert dashboard.session is None


def test_fetch_failure_after_sign_in_is_reported(backend):
    dashboard = started(backend)
    backend.fail = {"select"}
    run(dashboard.sign_up("ana@example.com", "secret1", "secret1"))
    assert dashboard.session is not None
    assert dashboard.profile is None
    assert any("Could not load profile" in n.message for n in dashboard.notifier.recent)


def test_registry_keeps_one_dashboard_per_user():
    store = LocalStore()
    registry = DashboardRegistry(lambda: LocalBackend(store))

    async def scenario():
        first = await registry.get(1)
        again = await registry.get(1)
        other = await registry.get(2)
        await first.sign_up("ana@example.com", "secret1", "secret1")
        return first, again, other

    first, again, other = run(scenario())
    assert first is again
    assert other is not first
    assert other.session is None
    assert registry.all() == [first, other]
    registry.close()
    assert registry.all() == []


def test_refresh_during_failed_save_keeps_draft(backend):
    async def scenario():
        dashboard = Dashboard(backend)
        await dashboard.start()
        await dashboard.sign_up("ana@example.com", "secret1", "secret1")
        gate = asyncio.Event()

        async def rejected_upsert(table, row, *, on_conflict):
            await gate.wait()
            raise BackendError("constraint violated", code="23514", status=400)

        backend.upsert = rejected_upsert
        form = dashboard.profile_form
        form.begin_edit()
        form.set_field("bio", "my edits")
        saving = asyncio.create_task(dashboard.save_profile())
        await asyncio.sleep(0)
        state_during_save = form.state
        refreshed = await dashboard.refresh()
        gate.set()
        notice = await saving
        return dashboard, state_during_save, refreshed, notice

    dashboard, state_during_save, refreshed, notice = run(scenario())
    form = dashboard.profile_form
    assert state_during_save is FormState.SAVING
    assert refreshed.ok
    assert notice.message == "Could not save profile: constraint violated"
    assert form.state is FormState.EDITING
    assert form.draft["bio"] == "my edits"
    assert run(dashboard.save_profile()).ok is False
    assert form.draft["bio"] == "my edits"


def test_sign_out_during_save_applies_after_save(backend):
    async def scenario():
        dashboard = Dashboard(backend)
        await dashboard.start()
        await dashboard.sign_up("ana@example.com", "secret1", "secret1")
        gate = asyncio.Event()
        original = backend.upsert

        async def slow_upsert(table, row, *, on_conflict):
            await gate.wait()
            return await original(table, row, on_conflict=on_conflict)

        backend.upsert = slow_upsert
        dashboard.profile_form.begin_edit()
        dashboard.profile_form.set_field("bio", "late")
        saving = asyncio.create_task(dashboard.save_profile())
        await asyncio.sleep(0)
        await dashboard.sign_out()
        gate.set()
        await saving
        return dashboard

    dashboard = run(scenario())
    assert dashboard.session is None
    assert dashboard.profile_form.state is FormState.VIEWING
    assert dashboard.profile_form.committed is None
    assert dashboard.profile_form.draft is None


class SlowStartBackend(LocalBackend):
    async def get_session(self):
        await asyncio.sleep(0.01)
        return await super().get_session()


def test_concurrent_gets_share_one_started_dashboard():
    store = LocalStore()
    created = []

    async def scenario():
        existing = await LocalBackend(store).sign_up("ana@example.com", "secret1")

        def factory():
            backend = SlowStartBackend(store)
            backend.session = existing
            created.append(backend)
            return backend

        registry = DashboardRegistry(factory)
        first, second = await asyncio.gather(registry.get(7), registry.get(7))
        return registry, first, second

    registry, first, second = run(scenario())
    assert first is second
    assert len(created) == 1
    assert first.session is not None
    assert second.profile is not None
    assert registry.all() == [first]


class BrokenStartBackend(LocalBackend):
    async def get_session(self):
        raise BackendError("service unavailable", status=503)


def test_failed_start_is_retried():
    store = LocalStore()
    backends = [BrokenStartBackend(store), LocalBackend(store)]
    registry = DashboardRegistry(lambda: backends.pop(0))

    async def scenario():
        try:
            await registry.get(1)
        except BackendError:
            failed = True
        else:
            failed = False
        return failed, await registry.get(1)

    failed, dashboard = run(scenario())
    assert failed
    assert type(dashboard.backend) is LocalBackend
    assert registry.all() == [dashboard]
