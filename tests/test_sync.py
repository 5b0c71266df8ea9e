"""Tests for :mod:`farmdash.data.sync` against the in-memory backend."""

import asyncio
import datetime
from datetime import UTC

import pytest

from farmdash.core.models import AssetKind, User
from farmdash.data.session import SessionManager
from farmdash.data.sync import RecordSynchronizer, asset_path
from farmdash.errors import FetchError, PersistError, UploadError, ValidationError


def run(coro):
    return asyncio.run(coro)


def sign_up(backend, email="ana@example.com") -> User:
    return run(backend.sign_up(email, "secret1")).user


class StepClock:
    """Clock advancing one minute per call."""

    def __init__(self):
        self.now = datetime.datetime.now(tz=UTC)

    def __call__(self):
        self.now += datetime.timedelta(minutes=1)
        return self.now


def test_create_farm_then_list(backend):
    user = sign_up(backend)
    records = RecordSynchronizer(backend)

    farm = run(records.create_farm(user.id, "North field", "12.5", "Goiás"))
    listed = run(records.list_farms(user.id))

    assert [f.id for f in listed] == [farm.id]
    match = listed[0]
    assert match.id
    assert (match.name, match.area, match.location) == ("North field", 12.5, "Goiás")
    assert match.user_id == user.id
    assert match.created_at is not None and match.updated_at is not None


def test_non_numeric_area_writes_nothing(backend):
    user = sign_up(backend)
    records = RecordSynchronizer(backend)

    with pytest.raises(ValidationError, match="area"):
        run(records.create_farm(user.id, "Farm", "a lot", "here"))
    assert backend.writes() == 0
    assert records.farms == []


def test_fetch_or_create_profile_inserts_once(backend):
    user = sign_up(backend, "joao@example.com")
    records = RecordSynchronizer(backend)

    first = run(records.fetch_or_create_profile(user))
    second = run(records.fetch_or_create_profile(user))

    assert backend.calls["insert"] == 1
    assert first.full_name == second.full_name == "joao"
    assert first.id == second.id
    assert second.notification_preferences.email is True
    assert second.notification_preferences.push is True


def test_save_profile_then_fetch(backend):
    user = sign_up(backend)
    records = RecordSynchronizer(backend, clock=StepClock())
    created = run(records.fetch_or_create_profile(user))

    fields = {
        "full_name": "Ana Souza",
        "phone": "+55 11 99999-0000",
        "birth_date": "1990-05-17",
        "company": "Fazenda Boa Vista",
        "notification_preferences": {"email": False, "push": True},
    }
    saved = run(records.save_profile(user.id, fields))
    first_update = saved.updated_at
    run(records.save_profile(user.id, {"bio": "Coffee grower"}))
    fetched = run(RecordSynchronizer(backend).fetch_profile(user.id))

    assert fetched.id == created.id
    assert fetched.full_name == "Ana Souza"
    assert fetched.phone == "+55 11 99999-0000"
    assert fetched.birth_date == datetime.date(1990, 5, 17)
    assert fetched.company == "Fazenda Boa Vista"
    assert fetched.bio == "Coffee grower"
    assert fetched.notification_preferences.email is False
    assert first_update > created.updated_at
    assert fetched.updated_at > first_update


def test_save_profile_validates_before_writing(backend):
    user = sign_up(backend)
    records = RecordSynchronizer(backend)
    run(records.fetch_or_create_profile(user))
    writes = backend.writes()

    with pytest.raises(ValidationError):
        run(records.save_profile(user.id, {"full_name": "  "}))
    with pytest.raises(ValidationError, match="birth_date"):
        run(records.save_profile(user.id, {"birth_date": "yesterday"}))
    assert backend.writes() == writes


def test_clear_forgets_cached_records(backend):
    async def scenario():
        manager = SessionManager(backend)
        records = RecordSynchronizer(backend)

        async def on_change(session):
            if session is None:
                records.clear()

        await manager.subscribe(on_change)
        await manager.start()
        session = await manager.sign_up("ana@example.com", "secret1", "secret1")
        await records.fetch_or_create_profile(session.user)
        await records.create_farm(session.user_id, "Farm", 3, "here")
        assert records.profile is not None and records.farms
        await manager.sign_out()
        return records

    records = run(scenario())
    assert records.profile is None
    assert records.farms == []


def test_delete_farm_requires_confirmation(backend):
    user = sign_up(backend)
    records = RecordSynchronizer(backend)
    farm = run(records.create_farm(user.id, "Farm", 3, "here"))
    calls_before = sum(backend.calls.values())

    assert run(records.delete_farm(farm.id)) is False
    assert sum(backend.calls.values()) == calls_before
    assert [f.id for f in records.farms] == [farm.id]

    assert run(records.delete_farm(farm.id, confirmed=True)) is True
    assert run(records.list_farms(user.id)) == []


def test_farms_newest_first_and_scoped_to_owner(backend):
    ana = sign_up(backend)
    bia = sign_up(backend, "bia@example.com")
    records = RecordSynchronizer(backend)
    run(records.create_farm(ana.id, "Old", 1, ""))
    run(records.create_farm(bia.id, "Not mine", 1, ""))
    run(records.create_farm(ana.id, "New", 1, ""))

    assert [f.name for f in run(records.list_farms(ana.id))] == ["New", "Old"]


def test_backend_failures_are_wrapped(backend):
    user = sign_up(backend)
    records = RecordSynchronizer(backend)
    backend.fail = {"select"}
    with pytest.raises(FetchError) as info:
        run(records.list_farms(user.id))
    assert info.value.cause is not None

    backend.fail = {"insert"}
    with pytest.raises(PersistError):
        run(records.create_farm(user.id, "Farm", 1, "x"))
    assert records.farms == []


def test_upload_asset_updates_profile(backend):
    user = sign_up(backend)
    records = RecordSynchronizer(backend, bucket="media")
    run(records.fetch_or_create_profile(user))

    url = run(records.upload_asset(user.id, b"img", "me.PNG", AssetKind.AVATAR, "image/png"))

    assert url.startswith(f"local://storage/media/{user.id}/avatar/")
    assert url.endswith(".png")
    assert records.profile.avatar_url == url
    assert run(records.fetch_profile(user.id)).avatar_url == url


def test_upload_failure_leaves_profile(backend):
    user = sign_up(backend)
    records = RecordSynchronizer(backend)
    run(records.fetch_or_create_profile(user))
    backend.fail = {"upload"}

    with pytest.raises(UploadError):
        run(records.upload_asset(user.id, b"img", "a.png", AssetKind.COVER))
    assert backend.calls["update"] == 0
    assert records.profile.cover_image is None


def test_failed_patch_reports_orphaned_object(backend, caplog):
    user = sign_up(backend)
    records = RecordSynchronizer(backend)
    run(records.fetch_or_create_profile(user))
    backend.fail = {"update"}

    with pytest.raises(PersistError) as info:
        run(records.upload_asset(user.id, b"img", "a.jpg", AssetKind.COVER))

    orphan = info.value.orphaned_path
    assert orphan.startswith(f"avatars/{user.id}/cover/")
    assert orphan in backend.store.objects
    assert records.profile.cover_image is None
    assert orphan in caplog.text


def test_asset_path_layout():
    path = asset_path("u1", AssetKind.COVER, "photo.jpeg")
    user_id, kind, name = path.split("/")
    assert (user_id, kind) == ("u1", "cover")
    assert name.endswith(".jpeg")
    assert asset_path("u1", AssetKind.AVATAR, "noext").endswith(".bin")


def test_upload_without_profile_row_reports_orphan(backend, caplog):
    user = sign_up(backend)
    records = RecordSynchronizer(backend)

    with pytest.raises(PersistError) as info:
        run(records.upload_asset(user.id, b"img", "me.png", AssetKind.AVATAR))

    orphan = info.value.orphaned_path
    assert orphan.startswith(f"avatars/{user.id}/avatar/")
    assert orphan in backend.store.objects
    assert records.profile is None
    assert orphan in caplog.text
