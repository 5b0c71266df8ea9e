"""Local backend used for development and the test-suite.

:class:`LocalStore` keeps users, table rows and stored objects in
dictionaries. When a ``path`` is given the whole state is persisted to a
single JSON file on every mutation, which keeps the implementation simple
while providing durability across process restarts.

:class:`LocalBackend` is one client of a store: it owns a single session,
like a browser tab talking to the hosted service, so several dashboards can
share one store. It mirrors the hosted behaviour closely enough for the
dashboard: generated ids and timestamps, not-null and unique constraints and
auth-state events.
"""

from __future__ import annotations

import base64
import copy
import datetime
import hashlib
import json
import os
import secrets
import time
import uuid
from collections.abc import Mapping
from datetime import UTC
from typing import Any

from ..core.models import Session, User
from ..errors import AuthError, BackendError, InvalidCredentials
from .base import SIGNED_IN, SIGNED_OUT, TOKEN_REFRESHED, Backend

# columns constrained like the hosted schema
UNIQUE_COLUMNS: dict[str, tuple[str, ...]] = {"profiles": ("user_id",)}
NOT_NULL_COLUMNS: dict[str, tuple[str, ...]] = {
    "profiles": ("user_id", "full_name"),
    "farms": ("name", "area", "location"),
}
SESSION_TTL = 3600


def _hash_password(password: str, salt: str) -> str:
    return hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), 100_000).hex()


def _matches(row: Mapping[str, Any], eq: Mapping[str, Any] | None) -> bool:
    return all(row.get(k) == v for k, v in (eq or {}).items())


class LocalStore:
    """Users, tables and objects shared by every :class:`LocalBackend`."""

    def __init__(self, path: str | None = None) -> None:
        self.path = path
        self.users: dict[str, dict[str, Any]] = {}
        self.tables: dict[str, list[dict[str, Any]]] = {"profiles": [], "farms": []}
        self.objects: dict[str, bytes] = {}
        self._last_ts = 0.0
        if path and os.path.exists(path):
            self._load()

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------
    def _load(self) -> None:
        """Load store contents from ``self.path``."""
        with open(self.path, encoding="utf-8") as f:
            data = json.load(f)
        self.users = data.get("users", {})
        self.tables.update(data.get("tables", {}))
        self.objects = {
            key: base64.b64decode(value) for key, value in data.get("objects", {}).items()
        }

    def _to_dict(self) -> dict:
        return {
            "users": self.users,
            "tables": self.tables,
            "objects": {
                key: base64.b64encode(value).decode("ascii")
                for key, value in self.objects.items()
            },
        }

    def save(self) -> None:
        """Persist the current state atomically."""
        if not self.path:
            return
        tmp = self.path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(self._to_dict(), f, indent=2, ensure_ascii=False)
        os.replace(tmp, self.path)

    def now(self) -> str:
        # strictly increasing so "newest first" ordering is never ambiguous
        ts = max(datetime.datetime.now(tz=UTC).timestamp(), self._last_ts + 1e-6)
        self._last_ts = ts
        return datetime.datetime.fromtimestamp(ts, tz=UTC).isoformat(timespec="microseconds")

    # ------------------------------------------------------------------
    # Constraints
    # ------------------------------------------------------------------
    def rows(self, table: str) -> list[dict[str, Any]]:
        if table not in self.tables:
            raise BackendError(
                f'relation "public.{table}" does not exist', code="42P01", status=404
            )
        return self.tables[table]

    def check(self, table: str, row: Mapping[str, Any], skip: Any = None) -> None:
        for column in NOT_NULL_COLUMNS.get(table, ()):
            if row.get(column) is None:
                raise BackendError(
                    f'null value in column "{column}" of relation "{table}" '
                    "violates not-null constraint",
                    code="23502",
                    status=400,
                )
        for column in UNIQUE_COLUMNS.get(table, ()):
            for existing in self.tables[table]:
                if existing is not skip and existing.get(column) == row.get(column):
                    raise BackendError(
                        f'duplicate key value violates unique constraint "{table}_{column}_key"',
                        code="23505",
                        status=409,
                    )


class LocalBackend(Backend):
    """In-process implementation of the whole backend boundary."""

    def __init__(
        self, store: LocalStore | None = None, base_url: str = "local://storage"
    ) -> None:
        super().__init__()
        self.store = store or LocalStore()
        self.base_url = base_url
        self.session: Session | None = None

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------
    def _issue(self, user: dict[str, Any]) -> Session:
        self.session = Session(
            access_token=secrets.token_hex(16),
            refresh_token=secrets.token_hex(16),
            expires_at=time.time() + SESSION_TTL,
            user=User(id=user["id"], email=user["email"]),
        )
        return self.session

    async def get_session(self) -> Session | None:
        return self.session

    async def sign_in(self, email: str, password: str) -> Session:
        user = self.store.users.get(email.strip().lower())
        if user is None or user["password"] != _hash_password(password, user["salt"]):
            raise InvalidCredentials(
                "Invalid login credentials", code="invalid_credentials", status=400
            )
        session = self._issue(user)
        await self._emit(SIGNED_IN, session)
        return session

    async def sign_up(self, email: str, password: str) -> Session | None:
        email = email.strip().lower()
        if "@" not in email:
            raise AuthError("Unable to validate email address: invalid format", status=400)
        if len(password) < 6:
            raise AuthError("Password should be at least 6 characters.", status=422)
        if email in self.store.users:
            raise AuthError("User already registered", code="user_already_exists", status=422)
        salt = secrets.token_hex(8)
        user = {
            "id": str(uuid.uuid4()),
            "email": email,
            "salt": salt,
            "password": _hash_password(password, salt),
        }
        self.store.users[email] = user
        self.store.save()
        session = self._issue(user)
        await self._emit(SIGNED_IN, session)
        return session

    async def sign_out(self) -> None:
        self.session = None
        await self._emit(SIGNED_OUT, None)

    async def refresh_session(self) -> Session:
        if self.session is None or self.session.user.email not in self.store.users:
            raise AuthError("No session to refresh.")
        session = self._issue(self.store.users[self.session.user.email])
        await self._emit(TOKEN_REFRESHED, session)
        return session

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------
    async def select(
        self,
        table: str,
        *,
        eq: Mapping[str, Any] | None = None,
        order: str | None = None,
        descending: bool = False,
    ) -> list[dict[str, Any]]:
        rows = [copy.deepcopy(r) for r in self.store.rows(table) if _matches(r, eq)]
        if order:
            rows.sort(key=lambda r: r.get(order) or "", reverse=descending)
        return rows

    async def insert(self, table: str, row: Mapping[str, Any]) -> dict[str, Any]:
        rows = self.store.rows(table)
        now = self.store.now()
        stored = {"id": uuid.uuid4().hex, "created_at": now, "updated_at": now, **row}
        self.store.check(table, stored)
        rows.append(stored)
        self.store.save()
        return copy.deepcopy(stored)

    async def update(
        self, table: str, values: Mapping[str, Any], *, eq: Mapping[str, Any]
    ) -> list[dict[str, Any]]:
        changed = []
        for row in self.store.rows(table):
            if _matches(row, eq):
                self.store.check(table, {**row, **values}, skip=row)
                row.update(values)
                changed.append(copy.deepcopy(row))
        self.store.save()
        return changed

    async def upsert(
        self, table: str, row: Mapping[str, Any], *, on_conflict: str
    ) -> dict[str, Any]:
        for existing in self.store.rows(table):
            if existing.get(on_conflict) == row.get(on_conflict):
                self.store.check(table, {**existing, **row}, skip=existing)
                existing.update(row)
                self.store.save()
                return copy.deepcopy(existing)
        return await self.insert(table, row)

    async def delete(self, table: str, *, eq: Mapping[str, Any]) -> None:
        rows = self.store.rows(table)
        rows[:] = [r for r in rows if not _matches(r, eq)]
        self.store.save()

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------
    async def upload(
        self, bucket: str, path: str, data: bytes, content_type: str | None = None
    ) -> None:
        key = f"{bucket}/{path}"
        if key in self.store.objects:
            raise BackendError("The resource already exists", code="Duplicate", status=409)
        self.store.objects[key] = bytes(data)
        self.store.save()

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.base_url}/{bucket}/{path}"
