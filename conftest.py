"""Test configuration for package imports and a shared in-memory backend."""

import os
import sys
from collections import Counter

import pytest

# Add the repository root (the directory containing this file) to ``sys.path``
# if it is not already present.  This mirrors the behaviour of running the
# tests via ``python -m pytest`` where the working directory is automatically on
# the import path.
ROOT_DIR = os.path.abspath(os.path.dirname(__file__))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from farmdash.adapters.local import LocalBackend, LocalStore  # noqa: E402
from farmdash.errors import BackendError  # noqa: E402


class CountingBackend(LocalBackend):
    """Local backend that counts remote calls and can be told to fail them."""

    def __init__(self, store=None):
        super().__init__(store)
        self.calls: Counter = Counter()
        self.fail: set[str] = set()

    def _track(self, name):
        self.calls[name] += 1
        if name in self.fail:
            raise BackendError(f"{name} failed", code="XX000", status=500)

    async def sign_up(self, email, password):
        self._track("sign_up")
        return await super().sign_up(email, password)

    async def select(self, table, **kwargs):
        self._track("select")
        return await super().select(table, **kwargs)

    async def insert(self, table, row):
        self._track("insert")
        return await super().insert(table, row)

    async def update(self, table, values, *, eq):
        self._track("update")
        return await super().update(table, values, eq=eq)

    async def upsert(self, table, row, *, on_conflict):
        self._track("upsert")
        return await super().upsert(table, row, on_conflict=on_conflict)

    async def delete(self, table, *, eq):
        self._track("delete")
        return await super().delete(table, eq=eq)

    async def upload(self, bucket, path, data, content_type=None):
        self._track("upload")
        return await super().upload(bucket, path, data, content_type)

    def writes(self) -> int:
        return sum(self.calls[n] for n in ("insert", "update", "upsert", "delete", "upload"))


@pytest.fixture
def backend() -> CountingBackend:
    return CountingBackend(LocalStore())
