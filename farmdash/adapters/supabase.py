"""Supabase adapter implementing :class:`~farmdash.adapters.base.Backend`.

The adapter talks to the three HTTP services of a Supabase project directly
(GoTrue for auth, PostgREST for tables and the storage API) using
:mod:`httpx`, which keeps the dependency footprint small while remaining
fully asynchronous.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

import httpx

from ..core.models import Session
from ..errors import AuthError, BackendError, InvalidCredentials, NetworkError
from .base import SIGNED_IN, SIGNED_OUT, TOKEN_REFRESHED, Backend

log = logging.getLogger(__name__)


def _filters(eq: Mapping[str, Any] | None) -> dict[str, str]:
    params: dict[str, str] = {}
    for column, value in (eq or {}).items():
        if isinstance(value, bool):
            value = str(value).lower()
        params[column] = f"eq.{value}"
    return params


def _error_message(response: httpx.Response) -> tuple[str, str | None]:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase, None
    if not isinstance(body, dict):
        return str(body), None
    message = (
        body.get("message")
        or body.get("msg")
        or body.get("error_description")
        or body.get("error")
        or response.reason_phrase
    )
    code = body.get("code") or body.get("error_code") or body.get("error")
    return str(message), str(code) if code is not None else None


class SupabaseBackend(Backend):
    """Backend that sends requests to a Supabase project's HTTP APIs."""

    def __init__(
        self,
        url: str,
        api_key: str,
        client: httpx.AsyncClient | None = None,
        session: Session | None = None,
    ) -> None:
        """Store project ``url``, anon ``api_key`` and optional HTTP ``client``."""
        super().__init__()
        self.url = url.rstrip("/")
        self.api_key = api_key
        self.client = client or httpx.AsyncClient()
        self.session = session

    # ------------------------------------------------------------------
    # Request helpers
    # ------------------------------------------------------------------
    def _headers(self, **extra: str) -> dict[str, str]:
        token = self.session.access_token if self.session else self.api_key
        headers = {"apikey": self.api_key, "Authorization": f"Bearer {token}"}
        headers.update(extra)
        return headers

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self.client.request(method, f"{self.url}{path}", **kwargs)
        except httpx.TransportError as exc:
            raise NetworkError(str(exc) or type(exc).__name__) from exc
        if response.is_error:
            message, code = _error_message(response)
            log.debug("%s %s failed: %s %s", method, path, response.status_code, message)
            raise BackendError(message, code=code, status=response.status_code)
        return response

    def _session_from(self, data: dict[str, Any]) -> Session:
        expires_at = data.get("expires_at")
        if expires_at is None and data.get("expires_in") is not None:
            expires_at = time.time() + float(data["expires_in"])
        return Session(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_at=expires_at,
            user=data["user"],
        )

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------
    async def get_session(self) -> Session | None:
        if self.session and self.session.expires_within(0):
            return await self.refresh_session()
        return self.session

    async def sign_in(self, email: str, password: str) -> Session:
        try:
            response = await self._request(
                "POST",
                "/auth/v1/token",
                params={"grant_type": "password"},
                json={"email": email, "password": password},
                headers=self._headers(),
            )
        except NetworkError:
            raise
        except BackendError as exc:
            if exc.status in (400, 401):
                raise InvalidCredentials(exc.message, code=exc.code, status=exc.status) from exc
            raise AuthError(exc.message, code=exc.code, status=exc.status) from exc
        self.session = self._session_from(response.json())
        await self._emit(SIGNED_IN, self.session)
        return self.session

    async def sign_up(self, email: str, password: str) -> Session | None:
        try:
            response = await self._request(
                "POST",
                "/auth/v1/signup",
                json={"email": email, "password": password},
                headers=self._headers(),
            )
        except NetworkError:
            raise
        except BackendError as exc:
            raise AuthError(exc.message, code=exc.code, status=exc.status) from exc
        data = response.json()
        if not data.get("access_token"):
            # email confirmation pending
            return None
        self.session = self._session_from(data)
        await self._emit(SIGNED_IN, self.session)
        return self.session

    async def sign_out(self) -> None:
        """End the session remotely and always drop it locally.

        A token the service no longer accepts (401, 403 or 404) already means
        the session is gone, so that rejection is not reported. Other failures
        still propagate after the local session has been cleared.
        """
        try:
            if self.session is not None:
                await self._request("POST", "/auth/v1/logout", headers=self._headers())
        except NetworkError:
            raise
        except BackendError as exc:
            if exc.status not in (401, 403, 404):
                raise
            log.debug("logout rejected with %s, session already invalid", exc.status)
        finally:
            self.session = None
            await self._emit(SIGNED_OUT, None)

    async def refresh_session(self) -> Session:
        if self.session is None or not self.session.refresh_token:
            raise AuthError("No session to refresh.")
        try:
            response = await self._request(
                "POST",
                "/auth/v1/token",
                params={"grant_type": "refresh_token"},
                json={"refresh_token": self.session.refresh_token},
                headers={"apikey": self.api_key},
            )
        except NetworkError:
            raise
        except BackendError as exc:
            raise AuthError(exc.message, code=exc.code, status=exc.status) from exc
        self.session = self._session_from(response.json())
        await self._emit(TOKEN_REFRESHED, self.session)
        return self.session

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
        params = {"select": "*", **_filters(eq)}
        if order:
            params["order"] = f"{order}.{'desc' if descending else 'asc'}"
        response = await self._request(
            "GET", f"/rest/v1/{table}", params=params, headers=self._headers()
        )
        return list(response.json())

    async def insert(self, table: str, row: Mapping[str, Any]) -> dict[str, Any]:
        response = await self._request(
            "POST",
            f"/rest/v1/{table}",
            json=[dict(row)],
            headers=self._headers(Prefer="return=representation"),
        )
        return response.json()[0]

    async def update(
        self, table: str, values: Mapping[str, Any], *, eq: Mapping[str, Any]
    ) -> list[dict[str, Any]]:
        response = await self._request(
            "PATCH",
            f"/rest/v1/{table}",
            params=_filters(eq),
            json=dict(values),
            headers=self._headers(Prefer="return=representation"),
        )
        return list(response.json())

    async def upsert(
        self, table: str, row: Mapping[str, Any], *, on_conflict: str
    ) -> dict[str, Any]:
        response = await self._request(
            "POST",
            f"/rest/v1/{table}",
            params={"on_conflict": on_conflict},
            json=[dict(row)],
            headers=self._headers(
                Prefer="resolution=merge-duplicates,return=representation"
            ),
        )
        return response.json()[0]

    async def delete(self, table: str, *, eq: Mapping[str, Any]) -> None:
        await self._request(
            "DELETE", f"/rest/v1/{table}", params=_filters(eq), headers=self._headers()
        )

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------
    async def upload(
        self, bucket: str, path: str, data: bytes, content_type: str | None = None
    ) -> None:
        await self._request(
            "POST",
            f"/storage/v1/object/{bucket}/{quote(path)}",
            content=data,
            headers=self._headers(
                **{
                    "Content-Type": content_type or "application/octet-stream",
                    "x-upsert": "false",
                }
            ),
        )

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.url}/storage/v1/object/public/{bucket}/{quote(path)}"

    async def close(self) -> None:
        """Close the underlying :class:`httpx.AsyncClient`."""
        await self.client.aclose()
