"""Exception hierarchy shared by the backend adapters and the dashboard.

Adapters raise :class:`BackendError` (or one of the auth errors). The record
synchronizer translates those into :class:`FetchError`, :class:`PersistError`
or :class:`UploadError` so callers only need to know which kind of operation
failed. :class:`ValidationError` is raised before any remote call is made.
"""

from __future__ import annotations


class FarmDashError(Exception):
    """Base class for every error surfaced to the user."""


class ValidationError(FarmDashError):
    """Local input check failed; the backend was never contacted."""


class PasswordMismatch(ValidationError):
    def __init__(self) -> None:
        super().__init__("Passwords do not match.")


class StateError(FarmDashError):
    """A form was asked to do something its current state does not allow."""


class BackendError(FarmDashError):
    """Error reported by the remote data service."""

    def __init__(
        self, message: str, *, code: str | None = None, status: int | None = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status = status


class NetworkError(BackendError):
    """The remote service could not be reached."""


class AuthError(BackendError):
    """Authentication request rejected by the remote service."""


class InvalidCredentials(AuthError):
    """Email/password pair rejected on sign in."""


class _OperationError(FarmDashError):
    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class FetchError(_OperationError):
    """Reading records failed."""


class PersistError(_OperationError):
    """Writing records failed."""

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
        orphaned_path: str | None = None,
    ) -> None:
        super().__init__(message, cause)
        # storage object left behind when an upload succeeded but the
        # profile patch did not
        self.orphaned_path = orphaned_path


class UploadError(_OperationError):
    """Writing an object to storage failed."""
