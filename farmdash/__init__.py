"""Core package for FarmDash.

This module exposes the data models, the backend adapters and the per-user
dashboard so that consumers of the package can import them from
``farmdash`` directly.
"""

from .adapters.local import LocalBackend, LocalStore
from .adapters.supabase import SupabaseBackend
from .core.models import Farm, NewFarm, Profile, Session, User
from .dashboard import Dashboard, DashboardRegistry

__all__ = [
    "Dashboard",
    "DashboardRegistry",
    "Farm",
    "LocalBackend",
    "LocalStore",
    "NewFarm",
    "Profile",
    "Session",
    "SupabaseBackend",
    "User",
]
