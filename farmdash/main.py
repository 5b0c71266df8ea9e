from __future__ import annotations

import asyncio
from collections.abc import Callable

import httpx

from .adapters.base import Backend
from .adapters.local import LocalBackend, LocalStore
from .adapters.supabase import SupabaseBackend
from .bot import FarmDashBot
from .commands.register import register_commands
from .config import Settings, load_settings
from .dashboard import DashboardRegistry
from .logging_config import setup_logging


def backend_factory(
    settings: Settings, client: httpx.AsyncClient | None = None
) -> Callable[[], Backend]:
    """Build a factory returning one backend client per dashboard.

    Supabase backends share ``client``; local backends share one store file.
    """
    if settings.backend_kind == "supabase":
        if client is None:
            client = httpx.AsyncClient(timeout=15.0)
        return lambda: SupabaseBackend(settings.backend_url, settings.backend_key, client)
    store = LocalStore(path=settings.data_path)
    return lambda: LocalBackend(store)


def main() -> int:
    log = setup_logging()
    settings = load_settings()
    if not settings.token:
        log.error(
            "DISCORD_BOT_TOKEN is not set. "
            "Export it in your environment before running."
        )
        return 2
    if settings.backend_kind == "supabase" and not settings.backend_key:
        log.error("FARMDASH_BACKEND_URL is set but FARMDASH_BACKEND_KEY is missing.")
        return 2
    log.info("Using %s backend", settings.backend_kind)

    async def runner():
        client = httpx.AsyncClient(timeout=15.0)
        registry = DashboardRegistry(
            backend_factory(settings, client), bucket=settings.asset_bucket
        )
        bot = FarmDashBot(registry, refresh_margin=settings.session_refresh_margin)
        register_commands(bot, registry)
        try:
            async with bot:
                await bot.start(settings.token)
        except KeyboardInterrupt:
            log.info("Shutting down...")
        finally:
            registry.close()
            await client.aclose()
        return 0

    return asyncio.run(runner())


if __name__ == "__main__":
    raise SystemExit(main())
