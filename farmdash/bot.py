"""Discord bot that hosts the farm dashboard.

Every Discord user gets their own :class:`~farmdash.dashboard.Dashboard` from
the bot's :class:`~farmdash.dashboard.DashboardRegistry`. A background loop
refreshes sessions that are about to expire so long-lived dashboards keep a
valid access token.
"""

from __future__ import annotations

from typing import Any

import discord
from discord.ext import commands, tasks

from .dashboard import DashboardRegistry
from .logging_config import setup_logging


class FarmDashBot(commands.Bot):
    """``discord.py`` bot carrying the dashboard registry."""

    background_task: tasks.Loop | None

    def __init__(
        self, registry: DashboardRegistry, *, refresh_margin: int = 300, **kwargs: Any
    ) -> None:
        intents = kwargs.pop("intents", None) or discord.Intents.default()
        # Slash commands and components only; message content is never read.
        intents.message_content = False
        super().__init__(
            command_prefix=kwargs.pop("command_prefix", "!"),
            intents=intents,
        )
        self.log = setup_logging()
        self.registry = registry
        self.refresh_margin = refresh_margin
        self.background_task = None

    async def setup_hook(self) -> None:
        """Start the session refresh loop and sync slash commands."""
        self.background_task = tasks.loop(seconds=60.0, reconnect=True)(_refresh_sessions)
        self.background_task.start(self)

        tree = getattr(self, "tree", None)
        if tree is not None:  # pragma: no cover - needs a gateway connection
            await tree.sync()

        await super().setup_hook()

    async def on_ready(self) -> None:  # pragma: no cover - requires discord
        await self.change_presence(activity=discord.Game(name="Farm dashboard"))
        self.log.info(
            "Logged in as %s (%s)",
            self.user,
            self.user.id if self.user else "?",
        )

    async def close(self) -> None:
        if self.background_task is not None:
            self.background_task.cancel()
        self.registry.close()
        await super().close()


async def _refresh_sessions(bot: FarmDashBot) -> int:
    """Refresh every session that expires within the bot's margin.

    Returns how many sessions were refreshed. Failures are logged and do not
    stop the remaining dashboards from being checked.
    """
    refreshed = 0
    for dashboard in bot.registry.all():
        try:
            if await dashboard.sessions.refresh_if_expiring(bot.refresh_margin):
                refreshed += 1
        except Exception:
            bot.log.exception("Session refresh failed")
    if refreshed:
        bot.log.debug("Refreshed %d session(s)", refreshed)
    return refreshed


__all__ = ["FarmDashBot", "_refresh_sessions"]
