"""Registration of slash commands for the bot."""

from __future__ import annotations

import discord
from discord.ext import commands

from ..core.models import AssetKind
from ..dashboard import Dashboard, DashboardRegistry
from ..ui.embeds import dashboard_embed, notice_text
from ..ui.modals import FarmModal, SignInModal, SignUpModal
from ..ui.views import ConfirmView, FarmListView, ProfileView

MAX_UPLOAD_BYTES = 8 * 1024 * 1024


async def signed_in(
    registry: DashboardRegistry, interaction: discord.Interaction
) -> Dashboard | None:
    """Dashboard of the invoking user, or ``None`` after telling them to sign in."""
    dashboard = await registry.get(interaction.user.id)
    if dashboard.session is None:
        await interaction.response.send_message(
            "You are not signed in. Use /login or /signup first.", ephemeral=True
        )
        return None
    return dashboard


def register_commands(bot: commands.Bot, registry: DashboardRegistry) -> None:
    """Register the dashboard's slash commands on ``bot``."""
    tree = bot.tree

    @tree.command(name="login", description="Sign in to your farm dashboard")
    async def login(interaction: discord.Interaction) -> None:
        dashboard = await registry.get(interaction.user.id)
        if dashboard.session is not None:
            await interaction.response.send_message(
                f"Already signed in as {dashboard.session.user.email}.", ephemeral=True
            )
            return
        await interaction.response.send_modal(SignInModal(dashboard))

    @tree.command(name="signup", description="Create a farm dashboard account")
    async def signup(interaction: discord.Interaction) -> None:
        dashboard = await registry.get(interaction.user.id)
        await interaction.response.send_modal(SignUpModal(dashboard))

    @tree.command(name="logout", description="Sign out")
    async def logout(interaction: discord.Interaction) -> None:
        dashboard = await signed_in(registry, interaction)
        if dashboard is None:
            return
        notice = await dashboard.sign_out()
        await interaction.response.send_message(notice_text(notice), ephemeral=True)

    @tree.command(name="profile", description="View and edit your profile")
    async def profile(interaction: discord.Interaction) -> None:
        dashboard = await signed_in(registry, interaction)
        if dashboard is None:
            return
        if dashboard.profile is None:
            notice = await dashboard.refresh()
            if not notice.ok:
                await interaction.response.send_message(notice_text(notice), ephemeral=True)
                return
        view = ProfileView(dashboard)
        await interaction.response.send_message(embed=view.embed(), view=view, ephemeral=True)

    @tree.command(name="farms", description="List your farms")
    async def farms(interaction: discord.Interaction) -> None:
        dashboard = await signed_in(registry, interaction)
        if dashboard is None:
            return
        notice = await dashboard.refresh()
        view = FarmListView(dashboard)
        await interaction.response.send_message(
            None if notice.ok else notice_text(notice),
            embed=view.embed(),
            view=view,
            ephemeral=True,
        )

    @tree.command(name="add_farm", description="Register a new farm")
    async def add_farm(interaction: discord.Interaction) -> None:
        dashboard = await signed_in(registry, interaction)
        if dashboard is None:
            return
        await interaction.response.send_modal(FarmModal(dashboard))

    @tree.command(name="dashboard", description="Show farm metrics and weather")
    async def show_dashboard(interaction: discord.Interaction) -> None:
        dashboard = await signed_in(registry, interaction)
        if dashboard is None:
            return
        embed = dashboard_embed(dashboard.metrics(), dashboard.weather())
        await interaction.response.send_message(embed=embed, ephemeral=True)

    async def upload(
        interaction: discord.Interaction, image: discord.Attachment, kind: AssetKind
    ) -> None:
        dashboard = await signed_in(registry, interaction)
        if dashboard is None:
            return
        if image.content_type and not image.content_type.startswith("image/"):
            await interaction.response.send_message(
                "Please attach an image file.", ephemeral=True
            )
            return
        if image.size > MAX_UPLOAD_BYTES:
            await interaction.response.send_message(
                "Images must be 8 MB or smaller.", ephemeral=True
            )
            return
        await interaction.response.defer(ephemeral=True, thinking=True)
        data = await image.read()
        notice = await dashboard.upload_asset(data, image.filename, kind, image.content_type)
        await interaction.followup.send(notice_text(notice), ephemeral=True)

    @tree.command(name="upload_avatar", description="Upload a new profile picture")
    @discord.app_commands.describe(image="Image file")
    async def upload_avatar(interaction: discord.Interaction, image: discord.Attachment) -> None:
        await upload(interaction, image, AssetKind.AVATAR)

    @tree.command(name="upload_cover", description="Upload a new cover image")
    @discord.app_commands.describe(image="Image file")
    async def upload_cover(interaction: discord.Interaction, image: discord.Attachment) -> None:
        await upload(interaction, image, AssetKind.COVER)

    @tree.command(name="delete_account", description="Close your account and sign out")
    async def delete_account(interaction: discord.Interaction) -> None:
        dashboard = await signed_in(registry, interaction)
        if dashboard is None:
            return

        async def action(confirmed: bool):
            return await dashboard.delete_account(confirmed=confirmed)

        await interaction.response.send_message(
            "Close your account? This cannot be undone.",
            view=ConfirmView(action),
            ephemeral=True,
        )
