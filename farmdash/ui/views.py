from __future__ import annotations

from collections.abc import Awaitable, Callable

import discord

from ..dashboard import Dashboard
from ..data.forms import FormState
from ..data.notify import Notice
from .embeds import farms_embed, notice_text, profile_embed
from .modals import FarmModal, ProfileDetailsModal

# buttons that only make sense while a draft is open
EDITING_ONLY = {
    "profile:personal",
    "profile:professional",
    "profile:email",
    "profile:push",
    "profile:save",
    "profile:cancel",
}


class ConfirmView(discord.ui.View):
    """Confirm/Cancel guard placed in front of irreversible actions."""

    def __init__(self, action: Callable[[bool], Awaitable[Notice]]) -> None:
        super().__init__(timeout=120)
        self.action = action
        self.answered = False

    async def _answer(self, interaction: discord.Interaction, confirmed: bool) -> None:
        if self.answered:
            await interaction.response.send_message("Already answered.", ephemeral=True)
            return
        self.answered = True
        notice = await self.action(confirmed)
        self.stop()
        await interaction.response.edit_message(content=notice_text(notice), view=None)

    @discord.ui.button(label="Confirm", style=discord.ButtonStyle.danger, custom_id="confirm:yes")
    async def confirm(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        await self._answer(interaction, True)

    @discord.ui.button(label="Cancel", style=discord.ButtonStyle.secondary, custom_id="confirm:no")
    async def cancel(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        await self._answer(interaction, False)


class ProfileView(discord.ui.View):
    def __init__(self, dashboard: Dashboard) -> None:
        super().__init__(timeout=900)
        self.dashboard = dashboard
        self.sync_buttons()

    def sync_buttons(self) -> None:
        editing = self.dashboard.profile_form.state is FormState.EDITING
        for item in self.children:
            custom_id = getattr(item, "custom_id", None)
            if custom_id == "profile:edit":
                item.disabled = editing
            elif custom_id in EDITING_ONLY:
                item.disabled = not editing

    def embed(self) -> discord.Embed:
        form = self.dashboard.profile_form
        return profile_embed(form.committed, form.draft)

    async def _refresh(self, interaction: discord.Interaction, content: str | None = None) -> None:
        self.sync_buttons()
        await interaction.response.edit_message(content=content, embed=self.embed(), view=self)

    async def _edit(self, interaction: discord.Interaction) -> None:
        form = self.dashboard.profile_form
        if form.committed is None:
            await interaction.response.send_message("Profile has not loaded yet.", ephemeral=True)
            return
        if form.state is FormState.VIEWING:
            form.begin_edit()
        await self._refresh(interaction)

    async def _details(self, interaction: discord.Interaction, section: str) -> None:
        if not self.dashboard.profile_form.editing:
            await interaction.response.send_message(
                "Press Edit before changing your profile.", ephemeral=True
            )
            return
        await interaction.response.send_modal(ProfileDetailsModal(self.dashboard, section))

    async def _toggle(self, interaction: discord.Interaction, channel: str) -> None:
        self.dashboard.profile_form.toggle_notification(channel)
        await self._refresh(interaction)

    async def _save(self, interaction: discord.Interaction) -> None:
        notice = await self.dashboard.save_profile()
        await self._refresh(interaction, notice_text(notice))

    async def _cancel(self, interaction: discord.Interaction) -> None:
        form = self.dashboard.profile_form
        if form.state is FormState.SAVING:
            await interaction.response.send_message("A save is in progress.", ephemeral=True)
            return
        form.cancel()
        await self._refresh(interaction, "Changes discarded.")

    @discord.ui.button(label="Edit", style=discord.ButtonStyle.primary, custom_id="profile:edit")
    async def edit_button(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        await self._edit(interaction)

    @discord.ui.button(label="Personal", style=discord.ButtonStyle.secondary, custom_id="profile:personal")
    async def personal_button(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        await self._details(interaction, "personal")

    @discord.ui.button(label="Professional", style=discord.ButtonStyle.secondary, custom_id="profile:professional")
    async def professional_button(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        await self._details(interaction, "professional")

    @discord.ui.button(label="Email alerts", style=discord.ButtonStyle.secondary, custom_id="profile:email", row=1)
    async def email_button(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        await self._toggle(interaction, "email")

    @discord.ui.button(label="Push alerts", style=discord.ButtonStyle.secondary, custom_id="profile:push", row=1)
    async def push_button(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        await self._toggle(interaction, "push")

    @discord.ui.button(label="Save", style=discord.ButtonStyle.success, custom_id="profile:save", row=2)
    async def save_button(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        await self._save(interaction)

    @discord.ui.button(label="Cancel", style=discord.ButtonStyle.danger, custom_id="profile:cancel", row=2)
    async def cancel_button(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        await self._cancel(interaction)


class FarmSelect(discord.ui.Select):
    """Pick a farm to delete; deletion still goes through :class:`ConfirmView`."""

    def __init__(self, dashboard: Dashboard) -> None:
        options = [
            discord.SelectOption(
                label=farm.name[:100],
                value=farm.id,
                description=f"{farm.area:g} ha · {farm.location}"[:100],
            )
            for farm in dashboard.farms[:25]
        ]
        super().__init__(placeholder="Delete a farm…", options=options, min_values=1, max_values=1)
        self.dashboard = dashboard

    async def callback(self, interaction: discord.Interaction) -> None:
        await FarmListView.ask_delete(self.dashboard, interaction, self.values[0])


class FarmListView(discord.ui.View):
    def __init__(self, dashboard: Dashboard) -> None:
        super().__init__(timeout=900)
        self.dashboard = dashboard
        if dashboard.farms:
            self.add_item(FarmSelect(dashboard))

    def embed(self) -> discord.Embed:
        return farms_embed(self.dashboard.farms, self.dashboard.metrics_provider)

    @staticmethod
    async def ask_delete(
        dashboard: Dashboard, interaction: discord.Interaction, farm_id: str
    ) -> None:
        farm = next((f for f in dashboard.farms if f.id == farm_id), None)
        if farm is None:
            await interaction.response.send_message("Farm not found.", ephemeral=True)
            return

        async def action(confirmed: bool) -> Notice:
            return await dashboard.delete_farm(farm_id, confirmed=confirmed)

        await interaction.response.send_message(
            f"Delete **{farm.name}**? This cannot be undone.",
            view=ConfirmView(action),
            ephemeral=True,
        )

    @discord.ui.button(label="Add farm", style=discord.ButtonStyle.success, custom_id="farms:add", row=1)
    async def add_button(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        await interaction.response.send_modal(FarmModal(self.dashboard))

    @discord.ui.button(label="Refresh", style=discord.ButtonStyle.secondary, custom_id="farms:refresh", row=1)
    async def refresh_button(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        notice = await self.dashboard.refresh()
        view = FarmListView(self.dashboard)
        await interaction.response.edit_message(
            content=None if notice.ok else notice_text(notice),
            embed=view.embed(),
            view=view,
        )
