from __future__ import annotations

from typing import Any

import discord

from ..dashboard import Dashboard
from ..data.forms import FormState
from .embeds import notice_text, profile_embed


def _text(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


class SignInModal(discord.ui.Modal, title="Sign in"):
    def __init__(self, dashboard: Dashboard) -> None:
        super().__init__()
        self.dashboard = dashboard
        self.email_input = discord.ui.TextInput(
            label="Email", placeholder="you@example.com", required=True, max_length=320
        )
        self.password_input = discord.ui.TextInput(
            label="Password", required=True, max_length=128
        )
        self.add_item(self.email_input)
        self.add_item(self.password_input)

    async def on_submit(self, interaction: discord.Interaction) -> None:
        await self.apply(
            interaction,
            {"email": self.email_input.value, "password": self.password_input.value},
        )

    async def apply(self, interaction: discord.Interaction, values: dict[str, str]) -> None:
        notice = await self.dashboard.sign_in(values["email"], values["password"])
        await interaction.response.send_message(notice_text(notice), ephemeral=True)


class SignUpModal(discord.ui.Modal, title="Create account"):
    def __init__(self, dashboard: Dashboard) -> None:
        super().__init__()
        self.dashboard = dashboard
        self.email_input = discord.ui.TextInput(
            label="Email", placeholder="you@example.com", required=True, max_length=320
        )
        self.password_input = discord.ui.TextInput(
            label="Password", required=True, min_length=6, max_length=128
        )
        self.confirm_input = discord.ui.TextInput(
            label="Confirm password", required=True, min_length=6, max_length=128
        )
        self.add_item(self.email_input)
        self.add_item(self.password_input)
        self.add_item(self.confirm_input)

    async def on_submit(self, interaction: discord.Interaction) -> None:
        await self.apply(
            interaction,
            {
                "email": self.email_input.value,
                "password": self.password_input.value,
                "confirm_password": self.confirm_input.value,
            },
        )

    async def apply(self, interaction: discord.Interaction, values: dict[str, str]) -> None:
        notice = await self.dashboard.sign_up(
            values["email"], values["password"], values["confirm_password"]
        )
        await interaction.response.send_message(notice_text(notice), ephemeral=True)


# Discord modals hold at most five inputs, so profile fields are split in two.
PROFILE_SECTIONS: dict[str, tuple[tuple[str, str, bool], ...]] = {
    "personal": (
        ("full_name", "Full name", False),
        ("display_name", "Display name", False),
        ("phone", "Phone", False),
        ("birth_date", "Birth date (YYYY-MM-DD)", False),
        ("address", "Address", True),
    ),
    "professional": (
        ("professional_title", "Professional title", False),
        ("company", "Company", False),
        ("area_of_expertise", "Area of expertise", False),
        ("bio", "Bio", True),
    ),
}


class ProfileDetailsModal(discord.ui.Modal, title="Edit profile"):
    """Writes one section of profile fields into the open draft."""

    def __init__(self, dashboard: Dashboard, section: str) -> None:
        super().__init__(title=f"Edit profile: {section}")
        self.dashboard = dashboard
        self.section = section
        draft = dashboard.profile_form.draft or {}
        self.inputs: dict[str, discord.ui.TextInput] = {}
        for field, label, long in PROFILE_SECTIONS[section]:
            text_input = discord.ui.TextInput(
                label=label,
                style=discord.TextStyle.long if long else discord.TextStyle.short,
                default=_text(draft.get(field)),
                required=field == "full_name",
                max_length=1000 if long else 200,
            )
            self.inputs[field] = text_input
            self.add_item(text_input)

    async def on_submit(self, interaction: discord.Interaction) -> None:
        await self.apply(
            interaction, {field: i.value for field, i in self.inputs.items()}
        )

    async def apply(self, interaction: discord.Interaction, values: dict[str, str]) -> None:
        form = self.dashboard.profile_form
        if not form.update(values):
            await interaction.response.send_message(
                "Press Edit on your profile before changing it.", ephemeral=True
            )
            return
        await interaction.response.send_message(
            "Changes staged. Press Save on your profile to keep them.",
            embed=profile_embed(form.committed, form.draft),
            ephemeral=True,
        )


class FarmModal(discord.ui.Modal, title="Add farm"):
    def __init__(self, dashboard: Dashboard) -> None:
        super().__init__()
        self.dashboard = dashboard
        form = dashboard.farm_form
        if form.state is FormState.VIEWING:
            form.begin_edit()
        draft = form.draft or {}
        self.name_input = discord.ui.TextInput(
            label="Farm name", default=_text(draft.get("name")), required=True, max_length=200
        )
        self.area_input = discord.ui.TextInput(
            label="Area (hectares)",
            placeholder="e.g. 12.5",
            default=_text(draft.get("area")),
            required=True,
            max_length=32,
        )
        self.location_input = discord.ui.TextInput(
            label="Location",
            default=_text(draft.get("location")),
            required=True,
            max_length=200,
        )
        self.add_item(self.name_input)
        self.add_item(self.area_input)
        self.add_item(self.location_input)

    async def on_submit(self, interaction: discord.Interaction) -> None:
        await self.apply(
            interaction,
            {
                "name": self.name_input.value,
                "area": self.area_input.value,
                "location": self.location_input.value,
            },
        )

    async def apply(self, interaction: discord.Interaction, values: dict[str, str]) -> None:
        form = self.dashboard.farm_form
        if form.state is FormState.VIEWING:
            form.begin_edit()
        form.update(values)
        notice = await self.dashboard.add_farm()
        await interaction.response.send_message(notice_text(notice), ephemeral=True)
