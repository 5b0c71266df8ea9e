from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import discord

from ..core.metrics import Metrics, MetricsProvider, Weather
from ..core.models import Farm, Profile
from ..data.notify import Notice


def notice_text(notice: Notice) -> str:
    return f"{'✅' if notice.ok else '⚠️'} {notice.message}"


def profile_embed(profile: Profile | None, draft: dict[str, Any] | None = None) -> discord.Embed:
    if profile is None:
        return discord.Embed(
            title="Profile", description="Not loaded.", color=discord.Color.red()
        )
    data = profile.editable()
    if draft is not None:
        data.update(draft)
    e = discord.Embed(
        title=data.get("display_name") or data.get("full_name") or "User",
        description=data.get("bio") or None,
        color=discord.Color.gold() if draft is not None else discord.Color.green(),
    )
    e.add_field(name="Full name", value=data.get("full_name") or "-", inline=True)
    e.add_field(name="Title", value=data.get("professional_title") or "Farmer", inline=True)
    e.add_field(name="Company", value=data.get("company") or "-", inline=True)
    e.add_field(name="Expertise", value=data.get("area_of_expertise") or "-", inline=True)
    e.add_field(name="Phone", value=data.get("phone") or "-", inline=True)
    e.add_field(name="Birth date", value=str(data.get("birth_date") or "-"), inline=True)
    e.add_field(name="Address", value=data.get("address") or "-", inline=False)
    prefs = data.get("notification_preferences") or {}
    e.add_field(
        name="Notifications",
        value=(
            f"Email: {'on' if prefs.get('email') else 'off'} · "
            f"Push: {'on' if prefs.get('push') else 'off'}"
        ),
        inline=False,
    )
    if profile.avatar_url:
        e.set_thumbnail(url=profile.avatar_url)
    if profile.cover_image:
        e.set_image(url=profile.cover_image)
    if draft is not None:
        e.set_footer(text="Editing: press Save to keep your changes")
    return e


def farms_embed(farms: Sequence[Farm], metrics: MetricsProvider) -> discord.Embed:
    e = discord.Embed(title="My farms", color=discord.Color.green())
    if not farms:
        e.description = "No farms yet. Use /add_farm to register one."
        return e
    for farm in farms[:25]:
        e.add_field(
            name=farm.name,
            value=(
                f"Area: {farm.area:g} ha\n"
                f"Location: {farm.location or '-'}\n"
                f"Productivity: {metrics.farm_productivity(farm):.0f} kg/ha"
            ),
            inline=True,
        )
    return e


def dashboard_embed(metrics: Metrics, weather: Weather) -> discord.Embed:
    e = discord.Embed(title="Dashboard", color=discord.Color.blurple())
    e.add_field(name="Total area", value=f"{metrics.total_area:g} ha", inline=True)
    e.add_field(name="Productivity", value=f"{metrics.avg_productivity} kg/ha", inline=True)
    e.add_field(name="Revenue", value=f"R$ {metrics.total_revenue:,}", inline=True)
    e.add_field(name="Costs", value=f"R$ {metrics.total_costs:,}", inline=True)
    e.add_field(name="Weather alerts", value=str(metrics.weather_alerts), inline=True)
    e.add_field(name="Active projects", value=str(metrics.active_projects), inline=True)
    e.add_field(
        name="Weather",
        value=(
            f"{weather.temperature:g}°C · humidity {weather.humidity:g}% · "
            f"wind {weather.wind_speed:g} km/h · rain {weather.rain_chance:g}%"
        ),
        inline=False,
    )
    return e
