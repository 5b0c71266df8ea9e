"""Dashboard metrics.

Nothing here is computed from real agronomic data yet. The
:class:`RandomMetricsProvider` produces the same placeholder figures the
dashboard has always shown, behind an interface that a real implementation
can replace without touching the record synchronizer.
"""

from __future__ import annotations

import random
from abc import ABC, abstractmethod
from collections.abc import Sequence

from pydantic import BaseModel

from .models import Farm


class Metrics(BaseModel):
    total_area: float = 0.0
    avg_productivity: float = 0.0  # kg/ha
    total_revenue: int = 0
    total_costs: int = 0
    weather_alerts: int = 2
    active_projects: int = 3


class Weather(BaseModel):
    temperature: float = 28  # °C
    humidity: float = 75  # %
    wind_speed: float = 12  # km/h
    rain_chance: float = 30  # %


class MetricsProvider(ABC):
    """Source of the figures shown on the dashboard."""

    @abstractmethod
    def summarize(self, farms: Sequence[Farm]) -> Metrics:
        """Aggregate figures for all of the user's ``farms``."""

    @abstractmethod
    def farm_productivity(self, farm: Farm) -> float:
        """Productivity in kg/ha shown next to a single farm."""

    @abstractmethod
    def weather(self, location: str | None = None) -> Weather:
        """Current conditions for ``location``."""


class RandomMetricsProvider(MetricsProvider):
    """Placeholder figures drawn from fixed ranges."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self.rng = rng or random.Random()

    def summarize(self, farms: Sequence[Farm]) -> Metrics:
        if not farms:
            return Metrics()
        total_area = sum(f.area for f in farms)
        return Metrics(
            total_area=total_area,
            avg_productivity=round(self.rng.uniform(500, 1000), 2),
            total_revenue=round(total_area * self.rng.uniform(5000, 10000)),
            total_costs=round(total_area * self.rng.uniform(1000, 3000)),
        )

    def farm_productivity(self, farm: Farm) -> float:
        return float(round(self.rng.uniform(500, 1000)))

    def weather(self, location: str | None = None) -> Weather:
        return Weather()
