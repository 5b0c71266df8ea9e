import random

from farmdash.core.metrics import Metrics, RandomMetricsProvider, Weather
from farmdash.core.models import Farm


def _farm(area: float) -> Farm:
    return Farm(id="f", name="Farm", area=area, location="here")


def test_no_farms_gives_empty_metrics() -> None:
    metrics = RandomMetricsProvider().summarize([])
    assert metrics == Metrics()
    assert metrics.total_area == 0
    assert metrics.total_revenue == 0


def test_summary_ranges() -> None:
    provider = RandomMetricsProvider(random.Random(7))
    for _ in range(50):
        metrics = provider.summarize([_farm(10), _farm(5)])
        assert metrics.total_area == 15
        assert 500 <= metrics.avg_productivity <= 1000
        assert 15 * 5000 <= metrics.total_revenue <= 15 * 10000
        assert 15 * 1000 <= metrics.total_costs <= 15 * 3000
        assert metrics.weather_alerts == 2
        assert metrics.active_projects == 3


def test_farm_productivity_range() -> None:
    provider = RandomMetricsProvider(random.Random(1))
    assert all(500 <= provider.farm_productivity(_farm(1)) <= 1000 for _ in range(50))


def test_weather_is_fixed() -> None:
    assert RandomMetricsProvider().weather("anywhere") == Weather(
        temperature=28, humidity=75, wind_speed=12, rain_chance=30
    )
