import random

import pytest

from providers.fake_providers import (
    FakeCoastalProvider,
    FakeElevationProvider,
    FakeSnowProvider,
    FakeWaterProvider,
    FakeWeatherProvider,
    location_key,
)
from providers.registry import active_mode, build_providers
from providers.real_providers import (
    OpenMeteoElevationProvider,
    OpenMeteoSnowProvider,
    OpenMeteoWeatherProvider,
    PlaceholderCoastalProvider,
    PlaceholderWaterProvider,
)


@pytest.fixture(autouse=True)
def _demo_mode(monkeypatch):
    monkeypatch.setenv("TIMETOBURN_MODE", "demo")


def test_demo_mode_uses_fakes():
    providers = build_providers()
    assert isinstance(providers.weather, FakeWeatherProvider)
    assert isinstance(providers.elevation, FakeElevationProvider)
    assert isinstance(providers.snow, FakeSnowProvider)
    assert isinstance(providers.water, FakeWaterProvider)
    assert isinstance(providers.coastal, FakeCoastalProvider)


def test_prod_mode_switch(monkeypatch):
    monkeypatch.setenv("TIMETOBURN_MODE", "prod")
    providers = build_providers()
    assert isinstance(providers.weather, OpenMeteoWeatherProvider)
    assert isinstance(providers.elevation, OpenMeteoElevationProvider)
    assert isinstance(providers.snow, OpenMeteoSnowProvider)
    assert isinstance(providers.water, PlaceholderWaterProvider)


def test_explicit_mode_overrides_env():
    assert isinstance(build_providers("prod").weather, OpenMeteoWeatherProvider)
    assert active_mode("TEST") == "test"


def test_default_mode_is_prod(monkeypatch):
    monkeypatch.delenv("TIMETOBURN_MODE", raising=False)
    assert active_mode() == "prod"


def test_each_build_is_fresh():
    assert build_providers() is not build_providers()


def test_location_key_rounding():
    assert location_key(39.7392, -104.9903) == "39.74,-104.99"


@pytest.mark.asyncio
async def test_weather_deterministic():
    providers = build_providers()
    first = await providers.weather.get_uv_conditions(39.74, -104.99)
    second = await providers.weather.get_uv_conditions(39.74, -104.99)
    assert first == second
    assert first["uv_index"] == 8
    assert len(first["hourly"]) == 24


@pytest.mark.asyncio
async def test_unknown_location_uses_default():
    providers = build_providers()
    assert await providers.elevation.get_elevation(10.0, 10.0) == 0.0
    assert await providers.water.get_water_proximity(10.0, 10.0) is None
    coastal = await providers.coastal.get_coastal_info(10.0, 10.0)
    assert coastal["is_coastal"] is False


@pytest.mark.asyncio
async def test_inline_fixture_data():
    provider = FakeElevationProvider(data={"locations": {"1.0,2.0": {"elevation_m": 42.0}}})
    assert await provider.get_elevation(1.0, 2.0) == 42.0
    assert await provider.get_elevation(5.0, 5.0) is None


@pytest.mark.asyncio
async def test_placeholders_are_seedable():
    first = PlaceholderWaterProvider(rng=random.Random(7))
    second = PlaceholderWaterProvider(rng=random.Random(7))
    results_a = [await first.get_water_proximity(1.0, 1.0) for _ in range(10)]
    results_b = [await second.get_water_proximity(1.0, 1.0) for _ in range(10)]
    assert results_a == results_b
    assert PlaceholderWaterProvider.deterministic is False
    assert PlaceholderCoastalProvider.deterministic is False

    coastal = await PlaceholderCoastalProvider(rng=random.Random(1)).get_coastal_info(1.0, 1.0)
    assert 0.0 <= coastal["coastal_distance_m"] <= 50000.0
    assert coastal["is_coastal"] == (coastal["coastal_distance_m"] < 1000.0)
