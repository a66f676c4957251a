from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from .contracts import (
    CoastalProvider,
    ElevationProvider,
    SnowProvider,
    WaterProvider,
    WeatherProvider,
)
from .fake_providers import (
    FakeCoastalProvider,
    FakeElevationProvider,
    FakeSnowProvider,
    FakeWaterProvider,
    FakeWeatherProvider,
)
from .real_providers import (
    OpenMeteoElevationProvider,
    OpenMeteoSnowProvider,
    OpenMeteoWeatherProvider,
    PlaceholderCoastalProvider,
    PlaceholderWaterProvider,
)


@dataclass
class ProviderSet:
    weather: WeatherProvider
    elevation: ElevationProvider
    snow: SnowProvider
    water: WaterProvider
    coastal: CoastalProvider


def _build_prod() -> ProviderSet:
    return ProviderSet(
        weather=OpenMeteoWeatherProvider(),
        elevation=OpenMeteoElevationProvider(),
        snow=OpenMeteoSnowProvider(),
        water=PlaceholderWaterProvider(),
        coastal=PlaceholderCoastalProvider(),
    )


def _build_fake() -> ProviderSet:
    return ProviderSet(
        weather=FakeWeatherProvider(),
        elevation=FakeElevationProvider(),
        snow=FakeSnowProvider(),
        water=FakeWaterProvider(),
        coastal=FakeCoastalProvider(),
    )


def active_mode(mode: Optional[str] = None) -> str:
    return (mode or os.environ.get("TIMETOBURN_MODE", "prod")).lower()


def build_providers(mode: Optional[str] = None) -> ProviderSet:
    """Build a fresh provider set; demo/test modes use fixture-backed fakes."""
    if active_mode(mode) in {"demo", "test"}:
        return _build_fake()
    return _build_prod()
