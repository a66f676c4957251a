from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional

from .contracts import (
    CoastalProvider,
    ElevationProvider,
    SnowProvider,
    WaterProvider,
    WeatherProvider,
)

FIXTURES_ROOT = Path(__file__).parent.parent / "fixtures" / "demo"


def location_key(lat: float, lon: float) -> str:
    return f"{round(lat, 2)},{round(lon, 2)}"


class _FixtureLoader:
    def __init__(self, fixture_name: str, data: Optional[Dict[str, Any]] = None):
        if data is not None:
            self.data = data
            return
        self.path = FIXTURES_ROOT / fixture_name / "data.json"
        with self.path.open("r", encoding="utf-8") as f:
            self.data = json.load(f)

    def _lookup(self, lat: float, lon: float) -> Optional[Any]:
        locations = self.data.get("locations", {})
        key = location_key(lat, lon)
        if key in locations:
            return locations[key]
        return self.data.get("default")


class FakeWeatherProvider(WeatherProvider, _FixtureLoader):
    def __init__(self, data: Optional[Dict[str, Any]] = None) -> None:
        _FixtureLoader.__init__(self, "weather", data)

    async def get_uv_conditions(self, lat: float, lon: float) -> Optional[Dict[str, Any]]:
        return self._lookup(lat, lon)


class FakeElevationProvider(ElevationProvider, _FixtureLoader):
    def __init__(self, data: Optional[Dict[str, Any]] = None) -> None:
        _FixtureLoader.__init__(self, "elevation", data)

    async def get_elevation(self, lat: float, lon: float) -> Optional[float]:
        entry = self._lookup(lat, lon)
        if entry is None:
            return None
        return entry.get("elevation_m")


class FakeSnowProvider(SnowProvider, _FixtureLoader):
    def __init__(self, data: Optional[Dict[str, Any]] = None) -> None:
        _FixtureLoader.__init__(self, "snow", data)

    async def get_snow_conditions(self, lat: float, lon: float) -> Optional[Dict[str, Any]]:
        return self._lookup(lat, lon)


class FakeWaterProvider(WaterProvider, _FixtureLoader):
    def __init__(self, data: Optional[Dict[str, Any]] = None) -> None:
        _FixtureLoader.__init__(self, "water", data)

    async def get_water_proximity(self, lat: float, lon: float) -> Optional[Dict[str, Any]]:
        return self._lookup(lat, lon)


class FakeCoastalProvider(CoastalProvider, _FixtureLoader):
    def __init__(self, data: Optional[Dict[str, Any]] = None) -> None:
        _FixtureLoader.__init__(self, "coastal", data)

    async def get_coastal_info(self, lat: float, lon: float) -> Optional[Dict[str, Any]]:
        return self._lookup(lat, lon)
