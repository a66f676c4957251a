from __future__ import annotations

from typing import Any, Dict, Optional, Protocol


class WeatherProvider(Protocol):
    async def get_uv_conditions(self, lat: float, lon: float) -> Optional[Dict[str, Any]]:
        """{"uv_index", "cloud_cover_pct", "temperature_c", "hourly": [{"time", "uv_index", "cloud_cover_pct"}]}"""
        ...


class ElevationProvider(Protocol):
    async def get_elevation(self, lat: float, lon: float) -> Optional[float]:
        ...


class SnowProvider(Protocol):
    async def get_snow_conditions(self, lat: float, lon: float) -> Optional[Dict[str, Any]]:
        """{"depth_cm", "coverage_pct", "age_days", "temperature_c", "recent_snowfall"}"""
        ...


class WaterProvider(Protocol):
    async def get_water_proximity(self, lat: float, lon: float) -> Optional[Dict[str, Any]]:
        """{"name", "type", "size", "lat", "lon", "distance_m"}"""
        ...


class CoastalProvider(Protocol):
    async def get_coastal_info(self, lat: float, lon: float) -> Optional[Dict[str, Any]]:
        """{"is_coastal", "coastal_distance_m"}"""
        ...
