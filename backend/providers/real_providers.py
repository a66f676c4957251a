from __future__ import annotations

import logging
import os
import random
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from .contracts import (
    CoastalProvider,
    ElevationProvider,
    SnowProvider,
    WaterProvider,
    WeatherProvider,
)

logger = logging.getLogger(__name__)

OPEN_METEO_URL = os.environ.get("OPEN_METEO_URL", "https://api.open-meteo.com/v1/forecast")
OPEN_METEO_ELEVATION_URL = os.environ.get(
    "OPEN_METEO_ELEVATION_URL", "https://api.open-meteo.com/v1/elevation"
)
HTTP_TIMEOUT_SECONDS = float(os.environ.get("PROVIDER_TIMEOUT_SECONDS", "10"))

# Depth at which the ground is treated as fully covered
FULL_COVERAGE_DEPTH_CM = 10.0


def _parse_time(value: str) -> datetime:
    return datetime.fromisoformat(value).replace(tzinfo=timezone.utc)


def _current_hour_index(times: List[str], now: datetime) -> int:
    """Index of the last hourly slot not after now (0 if all are in the future)."""
    index = 0
    for i, value in enumerate(times):
        if _parse_time(value) <= now:
            index = i
        else:
            break
    return index


class OpenMeteoWeatherProvider(WeatherProvider):
    async def get_uv_conditions(self, lat: float, lon: float) -> Optional[Dict[str, Any]]:
        try:
            async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS) as client:
                params = {
                    "latitude": lat,
                    "longitude": lon,
                    "hourly": "uv_index,cloud_cover,temperature_2m",
                    "forecast_days": 2,
                    "timezone": "UTC",
                }
                response = await client.get(OPEN_METEO_URL, params=params)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            logger.warning(f"[ENV] Open-Meteo UV request failed: {e}")
            return None

        hourly = data.get("hourly") or {}
        times = hourly.get("time") or []
        if not times:
            return None
        uv = hourly.get("uv_index") or []
        clouds = hourly.get("cloud_cover") or []
        temps = hourly.get("temperature_2m") or []

        series = [
            {
                "time": _parse_time(t).isoformat(),
                "uv_index": uv[i] if i < len(uv) and uv[i] is not None else 0.0,
                "cloud_cover_pct": clouds[i] if i < len(clouds) and clouds[i] is not None else 0.0,
            }
            for i, t in enumerate(times)
        ]
        current = _current_hour_index(times, datetime.now(timezone.utc))
        return {
            "uv_index": series[current]["uv_index"],
            "cloud_cover_pct": series[current]["cloud_cover_pct"],
            "temperature_c": temps[current] if current < len(temps) else None,
            "hourly": series,
        }


class OpenMeteoElevationProvider(ElevationProvider):
    async def get_elevation(self, lat: float, lon: float) -> Optional[float]:
        try:
            async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS) as client:
                response = await client.get(
                    OPEN_METEO_ELEVATION_URL, params={"latitude": lat, "longitude": lon}
                )
                response.raise_for_status()
                values = response.json().get("elevation") or []
        except httpx.HTTPError as e:
            logger.warning(f"[ENV] Elevation request failed: {e}")
            return None
        return values[0] if values else None


class OpenMeteoSnowProvider(SnowProvider):
    """Snow depth and last snowfall from two weeks of hourly history."""

    async def get_snow_conditions(self, lat: float, lon: float) -> Optional[Dict[str, Any]]:
        try:
            async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS) as client:
                params = {
                    "latitude": lat,
                    "longitude": lon,
                    "hourly": "snow_depth,snowfall,temperature_2m",
                    "past_days": 14,
                    "forecast_days": 1,
                    "timezone": "UTC",
                }
                response = await client.get(OPEN_METEO_URL, params=params)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            logger.warning(f"[ENV] Open-Meteo snow request failed: {e}")
            return None

        hourly = data.get("hourly") or {}
        times = hourly.get("time") or []
        if not times:
            return None
        now = datetime.now(timezone.utc)
        current = _current_hour_index(times, now)

        depths = hourly.get("snow_depth") or []
        snowfall = hourly.get("snowfall") or []
        temps = hourly.get("temperature_2m") or []

        depth_m = depths[current] if current < len(depths) and depths[current] is not None else 0.0
        depth_cm = depth_m * 100.0

        age_days = 14.0
        for i in range(current, -1, -1):
            if i < len(snowfall) and snowfall[i]:
                age_days = (now - _parse_time(times[i])).total_seconds() / 86400.0
                break

        return {
            "depth_cm": depth_cm,
            "coverage_pct": min(100.0, depth_cm / FULL_COVERAGE_DEPTH_CM * 100.0),
            "age_days": age_days,
            "temperature_c": temps[current] if current < len(temps) else 0.0,
            "recent_snowfall": age_days <= 1.0,
        }


class PlaceholderWaterProvider(WaterProvider):
    """
    Randomized stand-in until a water-body data source is wired up.

    Non-deterministic: pass a seeded random.Random for reproducible output.
    """

    deterministic = False

    WATER_TYPES = ["ocean", "lake", "river", "stream", "pond", "pool"]
    SIZES = ["small", "medium", "large", "massive"]

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    async def get_water_proximity(self, lat: float, lon: float) -> Optional[Dict[str, Any]]:
        if self.rng.random() < 0.3:
            return None
        water_type = self.rng.choice(self.WATER_TYPES)
        return {
            "name": f"Nearby {water_type}",
            "type": water_type,
            "size": self.rng.choice(self.SIZES),
            "lat": lat + self.rng.uniform(-0.01, 0.01),
            "lon": lon + self.rng.uniform(-0.01, 0.01),
            "distance_m": self.rng.uniform(50.0, 5000.0),
        }


class PlaceholderCoastalProvider(CoastalProvider):
    """Randomized stand-in for a coastline distance lookup. Non-deterministic."""

    deterministic = False

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    async def get_coastal_info(self, lat: float, lon: float) -> Optional[Dict[str, Any]]:
        distance = self.rng.uniform(0.0, 50000.0)
        return {"is_coastal": distance < 1000.0, "coastal_distance_m": distance}
