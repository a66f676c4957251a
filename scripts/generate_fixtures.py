#!/usr/bin/env python3
"""
Generate demo fixtures for TimeToBurn

Writes the fixture files read by the fake providers (TIMETOBURN_MODE=demo/test)
under backend/fixtures/demo/<provider>/data.json. All fixtures are deterministic
and keyed by location rounded to 2 decimals.

Usage:
    python scripts/generate_fixtures.py
"""

import json
import math
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List

FIXTURES_ROOT = Path(__file__).resolve().parent.parent / "backend" / "fixtures" / "demo"

FORECAST_DAY = datetime(2026, 7, 15, 0, 0, 0, tzinfo=timezone.utc)

DENVER = "39.74,-104.99"
ASPEN = "39.19,-106.82"
MIAMI_BEACH = "25.79,-80.13"
WHITNEY_TRAIL = "36.58,-118.29"
SEATTLE = "47.61,-122.33"


def _write(name: str, payload: Dict[str, Any]) -> None:
    path = FIXTURES_ROOT / name / "data.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding="utf-8") as f:
        json.dump(payload, f, indent=2)
    print(f"✓ Generated {name} fixture ({len(payload.get('locations', {}))} locations)")


def hourly_uv(peak: float, cloud_cover: float) -> List[Dict[str, Any]]:
    """24 hourly entries; UV follows a half sine between 06:00 and 20:00 UTC."""
    entries = []
    for hour in range(24):
        timestamp = FORECAST_DAY + timedelta(hours=hour)
        uv = peak * math.sin((hour - 6) * math.pi / 14) if 6 < hour < 20 else 0.0
        # Afternoon build-up
        cloud = cloud_cover + 20 if hour >= 15 else cloud_cover
        entries.append({
            "time": timestamp.isoformat(),
            "uv_index": round(uv, 1),
            "cloud_cover_pct": cloud,
        })
    return entries


def generate_weather_fixtures():
    def location(peak: int, cloud_cover: int) -> Dict[str, Any]:
        return {
            "uv_index": peak,
            "cloud_cover_pct": cloud_cover,
            "temperature_c": 21.0,
            "hourly": hourly_uv(peak, cloud_cover),
        }

    _write("weather", {
        "version": "1.0",
        "description": "Current UV and a 24-hour hourly UV forecast for demo locations",
        "locations": {
            DENVER: location(8, 0),
            MIAMI_BEACH: location(10, 30),
            ASPEN: location(6, 10),
        },
        "default": location(5, 20),
    })


def generate_elevation_fixtures():
    _write("elevation", {
        "version": "1.0",
        "description": "Elevation in meters for demo locations",
        "locations": {
            DENVER: {"name": "Denver, CO", "elevation_m": 1609.0},
            ASPEN: {"name": "Aspen, CO", "elevation_m": 2438.0},
            MIAMI_BEACH: {"name": "Miami Beach, FL", "elevation_m": 2.0},
            WHITNEY_TRAIL: {"name": "Mount Whitney Trail, CA", "elevation_m": 3500.0},
            SEATTLE: {"name": "Seattle, WA", "elevation_m": 52.0},
        },
        "default": {"name": "Sea level", "elevation_m": 0.0},
    })


def generate_snow_fixtures():
    _write("snow", {
        "version": "1.0",
        "description": "Snow conditions for demo locations",
        "locations": {
            # Fresh powder, fully covered
            ASPEN: {
                "depth_cm": 45.0,
                "coverage_pct": 100.0,
                "age_days": 0.5,
                "temperature_c": -6.0,
                "recent_snowfall": True,
            },
            # Old snow below freezing -> icy
            WHITNEY_TRAIL: {
                "depth_cm": 20.0,
                "coverage_pct": 60.0,
                "age_days": 10.0,
                "temperature_c": -2.0,
                "recent_snowfall": False,
            },
        },
        "default": {
            "depth_cm": 0.0,
            "coverage_pct": 0.0,
            "age_days": 0.0,
            "temperature_c": 18.0,
            "recent_snowfall": False,
        },
    })


def generate_water_fixtures():
    _write("water", {
        "version": "1.0",
        "description": "Nearest water body for demo locations",
        "locations": {
            MIAMI_BEACH: {
                "name": "Atlantic Ocean",
                "type": "ocean",
                "size": "massive",
                "lat": 25.79,
                "lon": -80.12,
                "distance_m": 100.0,
            },
            SEATTLE: {
                "name": "Elliott Bay",
                "type": "sea",
                "size": "large",
                "lat": 47.61,
                "lon": -122.35,
                "distance_m": 800.0,
            },
            DENVER: {
                "name": "Sloan's Lake",
                "type": "lake",
                "size": "medium",
                "lat": 39.75,
                "lon": -105.04,
                "distance_m": 4200.0,
            },
        },
        "default": None,
    })


def generate_coastal_fixtures():
    _write("coastal", {
        "version": "1.0",
        "description": "Coastline proximity for demo locations",
        "locations": {
            MIAMI_BEACH: {"is_coastal": True, "coastal_distance_m": 100.0},
            SEATTLE: {"is_coastal": True, "coastal_distance_m": 800.0},
        },
        "default": {"is_coastal": False, "coastal_distance_m": None},
    })


def main():
    print("Generating TimeToBurn demo fixtures...")
    print(f"Output: {FIXTURES_ROOT}")
    print()

    generate_weather_fixtures()
    generate_elevation_fixtures()
    generate_snow_fixtures()
    generate_water_fixtures()
    generate_coastal_fixtures()

    print()
    print("✓ All fixtures generated successfully")


if __name__ == "__main__":
    main()
