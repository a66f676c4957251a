"""
Environmental Service - builds validated environmental snapshots for a location.

Handles:
- Concurrent sub-fetches (altitude, snow, water, coastal) joined before the snapshot
  is built, so callers never see a partial snapshot
- Validation bounds at the provider boundary; rejected or failed sub-fetches fall back
  to neutral defaults (altitude 0 m, no snow, no water)
- Terrain classification and seasonal factors
- A one hour snapshot cache keyed by rounded location (LRU in process, optional
  persistent store behind it)
"""

import asyncio
import logging
import math
import os
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional, Tuple

from pymongo.errors import PyMongoError

from environmental_models import (
    Coordinates,
    EnvironmentalFactors,
    Season,
    SeasonalFactors,
    SnowConditions,
    TerrainType,
    WaterBody,
    WaterBodySize,
    WaterBodyType,
    WaterProximity,
    determine_snow_type,
)
from exposure_store import SnapshotStore
from providers import ProviderSet
from recency_cache import LRUCache
from uv_risk_service import UVRiskService

logger = logging.getLogger(__name__)

ENV_CACHE_TTL_SECONDS = int(os.environ.get("ENV_CACHE_TTL_SECONDS", "3600"))
ENV_CACHE_CAPACITY = int(os.environ.get("ENV_CACHE_CAPACITY", "128"))
SUBFETCH_TIMEOUT_SECONDS = float(os.environ.get("SUBFETCH_TIMEOUT_SECONDS", "15"))

MIN_ALTITUDE_M = -500.0
MAX_ALTITUDE_M = 9000.0

# (lat_min, lat_max, lon_min, lon_max)
Box = Tuple[float, float, float, float]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _number(value: Any) -> Optional[float]:
    """Float value or None for missing/non-numeric/NaN input."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


class TerrainClassifier:
    """Coarse terrain classification from location, altitude and water proximity."""

    COASTAL_WATER_DISTANCE_M = 500.0
    MOUNTAIN_ALTITUDE_M = 1000.0
    ARCTIC_LATITUDE = 60.0

    DESERTS: Tuple[Box, ...] = (
        (15.0, 35.0, -20.0, 40.0),  # Sahara
        (15.0, 35.0, 35.0, 60.0),  # Arabian
        (35.0, 50.0, 85.0, 120.0),  # Gobi
        (32.0, 38.0, -118.0, -114.0),  # Mojave
        (25.0, 35.0, -118.0, -105.0),  # Sonoran
        (-25.0, -15.0, 115.0, 145.0),  # Australian outback
    )
    FORESTS: Tuple[Box, ...] = (
        (-10.0, 5.0, -80.0, -50.0),  # Amazon
        (45.0, 70.0, -140.0, -60.0),  # North American boreal
        (45.0, 70.0, 20.0, 180.0),  # Eurasian boreal
        (-5.0, 5.0, 10.0, 30.0),  # Congo
        (-10.0, 20.0, 90.0, 130.0),  # Southeast Asia
    )
    URBAN_AREAS: Tuple[Box, ...] = (
        (40.0, 45.0, -80.0, -70.0),  # New York
        (34.0, 35.0, -119.0, -118.0),  # Los Angeles
        (41.0, 42.0, -88.0, -87.0),  # Chicago
        (48.0, 53.0, -5.0, 15.0),  # Western Europe
        (35.0, 40.0, 135.0, 140.0),  # Tokyo
        (22.0, 23.0, 113.0, 114.0),  # Hong Kong
    )

    @staticmethod
    def _in_any(lat: float, lon: float, boxes: Tuple[Box, ...]) -> bool:
        return any(
            lat_min <= lat <= lat_max and lon_min <= lon <= lon_max
            for lat_min, lat_max, lon_min, lon_max in boxes
        )

    @staticmethod
    def classify(lat: float, lon: float, altitude_meters: float, water: WaterProximity) -> TerrainType:
        if water.is_coastal or water.distance_to_water_meters < TerrainClassifier.COASTAL_WATER_DISTANCE_M:
            return TerrainType.COASTAL
        if altitude_meters > TerrainClassifier.MOUNTAIN_ALTITUDE_M:
            return TerrainType.MOUNTAINOUS
        if abs(lat) > TerrainClassifier.ARCTIC_LATITUDE:
            return TerrainType.ARCTIC
        if TerrainClassifier._in_any(lat, lon, TerrainClassifier.DESERTS):
            return TerrainType.DESERT
        if TerrainClassifier._in_any(lat, lon, TerrainClassifier.FORESTS):
            return TerrainType.FOREST
        if TerrainClassifier._in_any(lat, lon, TerrainClassifier.URBAN_AREAS):
            return TerrainType.URBAN
        return TerrainType.RURAL


class SeasonCalculator:
    """Season, solstice/equinox flags and the seasonal UV multiplier for a date."""

    NORTHERN_SEASONS = {
        12: Season.WINTER, 1: Season.WINTER, 2: Season.WINTER,
        3: Season.SPRING, 4: Season.SPRING, 5: Season.SPRING,
        6: Season.SUMMER, 7: Season.SUMMER, 8: Season.SUMMER,
        9: Season.AUTUMN, 10: Season.AUTUMN, 11: Season.AUTUMN,
    }
    SOUTHERN_FLIP = {
        Season.WINTER: Season.SUMMER,
        Season.SUMMER: Season.WINTER,
        Season.SPRING: Season.AUTUMN,
        Season.AUTUMN: Season.SPRING,
        Season.UNKNOWN: Season.UNKNOWN,
    }
    JUNE_SOLSTICE = {(6, 20), (6, 21)}
    DECEMBER_SOLSTICE = {(12, 21), (12, 22)}
    EQUINOXES = {(3, 20), (3, 21), (9, 22), (9, 23)}

    @staticmethod
    def season_for(day: date, latitude: float = 0.0) -> Season:
        season = SeasonCalculator.NORTHERN_SEASONS.get(day.month, Season.UNKNOWN)
        if latitude < 0:
            return SeasonCalculator.SOUTHERN_FLIP[season]
        return season

    @staticmethod
    def factors(day: date, latitude: float = 0.0) -> SeasonalFactors:
        month_day = (day.month, day.day)
        # Solstice flags follow the local season: June is the winter solstice south of the equator
        june = month_day in SeasonCalculator.JUNE_SOLSTICE
        december = month_day in SeasonCalculator.DECEMBER_SOLSTICE
        southern = latitude < 0
        is_summer_solstice = december if southern else june
        is_winter_solstice = june if southern else december
        is_equinox = month_day in SeasonCalculator.EQUINOXES

        season = SeasonCalculator.season_for(day, latitude)
        day_of_year = day.timetuple().tm_yday
        return SeasonalFactors(
            season=season,
            day_of_year=day_of_year,
            is_winter_solstice=is_winter_solstice,
            is_summer_solstice=is_summer_solstice,
            is_equinox=is_equinox,
            seasonal_uv_multiplier=UVRiskService.seasonal_multiplier(
                season,
                day_of_year,
                is_winter_solstice=is_winter_solstice,
                is_summer_solstice=is_summer_solstice,
                is_equinox=is_equinox,
            ),
        )


class SnapshotCache:
    """Snapshots keyed by location rounded to ~1 km, expiring after ttl_seconds."""

    def __init__(
        self,
        capacity: int = ENV_CACHE_CAPACITY,
        ttl_seconds: int = ENV_CACHE_TTL_SECONDS,
        store: Optional[SnapshotStore] = None,
    ):
        self.ttl = timedelta(seconds=ttl_seconds)
        self.store = store
        self._hot: LRUCache[str, Tuple[EnvironmentalFactors, datetime]] = LRUCache(capacity)

    @staticmethod
    def key(lat: float, lon: float) -> str:
        return f"{round(lat, 2):.2f},{round(lon, 2):.2f}"

    def _fresh(self, fetched_at: datetime, now: datetime) -> bool:
        return now - fetched_at < self.ttl

    def get(self, lat: float, lon: float, now: datetime) -> Optional[EnvironmentalFactors]:
        key = self.key(lat, lon)
        entry = self._hot.get(key)
        if entry is not None:
            snapshot, fetched_at = entry
            if self._fresh(fetched_at, now):
                return snapshot
            self._hot.pop(key)

        if self.store is None:
            return None
        try:
            stored = self.store.load(key)
        except PyMongoError as e:
            logger.warning(f"[ENV] Snapshot store read failed for {key}: {e}")
            return None
        if stored is None or not self._fresh(stored[1], now):
            return None
        self._hot.put(key, stored)
        return stored[0]

    def put(self, lat: float, lon: float, snapshot: EnvironmentalFactors, fetched_at: datetime) -> None:
        key = self.key(lat, lon)
        self._hot.put(key, (snapshot, fetched_at))
        if self.store is None:
            return
        try:
            self.store.save(key, snapshot, fetched_at)
        except PyMongoError as e:
            logger.warning(f"[ENV] Snapshot store write failed for {key}: {e}")

    def invalidate(self, lat: float, lon: float) -> None:
        self._hot.pop(self.key(lat, lon))


class EnvironmentalService:
    """Builds complete, validated EnvironmentalFactors snapshots."""

    def __init__(
        self,
        providers: ProviderSet,
        cache: Optional[SnapshotCache] = None,
        clock: Optional[Callable[[], datetime]] = None,
        subfetch_timeout: float = SUBFETCH_TIMEOUT_SECONDS,
    ):
        self.providers = providers
        self.cache = cache
        self._clock = clock or _utc_now
        self.subfetch_timeout = subfetch_timeout

    async def fetch(
        self,
        lat: float,
        lon: float,
        now: Optional[datetime] = None,
        use_cache: bool = True,
    ) -> EnvironmentalFactors:
        """
        Snapshot for a location, from cache when fresh.

        Raises:
            ValueError: Coordinates out of range
        """
        if not (-90.0 <= lat <= 90.0) or not (-180.0 <= lon <= 180.0):
            raise ValueError(f"Invalid coordinates: {lat}, {lon}")
        now = now or self._clock()

        if use_cache and self.cache is not None:
            cached = self.cache.get(lat, lon, now)
            if cached is not None:
                return cached

        snapshot = await self._build(lat, lon, now)
        if self.cache is not None:
            self.cache.put(lat, lon, snapshot, now)
        return snapshot

    async def refresh(self, lat: float, lon: float, now: Optional[datetime] = None) -> EnvironmentalFactors:
        return await self.fetch(lat, lon, now=now, use_cache=False)

    async def _guarded(self, name: str, call) -> Any:
        try:
            return await asyncio.wait_for(call, timeout=self.subfetch_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"[ENV] {name} sub-fetch timed out after {self.subfetch_timeout}s")
            return None

    async def _build(self, lat: float, lon: float, now: datetime) -> EnvironmentalFactors:
        altitude_raw, snow_raw, water_raw, coastal_raw = await asyncio.gather(
            self._guarded("altitude", self.providers.elevation.get_elevation(lat, lon)),
            self._guarded("snow", self.providers.snow.get_snow_conditions(lat, lon)),
            self._guarded("water", self.providers.water.get_water_proximity(lat, lon)),
            self._guarded("coastal", self.providers.coastal.get_coastal_info(lat, lon)),
            return_exceptions=True,
        )

        altitude = self.validate_altitude(self._unwrap("altitude", altitude_raw))
        snow = self.validate_snow(self._unwrap("snow", snow_raw))
        water = self.validate_water(
            self._unwrap("water", water_raw),
            self._unwrap("coastal", coastal_raw),
        )
        terrain = TerrainClassifier.classify(lat, lon, altitude, water)
        seasonal = SeasonCalculator.factors(now.date(), lat)

        logger.info(
            f"[ENV] Snapshot {lat:.2f},{lon:.2f}: alt={altitude:.0f}m terrain={terrain.value} "
            f"snow={snow.snow_type.value} water={water.water_body_type.value} season={seasonal.season.value}"
        )
        return EnvironmentalFactors(
            location=Coordinates(lat, lon),
            altitude_meters=altitude,
            snow_conditions=snow,
            water_proximity=water,
            terrain_type=terrain,
            seasonal_factors=seasonal,
            fetched_at=now,
        )

    @staticmethod
    def _unwrap(name: str, result: Any) -> Any:
        if isinstance(result, BaseException):
            logger.warning(f"[ENV] {name} sub-fetch failed: {result!r}")
            return None
        return result

    # ==================== Validation ====================

    @staticmethod
    def validate_altitude(raw: Any) -> float:
        altitude = _number(raw)
        if altitude is None:
            return 0.0
        if not MIN_ALTITUDE_M <= altitude <= MAX_ALTITUDE_M:
            logger.warning(f"[ENV] Rejected altitude {altitude}m outside [{MIN_ALTITUDE_M}, {MAX_ALTITUDE_M}]")
            return 0.0
        return altitude

    @staticmethod
    def validate_snow(raw: Optional[Dict[str, Any]]) -> SnowConditions:
        if not raw:
            return SnowConditions.none()
        depth = _number(raw.get("depth_cm")) or 0.0
        coverage = _number(raw.get("coverage_pct"))
        age = _number(raw.get("age_days")) or 0.0
        temperature = _number(raw.get("temperature_c"))

        if coverage is None:
            coverage = 0.0
        if not 0.0 <= coverage <= 100.0 or depth < 0 or age < 0:
            logger.warning(f"[ENV] Rejected snow data depth={depth} coverage={coverage} age={age}")
            return SnowConditions.none()

        snow_type = determine_snow_type(depth, age, temperature if temperature is not None else 0.0)
        return SnowConditions(
            has_recent_snowfall=bool(raw.get("recent_snowfall", age <= 1.0 and depth > 0)),
            snow_depth_cm=depth,
            snow_coverage_pct=coverage,
            snow_age_days=age,
            snow_type=snow_type,
        )

    @staticmethod
    def validate_water(
        raw: Optional[Dict[str, Any]],
        coastal: Optional[Dict[str, Any]] = None,
    ) -> WaterProximity:
        is_coastal = bool(coastal.get("is_coastal")) if coastal else False
        coastal_distance = _number(coastal.get("coastal_distance_m")) if coastal else None
        if coastal_distance is not None and coastal_distance < 0:
            coastal_distance = None

        if not raw:
            return WaterProximity(is_coastal=is_coastal, coastal_distance_meters=coastal_distance)

        distance = _number(raw.get("distance_m"))
        try:
            water_type = WaterBodyType(raw.get("type", WaterBodyType.NONE.value))
            size = WaterBodySize(raw.get("size", WaterBodySize.MEDIUM.value))
        except ValueError as e:
            logger.warning(f"[ENV] Rejected water data: {e}")
            return WaterProximity(is_coastal=is_coastal, coastal_distance_meters=coastal_distance)
        if distance is None or distance < 0:
            logger.warning(f"[ENV] Rejected water distance {raw.get('distance_m')!r}")
            return WaterProximity(is_coastal=is_coastal, coastal_distance_meters=coastal_distance)

        body = None
        body_lat, body_lon = _number(raw.get("lat")), _number(raw.get("lon"))
        if water_type != WaterBodyType.NONE and body_lat is not None and body_lon is not None:
            body = WaterBody(
                name=str(raw.get("name") or water_type.value),
                type=water_type,
                size=size,
                coordinates=Coordinates(body_lat, body_lon),
            )
        return WaterProximity(
            nearest_water_body=body,
            distance_to_water_meters=distance,
            water_body_type=water_type,
            is_coastal=is_coastal,
            coastal_distance_meters=coastal_distance,
            reported_size=size if water_type != WaterBodyType.NONE else None,
        )
