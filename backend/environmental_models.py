"""
Environmental snapshot models

Immutable value types describing the surroundings of a location at a point in time:
altitude, snow, nearby water, terrain and season. A snapshot is produced by the
environmental service, cached for an hour and consumed by the UV composition engine.

Physical constants (reflection factors, size and terrain multipliers) are kept in plain
lookup tables next to the enums. Display strings live in common/presentation.py.
"""
import math
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class SnowType(str, Enum):
    NONE = "none"
    FRESH = "fresh"
    PACKED = "packed"
    MELTING = "melting"
    ICY = "icy"


class WaterBodyType(str, Enum):
    NONE = "none"
    OCEAN = "ocean"
    SEA = "sea"
    LAKE = "lake"
    RIVER = "river"
    STREAM = "stream"
    POND = "pond"
    POOL = "pool"


class WaterBodySize(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    MASSIVE = "massive"


class TerrainType(str, Enum):
    UNKNOWN = "unknown"
    COASTAL = "coastal"
    MOUNTAINOUS = "mountainous"
    URBAN = "urban"
    RURAL = "rural"
    DESERT = "desert"
    FOREST = "forest"
    GRASSLAND = "grassland"
    ARCTIC = "arctic"


class Season(str, Enum):
    WINTER = "winter"
    SPRING = "spring"
    SUMMER = "summer"
    AUTUMN = "autumn"
    UNKNOWN = "unknown"


# Fraction of incident UV reflected back toward the observer
SNOW_REFLECTION_FACTORS: Dict[SnowType, float] = {
    SnowType.NONE: 0.0,
    SnowType.FRESH: 0.8,
    SnowType.PACKED: 0.6,
    SnowType.MELTING: 0.4,
    SnowType.ICY: 0.7,
}

WATER_REFLECTION_FACTORS: Dict[WaterBodyType, float] = {
    WaterBodyType.NONE: 0.0,
    WaterBodyType.OCEAN: 0.25,
    WaterBodyType.SEA: 0.25,
    WaterBodyType.LAKE: 0.20,
    WaterBodyType.RIVER: 0.15,
    WaterBodyType.STREAM: 0.10,
    WaterBodyType.POND: 0.18,
    WaterBodyType.POOL: 0.12,
}

WATER_SIZE_MULTIPLIERS: Dict[WaterBodySize, float] = {
    WaterBodySize.SMALL: 0.5,
    WaterBodySize.MEDIUM: 0.75,
    WaterBodySize.LARGE: 1.0,
    WaterBodySize.MASSIVE: 1.25,
}

TERRAIN_BASE_MULTIPLIERS: Dict[TerrainType, float] = {
    TerrainType.UNKNOWN: 1.0,
    TerrainType.COASTAL: 1.05,
    TerrainType.MOUNTAINOUS: 1.15,
    TerrainType.URBAN: 1.0,
    TerrainType.RURAL: 1.0,
    TerrainType.DESERT: 1.10,
    TerrainType.FOREST: 0.95,
    TerrainType.GRASSLAND: 1.03,
    TerrainType.ARCTIC: 1.20,
}

SEASON_BASE_MULTIPLIERS: Dict[Season, float] = {
    Season.SPRING: 0.8,
    Season.SUMMER: 1.0,
    Season.AUTUMN: 0.7,
    Season.WINTER: 0.5,
    Season.UNKNOWN: 1.0,
}


def determine_snow_type(depth_cm: float, age_days: float, temperature_c: float) -> SnowType:
    """Classify snow from depth, age since last snowfall and air temperature."""
    if depth_cm is None or depth_cm <= 0:
        return SnowType.NONE
    if age_days <= 1:
        return SnowType.FRESH
    if age_days <= 7:
        return SnowType.MELTING if temperature_c > 0 else SnowType.PACKED
    return SnowType.MELTING if temperature_c > 0 else SnowType.ICY


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Mongo hands back naive UTC datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class WaterBody:
    name: str
    type: WaterBodyType
    size: WaterBodySize
    coordinates: Coordinates


@dataclass(frozen=True)
class SnowConditions:
    has_recent_snowfall: bool = False
    snow_depth_cm: float = 0.0
    snow_coverage_pct: float = 0.0
    snow_age_days: float = 0.0
    snow_type: SnowType = SnowType.NONE

    def __post_init__(self):
        # Coverage without a snow type cannot reflect anything
        if self.snow_type == SnowType.NONE and self.snow_coverage_pct > 0:
            object.__setattr__(self, 'snow_coverage_pct', 0.0)

    @classmethod
    def none(cls) -> "SnowConditions":
        return cls()


@dataclass(frozen=True)
class WaterProximity:
    nearest_water_body: Optional[WaterBody] = None
    distance_to_water_meters: float = math.inf
    water_body_type: WaterBodyType = WaterBodyType.NONE
    is_coastal: bool = False
    coastal_distance_meters: Optional[float] = None
    reported_size: Optional[WaterBodySize] = None

    @classmethod
    def none(cls) -> "WaterProximity":
        return cls()

    @property
    def water_body_size(self) -> WaterBodySize:
        if self.nearest_water_body is not None:
            return self.nearest_water_body.size
        return self.reported_size or WaterBodySize.MEDIUM


@dataclass(frozen=True)
class SeasonalFactors:
    season: Season = Season.UNKNOWN
    day_of_year: int = 1
    is_winter_solstice: bool = False
    is_summer_solstice: bool = False
    is_equinox: bool = False
    seasonal_uv_multiplier: float = 1.0

    @classmethod
    def neutral(cls) -> "SeasonalFactors":
        return cls()


@dataclass(frozen=True)
class EnvironmentalFactors:
    """One complete environmental snapshot for a location."""
    location: Coordinates
    altitude_meters: float = 0.0
    snow_conditions: SnowConditions = field(default_factory=SnowConditions.none)
    water_proximity: WaterProximity = field(default_factory=WaterProximity.none)
    terrain_type: TerrainType = TerrainType.UNKNOWN
    seasonal_factors: SeasonalFactors = field(default_factory=SeasonalFactors.neutral)
    fetched_at: datetime = None

    def __post_init__(self):
        if self.fetched_at is None:
            object.__setattr__(self, 'fetched_at', datetime.now(timezone.utc))

    @classmethod
    def neutral(cls, location: Coordinates) -> "EnvironmentalFactors":
        return cls(location=location)

    def to_doc(self) -> Dict[str, Any]:
        """Convert to a JSON/Mongo friendly document."""
        doc = _plain(asdict(self))
        distance = self.water_proximity.distance_to_water_meters
        # inf is not representable in JSON
        doc['water_proximity']['distance_to_water_meters'] = (
            None if math.isinf(distance) else distance
        )
        return doc

    @classmethod
    def from_doc(cls, doc: Dict[str, Any]) -> "EnvironmentalFactors":
        snow = doc.get('snow_conditions') or {}
        water = doc.get('water_proximity') or {}
        seasonal = doc.get('seasonal_factors') or {}
        location = doc['location']

        body_doc = water.get('nearest_water_body')
        body = None
        if body_doc:
            body = WaterBody(
                name=body_doc['name'],
                type=WaterBodyType(body_doc['type']),
                size=WaterBodySize(body_doc['size']),
                coordinates=Coordinates(**body_doc['coordinates']),
            )
        distance = water.get('distance_to_water_meters')

        return cls(
            location=Coordinates(location['latitude'], location['longitude']),
            altitude_meters=doc.get('altitude_meters', 0.0),
            snow_conditions=SnowConditions(
                has_recent_snowfall=snow.get('has_recent_snowfall', False),
                snow_depth_cm=snow.get('snow_depth_cm', 0.0),
                snow_coverage_pct=snow.get('snow_coverage_pct', 0.0),
                snow_age_days=snow.get('snow_age_days', 0.0),
                snow_type=SnowType(snow.get('snow_type', SnowType.NONE.value)),
            ),
            water_proximity=WaterProximity(
                nearest_water_body=body,
                distance_to_water_meters=math.inf if distance is None else distance,
                water_body_type=WaterBodyType(water.get('water_body_type', WaterBodyType.NONE.value)),
                is_coastal=water.get('is_coastal', False),
                coastal_distance_meters=water.get('coastal_distance_meters'),
                reported_size=WaterBodySize(water['reported_size']) if water.get('reported_size') else None,
            ),
            terrain_type=TerrainType(doc.get('terrain_type', TerrainType.UNKNOWN.value)),
            seasonal_factors=SeasonalFactors(
                season=Season(seasonal.get('season', Season.UNKNOWN.value)),
                day_of_year=seasonal.get('day_of_year', 1),
                is_winter_solstice=seasonal.get('is_winter_solstice', False),
                is_summer_solstice=seasonal.get('is_summer_solstice', False),
                is_equinox=seasonal.get('is_equinox', False),
                seasonal_uv_multiplier=seasonal.get('seasonal_uv_multiplier', 1.0),
            ),
            fetched_at=_as_utc(doc.get('fetched_at')),
        )
