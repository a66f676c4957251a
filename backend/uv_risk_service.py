"""
UV Risk Composition Service

Turns a base UV index plus an environmental snapshot into an adjusted UV index and a
structured risk assessment.

Composition:
  adjusted = round(base * altitude_mult * terrain_mult * cloud_factor * seasonal_mult)
             + snow_additive + water_additive

Multiplicative factors scale the direct beam. Reflective contributions (snow, water)
are computed from the unmodified base UV index and added on top. Every input outside
its domain is clamped to the nearest valid bound, so compose() never raises.

All functions are pure and deterministic.
"""
import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from environmental_models import (
    SEASON_BASE_MULTIPLIERS,
    SNOW_REFLECTION_FACTORS,
    TERRAIN_BASE_MULTIPLIERS,
    WATER_REFLECTION_FACTORS,
    WATER_SIZE_MULTIPLIERS,
    EnvironmentalFactors,
    Season,
    SnowConditions,
    TerrainType,
    WaterProximity,
)


class RiskLevel(str, Enum):
    """Overall UV category of an adjusted UV index."""
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    VERY_HIGH = "very_high"
    EXTREME = "extreme"


class RiskSeverity(str, Enum):
    """Severity of a single contributing factor."""
    NONE = "none"
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    VERY_HIGH = "very_high"
    EXTREME = "extreme"


SEVERITY_RANK: Dict[RiskSeverity, int] = {
    RiskSeverity.NONE: 0,
    RiskSeverity.LOW: 1,
    RiskSeverity.MODERATE: 2,
    RiskSeverity.HIGH: 3,
    RiskSeverity.VERY_HIGH: 4,
    RiskSeverity.EXTREME: 5,
}


class RiskFactorType(str, Enum):
    ALTITUDE = "altitude"
    TERRAIN = "terrain"
    CLOUD = "cloud"
    SNOW = "snow"
    WATER = "water"
    SEASON = "season"


class SkinType(str, Enum):
    """Fitzpatrick skin type."""
    TYPE_I = "I"
    TYPE_II = "II"
    TYPE_III = "III"
    TYPE_IV = "IV"
    TYPE_V = "V"
    TYPE_VI = "VI"


# Minutes to burn at UV index 1
SKIN_TYPE_BASE_MINUTES: Dict[SkinType, float] = {
    SkinType.TYPE_I: 67.0,
    SkinType.TYPE_II: 100.0,
    SkinType.TYPE_III: 200.0,
    SkinType.TYPE_IV: 300.0,
    SkinType.TYPE_V: 400.0,
    SkinType.TYPE_VI: 500.0,
}

REFERENCE_SKIN_TYPE = SkinType.TYPE_II


@dataclass(frozen=True)
class RiskFactor:
    type: RiskFactorType
    severity: RiskSeverity
    description: str
    mitigation: str


@dataclass(frozen=True)
class UVRiskAssessment:
    """Result of composing a base UV index with an environmental snapshot."""
    base_uv_index: int
    adjusted_uv_index: int
    risk_score: float  # 0.0-1.0
    risk_level: RiskLevel
    risk_factors: Tuple[RiskFactor, ...]
    time_to_burn_minutes: float  # inf when adjusted UV is 0
    recommendations: Tuple[str, ...] = ()
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class HourlyUV:
    """One entry of an hourly UV forecast."""
    date: datetime
    uv_index: float
    cloud_cover_pct: float = 0.0


def _clamp(value: float, min_val: float, max_val: float) -> float:
    return max(min_val, min(max_val, value))


def _finite(value: Optional[float], default: float) -> float:
    if value is None:
        return default
    try:
        value = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(value):
        return default
    return value


def round_half_up(value: float) -> int:
    """Round to nearest integer, halves away from zero for non-negative values."""
    return int(math.floor(value + 0.5))


def time_to_burn_minutes(adjusted_uv: float, skin_type: SkinType = REFERENCE_SKIN_TYPE) -> float:
    """Minutes of unprotected exposure before burning; inf when there is no UV."""
    uv = _finite(adjusted_uv, 0.0)
    if uv <= 0:
        return math.inf
    return SKIN_TYPE_BASE_MINUTES[skin_type] / uv


class UVRiskService:
    """Multiplier composition engine and per-factor risk evaluation."""

    MIN_ALTITUDE_M = -500.0
    MAX_ALTITUDE_M = 9000.0
    MOUNTAIN_HIGH_ALTITUDE_M = 2000.0
    WATER_INFLUENCE_M = 1000.0
    MIN_WATER_DISTANCE_FACTOR = 0.1
    MIN_SEASONAL_MULT = 0.3
    MAX_SEASONAL_MULT = 1.5

    # (upper bound exclusive, factor); last band includes 100%
    CLOUD_BANDS: Tuple[Tuple[float, float], ...] = (
        (10.0, 1.00),
        (25.0, 0.95),
        (50.0, 0.85),
        (75.0, 0.70),
        (90.0, 0.50),
    )
    OVERCAST_FACTOR = 0.30

    CLOUD_CATEGORIES: Tuple[Tuple[float, str], ...] = (
        (10.0, "clear"),
        (25.0, "mostly_clear"),
        (50.0, "partly_cloudy"),
        (75.0, "mostly_cloudy"),
        (90.0, "cloudy"),
    )

    TERRAIN_SEVERITY: Dict[TerrainType, RiskSeverity] = {
        TerrainType.UNKNOWN: RiskSeverity.NONE,
        TerrainType.COASTAL: RiskSeverity.MODERATE,
        TerrainType.MOUNTAINOUS: RiskSeverity.HIGH,
        TerrainType.URBAN: RiskSeverity.LOW,
        TerrainType.RURAL: RiskSeverity.LOW,
        TerrainType.DESERT: RiskSeverity.HIGH,
        TerrainType.FOREST: RiskSeverity.LOW,
        TerrainType.GRASSLAND: RiskSeverity.MODERATE,
        TerrainType.ARCTIC: RiskSeverity.EXTREME,
    }

    MITIGATIONS: Dict[RiskFactorType, str] = {
        RiskFactorType.ALTITUDE: "Use SPF 50+ sunscreen and reapply every 1-2 hours",
        RiskFactorType.TERRAIN: "Wear protective clothing and UV-protective eyewear",
        RiskFactorType.CLOUD: "Clear skies give full UV exposure; seek shade at midday",
        RiskFactorType.SNOW: "Wear UV-blocking sunglasses and protect the underside of your face",
        RiskFactorType.WATER: "Use water-resistant sunscreen and reapply after water activities",
        RiskFactorType.SEASON: "Limit outdoor activities during peak hours (10am-4pm)",
    }

    # ==================== Multiplicative factors ====================

    @staticmethod
    def altitude_multiplier(altitude_meters: float) -> float:
        """UV rises roughly 10% per 1000 m of elevation."""
        altitude = _clamp(
            _finite(altitude_meters, 0.0),
            UVRiskService.MIN_ALTITUDE_M,
            UVRiskService.MAX_ALTITUDE_M,
        )
        return 1.0 + (altitude / 1000.0) * 0.1

    @staticmethod
    def terrain_multiplier(terrain: TerrainType, altitude_meters: float = 0.0) -> float:
        multiplier = TERRAIN_BASE_MULTIPLIERS.get(terrain, 1.0)
        altitude = _finite(altitude_meters, 0.0)
        if terrain == TerrainType.MOUNTAINOUS and altitude > UVRiskService.MOUNTAIN_HIGH_ALTITUDE_M:
            multiplier *= 1.1
        elif terrain == TerrainType.ARCTIC:
            multiplier *= 1.2
        return multiplier

    @staticmethod
    def cloud_factor(cloud_cover_pct: float) -> float:
        """Fraction of UV transmitted through cloud cover (step function)."""
        cover = _clamp(_finite(cloud_cover_pct, 0.0), 0.0, 100.0)
        for upper, factor in UVRiskService.CLOUD_BANDS:
            if cover < upper:
                return factor
        return UVRiskService.OVERCAST_FACTOR

    @staticmethod
    def cloud_category(cloud_cover_pct: float) -> str:
        cover = _clamp(_finite(cloud_cover_pct, 0.0), 0.0, 100.0)
        for upper, category in UVRiskService.CLOUD_CATEGORIES:
            if cover < upper:
                return category
        return "overcast"

    @staticmethod
    def day_of_year_adjustment(day_of_year: int) -> float:
        day = _clamp(_finite(day_of_year, 1.0), 1.0, 366.0)
        return 1.0 + 0.1 * math.sin(2.0 * math.pi * day / 365.0)

    @staticmethod
    def seasonal_multiplier(
        season: Season,
        day_of_year: int,
        is_winter_solstice: bool = False,
        is_summer_solstice: bool = False,
        is_equinox: bool = False,
    ) -> float:
        multiplier = SEASON_BASE_MULTIPLIERS.get(season, 1.0)
        if is_winter_solstice:
            multiplier *= 0.8
        elif is_summer_solstice:
            multiplier *= 1.1
        elif is_equinox:
            multiplier *= 0.9
        multiplier *= UVRiskService.day_of_year_adjustment(day_of_year)
        return _clamp(multiplier, UVRiskService.MIN_SEASONAL_MULT, UVRiskService.MAX_SEASONAL_MULT)

    # ==================== Reflective contributions ====================

    @staticmethod
    def snow_reflection(snow: SnowConditions) -> float:
        """Reflection factor scaled by the fraction of ground covered."""
        coverage = _clamp(_finite(snow.snow_coverage_pct, 0.0), 0.0, 100.0)
        return SNOW_REFLECTION_FACTORS.get(snow.snow_type, 0.0) * (coverage / 100.0)

    @staticmethod
    def snow_additive(base_uv_index: float, snow: SnowConditions) -> int:
        base = max(0.0, _finite(base_uv_index, 0.0))
        return round_half_up(base * UVRiskService.snow_reflection(snow))

    @staticmethod
    def water_reflection(water: WaterProximity) -> float:
        """Effective reflection including body size and distance falloff; 0 beyond 1 km."""
        distance = max(0.0, _finite(water.distance_to_water_meters, math.inf))
        if distance >= UVRiskService.WATER_INFLUENCE_M:
            return 0.0
        reflection = WATER_REFLECTION_FACTORS.get(water.water_body_type, 0.0)
        size_mult = WATER_SIZE_MULTIPLIERS.get(water.water_body_size, 0.75)
        distance_factor = max(
            UVRiskService.MIN_WATER_DISTANCE_FACTOR,
            1.0 - distance / UVRiskService.WATER_INFLUENCE_M,
        )
        return reflection * size_mult * distance_factor

    @staticmethod
    def water_additive(base_uv_index: float, water: WaterProximity) -> int:
        base = max(0.0, _finite(base_uv_index, 0.0))
        return round_half_up(base * UVRiskService.water_reflection(water))

    # ==================== Composition ====================

    @staticmethod
    def adjusted_uv_index(
        base_uv_index: float,
        altitude_mult: float = 1.0,
        terrain_mult: float = 1.0,
        cloud_factor: float = 1.0,
        seasonal_mult: float = 1.0,
        snow_additive: int = 0,
        water_additive: int = 0,
    ) -> int:
        base = max(0.0, _finite(base_uv_index, 0.0))
        if base == 0:
            return 0
        direct = round_half_up(base * altitude_mult * terrain_mult * cloud_factor * seasonal_mult)
        return max(0, direct + snow_additive + water_additive)

    @staticmethod
    def risk_level(adjusted_uv_index: float) -> RiskLevel:
        """Standard UV index categories."""
        uv = _finite(adjusted_uv_index, 0.0)
        if uv < 3:
            return RiskLevel.LOW
        if uv < 6:
            return RiskLevel.MODERATE
        if uv < 8:
            return RiskLevel.HIGH
        if uv < 11:
            return RiskLevel.VERY_HIGH
        return RiskLevel.EXTREME

    @staticmethod
    def risk_score(adjusted_uv_index: float) -> float:
        uv = max(0.0, _finite(adjusted_uv_index, 0.0))
        return round(min(uv / 11.0, 1.0), 3)

    @staticmethod
    def compose(
        base_uv_index: float,
        env: EnvironmentalFactors,
        cloud_cover_pct: float = 0.0,
        skin_type: SkinType = REFERENCE_SKIN_TYPE,
        timestamp: Optional[datetime] = None,
    ) -> UVRiskAssessment:
        """
        Compose a base UV index with an environmental snapshot.

        Args:
            base_uv_index: Raw UV index from the weather source (negative -> 0)
            env: Validated environmental snapshot
            cloud_cover_pct: Cloud cover 0-100 from the weather source
            skin_type: Skin type used for time-to-burn
            timestamp: Optional time the base UV index applies to

        Returns:
            UVRiskAssessment (never raises)
        """
        base = round_half_up(max(0.0, _finite(base_uv_index, 0.0)))
        altitude = env.altitude_meters

        altitude_mult = UVRiskService.altitude_multiplier(altitude)
        terrain_mult = UVRiskService.terrain_multiplier(env.terrain_type, altitude)
        cloud = UVRiskService.cloud_factor(cloud_cover_pct)
        seasonal_mult = _clamp(
            _finite(env.seasonal_factors.seasonal_uv_multiplier, 1.0),
            UVRiskService.MIN_SEASONAL_MULT,
            UVRiskService.MAX_SEASONAL_MULT,
        )

        adjusted = UVRiskService.adjusted_uv_index(
            base,
            altitude_mult=altitude_mult,
            terrain_mult=terrain_mult,
            cloud_factor=cloud,
            seasonal_mult=seasonal_mult,
            snow_additive=UVRiskService.snow_additive(base, env.snow_conditions),
            water_additive=UVRiskService.water_additive(base, env.water_proximity),
        )
        level = UVRiskService.risk_level(adjusted)
        factors = UVRiskService.risk_factors(env, cloud_cover_pct) if base > 0 else ()

        return UVRiskAssessment(
            base_uv_index=base,
            adjusted_uv_index=adjusted,
            risk_score=UVRiskService.risk_score(adjusted),
            risk_level=level,
            risk_factors=factors,
            time_to_burn_minutes=time_to_burn_minutes(adjusted, skin_type),
            recommendations=UVRiskService.recommendations(level, factors),
            timestamp=timestamp,
        )

    @staticmethod
    def assess_forecast(
        hourly: Iterable[HourlyUV],
        env: EnvironmentalFactors,
        skin_type: SkinType = REFERENCE_SKIN_TYPE,
    ) -> List[UVRiskAssessment]:
        """Compose every hour of a forecast against the same snapshot."""
        return [
            UVRiskService.compose(
                hour.uv_index,
                env,
                cloud_cover_pct=hour.cloud_cover_pct,
                skin_type=skin_type,
                timestamp=hour.date,
            )
            for hour in sorted(hourly, key=lambda h: h.date)
        ]

    @staticmethod
    def peak_hour(assessments: Sequence[UVRiskAssessment]) -> Optional[UVRiskAssessment]:
        """Earliest assessment with the highest adjusted UV index."""
        peak = None
        for assessment in assessments:
            if peak is None or assessment.adjusted_uv_index > peak.adjusted_uv_index:
                peak = assessment
        return peak

    # ==================== Per-factor risk levels ====================

    @staticmethod
    def altitude_severity(altitude_meters: float) -> RiskSeverity:
        altitude = _finite(altitude_meters, 0.0)
        if altitude < 1000:
            return RiskSeverity.LOW
        if altitude < 2000:
            return RiskSeverity.MODERATE
        if altitude < 3000:
            return RiskSeverity.HIGH
        if altitude < 4000:
            return RiskSeverity.VERY_HIGH
        return RiskSeverity.EXTREME

    @staticmethod
    def terrain_severity(terrain: TerrainType) -> RiskSeverity:
        return UVRiskService.TERRAIN_SEVERITY.get(terrain, RiskSeverity.NONE)

    @staticmethod
    def cloud_severity(cloud_cover_pct: float) -> RiskSeverity:
        cover = _clamp(_finite(cloud_cover_pct, 0.0), 0.0, 100.0)
        if cover < 10:
            return RiskSeverity.MODERATE
        if cover < 25:
            return RiskSeverity.LOW
        return RiskSeverity.NONE

    @staticmethod
    def snow_severity(snow: SnowConditions) -> RiskSeverity:
        if snow.snow_coverage_pct <= 0:
            return RiskSeverity.NONE
        reflection = UVRiskService.snow_reflection(snow)
        if reflection < 0.2:
            return RiskSeverity.LOW
        if reflection < 0.4:
            return RiskSeverity.MODERATE
        if reflection < 0.6:
            return RiskSeverity.HIGH
        return RiskSeverity.EXTREME

    @staticmethod
    def water_severity(water: WaterProximity) -> RiskSeverity:
        distance = max(0.0, _finite(water.distance_to_water_meters, math.inf))
        if distance >= UVRiskService.WATER_INFLUENCE_M:
            return RiskSeverity.NONE
        reflection = UVRiskService.water_reflection(water)
        if reflection <= 0:
            return RiskSeverity.NONE
        if reflection < 0.05:
            return RiskSeverity.LOW
        if reflection < 0.10:
            return RiskSeverity.MODERATE
        if reflection < 0.15:
            return RiskSeverity.HIGH
        return RiskSeverity.EXTREME

    @staticmethod
    def season_severity(seasonal_multiplier: float) -> RiskSeverity:
        mult = _finite(seasonal_multiplier, 1.0)
        if mult >= 1.05:
            return RiskSeverity.HIGH
        if mult >= 0.95:
            return RiskSeverity.MODERATE
        if mult >= 0.6:
            return RiskSeverity.LOW
        return RiskSeverity.NONE

    @staticmethod
    def risk_factors(env: EnvironmentalFactors, cloud_cover_pct: float = 0.0) -> Tuple[RiskFactor, ...]:
        """Contributing factors of at least moderate severity, in fixed order."""
        snow = env.snow_conditions
        water = env.water_proximity
        seasonal = env.seasonal_factors
        candidates = [
            (
                RiskFactorType.ALTITUDE,
                UVRiskService.altitude_severity(env.altitude_meters),
                f"Elevation of {env.altitude_meters:.0f} m increases UV intensity",
            ),
            (
                RiskFactorType.TERRAIN,
                UVRiskService.terrain_severity(env.terrain_type),
                f"{env.terrain_type.value.capitalize()} terrain affects UV exposure",
            ),
            (
                RiskFactorType.CLOUD,
                UVRiskService.cloud_severity(cloud_cover_pct),
                f"Sky is {UVRiskService.cloud_category(cloud_cover_pct).replace('_', ' ')}",
            ),
            (
                RiskFactorType.SNOW,
                UVRiskService.snow_severity(snow),
                f"{snow.snow_type.value.capitalize()} snow covers {snow.snow_coverage_pct:.0f}% of the ground",
            ),
            (
                RiskFactorType.WATER,
                UVRiskService.water_severity(water),
                f"{water.water_body_type.value.capitalize()} within "
                f"{_finite(water.distance_to_water_meters, 0.0):.0f} m reflects UV",
            ),
            (
                RiskFactorType.SEASON,
                UVRiskService.season_severity(seasonal.seasonal_uv_multiplier),
                f"{seasonal.season.value.capitalize()} sun intensity",
            ),
        ]
        threshold = SEVERITY_RANK[RiskSeverity.MODERATE]
        return tuple(
            RiskFactor(
                type=factor_type,
                severity=severity,
                description=description,
                mitigation=UVRiskService.MITIGATIONS[factor_type],
            )
            for factor_type, severity, description in candidates
            if SEVERITY_RANK[severity] >= threshold
        )

    @staticmethod
    def recommendations(level: RiskLevel, factors: Sequence[RiskFactor] = ()) -> Tuple[str, ...]:
        recs: List[str] = []
        if level == RiskLevel.LOW:
            recs.append("Minimal protection needed for most people")
        elif level == RiskLevel.MODERATE:
            recs.append("Wear sunscreen SPF 30+ and a hat")
        elif level == RiskLevel.HIGH:
            recs.append("Use SPF 30+ sunscreen and reapply every 2 hours")
            recs.append("Seek shade during midday hours")
        elif level == RiskLevel.VERY_HIGH:
            recs.append("Use SPF 50+ sunscreen and reapply every 2 hours")
            recs.append("Wear protective clothing and a wide-brimmed hat")
            recs.append("Minimize sun exposure between 10am and 4pm")
        else:
            recs.append("Avoid sun exposure between 10am and 4pm")
            recs.append("Use maximum SPF protection and cover exposed skin")
            recs.append("Wear UV-protective eyewear")

        for factor in factors:
            if factor.mitigation not in recs:
                recs.append(factor.mitigation)
        return tuple(recs)
