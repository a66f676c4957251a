"""
Tests for UV Risk Composition Service

Table-driven tests for the multiplier composition engine.
All tests verify pure, deterministic behavior.

Key requirements:
- Multiplicative factors: altitude, terrain, cloud, season (with clamping)
- Reflective additives computed from the unmodified base UV index
- compose(0, env) is always 0
- Risk level buckets and per-factor risk evaluation
"""

import math
from datetime import datetime, timezone

import pytest

from environmental_models import (
    Coordinates,
    EnvironmentalFactors,
    Season,
    SeasonalFactors,
    SnowConditions,
    SnowType,
    TerrainType,
    WaterBody,
    WaterBodySize,
    WaterBodyType,
    WaterProximity,
)
from uv_risk_service import (
    HourlyUV,
    RiskFactorType,
    RiskLevel,
    RiskSeverity,
    SkinType,
    UVRiskService,
    round_half_up,
    time_to_burn_minutes,
)


def make_env(
    altitude=0.0,
    terrain=TerrainType.RURAL,
    snow=None,
    water=None,
    seasonal_mult=1.0,
    season=Season.SUMMER,
):
    return EnvironmentalFactors(
        location=Coordinates(39.0, -105.0),
        altitude_meters=altitude,
        snow_conditions=snow or SnowConditions.none(),
        water_proximity=water or WaterProximity.none(),
        terrain_type=terrain,
        seasonal_factors=SeasonalFactors(
            season=season,
            day_of_year=172,
            seasonal_uv_multiplier=seasonal_mult,
        ),
        fetched_at=datetime(2026, 6, 21, 12, tzinfo=timezone.utc),
    )


def make_water(water_type, size, distance):
    body = WaterBody(
        name="Test water",
        type=water_type,
        size=size,
        coordinates=Coordinates(39.0, -105.0),
    )
    return WaterProximity(
        nearest_water_body=body,
        distance_to_water_meters=distance,
        water_body_type=water_type,
    )


class TestAltitudeMultiplier:
    """Altitude scaling: +10% per 1000 m, clamped to [-500, 9000] m."""

    CASES = [
        (0, 1.0),
        (1000, 1.1),
        (3500, 1.35),
        (9000, 1.9),
        (12000, 1.9),   # clamped to 9000
        (-500, 0.95),
        (-2000, 0.95),  # clamped to -500
    ]

    @pytest.mark.parametrize("altitude,expected", CASES, ids=[str(c[0]) for c in CASES])
    def test_altitude_multiplier(self, altitude, expected):
        assert UVRiskService.altitude_multiplier(altitude) == pytest.approx(expected)

    def test_monotonic_non_decreasing(self):
        """Higher ground never lowers the multiplier."""
        values = [UVRiskService.altitude_multiplier(a) for a in range(0, 10001, 250)]
        assert all(b >= a for a, b in zip(values, values[1:]))

    def test_nan_altitude_is_neutral(self):
        assert UVRiskService.altitude_multiplier(float("nan")) == 1.0


class TestCloudFactor:
    """Step function over cloud-cover bands."""

    CASES = [
        (0, 1.00),
        (9.99, 1.00),
        (10, 0.95),
        (24.9, 0.95),
        (25, 0.85),
        (49, 0.85),
        (50, 0.70),
        (74.9, 0.70),
        (75, 0.50),
        (89.9, 0.50),
        (90, 0.30),
        (100, 0.30),
        (-10, 1.00),   # clamped to 0
        (140, 0.30),   # clamped to 100
    ]

    @pytest.mark.parametrize("cover,expected", CASES, ids=[str(c[0]) for c in CASES])
    def test_cloud_factor_bands(self, cover, expected):
        assert UVRiskService.cloud_factor(cover) == expected

    def test_monotonic_non_increasing(self):
        values = [UVRiskService.cloud_factor(c / 2) for c in range(0, 201)]
        assert all(b <= a for a, b in zip(values, values[1:]))

    @pytest.mark.parametrize("cover,category", [
        (0, "clear"),
        (15, "mostly_clear"),
        (30, "partly_cloudy"),
        (60, "mostly_cloudy"),
        (80, "cloudy"),
        (95, "overcast"),
    ])
    def test_cloud_category(self, cover, category):
        assert UVRiskService.cloud_category(cover) == category


class TestTerrainMultiplier:
    """Base terrain multiplier with mountain and arctic compounding."""

    CASES = [
        (TerrainType.RURAL, 0, 1.0),
        (TerrainType.URBAN, 0, 1.0),
        (TerrainType.FOREST, 0, 0.95),
        (TerrainType.COASTAL, 0, 1.05),
        (TerrainType.DESERT, 500, 1.10),
        (TerrainType.MOUNTAINOUS, 1500, 1.15),
        (TerrainType.MOUNTAINOUS, 2500, 1.15 * 1.1),
        (TerrainType.ARCTIC, 0, 1.20 * 1.2),
        (TerrainType.UNKNOWN, 0, 1.0),
    ]

    @pytest.mark.parametrize(
        "terrain,altitude,expected", CASES,
        ids=[f"{c[0].value}-{c[1]}" for c in CASES],
    )
    def test_terrain_multiplier(self, terrain, altitude, expected):
        assert UVRiskService.terrain_multiplier(terrain, altitude) == pytest.approx(expected)


class TestSeasonalMultiplier:

    def test_day_adjustment_is_neutral_at_year_end(self):
        assert UVRiskService.day_of_year_adjustment(365) == pytest.approx(1.0)

    def test_unknown_season_is_near_neutral(self):
        assert UVRiskService.seasonal_multiplier(Season.UNKNOWN, 365) == pytest.approx(1.0)

    def test_winter_solstice_reduces(self):
        expected = 0.5 * 0.8 * (1 + 0.1 * math.sin(2 * math.pi * 355 / 365))
        result = UVRiskService.seasonal_multiplier(Season.WINTER, 355, is_winter_solstice=True)
        assert result == pytest.approx(expected)

    def test_summer_solstice_boosts(self):
        plain = UVRiskService.seasonal_multiplier(Season.SUMMER, 172)
        solstice = UVRiskService.seasonal_multiplier(Season.SUMMER, 172, is_summer_solstice=True)
        assert solstice == pytest.approx(plain * 1.1)

    def test_equinox_reduces(self):
        plain = UVRiskService.seasonal_multiplier(Season.SPRING, 80)
        equinox = UVRiskService.seasonal_multiplier(Season.SPRING, 80, is_equinox=True)
        assert equinox == pytest.approx(plain * 0.9)

    def test_day_of_year_clamped(self):
        assert UVRiskService.day_of_year_adjustment(0) == UVRiskService.day_of_year_adjustment(1)
        assert UVRiskService.day_of_year_adjustment(500) == UVRiskService.day_of_year_adjustment(366)


class TestReflectiveAdditives:
    """Snow and water add reflected UV computed from the base index."""

    SNOW_CASES = [
        (10, SnowType.FRESH, 100, 8),
        (5, SnowType.PACKED, 50, 2),    # 1.5 rounds half up
        (5, SnowType.MELTING, 50, 1),
        (3, SnowType.FRESH, 100, 2),    # 2.4
        (5, SnowType.ICY, 10, 0),       # 0.35
        (10, SnowType.NONE, 100, 0),    # coverage normalized to 0
    ]

    @pytest.mark.parametrize(
        "base,snow_type,coverage,expected", SNOW_CASES,
        ids=[f"{c[1].value}-{c[0]}-{c[2]}" for c in SNOW_CASES],
    )
    def test_snow_additive(self, base, snow_type, coverage, expected):
        snow = SnowConditions(snow_depth_cm=20, snow_coverage_pct=coverage, snow_type=snow_type)
        assert UVRiskService.snow_additive(base, snow) == expected

    WATER_CASES = [
        (10, WaterBodyType.OCEAN, WaterBodySize.MASSIVE, 0, 3),      # 3.125
        (10, WaterBodyType.LAKE, WaterBodySize.MEDIUM, 500, 1),      # 0.75
        (10, WaterBodyType.LAKE, WaterBodySize.LARGE, 999, 0),       # distance floor 0.1 -> 0.2
        (10, WaterBodyType.OCEAN, WaterBodySize.MASSIVE, 1000, 0),   # out of range
        (10, WaterBodyType.OCEAN, WaterBodySize.MASSIVE, 5000, 0),
    ]

    @pytest.mark.parametrize(
        "base,water_type,size,distance,expected", WATER_CASES,
        ids=[f"{c[1].value}-{c[3]}m" for c in WATER_CASES],
    )
    def test_water_additive(self, base, water_type, size, distance, expected):
        water = make_water(water_type, size, distance)
        assert UVRiskService.water_additive(base, water) == expected

    def test_water_without_body_uses_medium_size(self):
        water = WaterProximity(distance_to_water_meters=0, water_body_type=WaterBodyType.OCEAN)
        assert UVRiskService.water_reflection(water) == pytest.approx(0.25 * 0.75)

    def test_no_water_is_zero(self):
        assert UVRiskService.water_additive(10, WaterProximity.none()) == 0


class TestCompose:
    """End-to-end composition into a UVRiskAssessment."""

    def test_high_altitude_rural_scenario(self):
        """UV 8 at 3500 m, clear sky, rural, neutral season -> 11."""
        env = make_env(altitude=3500, terrain=TerrainType.RURAL)
        result = UVRiskService.compose(8, env, cloud_cover_pct=0)
        assert result.base_uv_index == 8
        assert result.adjusted_uv_index == 11
        assert result.risk_level == RiskLevel.EXTREME
        assert result.time_to_burn_minutes == pytest.approx(100 / 11)
        assert round(result.time_to_burn_minutes) == 9

    ZERO_ENVS = [
        make_env(),
        make_env(altitude=9000, terrain=TerrainType.ARCTIC),
        make_env(snow=SnowConditions(snow_depth_cm=50, snow_coverage_pct=100, snow_type=SnowType.FRESH)),
        make_env(water=make_water(WaterBodyType.OCEAN, WaterBodySize.MASSIVE, 0)),
        make_env(seasonal_mult=1.5),
    ]

    @pytest.mark.parametrize("env", ZERO_ENVS, ids=["plain", "arctic-peak", "fresh-snow", "ocean", "peak-season"])
    def test_zero_base_is_zero(self, env):
        result = UVRiskService.compose(0, env)
        assert result.adjusted_uv_index == 0
        assert math.isinf(result.time_to_burn_minutes)
        assert result.risk_factors == ()

    def test_negative_base_clamped(self):
        assert UVRiskService.compose(-4, make_env()).adjusted_uv_index == 0

    def test_reflection_added_after_rounding(self):
        """Snow adds to the rounded direct-beam value, not to a scaled base."""
        env = make_env(
            altitude=1000,
            snow=SnowConditions(snow_depth_cm=30, snow_coverage_pct=100, snow_type=SnowType.FRESH),
        )
        # round(5 * 1.1) = 6 (5.5 rounds up), snow round(5 * 0.8) = 4
        assert UVRiskService.compose(5, env).adjusted_uv_index == 10

    def test_clouds_reduce_adjusted(self):
        env = make_env()
        clear = UVRiskService.compose(10, env, cloud_cover_pct=0)
        overcast = UVRiskService.compose(10, env, cloud_cover_pct=95)
        assert clear.adjusted_uv_index == 10
        assert overcast.adjusted_uv_index == 3

    def test_seasonal_multiplier_clamped(self):
        env = make_env(seasonal_mult=5.0)
        assert UVRiskService.compose(10, env).adjusted_uv_index == 15

    def test_assessment_is_immutable(self):
        result = UVRiskService.compose(6, make_env())
        with pytest.raises(Exception):
            result.adjusted_uv_index = 1

    def test_deterministic(self):
        env = make_env(altitude=2200, terrain=TerrainType.MOUNTAINOUS)
        assert UVRiskService.compose(7, env, 20) == UVRiskService.compose(7, env, 20)


class TestRiskLevel:

    CASES = [
        (0, RiskLevel.LOW),
        (2, RiskLevel.LOW),
        (3, RiskLevel.MODERATE),
        (5, RiskLevel.MODERATE),
        (6, RiskLevel.HIGH),
        (7, RiskLevel.HIGH),
        (8, RiskLevel.VERY_HIGH),
        (10, RiskLevel.VERY_HIGH),
        (11, RiskLevel.EXTREME),
        (16, RiskLevel.EXTREME),
    ]

    @pytest.mark.parametrize("uv,level", CASES, ids=[str(c[0]) for c in CASES])
    def test_risk_level_buckets(self, uv, level):
        assert UVRiskService.risk_level(uv) == level

    def test_risk_score_range(self):
        assert UVRiskService.risk_score(0) == 0.0
        assert UVRiskService.risk_score(11) == 1.0
        assert UVRiskService.risk_score(20) == 1.0
        assert UVRiskService.risk_score(5) == pytest.approx(0.455)


class TestRiskFactors:
    """Only factors of at least moderate severity are reported, in fixed order."""

    def test_high_altitude_clear_summer(self):
        env = make_env(altitude=3500)
        factors = UVRiskService.compose(8, env, cloud_cover_pct=0).risk_factors
        assert [f.type for f in factors] == [
            RiskFactorType.ALTITUDE,
            RiskFactorType.CLOUD,
            RiskFactorType.SEASON,
        ]
        assert factors[0].severity == RiskSeverity.VERY_HIGH
        assert all(f.mitigation for f in factors)

    def test_benign_conditions_have_no_factors(self):
        env = make_env(terrain=TerrainType.URBAN, seasonal_mult=0.7, season=Season.AUTUMN)
        assert UVRiskService.compose(4, env, cloud_cover_pct=60).risk_factors == ()

    def test_snow_and_water_reported(self):
        env = make_env(
            terrain=TerrainType.URBAN,
            seasonal_mult=0.5,
            snow=SnowConditions(snow_depth_cm=40, snow_coverage_pct=100, snow_type=SnowType.FRESH),
            water=make_water(WaterBodyType.OCEAN, WaterBodySize.MASSIVE, 100),
        )
        factors = UVRiskService.compose(6, env, cloud_cover_pct=50).risk_factors
        by_type = {f.type: f.severity for f in factors}
        assert by_type == {
            RiskFactorType.SNOW: RiskSeverity.EXTREME,
            RiskFactorType.WATER: RiskSeverity.EXTREME,
        }

    @pytest.mark.parametrize("altitude,severity", [
        (500, RiskSeverity.LOW),
        (1500, RiskSeverity.MODERATE),
        (2500, RiskSeverity.HIGH),
        (3500, RiskSeverity.VERY_HIGH),
        (4500, RiskSeverity.EXTREME),
    ])
    def test_altitude_severity(self, altitude, severity):
        assert UVRiskService.altitude_severity(altitude) == severity

    @pytest.mark.parametrize("terrain,severity", [
        (TerrainType.UNKNOWN, RiskSeverity.NONE),
        (TerrainType.COASTAL, RiskSeverity.MODERATE),
        (TerrainType.MOUNTAINOUS, RiskSeverity.HIGH),
        (TerrainType.ARCTIC, RiskSeverity.EXTREME),
        (TerrainType.FOREST, RiskSeverity.LOW),
    ])
    def test_terrain_severity(self, terrain, severity):
        assert UVRiskService.terrain_severity(terrain) == severity

    def test_recommendations_include_mitigations(self):
        env = make_env(altitude=3500)
        result = UVRiskService.compose(8, env)
        for factor in result.risk_factors:
            assert factor.mitigation in result.recommendations


class TestForecast:

    def test_hours_sorted_and_peak_found(self):
        env = make_env()
        hours = [
            HourlyUV(datetime(2026, 7, 15, 14, tzinfo=timezone.utc), 8.0),
            HourlyUV(datetime(2026, 7, 15, 10, tzinfo=timezone.utc), 5.0),
            HourlyUV(datetime(2026, 7, 15, 12, tzinfo=timezone.utc), 8.0),
        ]
        assessments = UVRiskService.assess_forecast(hours, env)
        assert [a.timestamp.hour for a in assessments] == [10, 12, 14]
        peak = UVRiskService.peak_hour(assessments)
        assert peak.timestamp.hour == 12
        assert peak.adjusted_uv_index == 8

    def test_empty_forecast(self):
        assert UVRiskService.assess_forecast([], make_env()) == []
        assert UVRiskService.peak_hour([]) is None


class TestTimeToBurn:

    @pytest.mark.parametrize("uv,skin,expected", [
        (1, SkinType.TYPE_II, 100.0),
        (10, SkinType.TYPE_II, 10.0),
        (10, SkinType.TYPE_I, 6.7),
        (5, SkinType.TYPE_IV, 60.0),
    ])
    def test_time_to_burn(self, uv, skin, expected):
        assert time_to_burn_minutes(uv, skin) == pytest.approx(expected)

    def test_zero_uv_is_unbounded(self):
        assert math.isinf(time_to_burn_minutes(0))

    @pytest.mark.parametrize("value,expected", [(0.5, 1), (1.5, 2), (2.5, 3), (2.49, 2)])
    def test_round_half_up(self, value, expected):
        assert round_half_up(value) == expected
