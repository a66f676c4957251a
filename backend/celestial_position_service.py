"""
Celestial Position Service

Low-order sun and moon positions for the astronomical clock display and for daylight
windows. Accuracy is a fraction of a degree for the sun and a few degrees for the
moon, which is plenty for placing a marker on a 24-hour dial.

Pipeline:
  julian_day -> ecliptic/equatorial coordinates -> local sidereal time -> hour angle
  -> horizontal (azimuth, altitude) -> time fraction on the dial

Dial convention: 0.0 = east (6am), 0.25 = south (noon), 0.5 = west (6pm),
0.75 = north (midnight).

All functions are pure and deterministic.
"""
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from enum import Enum
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

J2000 = 2451545.0
DAYS_PER_CENTURY = 36525.0
OBLIQUITY_DEG = 23.439
# Apparent sunrise/sunset altitude (refraction + solar radius)
HORIZON_ALTITUDE_DEG = -0.833
_EPSILON = 1e-9


class CelestialBody(str, Enum):
    SUN = "sun"
    MOON = "moon"


@dataclass(frozen=True)
class CelestialPosition:
    azimuth_degrees: float  # [0, 360), 0 = north, 90 = east
    altitude_degrees: float  # [-90, 90]
    time_fraction: float  # [0, 1)


@dataclass(frozen=True)
class DaylightWindow:
    sunrise: datetime
    sunset: datetime
    solar_noon: datetime

    @property
    def duration_minutes(self) -> float:
        return (self.sunset - self.sunrise).total_seconds() / 60.0


class CelestialPositionService:
    """Sun/moon horizontal coordinates and dial mapping."""

    @staticmethod
    def julian_day(moment) -> float:
        """
        Julian Day of a moment, from its calendar components and UTC offset.

        Naive datetimes are taken as UTC. Anything without year/month/day yields 0.0.
        """
        try:
            year, month, day = moment.year, moment.month, moment.day
        except AttributeError:
            logger.warning(f"[CELESTIAL] Cannot extract calendar components from {moment!r}")
            return 0.0

        hour = getattr(moment, "hour", 0)
        minute = getattr(moment, "minute", 0)
        second = getattr(moment, "second", 0) + getattr(moment, "microsecond", 0) / 1e6

        y = year - 1 if month <= 2 else year
        m = month + 12 if month <= 2 else month
        d = day + hour / 24.0 + minute / 1440.0 + second / 86400.0
        # Gregorian calendar correction
        century = y // 100
        b = 2 - century + century // 4

        jd = math.floor(365.25 * (y + 4716)) + math.floor(30.6001 * (m + 1)) + d + b - 1524.5

        offset = moment.utcoffset() if isinstance(moment, datetime) else None
        if offset is not None:
            jd -= offset.total_seconds() / 86400.0
        return jd

    @staticmethod
    def centuries_since_j2000(jd: float) -> float:
        return (jd - J2000) / DAYS_PER_CENTURY

    @staticmethod
    def lunar_equatorial(jd: float) -> Tuple[float, float]:
        """Moon right ascension and declination in radians (truncated mean elements)."""
        t = CelestialPositionService.centuries_since_j2000(jd)

        mean_longitude = (
            218.3164477 + 481267.88123421 * t - 0.0015786 * t ** 2
            + t ** 3 / 538841.0 - t ** 4 / 65194000.0
        )
        arg_latitude = (
            93.2720950 + 483202.0175233 * t - 0.0036539 * t ** 2
            - t ** 3 / 3526000.0 + t ** 4 / 863310000.0
        )
        anomaly = math.radians(CelestialPositionService.lunar_mean_anomaly(jd))

        # Leading terms only: equation of centre and orbital inclination
        lon = math.radians((mean_longitude + 6.289 * math.sin(anomaly)) % 360.0)
        lat = math.radians(5.128 * math.sin(math.radians(arg_latitude % 360.0)))
        eps = math.radians(OBLIQUITY_DEG)

        ra = math.atan2(
            math.sin(lon) * math.cos(eps) - math.tan(lat) * math.sin(eps),
            math.cos(lon),
        )
        dec = math.asin(_clamp_unit(
            math.sin(lat) * math.cos(eps)
            + math.cos(lat) * math.sin(eps) * math.sin(lon)
        ))
        return ra, dec

    @staticmethod
    def lunar_mean_anomaly(jd: float) -> float:
        """Moon mean anomaly in degrees, [0, 360)."""
        t = CelestialPositionService.centuries_since_j2000(jd)
        anomaly = (
            134.9623964 + 477198.8675055 * t + 0.0087414 * t ** 2
            + t ** 3 / 69699.0 - t ** 4 / 14712000.0
        )
        return anomaly % 360.0

    @staticmethod
    def solar_equatorial(jd: float) -> Tuple[float, float]:
        """Sun right ascension and declination in radians (equation of centre only)."""
        n = jd - J2000
        mean_longitude = (280.460 + 0.9856474 * n) % 360.0
        mean_anomaly = math.radians((357.528 + 0.9856003 * n) % 360.0)
        ecliptic_longitude = math.radians(
            mean_longitude
            + 1.915 * math.sin(mean_anomaly)
            + 0.020 * math.sin(2 * mean_anomaly)
        )
        eps = math.radians(OBLIQUITY_DEG - 0.0000004 * n)

        ra = math.atan2(math.cos(eps) * math.sin(ecliptic_longitude), math.cos(ecliptic_longitude))
        dec = math.asin(_clamp_unit(math.sin(eps) * math.sin(ecliptic_longitude)))
        return ra, dec

    @staticmethod
    def local_sidereal_time(jd: float, longitude_deg: float) -> float:
        """Local mean sidereal time in radians."""
        t = CelestialPositionService.centuries_since_j2000(jd)
        gmst = (
            280.46061837 + 360.98564736629 * (jd - J2000)
            + 0.000387933 * t ** 2 - t ** 3 / 38710000.0
        )
        return math.radians((gmst + longitude_deg) % 360.0)

    @staticmethod
    def equatorial_to_horizontal(
        ra: float, dec: float, latitude_deg: float, longitude_deg: float, jd: float
    ) -> Tuple[float, float]:
        """
        Convert equatorial to horizontal coordinates.

        Returns:
            (azimuth_deg in [0, 360), altitude_deg in [-90, 90])
        """
        lat = math.radians(latitude_deg)
        hour_angle = CelestialPositionService.local_sidereal_time(jd, longitude_deg) - ra

        sin_alt = (
            math.sin(dec) * math.sin(lat)
            + math.cos(dec) * math.cos(lat) * math.cos(hour_angle)
        )
        altitude = math.asin(_clamp_unit(sin_alt))

        denominator = math.cos(altitude) * math.cos(lat)
        if abs(denominator) < _EPSILON:
            # Zenith/nadir or an observer at a pole: azimuth undefined
            return 0.0, math.degrees(altitude)

        cos_az = (math.sin(dec) - math.sin(altitude) * math.sin(lat)) / denominator
        sin_az = -math.cos(dec) * math.sin(hour_angle) / math.cos(altitude)
        azimuth = math.atan2(sin_az, cos_az)

        return (
            CelestialPositionService.normalize_azimuth(math.degrees(azimuth)),
            math.degrees(altitude),
        )

    @staticmethod
    def normalize_azimuth(theta: float) -> float:
        """Map any angle in degrees onto [0, 360)."""
        if not math.isfinite(theta):
            return 0.0
        normalized = theta % 360.0
        # -1e-15 % 360 rounds to 360.0
        if normalized >= 360.0:
            normalized = 0.0
        return normalized

    @staticmethod
    def time_fraction(azimuth_deg: float, altitude_deg: float) -> float:
        """
        Place an (azimuth, altitude) pair on the 24-hour dial.

        Quadrants are half-open: [45, 135) east, [135, 225) south, [225, 315) west,
        [315, 45) north. Above the horizon the fraction is pulled slightly toward the
        start of the dial in proportion to altitude.
        """
        azimuth = CelestialPositionService.normalize_azimuth(azimuth_deg)

        if 45.0 <= azimuth < 135.0:
            fraction = (azimuth - 45.0) / 90.0 * 0.25
        elif 135.0 <= azimuth < 225.0:
            fraction = 0.25 + (azimuth - 135.0) / 90.0 * 0.25
        elif 225.0 <= azimuth < 315.0:
            fraction = 0.5 + (azimuth - 225.0) / 90.0 * 0.25
        else:
            wrapped = azimuth + 360.0 if azimuth < 45.0 else azimuth
            fraction = 0.75 + (wrapped - 315.0) / 90.0 * 0.25

        altitude = altitude_deg if math.isfinite(altitude_deg) else 0.0
        if altitude >= 0:
            fraction *= 1.0 - (min(altitude, 90.0) / 90.0) * 0.1

        return min(max(fraction, 0.0), math.nextafter(1.0, 0.0))

    @staticmethod
    def position(
        moment,
        latitude: float,
        longitude: float,
        body: CelestialBody = CelestialBody.MOON,
    ) -> CelestialPosition:
        """Horizontal position and dial fraction of the moon (default) or the sun."""
        jd = CelestialPositionService.julian_day(moment)
        if body == CelestialBody.SUN:
            ra, dec = CelestialPositionService.solar_equatorial(jd)
        else:
            ra, dec = CelestialPositionService.lunar_equatorial(jd)

        azimuth, altitude = CelestialPositionService.equatorial_to_horizontal(
            ra, dec, latitude, longitude, jd
        )
        return CelestialPosition(
            azimuth_degrees=azimuth,
            altitude_degrees=altitude,
            time_fraction=CelestialPositionService.time_fraction(azimuth, altitude),
        )

    @staticmethod
    def clock_angle(moment: datetime) -> float:
        """Angle on the dial for a wall-clock time, with 6am at 0 degrees."""
        seconds = moment.hour * 3600 + moment.minute * 60 + moment.second
        offset_seconds = (seconds - 6 * 3600) % 86400
        return offset_seconds / 86400.0 * 360.0

    @staticmethod
    def solar_altitude(moment: datetime, latitude: float, longitude: float) -> float:
        jd = CelestialPositionService.julian_day(moment)
        ra, dec = CelestialPositionService.solar_equatorial(jd)
        _, altitude = CelestialPositionService.equatorial_to_horizontal(
            ra, dec, latitude, longitude, jd
        )
        return altitude

    @staticmethod
    def daylight_window(
        day: date,
        latitude: float,
        longitude: float,
        tz: tzinfo = timezone.utc,
        step_minutes: int = 10,
    ) -> Optional[DaylightWindow]:
        """
        Estimate sunrise, sunset and solar noon by sampling solar altitude.

        Solar noon is the highest sample within the local day. Sunrise is the last
        rising crossing before it and sunset the first setting crossing after it,
        searched up to 12 hours either side of the day, so a daylight period that
        spans local midnight is still reported whole.

        Returns None when the sun stays on one side of the horizon (polar day/night).
        Crossings are refined by linear interpolation between samples.
        """
        step = timedelta(minutes=max(1, step_minutes))
        start = datetime.combine(day, time(0, 0), tzinfo=tz)
        end = start + timedelta(days=1)
        margin = timedelta(hours=12)

        samples = []
        moment = start - margin
        while moment <= end + margin:
            samples.append((moment, CelestialPositionService.solar_altitude(moment, latitude, longitude)))
            moment += step

        noon_index = max(
            (i for i, (m, _) in enumerate(samples) if start <= m <= end),
            key=lambda i: samples[i][1],
        )
        if samples[noon_index][1] < HORIZON_ALTITUDE_DEG:
            return None

        sunrise = None
        for i in range(noon_index, 0, -1):
            (t0, a0), (t1, a1) = samples[i - 1], samples[i]
            if a0 < HORIZON_ALTITUDE_DEG <= a1:
                sunrise = _interpolate_crossing(t0, a0, t1, a1)
                break

        sunset = None
        for i in range(noon_index, len(samples) - 1):
            (t0, a0), (t1, a1) = samples[i], samples[i + 1]
            if a0 >= HORIZON_ALTITUDE_DEG > a1:
                sunset = _interpolate_crossing(t0, a0, t1, a1)
                break

        if sunrise is None or sunset is None:
            return None
        return DaylightWindow(sunrise=sunrise, sunset=sunset, solar_noon=samples[noon_index][0])


def _clamp_unit(value: float) -> float:
    return max(-1.0, min(1.0, value))


def _interpolate_crossing(t0: datetime, a0: float, t1: datetime, a1: float) -> datetime:
    if a1 == a0:
        return t1
    ratio = (HORIZON_ALTITUDE_DEG - a0) / (a1 - a0)
    return t0 + (t1 - t0) * ratio
