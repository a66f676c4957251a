from fastapi import FastAPI, APIRouter, HTTPException, Query
from dotenv import load_dotenv
from starlette.middleware.cors import CORSMiddleware
from pymongo import MongoClient
from pymongo.errors import PyMongoError
import os
import math
import asyncio
import logging
from pathlib import Path
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date, datetime, timezone
from enum import Enum
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from providers import build_providers
from environmental_models import EnvironmentalFactors
from environmental_service import EnvironmentalService, SnapshotCache
from exposure_store import InMemoryExposureStore, MongoExposureStore, MongoSnapshotStore
from exposure_timer_service import ExposureTimer, TimerRegistry, TransitionResult
from uv_risk_service import HourlyUV, SkinType, UVRiskAssessment, UVRiskService
from celestial_position_service import CelestialBody, CelestialPositionService
from notifications import ExpoPushClient, ReminderPlanner
from common.presentation import (
    EXPOSURE_STATUS_DISPLAY,
    SEVERITY_COLORS,
    SNOW_TYPE_DESCRIPTIONS,
    TERRAIN_DESCRIPTIONS,
    TIMER_PHASE_LABELS,
    risk_level_display,
)

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# MongoDB connection (optional; state stays in memory without it)
mongo_url = os.environ.get('MONGO_URL', '')
DB_NAME = os.environ.get('DB_NAME', 'timetoburn')
EXPO_ACCESS_TOKEN = os.environ.get('EXPO_ACCESS_TOKEN') or None


def _zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone: {name}") from e


TIMER_TIMEZONE = _zone(os.environ.get('TIMER_TIMEZONE', 'UTC'))

client: Optional[MongoClient] = None

# Explicitly constructed services; swapped for fixtures in tests
providers = build_providers()
snapshot_cache = SnapshotCache()
environmental_service = EnvironmentalService(providers, snapshot_cache)
timer_registry = TimerRegistry(tz=TIMER_TIMEZONE, store=InMemoryExposureStore())
_push_client: Optional[ExpoPushClient] = None


def connect_to_mongo() -> bool:
    """Back the snapshot cache and daily exposure totals with MongoDB when reachable."""
    global client
    if not mongo_url:
        logger.info("MONGO_URL not set. Running with in-memory stores.")
        return False
    try:
        temp_client = MongoClient(mongo_url, serverSelectionTimeoutMS=5000)
        temp_client.admin.command('ping')
        db = temp_client[DB_NAME]
        snapshot_cache.store = MongoSnapshotStore(db)
        timer_registry.store = MongoExposureStore(db)
        client = temp_client
        logger.info("MongoDB connection successful")
        return True
    except PyMongoError as e:
        logger.warning(f"MongoDB connection failed: {e}. Running without database.")
        return False


def get_push_client() -> ExpoPushClient:
    """Get or create the Expo push client."""
    global _push_client
    if _push_client is None:
        _push_client = ExpoPushClient(access_token=EXPO_ACCESS_TOKEN)
    return _push_client


# Create the main app
app = FastAPI(title="TimeToBurn API")

api_router = APIRouter(prefix="/api")

# ==================== Models ====================


def _finite_or_none(value: float) -> Optional[float]:
    """JSON has no infinity; an unbounded time is reported as null."""
    if value is None or math.isinf(value):
        return None
    return round(value, 2)


class RiskFactorModel(BaseModel):
    type: str
    severity: str
    description: str
    mitigation: str
    color: str


class AssessmentModel(BaseModel):
    base_uv_index: int
    adjusted_uv_index: int
    risk_score: float
    risk_level: str
    risk_label: str
    risk_color: str
    risk_description: str
    time_to_burn_minutes: Optional[float] = None  # null when there is no UV
    risk_factors: List[RiskFactorModel] = []
    recommendations: List[str] = []
    timestamp: Optional[datetime] = None


class EnvironmentModel(BaseModel):
    latitude: float
    longitude: float
    altitude_meters: float
    terrain_type: str
    terrain_description: str
    snow_type: str
    snow_description: str
    snow_coverage_pct: float
    water_body_type: str
    water_body_name: Optional[str] = None
    distance_to_water_meters: Optional[float] = None
    is_coastal: bool
    season: str
    day_of_year: int
    seasonal_uv_multiplier: float
    fetched_at: datetime


class AssessRequest(BaseModel):
    """Request for a UV risk assessment at a location"""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    uv_index: Optional[float] = Field(None, ge=0, description="Base UV index; fetched when omitted")
    cloud_cover_pct: Optional[float] = Field(None, ge=0, le=100)
    skin_type: SkinType = SkinType.TYPE_II


class AssessResponse(BaseModel):
    assessment: AssessmentModel
    environment: EnvironmentModel
    cloud_cover_pct: float
    cloud_category: str


class HourlyUVModel(BaseModel):
    date: datetime
    uv_index: float = Field(..., ge=0)
    cloud_cover_pct: float = Field(0.0, ge=0, le=100)


class ForecastRequest(BaseModel):
    """Request for an hourly UV risk forecast"""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    hours: Optional[List[HourlyUVModel]] = None
    skin_type: SkinType = SkinType.TYPE_II


class ForecastResponse(BaseModel):
    hours: List[AssessmentModel]
    peak: Optional[AssessmentModel] = None


class CelestialPositionResponse(BaseModel):
    body: str
    azimuth_degrees: float
    altitude_degrees: float
    time_fraction: float
    clock_angle: float
    at: datetime


class DaylightResponse(BaseModel):
    day: date
    polar: bool  # True when the sun does not cross the horizon
    sunrise: Optional[datetime] = None
    sunset: Optional[datetime] = None
    solar_noon: Optional[datetime] = None
    duration_minutes: Optional[float] = None


class TimerAction(str, Enum):
    START = "start"
    PAUSE = "pause"
    RESUME = "resume"
    SUNSCREEN = "sunscreen"
    RESET = "reset"
    TICK = "tick"
    CANCEL_REAPPLY = "cancel-reapply"


class TimerActionRequest(BaseModel):
    push_token: Optional[str] = None
    skin_type: Optional[SkinType] = None


class UVUpdateRequest(BaseModel):
    """Either an adjusted UV index, or a location to assess"""
    adjusted_uv_index: Optional[int] = Field(None, ge=0)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    uv_index: Optional[float] = Field(None, ge=0)
    cloud_cover_pct: Optional[float] = Field(None, ge=0, le=100)
    push_token: Optional[str] = None


class ReminderModel(BaseModel):
    reminder_type: str
    fire_at: datetime
    title: str
    body: str


class TimerResponse(BaseModel):
    owner_id: str
    accepted: bool = True
    reason: Optional[str] = None
    events: List[str] = []
    phase: str
    phase_label: str
    elapsed_seconds: float
    total_exposure_seconds_today: float
    remaining_seconds: Optional[float] = None
    time_to_burn_minutes: Optional[float] = None
    current_adjusted_uv: int
    exposure_progress: float
    exposure_status: str
    status_message: str
    status_color: str
    session_start: Optional[datetime] = None
    last_sunscreen_application: Optional[datetime] = None
    sunscreen_reapply_deadline: Optional[datetime] = None
    should_prompt_sunscreen: bool = False
    scheduled_reminders: List[ReminderModel] = []
    delivered_reminders: List[ReminderModel] = []


# ==================== Converters ====================


def _assessment_model(assessment: UVRiskAssessment) -> AssessmentModel:
    display = risk_level_display(assessment.risk_level)
    return AssessmentModel(
        base_uv_index=assessment.base_uv_index,
        adjusted_uv_index=assessment.adjusted_uv_index,
        risk_score=assessment.risk_score,
        risk_level=assessment.risk_level.value,
        risk_label=display["label"],
        risk_color=display["color"],
        risk_description=display["description"],
        time_to_burn_minutes=_finite_or_none(assessment.time_to_burn_minutes),
        risk_factors=[
            RiskFactorModel(
                type=factor.type.value,
                severity=factor.severity.value,
                description=factor.description,
                mitigation=factor.mitigation,
                color=SEVERITY_COLORS[factor.severity],
            )
            for factor in assessment.risk_factors
        ],
        recommendations=list(assessment.recommendations),
        timestamp=assessment.timestamp,
    )


def _environment_model(env: EnvironmentalFactors) -> EnvironmentModel:
    water = env.water_proximity
    body = water.nearest_water_body
    return EnvironmentModel(
        latitude=env.location.latitude,
        longitude=env.location.longitude,
        altitude_meters=env.altitude_meters,
        terrain_type=env.terrain_type.value,
        terrain_description=TERRAIN_DESCRIPTIONS[env.terrain_type],
        snow_type=env.snow_conditions.snow_type.value,
        snow_description=SNOW_TYPE_DESCRIPTIONS[env.snow_conditions.snow_type],
        snow_coverage_pct=env.snow_conditions.snow_coverage_pct,
        water_body_type=water.water_body_type.value,
        water_body_name=body.name if body else None,
        distance_to_water_meters=_finite_or_none(water.distance_to_water_meters),
        is_coastal=water.is_coastal,
        season=env.seasonal_factors.season.value,
        day_of_year=env.seasonal_factors.day_of_year,
        seasonal_uv_multiplier=round(env.seasonal_factors.seasonal_uv_multiplier, 3),
        fetched_at=env.fetched_at,
    )


def _reminder_model(reminder) -> ReminderModel:
    return ReminderModel(
        reminder_type=reminder.reminder_type.value,
        fire_at=reminder.fire_at,
        title=reminder.title,
        body=reminder.body,
    )


async def _timer_response(
    timer: ExposureTimer,
    result: Optional[TransitionResult] = None,
    push_token: Optional[str] = None,
) -> TimerResponse:
    state = timer.snapshot()
    events = result.events if result else ()

    due = ReminderPlanner.for_events(timer.owner_id, events, state)
    prompt = ReminderPlanner.sunscreen_prompt(timer.owner_id, state)
    if push_token:
        for reminder in due:
            await asyncio.to_thread(get_push_client().send_reminder, push_token, reminder)

    status = EXPOSURE_STATUS_DISPLAY[state.exposure_status]
    return TimerResponse(
        owner_id=timer.owner_id,
        accepted=result.accepted if result else True,
        reason=result.reason if result else None,
        events=[event.value for event in events],
        phase=state.phase.value,
        phase_label=TIMER_PHASE_LABELS[state.phase],
        elapsed_seconds=round(state.elapsed_seconds, 1),
        total_exposure_seconds_today=round(state.total_exposure_seconds_today, 1),
        remaining_seconds=_finite_or_none(state.remaining_seconds),
        time_to_burn_minutes=_finite_or_none(state.time_to_burn_minutes),
        current_adjusted_uv=state.current_adjusted_uv,
        exposure_progress=round(state.exposure_progress, 4),
        exposure_status=state.exposure_status.value,
        status_message=status["message"],
        status_color=status["color"],
        session_start=state.session_start,
        last_sunscreen_application=state.last_sunscreen_application,
        sunscreen_reapply_deadline=state.sunscreen_reapply_deadline,
        should_prompt_sunscreen=prompt is not None,
        scheduled_reminders=[_reminder_model(r) for r in ReminderPlanner.plan(timer.owner_id, state)],
        delivered_reminders=[_reminder_model(r) for r in due],
    )


async def _current_conditions(lat: float, lon: float) -> dict:
    conditions = await providers.weather.get_uv_conditions(lat, lon)
    if not conditions:
        raise HTTPException(status_code=503, detail="UV data unavailable for this location")
    return conditions


# ==================== Endpoints ====================


@api_router.get("/health")
async def health():
    return {"status": "ok", "database": client is not None}


@api_router.post("/uv/assess", response_model=AssessResponse)
async def assess_uv(request: AssessRequest):
    """
    Assess sunburn risk at a location.

    Combines the base UV index (from the request, or the weather provider when omitted)
    with the environmental snapshot for the location.
    """
    try:
        env = await environmental_service.fetch(request.latitude, request.longitude)

        uv_index, cloud_cover = request.uv_index, request.cloud_cover_pct
        if uv_index is None:
            conditions = await _current_conditions(request.latitude, request.longitude)
            uv_index = conditions.get("uv_index", 0.0)
            if cloud_cover is None:
                cloud_cover = conditions.get("cloud_cover_pct", 0.0)
        cloud_cover = cloud_cover or 0.0

        assessment = UVRiskService.compose(
            uv_index, env, cloud_cover_pct=cloud_cover, skin_type=request.skin_type,
            timestamp=datetime.now(timezone.utc),
        )
        logger.info(
            f"UV assessment {request.latitude:.2f},{request.longitude:.2f}: "
            f"base={assessment.base_uv_index} adjusted={assessment.adjusted_uv_index}"
        )
        return AssessResponse(
            assessment=_assessment_model(assessment),
            environment=_environment_model(env),
            cloud_cover_pct=cloud_cover,
            cloud_category=UVRiskService.cloud_category(cloud_cover),
        )
    except HTTPException:
        raise
    except ValueError as e:
        logger.error(f"Invalid parameters for UV assessment: {e}")
        raise HTTPException(status_code=400, detail=f"Invalid parameters: {str(e)}")
    except Exception as e:
        logger.error(f"Error assessing UV risk: {e}")
        raise HTTPException(status_code=500, detail="Unable to assess UV risk at this time")


@api_router.post("/uv/forecast", response_model=ForecastResponse)
async def forecast_uv(request: ForecastRequest):
    """Hourly risk assessments for a location, plus the peak hour."""
    try:
        env = await environmental_service.fetch(request.latitude, request.longitude)

        if request.hours:
            hours = [HourlyUV(h.date, h.uv_index, h.cloud_cover_pct) for h in request.hours]
        else:
            conditions = await _current_conditions(request.latitude, request.longitude)
            hours = [
                HourlyUV(
                    date=datetime.fromisoformat(h["time"]),
                    uv_index=h.get("uv_index", 0.0),
                    cloud_cover_pct=h.get("cloud_cover_pct", 0.0),
                )
                for h in conditions.get("hourly", [])
            ]

        assessments = UVRiskService.assess_forecast(hours, env, skin_type=request.skin_type)
        peak = UVRiskService.peak_hour(assessments)
        return ForecastResponse(
            hours=[_assessment_model(a) for a in assessments],
            peak=_assessment_model(peak) if peak else None,
        )
    except HTTPException:
        raise
    except ValueError as e:
        logger.error(f"Invalid parameters for UV forecast: {e}")
        raise HTTPException(status_code=400, detail=f"Invalid parameters: {str(e)}")
    except Exception as e:
        logger.error(f"Error forecasting UV risk: {e}")
        raise HTTPException(status_code=500, detail="Unable to forecast UV risk at this time")


@api_router.get("/environment", response_model=EnvironmentModel)
async def get_environment(
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
    refresh: bool = False,
):
    try:
        if refresh:
            env = await environmental_service.refresh(lat, lon)
        else:
            env = await environmental_service.fetch(lat, lon)
        return _environment_model(env)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid parameters: {str(e)}")
    except Exception as e:
        logger.error(f"Error fetching environment: {e}")
        raise HTTPException(status_code=500, detail="Unable to fetch environmental data")


@api_router.get("/celestial/position", response_model=CelestialPositionResponse)
async def celestial_position(
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
    body: CelestialBody = CelestialBody.MOON,
    at: Optional[datetime] = None,
):
    """Sun or moon position for the astronomical clock."""
    moment = at or datetime.now(timezone.utc)
    position = CelestialPositionService.position(moment, lat, lon, body=body)
    return CelestialPositionResponse(
        body=body.value,
        azimuth_degrees=round(position.azimuth_degrees, 3),
        altitude_degrees=round(position.altitude_degrees, 3),
        time_fraction=position.time_fraction,
        clock_angle=round(CelestialPositionService.clock_angle(moment), 3),
        at=moment,
    )


@api_router.get("/celestial/daylight", response_model=DaylightResponse)
async def daylight(
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
    day: Optional[date] = Query(None, alias="date"),
    tz: str = "UTC",
):
    try:
        zone = _zone(tz)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    day = day or datetime.now(zone).date()

    window = CelestialPositionService.daylight_window(day, lat, lon, tz=zone)
    if window is None:
        return DaylightResponse(day=day, polar=True)
    return DaylightResponse(
        day=day,
        polar=False,
        sunrise=window.sunrise,
        sunset=window.sunset,
        solar_noon=window.solar_noon,
        duration_minutes=round(window.duration_minutes, 1),
    )


@api_router.get("/timers/{owner_id}", response_model=TimerResponse)
async def get_timer(owner_id: str):
    if owner_id not in timer_registry:
        raise HTTPException(status_code=404, detail="Timer not found")
    async with timer_registry.lock(owner_id):
        return await _timer_response(timer_registry.get(owner_id))


@api_router.post("/timers/{owner_id}/{action}", response_model=TimerResponse)
async def timer_action(
    owner_id: str,
    action: TimerAction,
    request: Optional[TimerActionRequest] = None,
):
    """
    Apply a transition to an owner's exposure timer.

    A timer is created on start. A transition that is not valid from the current
    phase returns 409 and leaves the timer unchanged.
    """
    request = request or TimerActionRequest()
    if action != TimerAction.START and owner_id not in timer_registry:
        raise HTTPException(status_code=404, detail="Timer not found")

    async with timer_registry.lock(owner_id):
        timer = timer_registry.get_or_create(owner_id, skin_type=request.skin_type)
        if action == TimerAction.START:
            result = timer.start()
        elif action == TimerAction.PAUSE:
            result = timer.pause()
        elif action == TimerAction.RESUME:
            result = timer.resume()
        elif action == TimerAction.SUNSCREEN:
            result = timer.apply_sunscreen()
        elif action == TimerAction.RESET:
            result = timer.reset()
        elif action == TimerAction.CANCEL_REAPPLY:
            result = timer.cancel_reapply_countdown()
        else:
            result = timer.tick()

        if not result.accepted:
            raise HTTPException(status_code=409, detail=result.reason)
        return await _timer_response(timer, result, push_token=request.push_token)


@api_router.put("/timers/{owner_id}/uv", response_model=TimerResponse)
async def update_timer_uv(owner_id: str, request: UVUpdateRequest):
    """Feed a new adjusted UV index into the timer, directly or by assessing a location."""
    adjusted = request.adjusted_uv_index
    if adjusted is None:
        if request.latitude is None or request.longitude is None:
            raise HTTPException(
                status_code=400,
                detail="Provide adjusted_uv_index or latitude and longitude",
            )
        assessment = await assess_uv(AssessRequest(
            latitude=request.latitude,
            longitude=request.longitude,
            uv_index=request.uv_index,
            cloud_cover_pct=request.cloud_cover_pct,
        ))
        adjusted = assessment.assessment.adjusted_uv_index

    async with timer_registry.lock(owner_id):
        timer = timer_registry.get_or_create(owner_id)
        result = timer.update_uv(adjusted)
        return await _timer_response(timer, result, push_token=request.push_token)


# Add CORS middleware first, before including router
app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.on_event("startup")
async def startup_db_client():
    await asyncio.to_thread(connect_to_mongo)


@app.on_event("shutdown")
async def shutdown_db_client():
    if client is not None:
        client.close()
    if _push_client is not None:
        _push_client.close()
