"""
Presentation metadata

Display labels, colors and descriptions for domain variants. Kept apart from the
domain enums so the risk and timer logic carries no presentation concerns.
These must match the frontend palette.
"""

from typing import Dict

from environmental_models import SnowType, TerrainType, WaterBodyType
from exposure_timer_service import ExposureStatus, TimerPhase
from uv_risk_service import RiskLevel, RiskSeverity

RISK_LEVEL_DISPLAY: Dict[RiskLevel, Dict[str, str]] = {
    RiskLevel.LOW: {
        "label": "Low",
        "color": "#4CAF50",
        "description": "Low risk of harm from unprotected sun exposure",
    },
    RiskLevel.MODERATE: {
        "label": "Moderate",
        "color": "#FFC107",
        "description": "Moderate risk of harm from unprotected sun exposure",
    },
    RiskLevel.HIGH: {
        "label": "High",
        "color": "#FF9800",
        "description": "High risk of harm; protection against sunburn is needed",
    },
    RiskLevel.VERY_HIGH: {
        "label": "Very High",
        "color": "#F44336",
        "description": "Very high risk; take extra precautions, skin can burn quickly",
    },
    RiskLevel.EXTREME: {
        "label": "Extreme",
        "color": "#9C27B0",
        "description": "Extreme risk; unprotected skin can burn in minutes",
    },
}

SEVERITY_COLORS: Dict[RiskSeverity, str] = {
    RiskSeverity.NONE: "#9E9E9E",
    RiskSeverity.LOW: "#4CAF50",
    RiskSeverity.MODERATE: "#FFC107",
    RiskSeverity.HIGH: "#FF9800",
    RiskSeverity.VERY_HIGH: "#F44336",
    RiskSeverity.EXTREME: "#9C27B0",
}

TERRAIN_DESCRIPTIONS: Dict[TerrainType, str] = {
    TerrainType.UNKNOWN: "Unknown terrain",
    TerrainType.COASTAL: "Coastal area with water reflection",
    TerrainType.MOUNTAINOUS: "Mountainous terrain with higher UV",
    TerrainType.URBAN: "Urban area with building shade",
    TerrainType.RURAL: "Rural area with open exposure",
    TerrainType.DESERT: "Desert terrain with sand reflection",
    TerrainType.FOREST: "Forest area with tree cover",
    TerrainType.GRASSLAND: "Grassland with open exposure",
    TerrainType.ARCTIC: "Arctic terrain with snow reflection",
}

SNOW_TYPE_DESCRIPTIONS: Dict[SnowType, str] = {
    SnowType.NONE: "No snow",
    SnowType.FRESH: "Fresh snow (up to 80% UV reflection)",
    SnowType.PACKED: "Packed snow (about 60% UV reflection)",
    SnowType.MELTING: "Melting snow (about 40% UV reflection)",
    SnowType.ICY: "Icy snow (about 70% UV reflection)",
}

WATER_BODY_LABELS: Dict[WaterBodyType, str] = {
    WaterBodyType.NONE: "None",
    WaterBodyType.OCEAN: "Ocean",
    WaterBodyType.SEA: "Sea",
    WaterBodyType.LAKE: "Lake",
    WaterBodyType.RIVER: "River",
    WaterBodyType.STREAM: "Stream",
    WaterBodyType.POND: "Pond",
    WaterBodyType.POOL: "Pool",
}

TIMER_PHASE_LABELS: Dict[TimerPhase, str] = {
    TimerPhase.NOT_STARTED: "Not started",
    TimerPhase.RUNNING: "Tracking exposure",
    TimerPhase.PAUSED: "Paused",
    TimerPhase.SUNSCREEN_APPLIED: "Sunscreen applied",
    TimerPhase.EXCEEDED: "Limit reached",
}

EXPOSURE_STATUS_DISPLAY: Dict[ExposureStatus, Dict[str, str]] = {
    ExposureStatus.SAFE: {"message": "Safe exposure time", "color": "#4CAF50"},
    ExposureStatus.WARNING: {"message": "Approaching burn time", "color": "#FF9800"},
    ExposureStatus.EXCEEDED: {"message": "Exceeded safe time", "color": "#F44336"},
}


def risk_level_display(level: RiskLevel) -> Dict[str, str]:
    return dict(RISK_LEVEL_DISPLAY[level])
