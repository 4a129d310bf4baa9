"""Data models for the AsthmaGuard application."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class RiskLevel(str, Enum):
    """Respiratory risk level derived from the cumulative trigger score."""
    LOW = "Low"
    MODERATE = "Moderate"
    HIGH = "High"
    EXTREME = "Extreme"


class EnvironmentalSnapshot(BaseModel):
    """Point-in-time readings used as Risk Engine input."""
    temperature_c: float
    humidity_pct: float = Field(..., ge=0, le=100)
    wind_speed_mps: float = Field(..., ge=0)
    air_quality_index: int = Field(1, ge=1, le=5)

    @field_validator("air_quality_index", mode="before")
    @classmethod
    def missing_aqi_is_good(cls, value: Any) -> Any:
        # A missing reading is treated as the best case, not an error.
        if value is None or value == 0:
            return 1
        return value


class RiskAssessment(BaseModel):
    """Risk Engine output. Triggers and advice are aligned by index."""
    level: RiskLevel
    score: int = Field(..., ge=0)
    triggers: List[str]
    advice: List[str]


class RiskAssessmentResponse(RiskAssessment):
    """Risk assessment with the severity styling a UI needs."""
    color: str
    bg_color: str


class SubscriptionRecord(BaseModel):
    """Stored subscription, keyed by normalized email."""
    email: str
    auto_notify: bool = True
    last_notified_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class SubscriptionStatus(BaseModel):
    """Subscription lookup result. `error` is set when storage was unavailable."""
    subscribed: bool
    auto_notify: bool
    error: Optional[str] = None


class ForecastPoint(BaseModel):
    """One forecast sample for charting."""
    timestamp: datetime
    temperature_c: float
    humidity_pct: float


class WeatherResponse(BaseModel):
    """Raw provider payloads plus the values derived from them."""
    location_name: str
    current: Dict[str, Any]
    forecast: Dict[str, Any]
    aqi: Dict[str, Any]
    snapshot: EnvironmentalSnapshot
    aqi_label: str
    risk: RiskAssessmentResponse
    forecast_points: List[ForecastPoint]


class NotifyRequest(BaseModel):
    """Request to send a risk alert, optionally saving the subscription."""
    to_email: str
    location_name: str
    snapshot: EnvironmentalSnapshot
    save_email: bool = True
    auto_notify: bool = True


class NotifyResponse(BaseModel):
    """Successful (sent or simulated) notification."""
    success: bool
    message: str
    simulated: bool = False
    provider_id: Optional[str] = None
    risk_level: RiskLevel


class UnsubscribeRequest(BaseModel):
    email: str


class UnsubscribeResponse(BaseModel):
    success: bool
    message: str
