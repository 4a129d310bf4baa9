"""FastAPI main application for AsthmaGuard."""

import logging
import traceback
from functools import lru_cache
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import Settings
from app.mailer import Mailer
from app.models import (
    EnvironmentalSnapshot,
    NotifyRequest,
    NotifyResponse,
    RiskAssessment,
    RiskAssessmentResponse,
    SubscriptionStatus,
    UnsubscribeRequest,
    UnsubscribeResponse,
    WeatherResponse,
)
from app.notifications import NotificationCoordinator, NotifyStatus
from app.risk import assess, get_aqi_label, get_risk_bg_color, get_risk_color
from app.storage import create_store
from app.weather import (
    WeatherClient,
    WeatherInputError,
    WeatherProviderError,
    forecast_points,
    location_name,
    normalize_snapshot,
)

settings = Settings.from_env()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="AsthmaGuard", version="1.0.0")

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler_json(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions and return JSON."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail}
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler_json(request: Request, exc: RequestValidationError):
    """Handle validation errors and return JSON."""
    return JSONResponse(
        status_code=422,
        content={"detail": jsonable_encoder(exc.errors())}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions and return JSON."""
    logger.exception("Unhandled error on %s", request.url.path)
    error_detail = str(exc)
    if settings.debug:
        error_detail = f"{str(exc)}\n\n{traceback.format_exc()}"

    return JSONResponse(
        status_code=500,
        content={
            "detail": f"Internal server error: {error_detail}",
            "type": type(exc).__name__
        }
    )


@lru_cache(maxsize=1)
def get_weather_client() -> WeatherClient:
    return WeatherClient(
        api_key=settings.openweather_api_key,
        base_url=settings.openweather_base_url,
        timeout=settings.http_timeout_seconds,
    )


@lru_cache(maxsize=1)
def get_mailer() -> Mailer:
    return Mailer(
        api_key=settings.resend_api_key,
        from_address=settings.email_from,
        timeout=settings.http_timeout_seconds,
    )


@lru_cache(maxsize=1)
def get_coordinator() -> NotificationCoordinator:
    return NotificationCoordinator(store=create_store(settings), mailer=get_mailer())


def to_response(assessment: RiskAssessment) -> RiskAssessmentResponse:
    """Attach severity styling to an assessment."""
    return RiskAssessmentResponse(
        **assessment.model_dump(),
        color=get_risk_color(assessment.level),
        bg_color=get_risk_bg_color(assessment.level),
    )


def build_weather_response(bundle: dict) -> WeatherResponse:
    snapshot = normalize_snapshot(bundle)
    return WeatherResponse(
        location_name=location_name(bundle),
        current=bundle["current"],
        forecast=bundle["forecast"],
        aqi=bundle["aqi"],
        snapshot=snapshot,
        aqi_label=get_aqi_label(snapshot.air_quality_index)["label"],
        risk=to_response(assess(snapshot)),
        forecast_points=forecast_points(bundle),
    )


@app.get("/health")
async def health_check(
    weather: WeatherClient = Depends(get_weather_client),
    mailer: Mailer = Depends(get_mailer),
):
    """Health check endpoint reporting which providers are configured."""
    return JSONResponse(content={
        "status": "ok",
        "message": "Server is running",
        "weather_configured": weather.is_configured,
        "mail_configured": mailer.is_configured,
    })


api = APIRouter(prefix="/api")


@api.get("/weather", response_model=WeatherResponse)
async def weather_by_coordinates(
    lat: Optional[float] = Query(None),
    lon: Optional[float] = Query(None),
    weather: WeatherClient = Depends(get_weather_client),
):
    """Current conditions, forecast, AQI and derived risk for a coordinate pair."""
    try:
        bundle = await weather.fetch_by_coordinates(lat, lon)
    except WeatherInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except WeatherProviderError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return build_weather_response(bundle)


@api.get("/weather/search", response_model=WeatherResponse)
async def weather_by_city(
    q: Optional[str] = Query(None),
    weather: WeatherClient = Depends(get_weather_client),
):
    """Same bundle as /weather, resolved from a city name."""
    try:
        bundle = await weather.fetch_by_city(q)
    except WeatherInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except WeatherProviderError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return build_weather_response(bundle)


@api.post("/risk", response_model=RiskAssessmentResponse)
async def assess_risk(snapshot: EnvironmentalSnapshot):
    """Score a snapshot of readings."""
    return to_response(assess(snapshot))


@api.get("/subscription/{email}", response_model=SubscriptionStatus, response_model_exclude_none=True)
def subscription_status(
    email: str,
    coordinator: NotificationCoordinator = Depends(get_coordinator),
):
    return coordinator.get_status(email)


@api.post("/unsubscribe", response_model=UnsubscribeResponse)
def unsubscribe(
    request: UnsubscribeRequest,
    coordinator: NotificationCoordinator = Depends(get_coordinator),
):
    result = coordinator.unsubscribe(request.email)
    if not result.success:
        raise HTTPException(status_code=500, detail=result.message)
    return UnsubscribeResponse(success=True, message=result.message)


@api.post("/notify", response_model=NotifyResponse)
async def notify(
    request: NotifyRequest,
    coordinator: NotificationCoordinator = Depends(get_coordinator),
):
    """Assess the submitted readings and email the result to the requester."""
    assessment = assess(request.snapshot)
    result = await coordinator.request_notification(
        email=request.to_email,
        assessment=assessment,
        location_name=request.location_name,
        save_subscription=request.save_email,
        auto_notify=request.auto_notify,
    )

    if result.status == NotifyStatus.INVALID_EMAIL:
        raise HTTPException(status_code=400, detail=result.message)
    if result.status == NotifyStatus.FAILED:
        status_code = 403 if result.policy_restricted else 500
        raise HTTPException(status_code=status_code, detail=result.message)

    return NotifyResponse(
        success=True,
        message=result.message,
        simulated=result.status == NotifyStatus.SIMULATED,
        provider_id=result.provider_id,
        risk_level=assessment.level,
    )


@api.api_route("/{path:path}", methods=["GET", "POST", "PUT", "PATCH", "DELETE"], include_in_schema=False)
async def api_not_found(path: str):
    raise HTTPException(status_code=404, detail="API route not found")


app.include_router(api)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=3000)
