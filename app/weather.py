"""OpenWeather client and normalization of its payloads into risk inputs."""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
import numpy as np
import pandas as pd

from app.config import DEFAULT_OPENWEATHER_BASE_URL
from app.models import EnvironmentalSnapshot, ForecastPoint

logger = logging.getLogger(__name__)

DEMO_LOCATION_NAME = "Demo City (No API Key)"
FORECAST_CHART_POINTS = 8


class WeatherInputError(ValueError):
    """Caller supplied missing or unusable location parameters."""


class WeatherProviderError(Exception):
    """Upstream weather provider failed or was unreachable."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def demo_bundle(now: Optional[float] = None) -> Dict[str, Any]:
    """Fixed payload served when no OpenWeather key is configured."""
    now = time.time() if now is None else now
    return {
        "current": {
            "main": {"temp": 18, "humidity": 45, "pressure": 1015},
            "weather": [{"main": "Clear", "description": "clear sky", "icon": "01d"}],
            "name": DEMO_LOCATION_NAME,
            "wind": {"speed": 3.2},
            "visibility": 10000,
        },
        "forecast": {
            "list": [
                {
                    "dt": int(now + i * 86400),
                    "main": {"temp": 18 + i, "humidity": 45},
                    "weather": [{"main": "Clear"}],
                }
                for i in range(5)
            ]
        },
        "aqi": {"list": [{"main": {"aqi": 1}}]},
    }


class WeatherClient:
    """
    Fetches current conditions, forecast and air quality for a location.

    Without an API key the client is unconfigured: coordinate lookups return
    the demo payload and city search is rejected.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = DEFAULT_OPENWEATHER_BASE_URL,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self._transport
        )

    async def _get(self, client: httpx.AsyncClient, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        response = await client.get(path, params={**params, "appid": self.api_key})
        response.raise_for_status()
        return response.json()

    async def _forecast_and_aqi(self, client: httpx.AsyncClient, lat: float, lon: float):
        return await asyncio.gather(
            self._get(client, "/forecast", {"lat": lat, "lon": lon, "units": "metric"}),
            self._get(client, "/air_pollution", {"lat": lat, "lon": lon}),
        )

    async def fetch_by_coordinates(self, lat: Optional[float], lon: Optional[float]) -> Dict[str, Any]:
        """
        Fetch the weather bundle for a coordinate pair.

        Args:
            lat: Latitude
            lon: Longitude

        Returns:
            Dict with raw "current", "forecast" and "aqi" payloads

        Raises:
            WeatherInputError: If either coordinate is missing
            WeatherProviderError: If the provider call fails
        """
        if lat is None or lon is None:
            raise WeatherInputError("Latitude and longitude are required")

        if not self.is_configured:
            return demo_bundle()

        try:
            async with self._client() as client:
                current, (forecast, aqi) = await asyncio.gather(
                    self._get(client, "/weather", {"lat": lat, "lon": lon, "units": "metric"}),
                    self._forecast_and_aqi(client, lat, lon),
                )
        except httpx.HTTPError as e:
            raise _provider_error(e, 500, "Failed to fetch weather data") from e

        return {"current": current, "forecast": forecast, "aqi": aqi}

    async def fetch_by_city(self, query: Optional[str]) -> Dict[str, Any]:
        """
        Resolve a city name and fetch its weather bundle.

        Raises:
            WeatherInputError: If the query is empty or no API key is configured
            WeatherProviderError: If the provider call fails
        """
        if not query or not query.strip():
            raise WeatherInputError("City name is required")
        if not self.is_configured:
            raise WeatherInputError("Search requires an OpenWeather API Key")

        try:
            async with self._client() as client:
                current = await self._get(client, "/weather", {"q": query.strip(), "units": "metric"})
                coord = current.get("coord") or {}
                forecast, aqi = await self._forecast_and_aqi(client, coord.get("lat"), coord.get("lon"))
        except httpx.HTTPError as e:
            raise _provider_error(e, 404, "City not found") from e

        return {"current": current, "forecast": forecast, "aqi": aqi}


def _provider_error(error: httpx.HTTPError, default_status: int, fallback: str) -> WeatherProviderError:
    """Convert an httpx failure into a WeatherProviderError carrying the provider's message."""
    status = default_status
    message = fallback
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        try:
            body = error.response.json()
        except ValueError:
            body = {}
        if isinstance(body, dict) and body.get("message"):
            message = str(body["message"])
        logger.error("Weather API error: %s %s", status, body or error.response.text)
    else:
        logger.error("Weather API error: %s", error)
    return WeatherProviderError(status, message)


def clean_numeric_value(value) -> float:
    """
    Clean numeric values before they reach the risk engine.
    Replaces NaN, Infinity, and -Infinity with 0.0.
    """
    if value is None or pd.isna(value):
        return 0.0
    try:
        val = float(value)
        if np.isnan(val) or np.isinf(val):
            return 0.0
        return val
    except (ValueError, TypeError):
        return 0.0


def location_name(bundle: Dict[str, Any]) -> str:
    return (bundle.get("current") or {}).get("name") or "Unknown location"


def normalize_snapshot(bundle: Dict[str, Any]) -> EnvironmentalSnapshot:
    """
    Extract risk engine inputs from a weather bundle.

    Missing or non-numeric readings become 0.0; a missing AQI becomes 1.

    Args:
        bundle: Dict with raw "current" and "aqi" payloads

    Returns:
        EnvironmentalSnapshot safe to pass to the risk engine
    """
    current = bundle.get("current") or {}
    main = current.get("main") or {}
    wind = current.get("wind") or {}

    aqi_list = (bundle.get("aqi") or {}).get("list") or []
    raw_aqi = clean_numeric_value((aqi_list[0].get("main") or {}).get("aqi")) if aqi_list else 0.0
    aqi = int(raw_aqi) if raw_aqi >= 1 else 1

    return EnvironmentalSnapshot(
        temperature_c=clean_numeric_value(main.get("temp")),
        humidity_pct=min(max(clean_numeric_value(main.get("humidity")), 0.0), 100.0),
        wind_speed_mps=max(clean_numeric_value(wind.get("speed")), 0.0),
        air_quality_index=min(aqi, 5),
    )


def forecast_points(bundle: Dict[str, Any], limit: int = FORECAST_CHART_POINTS) -> List[ForecastPoint]:
    """
    Extract (timestamp, temperature, humidity) samples from the forecast payload.

    Keeps provider order and drops entries without a usable timestamp.

    Args:
        bundle: Dict with a raw "forecast" payload
        limit: Maximum number of samples to return

    Returns:
        List of ForecastPoint, at most `limit` long
    """
    items = (bundle.get("forecast") or {}).get("list") or []
    if not items:
        return []

    df = pd.DataFrame({
        "dt": [item.get("dt") for item in items],
        "temp": [(item.get("main") or {}).get("temp") for item in items],
        "humidity": [(item.get("main") or {}).get("humidity") for item in items],
    })
    df = df.apply(pd.to_numeric, errors="coerce")
    df = df.dropna(subset=["dt"]).head(limit)

    return [
        ForecastPoint(
            timestamp=datetime.fromtimestamp(float(row["dt"]), tz=timezone.utc),
            temperature_c=clean_numeric_value(row["temp"]),
            humidity_pct=clean_numeric_value(row["humidity"]),
        )
        for _, row in df.iterrows()
    ]
