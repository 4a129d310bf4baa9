"""Tests for the OpenWeather client and payload normalization."""

import math

import httpx
import pytest

from app.weather import (
    DEMO_LOCATION_NAME,
    WeatherClient,
    WeatherInputError,
    WeatherProviderError,
    clean_numeric_value,
    demo_bundle,
    forecast_points,
    location_name,
    normalize_snapshot,
)

CURRENT = {
    "coord": {"lat": 51.5, "lon": -0.12},
    "name": "London",
    "main": {"temp": 8.5, "humidity": 81, "pressure": 1009},
    "wind": {"speed": 11.2},
    "weather": [{"main": "Rain", "description": "light rain", "icon": "10d"}],
}
FORECAST = {
    "list": [
        {"dt": 1760000000 + i * 10800, "main": {"temp": 8 + i, "humidity": 80}}
        for i in range(12)
    ]
}
AQI = {"list": [{"main": {"aqi": 4}, "components": {"pm2_5": 40.1, "pm10": 60.3}}]}


def provider(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path.endswith("/weather"):
        return httpx.Response(200, json=CURRENT)
    if path.endswith("/forecast"):
        return httpx.Response(200, json=FORECAST)
    if path.endswith("/air_pollution"):
        return httpx.Response(200, json=AQI)
    return httpx.Response(404, json={"message": "not found"})


def make_client(handler=provider, api_key="key"):
    return WeatherClient(
        api_key=api_key,
        base_url="https://weather.test/data/2.5",
        transport=httpx.MockTransport(handler),
    )


class TestWeatherClient:
    async def test_fetch_by_coordinates(self):
        seen = []

        def handler(request):
            seen.append(request)
            return provider(request)

        bundle = await make_client(handler).fetch_by_coordinates(51.5, -0.12)

        assert bundle["current"]["name"] == "London"
        assert bundle["aqi"]["list"][0]["main"]["aqi"] == 4
        assert len(bundle["forecast"]["list"]) == 12
        assert len(seen) == 3
        assert all(r.url.params["appid"] == "key" for r in seen)
        weather_call = next(r for r in seen if r.url.path.endswith("/weather"))
        assert weather_call.url.params["units"] == "metric"

    async def test_missing_coordinates_rejected(self):
        with pytest.raises(WeatherInputError, match="Latitude and longitude are required"):
            await make_client().fetch_by_coordinates(None, 3.0)

    async def test_unconfigured_returns_demo_data(self):
        client = WeatherClient(api_key=None)
        assert client.is_configured is False

        bundle = await client.fetch_by_coordinates(40.71, -74.0)

        assert bundle["current"]["name"] == DEMO_LOCATION_NAME
        assert len(bundle["forecast"]["list"]) == 5

    async def test_provider_message_is_surfaced(self):
        def handler(request):
            return httpx.Response(401, json={"cod": 401, "message": "Invalid API key."})

        with pytest.raises(WeatherProviderError) as info:
            await make_client(handler).fetch_by_coordinates(1.0, 2.0)

        assert info.value.status_code == 401
        assert info.value.message == "Invalid API key."

    async def test_transport_failure_uses_fallback(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(WeatherProviderError) as info:
            await make_client(handler).fetch_by_coordinates(1.0, 2.0)

        assert info.value.status_code == 500
        assert info.value.message == "Failed to fetch weather data"

    async def test_search_resolves_coordinates(self):
        seen = []

        def handler(request):
            seen.append(request)
            return provider(request)

        bundle = await make_client(handler).fetch_by_city("  London ")

        assert bundle["current"]["name"] == "London"
        assert seen[0].url.params["q"] == "London"
        forecast_call = next(r for r in seen if r.url.path.endswith("/forecast"))
        assert forecast_call.url.params["lat"] == "51.5"

    async def test_search_requires_key(self):
        with pytest.raises(WeatherInputError, match="requires an OpenWeather API Key"):
            await WeatherClient(api_key=None).fetch_by_city("Paris")

    async def test_search_requires_query(self):
        with pytest.raises(WeatherInputError, match="City name is required"):
            await make_client().fetch_by_city("   ")

    async def test_unknown_city_without_message(self):
        def handler(request):
            return httpx.Response(404, text="nope")

        with pytest.raises(WeatherProviderError) as info:
            await make_client(handler).fetch_by_city("Atlantis")

        assert info.value.status_code == 404
        assert info.value.message == "City not found"


def test_normalize_snapshot():
    snap = normalize_snapshot({"current": CURRENT, "aqi": AQI})

    assert snap.temperature_c == 8.5
    assert snap.humidity_pct == 81
    assert snap.wind_speed_mps == 11.2
    assert snap.air_quality_index == 4


def test_normalize_snapshot_defaults():
    """Missing readings become zero and a missing AQI becomes 1."""
    snap = normalize_snapshot({"current": {"main": {}}, "aqi": {"list": []}})

    assert snap.temperature_c == 0.0
    assert snap.humidity_pct == 0.0
    assert snap.wind_speed_mps == 0.0
    assert snap.air_quality_index == 1


def test_normalize_snapshot_clamps_out_of_range():
    bundle = {
        "current": {"main": {"temp": "n/a", "humidity": 130}, "wind": {"speed": -2}},
        "aqi": {"list": [{"main": {"aqi": 9}}]},
    }
    snap = normalize_snapshot(bundle)

    assert snap.temperature_c == 0.0
    assert snap.humidity_pct == 100.0
    assert snap.wind_speed_mps == 0.0
    assert snap.air_quality_index == 5


def test_forecast_points_limited_to_chart_window():
    points = forecast_points({"forecast": FORECAST})

    assert len(points) == 8
    assert points[0].temperature_c == 8
    assert points[0].humidity_pct == 80
    assert points[1].timestamp.timestamp() - points[0].timestamp.timestamp() == 10800


def test_forecast_points_skip_bad_rows():
    bundle = {"forecast": {"list": [
        {"dt": None, "main": {"temp": 1}},
        {"dt": 1760000000, "main": {"temp": None, "humidity": 50}},
    ]}}
    points = forecast_points(bundle)

    assert len(points) == 1
    assert points[0].temperature_c == 0.0
    assert points[0].humidity_pct == 50


def test_forecast_points_empty():
    assert forecast_points({}) == []


def test_demo_bundle_forecast_is_daily():
    bundle = demo_bundle(now=1_000_000)
    days = bundle["forecast"]["list"]

    assert [d["dt"] for d in days] == [1_000_000 + i * 86400 for i in range(5)]
    assert [d["main"]["temp"] for d in days] == [18, 19, 20, 21, 22]
    assert location_name(bundle) == DEMO_LOCATION_NAME


def test_clean_numeric_value():
    assert clean_numeric_value(None) == 0.0
    assert clean_numeric_value(float("nan")) == 0.0
    assert clean_numeric_value(math.inf) == 0.0
    assert clean_numeric_value("abc") == 0.0
    assert clean_numeric_value("12.5") == 12.5
