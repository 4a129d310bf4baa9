"""
Pytest configuration and shared fixtures.

No test reaches a real mail provider, weather provider or database file
outside pytest's tmp_path: outbound HTTP goes through httpx.MockTransport
and subscriptions live in the in-memory store.
"""

import os
from datetime import datetime, timezone

import httpx
import pytest

# Keep the app module from picking up real credentials from a developer's .env
os.environ["OPENWEATHER_API_KEY"] = ""
os.environ["RESEND_API_KEY"] = ""
os.environ["SUBSCRIPTION_STORE"] = "memory"

from app.mailer import Mailer  # noqa: E402
from app.models import EnvironmentalSnapshot  # noqa: E402
from app.notifications import NotificationCoordinator  # noqa: E402
from app.risk import assess  # noqa: E402
from app.storage import InMemorySubscriptionStore, StorageError  # noqa: E402

FIXED_NOW = datetime(2026, 5, 4, 12, 0, tzinfo=timezone.utc)


class RecordingProvider:
    """Stands in for the Resend API and remembers every request."""

    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self.body = body if body is not None else {"id": "msg_123"}
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.body)


class BrokenStore(InMemorySubscriptionStore):
    """Store whose every operation fails like an unreachable database."""

    def get(self, email):
        raise StorageError("connection refused")

    def upsert(self, email, auto_notify):
        raise StorageError("connection refused")

    def mark_notified(self, email, when):
        raise StorageError("connection refused")

    def delete(self, email):
        raise StorageError("connection refused")


@pytest.fixture()
def now():
    return FIXED_NOW


@pytest.fixture()
def broken_store():
    return BrokenStore()


@pytest.fixture()
def make_provider():
    return RecordingProvider


@pytest.fixture()
def make_mailer():
    def _make(handler, api_key="re_test"):
        return Mailer(
            api_key=api_key,
            from_address="Alerts <alerts@example.com>",
            base_url="https://mail.test",
            transport=httpx.MockTransport(handler),
        )
    return _make


@pytest.fixture()
def store():
    return InMemorySubscriptionStore()


@pytest.fixture()
def provider():
    return RecordingProvider()


@pytest.fixture()
def mailer(make_mailer, provider):
    return make_mailer(provider)


@pytest.fixture()
def coordinator(store, mailer):
    return NotificationCoordinator(store=store, mailer=mailer, clock=lambda: FIXED_NOW)


@pytest.fixture()
def high_risk():
    return assess(EnvironmentalSnapshot(
        temperature_c=5, humidity_pct=50, wind_speed_mps=3, air_quality_index=3
    ))


@pytest.fixture()
def low_risk():
    return assess(EnvironmentalSnapshot(
        temperature_c=20, humidity_pct=50, wind_speed_mps=3, air_quality_index=1
    ))
