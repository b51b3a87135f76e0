"""
Fixtures for the HTTP API tests.

Routers are mounted on a bare FastAPI app (no lifespan) with storage, clock,
geolocation and rules swapped through dependency overrides.
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.adapters.sqlite_db import SQLiteJourneyRepo
from src.api import deps
from src.api.routes import admin_analytics, analytics_ingest
from src.core.entities import LocationInfo
from src.rules.models import Rules

from tests.conftest import FakeClock


class StubGeo:
    def __init__(self) -> None:
        self.calls: list[str] = []

    def lookup(self, ip: str) -> LocationInfo:
        self.calls.append(ip)
        return LocationInfo(country="Netherlands", region="North Holland", city="Amsterdam", ip=ip)


@pytest.fixture
def geo() -> StubGeo:
    return StubGeo()


@pytest.fixture
def app(sqlite_repo: SQLiteJourneyRepo, clock: FakeClock, geo: StubGeo, rules: Rules) -> FastAPI:
    app = FastAPI()
    app.include_router(analytics_ingest.router, prefix="/api/analytics")
    app.include_router(admin_analytics.router, prefix="/api/admin/analytics")

    app.dependency_overrides[deps.get_journey_repo] = lambda: sqlite_repo
    app.dependency_overrides[deps.get_time_port] = lambda: clock
    app.dependency_overrides[deps.get_geo_lookup] = lambda: geo
    app.dependency_overrides[deps.get_rules] = lambda: rules
    return app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)
