import os
from functools import lru_cache
from pathlib import Path

from fastapi import Depends

from src.adapters.clock import SystemClock
from src.adapters.geo_ipapi import IpApiGeoLookup
from src.adapters.sqlite_db import SQLiteJourneyRepo
from src.rules.loader import load_rules
from src.rules.models import Rules

PROJECT_ROOT = Path(__file__).resolve().parents[2]


# --- Settings ---
class Settings:
    def __init__(self) -> None:
        self.base_dir = Path(os.getcwd())
        self.data_dir = Path(os.environ.get("TELEMETRY_DATA_DIR", "./data"))
        self.db_path = str(self.data_dir / "telemetry.db")
        self.rules_path = Path(
            os.environ.get("TELEMETRY_RULES_PATH", str(self.base_dir / "rules.yaml"))
        )
        self.migrations_dir = Path(
            os.environ.get("TELEMETRY_MIGRATIONS_DIR", str(PROJECT_ROOT / "migrations"))
        )
        self.log_level = os.environ.get("TELEMETRY_LOG_LEVEL", "INFO").upper()


@lru_cache
def get_settings() -> Settings:
    return Settings()


# --- Rules ---
@lru_cache
def get_rules(settings: Settings = Depends(get_settings)) -> Rules:
    return load_rules(settings.rules_path)


# --- Repos ---
def get_journey_repo(settings: Settings = Depends(get_settings)) -> SQLiteJourneyRepo:
    return SQLiteJourneyRepo(settings.db_path)


# --- Adapters ---
def get_time_port() -> SystemClock:
    return SystemClock()


def get_geo_lookup(rules: Rules = Depends(get_rules)) -> IpApiGeoLookup:
    return IpApiGeoLookup(rules.geo)
