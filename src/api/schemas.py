from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from src.components.journey_query import (
    EventRow,
    FilterFacets,
    Pagination,
    QueryStats,
    SessionRow,
    VisitorRow,
)
from src.core.entities import DeviceInfo, Journey, LocationInfo


class CamelModel(BaseModel):
    """JSON bodies use camelCase; Python code uses snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Journey ---
class DeviceModel(CamelModel):
    type: str | None = None
    os: str | None = None
    browser: str | None = None
    device_name: str | None = None

    @classmethod
    def from_entity(cls, device: DeviceInfo | None) -> "DeviceModel":
        if device is None:
            return cls()
        return cls(
            type=device.type, os=device.os, browser=device.browser, device_name=device.device_name
        )


class LocationModel(CamelModel):
    country: str | None = None
    region: str | None = None
    city: str | None = None
    ip: str | None = None

    @classmethod
    def from_entity(cls, location: LocationInfo | None) -> "LocationModel":
        if location is None:
            return cls()
        return cls(
            country=location.country, region=location.region, city=location.city, ip=location.ip
        )


class ImpressionModel(CamelModel):
    interaction_id: str
    section_id: str
    viewed_at: datetime
    duration: int = 0
    scroll_depth: int = 0
    interactions: int = 0


class ActionModel(CamelModel):
    type: str
    target: str
    timestamp: datetime
    metadata: dict[str, Any] | None = None


class JourneyModel(CamelModel):
    session_id: str
    visitor_id: str
    landing_page: str
    referrer: str | None = None
    user_agent: str
    device: DeviceModel
    location: LocationModel
    start_time: datetime
    end_time: datetime | None = None
    total_duration: int | None = None
    events: list[ImpressionModel] = []
    actions: list[ActionModel] = []
    created_at: datetime | None = None
    updated_at: datetime

    @classmethod
    def from_entity(cls, journey: Journey) -> "JourneyModel":
        return cls(
            session_id=journey.session_id,
            visitor_id=journey.visitor_id,
            landing_page=journey.landing_page,
            referrer=journey.referrer,
            user_agent=journey.user_agent,
            device=DeviceModel.from_entity(journey.device),
            location=LocationModel.from_entity(journey.location),
            start_time=journey.start_time,
            end_time=journey.end_time,
            total_duration=journey.total_duration,
            events=[
                ImpressionModel(
                    interaction_id=e.interaction_id,
                    section_id=e.section_id,
                    viewed_at=e.viewed_at,
                    duration=e.duration,
                    scroll_depth=e.scroll_depth,
                    interactions=e.interactions,
                )
                for e in journey.events
            ],
            actions=[
                ActionModel(type=a.type, target=a.target, timestamp=a.timestamp, metadata=a.metadata)
                for a in journey.actions
            ],
            created_at=journey.created_at,
            updated_at=journey.updated_at,
        )


# --- Public ingestion ---
class CreateSessionRequest(CamelModel):
    visitor_id: str | None = None
    landing_page: str | None = None
    referrer: str | None = None
    user_agent: str | None = None


class CreateSessionResponse(CamelModel):
    success: bool = True
    session_id: str
    visitor_id: str


class TrackRequest(CamelModel):
    session_id: str | None = None
    interaction_id: str | None = None
    section_id: str | None = None
    duration: int | None = None
    scroll_depth: int | None = None
    interactions: int | None = None


class ActionRequest(CamelModel):
    session_id: str | None = None
    type: str | None = None
    target: str | None = None
    metadata: dict[str, Any] | None = None


class AckResponse(CamelModel):
    success: bool = True


class SessionResponse(CamelModel):
    journey: JourneyModel


class TotalResponse(CamelModel):
    total_visits: int
    unique_visitors: int


# --- Operator queries ---
class VisitorRowModel(CamelModel):
    visitor_id: str
    session_id: str
    start_time: datetime
    updated_at: datetime
    end_time: datetime | None = None
    first_seen: datetime
    total_sessions: int
    landing_page: str
    referrer: str | None = None
    device: DeviceModel
    location: LocationModel
    total_duration: int
    total_events: int

    @classmethod
    def from_row(cls, row: VisitorRow) -> "VisitorRowModel":
        return cls(
            visitor_id=row.visitor_id,
            session_id=row.session_id,
            start_time=row.start_time,
            updated_at=row.updated_at,
            end_time=row.end_time,
            first_seen=row.first_seen,
            total_sessions=row.total_sessions,
            landing_page=row.landing_page,
            referrer=row.referrer,
            device=DeviceModel.from_entity(row.device),
            location=LocationModel.from_entity(row.location),
            total_duration=row.total_duration,
            total_events=row.total_events,
        )


class SessionRowModel(JourneyModel):
    interactions: int

    @classmethod
    def from_row(cls, row: SessionRow) -> "SessionRowModel":
        base = JourneyModel.from_entity(row.journey)
        return cls(**base.model_dump(), interactions=row.total_events)


class EventRowModel(CamelModel):
    visitor_id: str
    session_id: str
    type: Literal["View", "Action"]
    timestamp: datetime
    detail: str
    duration: int
    metadata: dict[str, Any]

    @classmethod
    def from_row(cls, row: EventRow) -> "EventRowModel":
        return cls(
            visitor_id=row.visitor_id,
            session_id=row.session_id,
            type=row.type,
            timestamp=row.timestamp,
            detail=row.detail,
            duration=row.duration,
            metadata=row.metadata,
        )


class PaginationModel(CamelModel):
    total: int
    page: int
    limit: int
    pages: int

    @classmethod
    def from_pagination(cls, pagination: Pagination) -> "PaginationModel":
        return cls(
            total=pagination.total,
            page=pagination.page,
            limit=pagination.page_size,
            pages=pagination.pages,
        )


class StatsModel(CamelModel):
    total_sessions: int
    total_duration: int
    total_events: int

    @classmethod
    def from_stats(cls, stats: QueryStats) -> "StatsModel":
        return cls(
            total_sessions=stats.total_sessions,
            total_duration=stats.total_duration,
            total_events=stats.total_events,
        )


class JourneysResponse(CamelModel):
    mode: Literal["visitors", "sessions", "events"]
    journeys: list[VisitorRowModel] | list[SessionRowModel] | list[EventRowModel]
    pagination: PaginationModel
    stats: StatsModel
    page_stats: StatsModel


class FiltersResponse(CamelModel):
    locations: dict[str, list[str]]
    devices: list[str]
    os: list[str]
    browsers: list[str]

    @classmethod
    def from_facets(cls, facets: FilterFacets) -> "FiltersResponse":
        return cls(
            locations=facets.locations,
            devices=facets.devices,
            os=facets.os,
            browsers=facets.browsers,
        )


class VisitorJourneysResponse(CamelModel):
    visitor_id: str
    journeys: list[JourneyModel]
