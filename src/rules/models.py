from pydantic import BaseModel, Field


class ProjectRules(BaseModel):
    slug: str
    rules_version: str

class TrackingRules(BaseModel):
    excluded_path_prefixes: list[str] = Field(default_factory=lambda: ["/admin"])
    session_inactivity_minutes: int = Field(30, ge=1)
    visitor_storage_key: str = "portfolio_visitor_id"
    session_storage_key: str = "portfolio_session_id"

class DwellRules(BaseModel):
    high_visibility_threshold: float = Field(0.7, gt=0, le=1)
    confirm_delay_ms: int = Field(1000, ge=0)

class IngestionRules(BaseModel):
    allowed_section_ids: list[str] = Field(default_factory=list) # empty = any
    default_referrer: str = "direct"
    max_duration_ms: int = Field(86_400_000, gt=0)

class QueryRules(BaseModel):
    default_page_size: int = Field(20, ge=1)
    max_page_size: int = Field(100, ge=1)
    default_sort_field: str = "updatedAt"
    default_sort_order: str = "desc"

class ExportRules(BaseModel):
    filename_prefix: str = "analytics-export"

class GeoRules(BaseModel):
    enabled: bool = True
    provider_url: str = "http://ip-api.com/json/{ip}"
    timeout_seconds: float = Field(3.0, gt=0)
    skip_ips: list[str] = Field(default_factory=lambda: ["127.0.0.1", "::1"])

class Rules(BaseModel):
    project: ProjectRules
    tracking: TrackingRules = Field(default_factory=TrackingRules)
    dwell: DwellRules = Field(default_factory=DwellRules)
    ingestion: IngestionRules = Field(default_factory=IngestionRules)
    query: QueryRules = Field(default_factory=QueryRules)
    export: ExportRules = Field(default_factory=ExportRules)
    geo: GeoRules = Field(default_factory=GeoRules)
