from __future__ import annotations

from collections.abc import Mapping
from datetime import date
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .constants import STATUS_ACTIVE, STATUS_COMPLETED, STATUS_PLANNED, STATUS_SUSPENDED
from .utils import as_date, normalize_string, to_amount, to_float


class CamelModel(BaseModel):
    """Base schema: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SiteStatus(str, Enum):
    planned = STATUS_PLANNED
    active = STATUS_ACTIVE
    completed = STATUS_COMPLETED
    suspended = STATUS_SUSPENDED

    @classmethod
    def parse(cls, value: Any) -> "SiteStatus":
        """Read a lifecycle status; unknown or missing values count as active."""
        if isinstance(value, cls):
            return value
        raw = normalize_string(value).lower()
        try:
            return cls(raw)
        except ValueError:
            return cls.active


class MarginLevel(str, Enum):
    unknown = "unknown"
    low = "low"
    medium = "medium"
    high = "high"


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    return normalize_string(value) or None


# --- Inputs ---------------------------------------------------------------


class SiteCost(CamelModel):
    labor: float = 0.0
    materials: float = 0.0

    @field_validator("labor", "materials", mode="before")
    @classmethod
    def coerce_amount(cls, v: Any) -> float:
        return to_amount(v)


class EconomiaEntry(CamelModel):
    """Extra hours logged by a worker on a site, billed to the client."""

    id: str | None = None
    worker_id: str | None = None
    hours: float = 0.0
    description: str | None = None
    logged_on: date | None = Field(default=None, alias="date")

    @field_validator("hours", mode="before")
    @classmethod
    def coerce_hours(cls, v: Any) -> float:
        return to_amount(v)

    @field_validator("id", "worker_id", "description", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str | None:
        return _optional_text(v)

    @field_validator("logged_on", mode="before")
    @classmethod
    def coerce_logged_on(cls, v: Any) -> Any:
        return as_date(v)


class SiteInput(CamelModel):
    """Per-site snapshot consumed by the aggregator."""

    site_id: str | None = None
    name: str | None = None
    site_cost: SiteCost = Field(default_factory=SiteCost)
    contract_value: float | None = None
    status: SiteStatus = SiteStatus.active
    economie: list[EconomiaEntry] = Field(default_factory=list)

    @field_validator("site_id", "name", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str | None:
        return _optional_text(v)

    @field_validator("site_cost", mode="before")
    @classmethod
    def default_site_cost(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("contract_value", mode="before")
    @classmethod
    def coerce_contract_value(cls, v: Any) -> float | None:
        # Absent stays None: "no contract value" is not the same as zero
        return to_float(v)

    @field_validator("status", mode="before")
    @classmethod
    def coerce_status(cls, v: Any) -> SiteStatus:
        return SiteStatus.parse(v)

    @field_validator("economie", mode="before")
    @classmethod
    def default_economie(cls, v: Any) -> Any:
        if not isinstance(v, (list, tuple)):
            return []
        # Records that are not objects carry no hours
        return [item for item in v if isinstance(item, (Mapping, EconomiaEntry))]


# --- Aggregator results -----------------------------------------------------


class CostBreakdown(CamelModel):
    labor_cost: float
    material_cost: float
    total_cost: float


class CostIncidence(CamelModel):
    labor_pct: float
    material_pct: float


class EconomieSummary(CamelModel):
    economie_hours: float
    economie_revenue: float


class MarginResult(CamelModel):
    margin_value: float
    total_revenue: float
    contract_value: float
    economie_revenue: float
    total_cost: float
    is_final: bool
    label: str
    level: MarginLevel
    cost_vs_revenue_percent: float | None = None
    margin_current_percent: float | None = None


class SiteFinancials(CamelModel):
    labor_cost: float
    material_cost: float
    total_cost: float
    labor_pct: float
    material_pct: float
    economie_hours: float
    economie_revenue: float
    margin: MarginResult | None = None


class CompanyFinancials(SiteFinancials):
    total_contract_value: float
    sites_with_contract_value: int
    total_sites: int


class SitePerformanceEntry(CamelModel):
    site_id: str | None = None
    name: str | None = None
    margin_value: float
    cost_vs_revenue_percent: float | None = None


class SitePerformance(CamelModel):
    top: SitePerformanceEntry | None = None
    worst: SitePerformanceEntry | None = None


# --- Site report --------------------------------------------------------------


class SiteCostTotals(SiteCost):
    total: float = 0.0


class MaterialLine(CamelModel):
    name: str
    total_quantity: float = 0.0
    unit: str
    unit_price: float | None = None
    total_cost: float = 0.0
    count: int = 0
    source: str


class EmployeeHours(CamelModel):
    user_id: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    total_hours: float = 0.0


class ReportIncidence(CamelModel):
    materials_incidence_percent: float
    labor_incidence_percent: float


class ReportMargin(CamelModel):
    margin_current_value: float
    margin_current_percent: float | None = None
    cost_vs_revenue_percent: float | None = None
    total_revenue: float
    is_final: bool
    label: str
    level: MarginLevel


class SiteCostReport(CamelModel):
    site_id: str
    name: str
    address: str | None = None
    status: SiteStatus
    contract_value: float | None = None
    start_date: date | None = None
    end_date: date | None = None
    site_cost: SiteCostTotals
    total_hours: float
    materials: list[MaterialLine]
    employee_hours: list[EmployeeHours]
    economie: list[EconomiaEntry]
    cost_incidence: ReportIncidence
    margin: ReportMargin | None = None
    financials: SiteFinancials

    @field_validator("site_id", mode="before")
    @classmethod
    def coerce_site_id(cls, v: Any) -> str:
        return normalize_string(v)

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def coerce_dates(cls, v: Any) -> Any:
        return as_date(v)


# --- Company dashboard --------------------------------------------------------


class DashboardInsights(CamelModel):
    margin: str
    labor: str
    sites: str


class CompanyDashboard(CamelModel):
    company_id: str
    active_sites: int
    total_sites: int
    total_workers: int
    monthly_hours: float
    company_costs: SiteCostTotals
    company_margin: CompanyFinancials
    performance: SitePerformance
    insights: DashboardInsights
