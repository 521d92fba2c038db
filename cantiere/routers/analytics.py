from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Body, HTTPException, Path, Query, status

from ..aggregator import aggregate_company_wide, summarize_site
from ..config import get_settings
from ..models import CompanyDashboard, CompanyFinancials, SiteCostReport, SiteFinancials, SiteInput
from ..queries import fetch_company_dashboard, fetch_site_report

router = APIRouter(prefix="/analytics")

SiteIdPath = Annotated[str, Path(..., description="Identificativo del cantiere")]
CompanyIdQuery = Annotated[str, Query(..., description="Identificativo dell'azienda")]


@router.get("/site-report/{site_id}", response_model=SiteCostReport)
def get_site_report(site_id: SiteIdPath) -> SiteCostReport:
    """Cost, incidence and margin report of a site, rebuilt on every call."""

    report = fetch_site_report(site_id)
    if report is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Cantiere non trovato")
    return report


@router.get("/dashboard", response_model=CompanyDashboard)
def get_company_dashboard(company_id: CompanyIdQuery) -> CompanyDashboard:
    """Company-wide costs and margin for the owner dashboard."""

    return fetch_company_dashboard(company_id)


@router.post("/site-financials", response_model=SiteFinancials)
def compute_site_financials(site: SiteInput) -> SiteFinancials:
    """Run the aggregator on a site snapshot sent by the client.

    Numeric fields are coerced (invalid values count as zero), so only a
    structurally wrong body is rejected.
    """

    return summarize_site(site, get_settings().economia_hourly_rate)


@router.post("/company-financials", response_model=CompanyFinancials)
def compute_company_financials(sites: Annotated[list[SiteInput], Body(...)]) -> CompanyFinancials:
    """Company aggregate over a list of site snapshots."""

    return aggregate_company_wide(sites, get_settings().economia_hourly_rate)
