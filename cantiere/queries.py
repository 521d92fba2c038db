"""Read-only queries behind the analytics endpoints.

Reports are rebuilt from the live tables on every call; nothing derived is
cached or written back. Public functions are wrapped in `@db_retry` so a
transient OperationalError / InterfaceError is retried once.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

from psycopg2.extras import RealDictCursor

from .aggregator import (
    aggregate_company_wide,
    compute_incidence,
    rank_site_performance,
    summarize_site,
    to_report_incidence,
    to_report_margin,
)
from .config import get_settings
from .constants import MATERIAL_SOURCE_CATALOG, MATERIAL_SOURCE_MANUAL, OPEN_SITE_STATUSES
from .db import get_connection
from .insights import generate_dashboard_insights
from .materials import merge_material_lines, normalize_material_row, total_material_cost
from .models import (
    CompanyDashboard,
    EconomiaEntry,
    EmployeeHours,
    SiteCost,
    SiteCostReport,
    SiteCostTotals,
    SiteInput,
    SiteStatus,
)
from .retry import db_retry
from .utils import get_month_start, get_next_month_start, normalize_string, to_amount, to_float

logger = logging.getLogger(__name__)


SITE_SQL = """
    SELECT id, name, address, status, contract_value, start_date, end_date
    FROM construction_sites
    WHERE id = %s;
"""

SITE_LABOR_SQL = """
    SELECT
        COALESCE(SUM(a.total_hours), 0) AS total_hours,
        COALESCE(SUM(a.total_hours * COALESCE(u.hourly_cost, 0)), 0) AS labor_cost
    FROM attendances AS a
    LEFT JOIN users AS u ON u.id = a.user_id
    WHERE a.site_id = %s
      AND a.clock_out IS NOT NULL;
"""

EMPLOYEE_HOURS_SQL = """
    SELECT
        a.user_id,
        u.first_name,
        u.last_name,
        SUM(a.total_hours) AS total_hours
    FROM attendances AS a
    JOIN users AS u ON u.id = a.user_id
    WHERE a.site_id = %s
      AND a.clock_out IS NOT NULL
    GROUP BY a.user_id, u.first_name, u.last_name
    ORDER BY total_hours DESC;
"""

MANUAL_MATERIALS_SQL = """
    SELECT
        name,
        SUM(quantity) AS total_quantity,
        MAX(unit) AS unit,
        COUNT(*) AS usage_count
    FROM materials
    WHERE site_id = %s
    GROUP BY name
    ORDER BY MIN(created_at);
"""

CATALOG_MATERIALS_SQL = """
    SELECT
        cm.nome_prodotto,
        mm.display_name,
        COALESCE(cm.unit, mm.unit) AS unit,
        cm.prezzo,
        mm.price,
        SUM(mu.numero_confezioni) AS total_quantity,
        COUNT(*) AS usage_count
    FROM material_usages AS mu
    LEFT JOIN coloura_materials AS cm ON cm.id = mu.material_id
    LEFT JOIN material_masters AS mm ON mm.id = mu.material_master_id
    WHERE mu.site_id = %s
      AND (cm.id IS NOT NULL OR mm.id IS NOT NULL)
    GROUP BY cm.id, mm.id, cm.nome_prodotto, mm.display_name, cm.unit, mm.unit, cm.prezzo, mm.price
    ORDER BY MIN(mu.data_ora);
"""

SITE_ECONOMIE_SQL = """
    SELECT id, worker_id, hours, description, date
    FROM economias
    WHERE site_id = %s
    ORDER BY date DESC;
"""

COMPANY_SITES_SQL = """
    SELECT id, name, status, contract_value
    FROM construction_sites
    WHERE company_id = %s
    ORDER BY name;
"""

COMPANY_LABOR_SQL = """
    SELECT
        a.site_id,
        COALESCE(SUM(a.total_hours * COALESCE(u.hourly_cost, 0)), 0) AS labor_cost
    FROM attendances AS a
    JOIN construction_sites AS s ON s.id = a.site_id
    LEFT JOIN users AS u ON u.id = a.user_id
    WHERE s.company_id = %s
      AND a.clock_out IS NOT NULL
    GROUP BY a.site_id;
"""

COMPANY_MATERIALS_SQL = """
    SELECT
        mu.site_id,
        COALESCE(SUM(mu.numero_confezioni * COALESCE(cm.prezzo, mm.price, 0)), 0) AS material_cost
    FROM material_usages AS mu
    JOIN construction_sites AS s ON s.id = mu.site_id
    LEFT JOIN coloura_materials AS cm ON cm.id = mu.material_id
    LEFT JOIN material_masters AS mm ON mm.id = mu.material_master_id
    WHERE s.company_id = %s
    GROUP BY mu.site_id;
"""

COMPANY_ECONOMIE_SQL = """
    SELECT e.site_id, COALESCE(SUM(e.hours), 0) AS hours
    FROM economias AS e
    JOIN construction_sites AS s ON s.id = e.site_id
    WHERE s.company_id = %s
    GROUP BY e.site_id;
"""

COMPANY_WORKERS_SQL = """
    SELECT COUNT(*) AS total_workers
    FROM users
    WHERE company_id = %s
      AND active IS NOT FALSE;
"""

MONTHLY_HOURS_SQL = """
    SELECT COALESCE(SUM(a.total_hours), 0) AS monthly_hours
    FROM attendances AS a
    JOIN users AS u ON u.id = a.user_id
    WHERE u.company_id = %s
      AND a.clock_out IS NOT NULL
      AND a.clock_in >= %s
      AND a.clock_in < %s;
"""


def _fetch_optional_rows(conn, sql: str, params: tuple[Any, ...], label: str) -> list[dict[str, Any]]:
    """Run a query whose failure must not break the whole report.

    On error the transaction is rolled back and an empty list is returned.
    """
    try:
        with conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(sql, params)
            return list(cur.fetchall() or [])
    except Exception as exc:  # noqa: BLE001
        logger.warning(
            "Impossibile caricare %s (%s): %s. Uso una lista vuota.",
            label,
            params,
            exc,
            exc_info=True,
        )
        conn.rollback()
        return []


def _fetch_one(conn, sql: str, params: tuple[Any, ...]) -> dict[str, Any]:
    with conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(sql, params)
        return cur.fetchone() or {}


def _fetch_all(conn, sql: str, params: tuple[Any, ...]) -> list[dict[str, Any]]:
    with conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(sql, params)
        return list(cur.fetchall() or [])


def _display_totals(labor_cost: float, material_cost: float) -> SiteCostTotals:
    """Cost totals rounded to cents. Margins are always computed on unrounded sums."""
    return SiteCostTotals(
        labor=round(labor_cost, 2),
        materials=round(material_cost, 2),
        total=round(labor_cost + material_cost, 2),
    )


def _build_employee_hours(rows: list[dict[str, Any]]) -> list[EmployeeHours]:
    return [
        EmployeeHours(
            user_id=normalize_string(row.get("user_id")) or None,
            first_name=normalize_string(row.get("first_name")) or None,
            last_name=normalize_string(row.get("last_name")) or None,
            total_hours=to_amount(row.get("total_hours")),
        )
        for row in rows
    ]


def _build_economie(rows: list[dict[str, Any]]) -> list[EconomiaEntry]:
    return [
        EconomiaEntry(
            id=row.get("id"),
            worker_id=row.get("worker_id"),
            hours=row.get("hours"),
            description=normalize_string(row.get("description")) or None,
            date=row.get("date"),
        )
        for row in rows
    ]


@db_retry(label="fetch_site_report")
def fetch_site_report(site_id: str, *, hourly_rate: float | None = None) -> SiteCostReport | None:
    """Build the cost report of one site from the live records.

    Returns None when the site does not exist. Labor and catalog material
    costs are required; manual materials, per-employee hours and economie
    fall back to empty lists if their query fails.
    """
    rate = hourly_rate if hourly_rate is not None else get_settings().economia_hourly_rate

    with get_connection() as conn:
        site_row = _fetch_one(conn, SITE_SQL, (site_id,))
        if not site_row:
            return None

        labor_row = _fetch_one(conn, SITE_LABOR_SQL, (site_id,))
        catalog_rows = _fetch_all(conn, CATALOG_MATERIALS_SQL, (site_id,))

        manual_rows = _fetch_optional_rows(conn, MANUAL_MATERIALS_SQL, (site_id,), "materiali manuali")
        employee_rows = _fetch_optional_rows(conn, EMPLOYEE_HOURS_SQL, (site_id,), "ore per dipendente")
        economie_rows = _fetch_optional_rows(conn, SITE_ECONOMIE_SQL, (site_id,), "economie")

    catalog_lines = [normalize_material_row(row, MATERIAL_SOURCE_CATALOG) for row in catalog_rows]
    manual_lines = [normalize_material_row(row, MATERIAL_SOURCE_MANUAL) for row in manual_rows]
    materials = merge_material_lines(manual_lines, catalog_lines)

    labor_cost = to_amount(labor_row.get("labor_cost"))
    material_cost = total_material_cost(catalog_lines)

    economie = _build_economie(economie_rows)
    status = SiteStatus.parse(site_row.get("status"))
    contract_value = to_float(site_row.get("contract_value"))

    financials = summarize_site(
        SiteInput(
            site_id=site_row.get("id"),
            name=site_row.get("name"),
            site_cost=SiteCost(labor=labor_cost, materials=material_cost),
            contract_value=contract_value,
            status=status,
            economie=economie,
        ),
        rate,
    )
    incidence = compute_incidence(financials.labor_cost, financials.material_cost)

    return SiteCostReport(
        site_id=site_row.get("id"),
        name=normalize_string(site_row.get("name")),
        address=normalize_string(site_row.get("address")) or None,
        status=status,
        contract_value=contract_value,
        start_date=site_row.get("start_date"),
        end_date=site_row.get("end_date"),
        site_cost=_display_totals(financials.labor_cost, financials.material_cost),
        total_hours=to_amount(labor_row.get("total_hours")),
        materials=materials,
        employee_hours=_build_employee_hours(employee_rows),
        economie=economie,
        cost_incidence=to_report_incidence(incidence),
        margin=to_report_margin(financials.margin),
        financials=financials,
    )


def _amounts_by_site(rows: list[dict[str, Any]], column: str) -> dict[str, float]:
    amounts: dict[str, float] = {}
    for row in rows:
        site_key = normalize_string(row.get("site_id"))
        if not site_key:
            continue
        amounts[site_key] = amounts.get(site_key, 0.0) + to_amount(row.get(column))
    return amounts


@db_retry(label="fetch_company_dashboard")
def fetch_company_dashboard(
    company_id: str,
    *,
    hourly_rate: float | None = None,
    today: date | None = None,
) -> CompanyDashboard:
    """Company-wide costs, margin, best/worst site and dashboard texts."""
    rate = hourly_rate if hourly_rate is not None else get_settings().economia_hourly_rate
    month_start = get_month_start(today or date.today())
    next_month_start = get_next_month_start(month_start)

    with get_connection() as conn:
        site_rows = _fetch_all(conn, COMPANY_SITES_SQL, (company_id,))
        labor_rows = _fetch_all(conn, COMPANY_LABOR_SQL, (company_id,))
        material_rows = _fetch_all(conn, COMPANY_MATERIALS_SQL, (company_id,))
        economie_rows = _fetch_optional_rows(conn, COMPANY_ECONOMIE_SQL, (company_id,), "economie aziendali")
        workers_row = _fetch_one(conn, COMPANY_WORKERS_SQL, (company_id,))
        hours_row = _fetch_one(conn, MONTHLY_HOURS_SQL, (company_id, month_start, next_month_start))

    labor_by_site = _amounts_by_site(labor_rows, "labor_cost")
    materials_by_site = _amounts_by_site(material_rows, "material_cost")
    economie_by_site = _amounts_by_site(economie_rows, "hours")

    sites: list[SiteInput] = []
    for row in site_rows:
        site_key = normalize_string(row.get("id"))
        economie_hours = economie_by_site.get(site_key)
        sites.append(
            SiteInput(
                site_id=site_key,
                name=row.get("name"),
                site_cost=SiteCost(
                    labor=labor_by_site.get(site_key, 0.0),
                    materials=materials_by_site.get(site_key, 0.0),
                ),
                contract_value=row.get("contract_value"),
                status=row.get("status"),
                economie=[EconomiaEntry(hours=economie_hours)] if economie_hours else [],
            )
        )

    company_margin = aggregate_company_wide(sites, rate)
    active_sites = sum(1 for site in sites if site.status.value in OPEN_SITE_STATUSES)
    total_workers = int(to_amount(workers_row.get("total_workers")))
    monthly_hours = to_amount(hours_row.get("monthly_hours"))

    return CompanyDashboard(
        company_id=normalize_string(company_id),
        active_sites=active_sites,
        total_sites=len(sites),
        total_workers=total_workers,
        monthly_hours=monthly_hours,
        company_costs=_display_totals(company_margin.labor_cost, company_margin.material_cost),
        company_margin=company_margin,
        performance=rank_site_performance(sites, rate),
        insights=generate_dashboard_insights(
            company_margin,
            active_sites=active_sites,
            monthly_hours=monthly_hours,
            total_workers=total_workers,
        ),
    )
