"""Rule-based texts for the owner dashboard.

Each helper turns a few aggregate figures into a short Italian sentence.
"""

from __future__ import annotations

from .models import CompanyFinancials, DashboardInsights

MARGIN_GOOD_PERCENT = 20.0
MARGIN_FAIR_PERCENT = 10.0

LABOR_HIGH_PERCENT = 70.0
LABOR_NORMAL_PERCENT = 50.0


def margin_insight(margin_percent: float, labor_percent: float, materials_percent: float) -> str:
    margin_pct = f"{margin_percent:.1f}"
    labor_pct = f"{labor_percent:.0f}"
    materials_pct = f"{materials_percent:.0f}"

    if margin_percent >= MARGIN_GOOD_PERCENT:
        return (
            f"Margine attuale al {margin_pct}%. Manodopera incide per il {labor_pct}%, "
            f"materiali per il {materials_pct}%. Ottimo equilibrio."
        )
    if margin_percent >= MARGIN_FAIR_PERCENT:
        return (
            f"Margine al {margin_pct}%. Manodopera al {labor_pct}% e materiali al {materials_pct}%. "
            "Buona gestione, monitorare le ore extra."
        )
    if margin_percent >= 0:
        return (
            f"Margine ridotto al {margin_pct}%. Manodopera incide per il {labor_pct}%. "
            "Valutare ottimizzazione turni e acquisti materiali."
        )
    return (
        f"Margine negativo ({margin_pct}%). I costi superano i ricavi. "
        f"Urgente: rivedere preventivi e costi di manodopera ({labor_pct}%)."
    )


def missing_margin_insight() -> str:
    return "Nessun cantiere ha un prezzo pattuito. Inseriscilo per vedere i margini."


def labor_insight(labor_percent: float, monthly_hours: float, total_workers: int) -> str:
    avg_hours = monthly_hours / total_workers if total_workers > 0 else 0.0
    labor_pct = f"{labor_percent:.0f}"
    avg = f"{avg_hours:.0f}"

    if labor_percent > LABOR_HIGH_PERCENT:
        return (
            f"Manodopera al {labor_pct}% dei costi totali, sopra la media. "
            f"Media {avg}h/operaio questo mese. Valutare efficienza cantieri."
        )
    if labor_percent > LABOR_NORMAL_PERCENT:
        return (
            f"Manodopera al {labor_pct}% dei costi. Media di {avg}h per operaio. "
            "Incidenza nella norma per il settore."
        )
    return (
        f"Manodopera al {labor_pct}% dei costi, ben contenuta. Media {avg}h/operaio. "
        "Buona ottimizzazione del personale."
    )


def site_insight(active_sites: int, total_sites: int, sites_with_margin: int) -> str:
    if active_sites == 0:
        return "Nessun cantiere attivo al momento. I dati si aggiorneranno all'avvio dei lavori."
    if sites_with_margin > 0:
        coverage = f" {sites_with_margin} su {total_sites} hanno un prezzo pattuito."
    else:
        coverage = " " + missing_margin_insight()
    return f"{active_sites} cantieri attivi su {total_sites} totali.{coverage}"


def generate_dashboard_insights(
    financials: CompanyFinancials,
    *,
    active_sites: int,
    monthly_hours: float,
    total_workers: int,
) -> DashboardInsights:
    """Build all dashboard texts from the company aggregate."""
    margin = financials.margin
    if margin is None:
        margin_text = missing_margin_insight()
    else:
        margin_percent = margin.margin_value / margin.total_revenue * 100
        margin_text = margin_insight(margin_percent, financials.labor_pct, financials.material_pct)

    return DashboardInsights(
        margin=margin_text,
        labor=labor_insight(financials.labor_pct, monthly_hours, total_workers),
        sites=site_insight(
            active_sites,
            financials.total_sites,
            financials.sites_with_contract_value,
        ),
    )
