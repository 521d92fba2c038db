"""Site financial aggregation: costs, cost incidence and contract margin.

All functions are pure and total over loosely typed input: missing or
malformed numbers count as zero, and the only "unavailable" outcome is a
margin without a valid contract value (returned as None, never as a zero
margin).

Economie hours are billable extra work. They are added to revenue at a fixed
hourly rate and never enter the cost side of any computation.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from .constants import (
    ECONOMIA_HOURLY_RATE,
    INCIDENCE_MIN_DENOMINATOR,
    MARGIN_LABEL_FINAL,
    MARGIN_LABEL_PROVISIONAL,
    MARGIN_LOW_THRESHOLD,
    MARGIN_MEDIUM_THRESHOLD,
)
from .models import (
    CompanyFinancials,
    CostBreakdown,
    CostIncidence,
    EconomieSummary,
    MarginLevel,
    MarginResult,
    ReportIncidence,
    ReportMargin,
    SiteFinancials,
    SiteInput,
    SitePerformance,
    SitePerformanceEntry,
    SiteStatus,
)
from .utils import to_amount, to_float


def _read(record: Any, name: str) -> Any:
    """Read a field from a mapping or an object, None when absent."""
    if record is None:
        return None
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def _non_negative(value: Any) -> float:
    return max(to_amount(value), 0.0)


def _as_site_input(site: Any) -> SiteInput:
    if isinstance(site, SiteInput):
        return site
    return SiteInput.model_validate(site or {})


def compute_costs(site_cost: Any) -> CostBreakdown:
    """Labor, material and total cost of a site.

    ``site_cost`` is anything exposing ``labor`` and ``materials`` (a mapping
    or a ``SiteCost``). Economie are deliberately not an input here.
    """
    labor_cost = _non_negative(_read(site_cost, "labor"))
    material_cost = _non_negative(_read(site_cost, "materials"))
    return CostBreakdown(
        labor_cost=labor_cost,
        material_cost=material_cost,
        total_cost=labor_cost + material_cost,
    )


def compute_economie_revenue(
    economie: Iterable[Any] | None,
    hourly_rate: float = ECONOMIA_HOURLY_RATE,
) -> EconomieSummary:
    """Sum economie hours and turn them into billable revenue."""
    economie_hours = 0.0
    for record in economie or ():
        economie_hours += _non_negative(_read(record, "hours"))
    return EconomieSummary(
        economie_hours=economie_hours,
        economie_revenue=economie_hours * hourly_rate,
    )


def compute_incidence(labor_cost: Any, material_cost: Any) -> CostIncidence:
    """Share of total cost attributable to labor and to materials (0-100).

    With no cost at all both shares are 0, not NaN and not 50/50.
    """
    labor = _non_negative(labor_cost)
    material = _non_negative(material_cost)
    total = labor + material
    denominator = total if total > 0 else INCIDENCE_MIN_DENOMINATOR
    return CostIncidence(
        labor_pct=labor / denominator * 100,
        material_pct=material / denominator * 100,
    )


def classify_margin(margin_percent: float | None) -> MarginLevel:
    """Traffic-light level of a margin percentage."""
    if margin_percent is None:
        return MarginLevel.unknown
    if margin_percent < MARGIN_LOW_THRESHOLD:
        return MarginLevel.low
    if margin_percent < MARGIN_MEDIUM_THRESHOLD:
        return MarginLevel.medium
    return MarginLevel.high


def compute_margin(
    contract_value: Any,
    total_cost: Any,
    economie_revenue: Any,
    status: Any = None,
) -> MarginResult | None:
    """Contract margin including economie revenue.

    Returns None when ``contract_value`` is missing, not numeric, zero or
    negative: the caller must show a placeholder, never a made-up margin.

    A ``completed`` site gets a final margin with ``margin_current_percent``;
    any other status gets a provisional margin with
    ``cost_vs_revenue_percent``. Both are computed the same way.
    """
    contract = to_float(contract_value)
    if contract is None or contract <= 0:
        return None

    cost = _non_negative(total_cost)
    extra_revenue = _non_negative(economie_revenue)
    total_revenue = contract + extra_revenue
    margin_value = total_revenue - cost
    margin_percent = margin_value / total_revenue * 100 if total_revenue > 0 else None

    is_final = SiteStatus.parse(status) is SiteStatus.completed
    cost_vs_revenue_percent = None
    margin_current_percent = None
    if is_final:
        margin_current_percent = margin_percent
    elif total_revenue > 0:
        cost_vs_revenue_percent = cost / total_revenue * 100

    return MarginResult(
        margin_value=margin_value,
        total_revenue=total_revenue,
        contract_value=contract,
        economie_revenue=extra_revenue,
        total_cost=cost,
        is_final=is_final,
        label=MARGIN_LABEL_FINAL if is_final else MARGIN_LABEL_PROVISIONAL,
        level=classify_margin(margin_percent),
        cost_vs_revenue_percent=cost_vs_revenue_percent,
        margin_current_percent=margin_current_percent,
    )


def summarize_site(site: Any, hourly_rate: float = ECONOMIA_HOURLY_RATE) -> SiteFinancials:
    """Costs, incidence, economie and margin of a single site."""
    site = _as_site_input(site)
    costs = compute_costs(site.site_cost)
    incidence = compute_incidence(costs.labor_cost, costs.material_cost)
    economie = compute_economie_revenue(site.economie, hourly_rate)
    margin = compute_margin(
        site.contract_value,
        costs.total_cost,
        economie.economie_revenue,
        site.status,
    )
    return SiteFinancials(
        **costs.model_dump(),
        **incidence.model_dump(),
        **economie.model_dump(),
        margin=margin,
    )


def _has_contract_value(site: SiteInput) -> bool:
    return site.contract_value is not None and site.contract_value > 0


def aggregate_company_wide(
    sites: Iterable[Any],
    hourly_rate: float = ECONOMIA_HOURLY_RATE,
) -> CompanyFinancials:
    """Company totals over all sites, with contract-value coverage counts.

    Costs and economie are summed over every site; the contract value only
    over sites that have a valid one. The company margin is final only when
    every contracted site is completed.
    """
    parsed = [_as_site_input(site) for site in sites or ()]

    labor_total = 0.0
    material_total = 0.0
    for site in parsed:
        site_costs = compute_costs(site.site_cost)
        labor_total += site_costs.labor_cost
        material_total += site_costs.material_cost

    costs = compute_costs({"labor": labor_total, "materials": material_total})
    incidence = compute_incidence(costs.labor_cost, costs.material_cost)
    economie = compute_economie_revenue(
        (record for site in parsed for record in site.economie),
        hourly_rate,
    )

    contracted = [site for site in parsed if _has_contract_value(site)]
    total_contract_value = sum((site.contract_value for site in contracted), 0.0)
    all_completed = bool(contracted) and all(
        site.status is SiteStatus.completed for site in contracted
    )
    margin = compute_margin(
        total_contract_value if contracted else None,
        costs.total_cost,
        economie.economie_revenue,
        SiteStatus.completed if all_completed else SiteStatus.active,
    )

    return CompanyFinancials(
        **costs.model_dump(),
        **incidence.model_dump(),
        **economie.model_dump(),
        margin=margin,
        total_contract_value=total_contract_value,
        sites_with_contract_value=len(contracted),
        total_sites=len(parsed),
    )


def rank_site_performance(
    sites: Iterable[Any],
    hourly_rate: float = ECONOMIA_HOURLY_RATE,
) -> SitePerformance:
    """Best and worst active site by margin.

    Only active sites with a contract value take part; ``worst`` is set only
    when at least two sites qualify.
    """
    entries: list[SitePerformanceEntry] = []
    for site in sites or ():
        site = _as_site_input(site)
        if site.status is not SiteStatus.active or not _has_contract_value(site):
            continue
        margin = summarize_site(site, hourly_rate).margin
        if margin is None:
            continue
        entries.append(
            SitePerformanceEntry(
                site_id=site.site_id,
                name=site.name,
                margin_value=margin.margin_value,
                cost_vs_revenue_percent=margin.cost_vs_revenue_percent,
            )
        )

    if not entries:
        return SitePerformance()

    ranked = sorted(entries, key=lambda entry: entry.margin_value, reverse=True)
    return SitePerformance(
        top=ranked[0],
        worst=ranked[-1] if len(ranked) > 1 else None,
    )


def to_report_incidence(incidence: CostIncidence) -> ReportIncidence:
    return ReportIncidence(
        materials_incidence_percent=incidence.material_pct,
        labor_incidence_percent=incidence.labor_pct,
    )


def to_report_margin(margin: MarginResult | None) -> ReportMargin | None:
    if margin is None:
        return None
    return ReportMargin(
        margin_current_value=margin.margin_value,
        margin_current_percent=margin.margin_current_percent,
        cost_vs_revenue_percent=margin.cost_vs_revenue_percent,
        total_revenue=margin.total_revenue,
        is_final=margin.is_final,
        label=margin.label,
        level=margin.level,
    )
