import math

import pytest

from cantiere.aggregator import (
    aggregate_company_wide,
    classify_margin,
    compute_costs,
    compute_economie_revenue,
    compute_incidence,
    compute_margin,
    rank_site_performance,
    summarize_site,
)
from cantiere.models import MarginLevel, SiteCost, SiteInput


def _site(**overrides):
    data = {
        "siteCost": {"labor": 1000, "materials": 500},
        "contractValue": 3000,
        "status": "active",
        "economie": [{"hours": 10}, {"hours": 5}],
    }
    data.update(overrides)
    return data


def test_compute_costs_sums_labor_and_materials():
    costs = compute_costs({"labor": 1234.56, "materials": 65.44})

    assert costs.labor_cost == 1234.56
    assert costs.material_cost == 65.44
    assert costs.total_cost == 1234.56 + 65.44


def test_compute_costs_treats_missing_and_malformed_values_as_zero():
    assert compute_costs(None).total_cost == 0.0
    assert compute_costs({}).total_cost == 0.0

    costs = compute_costs({"labor": "abc", "materials": "250,50"})
    assert costs.labor_cost == 0.0
    assert costs.material_cost == 250.5
    assert costs.total_cost == 250.5


def test_compute_costs_accepts_site_cost_model():
    costs = compute_costs(SiteCost(labor="100", materials=None))

    assert costs.labor_cost == 100.0
    assert costs.material_cost == 0.0


def test_compute_economie_revenue_uses_fixed_hourly_rate():
    summary = compute_economie_revenue([{"hours": 10}, {"hours": "5"}])

    assert summary.economie_hours == 15.0
    assert summary.economie_revenue == 450.0


def test_compute_economie_revenue_empty_list():
    summary = compute_economie_revenue([])

    assert summary.economie_hours == 0.0
    assert summary.economie_revenue == 0.0
    assert compute_economie_revenue(None).economie_revenue == 0.0


def test_compute_economie_revenue_ignores_bad_records():
    summary = compute_economie_revenue([{"hours": "n/d"}, {}, None, {"hours": 2.5}])

    assert summary.economie_hours == 2.5
    assert summary.economie_revenue == 75.0


def test_compute_economie_revenue_is_linear():
    hours = [1.5, 2.25, 7, 0.5]
    single = compute_economie_revenue([{"hours": h} for h in hours])
    doubled = compute_economie_revenue([{"hours": h * 2} for h in hours])

    assert doubled.economie_revenue == single.economie_revenue * 2


def test_compute_economie_revenue_custom_rate():
    summary = compute_economie_revenue([{"hours": 4}], hourly_rate=42.5)

    assert summary.economie_revenue == 170.0


@pytest.mark.parametrize(
    ("labor", "materials"),
    [(1000, 500), (0.4, 0.1), (1, 0), (0, 3), (123.45, 678.9)],
)
def test_compute_incidence_sums_to_hundred_when_there_is_cost(labor, materials):
    incidence = compute_incidence(labor, materials)

    assert incidence.labor_pct + incidence.material_pct == pytest.approx(100.0)


def test_compute_incidence_zero_cost_gives_zero_shares():
    incidence = compute_incidence(0, 0)

    assert incidence.labor_pct == 0.0
    assert incidence.material_pct == 0.0
    assert not math.isnan(incidence.labor_pct)


def test_compute_incidence_example_values():
    incidence = compute_incidence(1000, 500)

    assert incidence.labor_pct == pytest.approx(66.7, abs=0.05)
    assert incidence.material_pct == pytest.approx(33.3, abs=0.05)


@pytest.mark.parametrize("contract_value", [None, 0, -100, "abc", "", float("nan")])
def test_compute_margin_unavailable_without_valid_contract_value(contract_value):
    assert compute_margin(contract_value, 1500, 450) is None


def test_compute_margin_provisional():
    margin = compute_margin(3000, 1500, 450, "active")

    assert margin is not None
    assert margin.total_revenue == 3450.0
    assert margin.margin_value == 1950.0
    assert margin.cost_vs_revenue_percent == pytest.approx(43.48, abs=0.01)
    assert margin.margin_current_percent is None
    assert margin.is_final is False
    assert margin.label == "PROVVISORIO"


def test_compute_margin_final_for_completed_site():
    margin = compute_margin("3000", 1500, 450, "completed")

    assert margin.is_final is True
    assert margin.label == "A CONSUNTIVO"
    assert margin.margin_current_percent == pytest.approx(1950 / 3450 * 100)
    assert margin.cost_vs_revenue_percent is None
    assert margin.level is MarginLevel.high


def test_compute_margin_can_be_negative():
    margin = compute_margin(1000, 1800, 0)

    assert margin.margin_value == -800.0
    assert margin.level is MarginLevel.low


def test_compute_margin_without_status_is_provisional():
    margin = compute_margin(1000, 100, 0)

    assert margin.is_final is False
    assert margin.cost_vs_revenue_percent == pytest.approx(10.0)


@pytest.mark.parametrize(
    ("percent", "level"),
    [
        (None, MarginLevel.unknown),
        (-5.0, MarginLevel.low),
        (9.99, MarginLevel.low),
        (10.0, MarginLevel.medium),
        (19.9, MarginLevel.medium),
        (20.0, MarginLevel.high),
    ],
)
def test_classify_margin(percent, level):
    assert classify_margin(percent) is level


def test_summarize_site_example_scenario():
    result = summarize_site(_site())

    assert result.total_cost == 1500.0
    assert result.labor_pct == pytest.approx(66.7, abs=0.05)
    assert result.material_pct == pytest.approx(33.3, abs=0.05)
    assert result.economie_hours == 15.0
    assert result.economie_revenue == 450.0
    assert result.margin.total_revenue == 3450.0
    assert result.margin.margin_value == 1950.0
    assert result.margin.cost_vs_revenue_percent == pytest.approx(43.5, abs=0.05)


def test_summarize_site_economie_never_added_to_cost():
    with_economie = summarize_site(_site())
    without_economie = summarize_site(_site(economie=[]))

    assert with_economie.total_cost == without_economie.total_cost
    assert with_economie.margin.margin_value - without_economie.margin.margin_value == 450.0


def test_summarize_site_without_contract_value_has_no_margin():
    result = summarize_site(_site(contractValue=None))

    assert result.margin is None
    assert result.total_cost == 1500.0


def test_summarize_site_is_idempotent():
    site = SiteInput.model_validate(_site())

    assert summarize_site(site) == summarize_site(site)
    assert summarize_site(site).model_dump() == summarize_site(_site()).model_dump()


def test_aggregate_company_wide_counts_contract_coverage():
    sites = [
        {"siteCost": {"labor": 200, "materials": 100}, "contractValue": 1000, "status": "active"},
        {"siteCost": {"labor": 300, "materials": 0}, "contractValue": None, "status": "active"},
    ]

    result = aggregate_company_wide(sites)

    assert result.sites_with_contract_value == 1
    assert result.total_sites == 2
    assert result.total_contract_value == 1000.0
    assert result.total_cost == 600.0
    assert result.margin.total_revenue == 1000.0
    assert result.margin.margin_value == 400.0
    assert result.labor_pct == pytest.approx(500 / 600 * 100)


def test_aggregate_company_wide_without_contract_values_has_no_margin():
    sites = [
        {"siteCost": {"labor": 200, "materials": 100}},
        {"siteCost": {"labor": 300}, "contractValue": "0"},
    ]

    result = aggregate_company_wide(sites)

    assert result.margin is None
    assert result.sites_with_contract_value == 0
    assert result.total_sites == 2
    assert result.total_cost == 600.0


def test_aggregate_company_wide_empty():
    result = aggregate_company_wide([])

    assert result.total_sites == 0
    assert result.total_cost == 0.0
    assert result.labor_pct == 0.0
    assert result.margin is None


def test_aggregate_company_wide_adds_economie_as_revenue():
    sites = [
        {"siteCost": {"labor": 100}, "contractValue": 1000, "economie": [{"hours": 2}]},
        {"siteCost": {"labor": 100}, "economie": [{"hours": 3}]},
    ]

    result = aggregate_company_wide(sites)

    assert result.economie_hours == 5.0
    assert result.economie_revenue == 150.0
    assert result.total_cost == 200.0
    assert result.margin.margin_value == 1000 + 150 - 200


def test_aggregate_company_wide_final_only_when_all_contracted_sites_completed():
    completed = {"siteCost": {"labor": 100}, "contractValue": 1000, "status": "completed"}
    active = {"siteCost": {"labor": 100}, "contractValue": 1000, "status": "active"}
    no_contract = {"siteCost": {"labor": 100}, "status": "active"}

    assert aggregate_company_wide([completed, no_contract]).margin.is_final is True
    assert aggregate_company_wide([completed, active]).margin.is_final is False


def test_rank_site_performance_picks_top_and_worst_active_sites():
    sites = [
        {"siteId": 1, "name": "A", "siteCost": {"labor": 300}, "contractValue": 1000, "status": "active"},
        {"siteId": 2, "name": "B", "siteCost": {"labor": 900}, "contractValue": 1000, "status": "active"},
        {"siteId": 3, "name": "C", "siteCost": {"labor": 0}, "contractValue": 5000, "status": "completed"},
        {"siteId": 4, "name": "D", "siteCost": {"labor": 0}, "status": "active"},
    ]

    performance = rank_site_performance(sites)

    assert performance.top.site_id == "1"
    assert performance.top.margin_value == 700.0
    assert performance.worst.site_id == "2"
    assert performance.worst.cost_vs_revenue_percent == pytest.approx(90.0)


def test_rank_site_performance_single_site_has_no_worst():
    performance = rank_site_performance(
        [{"name": "A", "siteCost": {"labor": 300}, "contractValue": 1000, "status": "active"}]
    )

    assert performance.top.name == "A"
    assert performance.worst is None


def test_rank_site_performance_no_candidates():
    performance = rank_site_performance([{"siteCost": {"labor": 300}, "status": "planned"}])

    assert performance.top is None
    assert performance.worst is None


def test_compute_costs_clamps_negative_values():
    costs = compute_costs({"labor": -100, "materials": 50})

    assert costs.labor_cost == 0.0
    assert costs.material_cost == 50.0
    assert costs.total_cost == 50.0


def test_compute_economie_revenue_ignores_negative_hours():
    summary = compute_economie_revenue([{"hours": 4}, {"hours": -10}, {"hours": "-2,5"}])

    assert summary.economie_hours == 4.0
    assert summary.economie_revenue == 120.0


def test_compute_costs_with_amounts_too_large_for_a_float():
    costs = compute_costs({"labor": 10**400, "materials": 1})

    assert costs.labor_cost == 0.0
    assert costs.total_cost == 1.0


def test_summarize_site_tolerates_junk_in_economia_extras():
    result = summarize_site(
        _site(
            name=12345,
            economie=[
                {"hours": 5, "date": "ieri"},
                {"hours": 10, "description": 42, "workerId": {"id": 3}},
                None,
                "7",
            ],
        )
    )

    assert result.economie_hours == 15.0
    assert result.economie_revenue == 450.0
    assert result.margin.margin_value == 1950.0


def test_aggregate_company_wide_tolerates_junk_in_economia_extras():
    result = aggregate_company_wide(
        [
            {"contractValue": 100, "economie": [{"hours": 5, "description": 42}]},
            {"siteCost": {"labor": 10**400}, "economie": "n/d"},
        ]
    )

    assert result.economie_hours == 5.0
    assert result.total_cost == 0.0
    assert result.margin.margin_value == 100 + 150


def test_site_input_keeps_readable_extras():
    site = SiteInput.model_validate(
        {"name": 12345, "economie": [{"hours": 1, "description": 42, "date": "2025-03-05"}]}
    )

    assert site.name == "12345"
    assert site.economie[0].description == "42"
    assert site.economie[0].logged_on.isoformat() == "2025-03-05"
