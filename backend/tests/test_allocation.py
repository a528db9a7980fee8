"""Tests for per-case cost / revenue allocation."""
from decimal import Decimal

import pytest

from conftest import make_case
from savtrack.services.allocation import (
    PartLine,
    allocate,
    has_partial_takeover,
    takeover_ratio,
)
from savtrack.services.catalog import TypeConfig

LINE = PartLine(quantity=2, purchase_price=Decimal("10"), unit_price=Decimal("25"))


def test_no_takeover():
    result = allocate(make_case(), [LINE])
    assert result.cost == Decimal("20")
    assert result.revenue == Decimal("50")
    assert result.margin == Decimal("30")
    assert result.client_cost == Decimal("20")
    assert result.takeover_cost == Decimal("0")


def test_full_takeover_recognises_cost_as_revenue():
    result = allocate(make_case(taken_over=True), [LINE])
    assert result.cost == Decimal("20")
    assert result.revenue == Decimal("20")
    assert result.margin == Decimal("0")
    assert result.takeover_cost == Decimal("20")
    assert result.takeover_ratio == Decimal("1")


def test_partial_takeover_scales_margin():
    case = make_case(
        partial_takeover=True,
        takeover_amount=Decimal("15"),
        total_cost=Decimal("50"),
    )
    result = allocate(case, [LINE])
    assert result.takeover_ratio == Decimal("0.3")
    assert result.revenue == Decimal("41")
    assert result.margin == Decimal("21")
    assert result.takeover_cost == Decimal("6")
    assert result.client_cost == Decimal("14")


def test_partial_takeover_flag_without_amount_is_ignored():
    case = make_case(partial_takeover=True, takeover_amount=None, total_cost=Decimal("50"))
    assert has_partial_takeover(case) is False
    assert allocate(case, [LINE]).revenue == Decimal("50")


@pytest.mark.parametrize(
    "amount,total",
    [
        (Decimal("15"), Decimal("50")),
        (Decimal("80"), Decimal("50")),
        (Decimal("-5"), Decimal("50")),
        (Decimal("10"), Decimal("0")),
        (Decimal("0.5"), Decimal("0")),
        (Decimal("10"), Decimal("-20")),
        (None, Decimal("50")),
        ("abc", "12"),
        (float("nan"), Decimal("50")),
    ],
)
def test_takeover_ratio_is_clamped(amount, total):
    ratio = takeover_ratio(amount, total)
    assert Decimal("0") <= ratio <= Decimal("1")


def test_unit_price_falls_back_to_catalog_selling_price():
    line = PartLine(quantity=3, purchase_price=Decimal("4"), catalog_selling_price=Decimal("9"))
    result = allocate(make_case(), [line])
    assert result.revenue == Decimal("27")
    assert result.cost == Decimal("12")


def test_explicit_zero_unit_price_is_kept():
    line = PartLine(quantity=1, purchase_price=Decimal("4"), unit_price=Decimal("0"),
                    catalog_selling_price=Decimal("9"))
    assert allocate(make_case(), [line]).revenue == Decimal("0")


def test_malformed_numbers_degrade_to_zero():
    lines = [
        PartLine(quantity="x", purchase_price=Decimal("10"), unit_price=Decimal("25")),
        PartLine(quantity=1, purchase_price=None, unit_price="n/a"),
        PartLine(quantity=1, purchase_price=Decimal("3"), unit_price=Decimal("5")),
    ]
    result = allocate(make_case(), lines)
    assert result.cost == Decimal("3")
    assert result.revenue == Decimal("5")


def test_exclusion_flags_zero_each_side():
    no_costs = TypeConfig("warranty", "Garantie", exclude_purchase_costs=True)
    result = allocate(make_case(sav_type="warranty"), [LINE], no_costs)
    assert (result.cost, result.revenue, result.margin) == (Decimal("0"), Decimal("50"), Decimal("50"))
    assert result.excluded_from_stats is False

    no_revenue = TypeConfig("warranty", "Garantie", exclude_sales_revenue=True)
    result = allocate(make_case(sav_type="warranty"), [LINE], no_revenue)
    assert (result.cost, result.revenue, result.margin) == (Decimal("20"), Decimal("0"), Decimal("-20"))


def test_both_exclusions_mark_case_excluded():
    config = TypeConfig("internal", "Interne", exclude_purchase_costs=True, exclude_sales_revenue=True)
    assert allocate(make_case(), [LINE], config).excluded_from_stats is True
    config = TypeConfig("internal", "Interne", exclude_from_stats=True)
    assert allocate(make_case(), [LINE], config).excluded_from_stats is True


@pytest.mark.parametrize(
    "case_kwargs,config",
    [
        ({}, None),
        ({"taken_over": True}, None),
        ({"partial_takeover": True, "takeover_amount": Decimal("7.5"), "total_cost": Decimal("33")}, None),
        ({"partial_takeover": True, "takeover_amount": Decimal("99"), "total_cost": Decimal("0")}, None),
        ({}, TypeConfig("x", "X", exclude_purchase_costs=True)),
        ({"taken_over": True}, TypeConfig("x", "X", exclude_sales_revenue=True)),
    ],
)
def test_margin_is_revenue_minus_cost(case_kwargs, config):
    lines = [LINE, PartLine(quantity=1, purchase_price=Decimal("3.33"), unit_price=Decimal("7.10"))]
    result = allocate(make_case(**case_kwargs), lines, config)
    assert result.margin == result.revenue - result.cost


def test_display_name_fallbacks():
    assert PartLine(1, Decimal("1"), name="Écran", custom_part_name="Écran OLED").display_name == "Écran OLED"
    assert PartLine(1, Decimal("1"), name="Écran").display_name == "Écran"
    assert PartLine(1, Decimal("1")).display_name == "Pièce inconnue"
