"""
Cost / revenue allocation for a single SAV case.

Takeover convention, used by every report: when the shop takes a case over
in full, the client is not billed and the shop recognises the part cost as
revenue, so the case shows revenue == cost and a zero margin.
"""
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from savtrack.services.catalog import TypeConfig
from savtrack.services.coerce import ZERO, to_decimal, to_quantity

ONE = Decimal("1")
UNKNOWN_PART_NAME = "Pièce inconnue"


@dataclass(frozen=True)
class PartLine:
    quantity: int
    purchase_price: Decimal
    unit_price: Decimal | None = None
    catalog_selling_price: Decimal | None = None
    name: str | None = None
    custom_part_name: str | None = None

    @property
    def display_name(self) -> str:
        return self.custom_part_name or self.name or UNKNOWN_PART_NAME

    @property
    def sale_price(self) -> Decimal:
        if self.unit_price is not None:
            return to_decimal(self.unit_price)
        return to_decimal(self.catalog_selling_price)

    @property
    def cost(self) -> Decimal:
        return to_decimal(self.purchase_price) * to_quantity(self.quantity)

    @property
    def revenue(self) -> Decimal:
        return self.sale_price * to_quantity(self.quantity)


@dataclass(frozen=True)
class Allocation:
    cost: Decimal
    revenue: Decimal
    margin: Decimal
    takeover_cost: Decimal = ZERO
    client_cost: Decimal = ZERO
    takeover_ratio: Decimal = ZERO
    excluded_from_stats: bool = False


def takeover_ratio(takeover_amount: Any, total_cost: Any) -> Decimal:
    """Share of the case absorbed by the shop, always within [0, 1]."""
    denominator = to_decimal(total_cost) or ONE
    ratio = to_decimal(takeover_amount) / denominator
    return min(ONE, max(ZERO, ratio))


def has_partial_takeover(case: Any) -> bool:
    return bool(getattr(case, "partial_takeover", False)) and bool(
        to_decimal(getattr(case, "takeover_amount", None))
    )


def allocate(
    case: Any,
    parts: Iterable[PartLine],
    type_config: TypeConfig | None = None,
) -> Allocation:
    cost = ZERO
    revenue = ZERO
    for line in parts:
        cost += line.cost
        revenue += line.revenue

    ratio = ZERO
    if has_partial_takeover(case):
        ratio = takeover_ratio(case.takeover_amount, case.total_cost)
        takeover_cost = cost * ratio
        client_cost = cost * (ONE - ratio)
        revenue = cost + (revenue - cost) * (ONE - ratio)
    elif getattr(case, "taken_over", False):
        ratio = ONE
        takeover_cost = cost
        client_cost = ZERO
        revenue = cost
    else:
        takeover_cost = ZERO
        client_cost = cost

    excluded = False
    if type_config is not None:
        if type_config.exclude_purchase_costs:
            cost = ZERO
        if type_config.exclude_sales_revenue:
            revenue = ZERO
        excluded = type_config.excluded_from_stats

    return Allocation(
        cost=cost,
        revenue=revenue,
        margin=revenue - cost,
        takeover_cost=takeover_cost,
        client_cost=client_cost,
        takeover_ratio=ratio,
        excluded_from_stats=excluded,
    )


def part_lines_from_rows(rows: Iterable[Any]) -> list[PartLine]:
    """
    Build PartLine values from (SavPart, Part | None) pairs as returned by
    a join on the parts catalog.
    """
    lines = []
    for sav_part, part in rows:
        lines.append(
            PartLine(
                quantity=to_quantity(sav_part.quantity),
                purchase_price=to_decimal(sav_part.purchase_price),
                unit_price=sav_part.unit_price,
                catalog_selling_price=part.selling_price if part is not None else None,
                name=part.name if part is not None else None,
                custom_part_name=sav_part.custom_part_name,
            )
        )
    return lines
