"""
Statistics aggregation over a snapshot of a shop's SAV cases.

Every function here is pure: the cases, their part lines, the catalog and
``now`` are supplied by the caller and nothing is fetched or cached. Calling
aggregate() twice with the same inputs returns equal snapshots.

Case partitions:
  ready   - status resolves to "ready"; financially realised, fed through
            allocate() into the money figures
  active  - not final, not paused, type tracks a deadline; late-rate base
  completed - same set as ready, counted for completion charts
"""
import calendar
from collections import Counter, defaultdict
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any

from savtrack.services.allocation import PartLine, allocate
from savtrack.services.catalog import CatalogResolver, TypeConfig, normalize_status
from savtrack.services.coerce import ZERO, to_decimal
from savtrack.services.devices import CATEGORY_ORDER, categorize_device, normalize_device_key

PERIOD_DAYS = {"7d": 7, "30d": 30, "3m": 90, "6m": 180, "1y": 365}


@dataclass(frozen=True)
class DateRange:
    start: date
    end: date

    def contains(self, moment: datetime | date) -> bool:
        day = moment.date() if isinstance(moment, datetime) else moment
        return self.start <= day <= self.end

    def days(self) -> list[date]:
        count = (self.end - self.start).days + 1
        return [self.start + timedelta(days=i) for i in range(max(0, count))]


@dataclass(frozen=True)
class StatisticsFilters:
    """Empty allowlists mean "everything"."""

    statuses: frozenset[str] = field(default_factory=frozenset)
    types: frozenset[str] = field(default_factory=frozenset)


def period_range(period: str, now: datetime) -> DateRange:
    try:
        days = PERIOD_DAYS[period]
    except KeyError:
        raise ValueError(f"Unknown statistics period: {period}") from None
    today = now.date()
    return DateRange(start=today - timedelta(days=days), end=today)


# --------------------------------------------------------------------------- #
# Snapshot types
# --------------------------------------------------------------------------- #

@dataclass(frozen=True)
class DailyPoint:
    day: date
    revenue: Decimal
    expenses: Decimal
    profit: Decimal
    sav_count: int
    completed: int
    late_rate: float


@dataclass(frozen=True)
class MonthlyPoint:
    month: str
    revenue: Decimal
    expenses: Decimal
    profit: Decimal
    sav_count: int


@dataclass(frozen=True)
class TopPart:
    name: str
    quantity: int
    revenue: Decimal


@dataclass(frozen=True)
class TopDevice:
    brand: str
    model: str
    count: int


@dataclass(frozen=True)
class StatusCount:
    status_key: str
    label: str
    color: str
    count: int


@dataclass(frozen=True)
class CategoryShare:
    category: str
    count: int
    revenue: Decimal
    percentage: float


@dataclass(frozen=True)
class TypeSubtotal:
    type_key: str
    label: str
    count: int
    cost: Decimal
    revenue: Decimal
    margin: Decimal


@dataclass(frozen=True)
class StatisticsSnapshot:
    total_cases: int
    ready_count: int
    active_count: int
    late_count: int
    completed_count: int
    late_rate: float
    revenue: Decimal
    expenses: Decimal
    profit: Decimal
    takeover_amount: Decimal
    takeover_count: int
    average_time_minutes: float
    daily: tuple[DailyPoint, ...]
    monthly: tuple[MonthlyPoint, ...]
    top_parts: tuple[TopPart, ...]
    top_devices: tuple[TopDevice, ...]
    status_distribution: tuple[StatusCount, ...]
    categories: tuple[CategoryShare, ...]
    type_subtotals: tuple[TypeSubtotal, ...]


# --------------------------------------------------------------------------- #
# Helpers
# --------------------------------------------------------------------------- #

def is_late(case: Any, type_config: TypeConfig, at: datetime) -> bool:
    if not type_config.tracks_deadline or case.created_at is None:
        return False
    return at > case.created_at + timedelta(days=type_config.max_processing_days)


def is_active(case: Any, catalog: CatalogResolver) -> bool:
    status = catalog.resolve_status(case.status)
    if status.is_final_status or status.pause_timer:
        return False
    return catalog.resolve_type(case.sav_type).tracks_deadline


def late_rate(late_count: int, active_count: int) -> float:
    if active_count <= 0:
        return 0.0
    return min(100.0, max(0.0, late_count / active_count * 100))


def _takeover_value(case: Any) -> Decimal:
    if case.partial_takeover:
        return to_decimal(case.takeover_amount)
    return to_decimal(case.total_cost)


def _select(
    cases: Iterable[Any],
    catalog: CatalogResolver,
    date_range: DateRange | None,
    filters: StatisticsFilters,
) -> list[Any]:
    wanted_statuses = {normalize_status(s) for s in filters.statuses}
    selected = []
    for case in cases:
        if case.created_at is None:
            continue
        if date_range is not None and not date_range.contains(case.created_at):
            continue
        if wanted_statuses and normalize_status(case.status) not in wanted_statuses:
            continue
        if filters.types and case.sav_type not in filters.types:
            continue
        if catalog.resolve_type(case.sav_type).excluded_from_stats:
            continue
        selected.append(case)
    return selected


# --------------------------------------------------------------------------- #
# Aggregation
# --------------------------------------------------------------------------- #

def aggregate(
    cases: Iterable[Any],
    parts_by_case: Mapping[Any, Sequence[PartLine]],
    catalog: CatalogResolver,
    date_range: DateRange,
    now: datetime,
    filters: StatisticsFilters = StatisticsFilters(),
    top_n: int = 5,
) -> StatisticsSnapshot:
    selected = _select(cases, catalog, date_range, filters)

    revenue = expenses = takeover_amount = ZERO
    takeover_count = 0
    late_count = active_count = 0
    time_total = time_count = 0

    daily_money: dict[date, list[Decimal]] = defaultdict(lambda: [ZERO, ZERO])
    daily_created: Counter[date] = Counter()
    daily_completed: Counter[date] = Counter()
    daily_active: Counter[date] = Counter()
    daily_late: Counter[date] = Counter()
    monthly_money: dict[str, list[Decimal]] = defaultdict(lambda: [ZERO, ZERO])
    monthly_count: Counter[str] = Counter()

    part_quantity: Counter[str] = Counter()
    part_revenue: dict[str, Decimal] = defaultdict(lambda: ZERO)
    device_count: Counter[str] = Counter()
    device_labels: dict[str, tuple[str, str]] = {}
    status_count: Counter[str] = Counter()
    category_count: Counter[str] = Counter()
    category_revenue: dict[str, Decimal] = defaultdict(lambda: ZERO)
    type_count: Counter[str] = Counter()
    type_money: dict[str, list[Decimal]] = defaultdict(lambda: [ZERO, ZERO])
    ready_count = 0

    for case in selected:
        day = case.created_at.date()
        month = day.strftime("%Y-%m")
        type_config = catalog.resolve_type(case.sav_type)
        status_key = normalize_status(case.status)

        daily_created[day] += 1
        monthly_count[month] += 1
        status_count[status_key] += 1

        device = normalize_device_key(case.device_brand, case.device_model)
        device_count[device.key] += 1
        device_labels.setdefault(device.key, (device.brand, device.model))

        if is_active(case, catalog):
            active_count += 1
            daily_active[day] += 1
            if is_late(case, type_config, now):
                late_count += 1
                daily_late[day] += 1

        if not catalog.is_ready(status_key):
            continue

        ready_count += 1
        daily_completed[day] += 1
        lines = parts_by_case.get(case.id, ())
        alloc = allocate(case, lines, type_config)

        revenue += alloc.revenue
        expenses += alloc.cost
        daily_money[day][0] += alloc.revenue
        daily_money[day][1] += alloc.cost
        monthly_money[month][0] += alloc.revenue
        monthly_money[month][1] += alloc.cost

        type_count[case.sav_type] += 1
        type_money[case.sav_type][0] += alloc.cost
        type_money[case.sav_type][1] += alloc.revenue

        category = categorize_device(case.device_brand, case.device_model)
        category_count[category] += 1
        category_revenue[category] += alloc.revenue

        for line in lines:
            part_quantity[line.display_name] += line.quantity
            part_revenue[line.display_name] += line.revenue

        if case.taken_over or case.partial_takeover:
            takeover_count += 1
            takeover_amount += _takeover_value(case)

        minutes = case.total_time_minutes or 0
        if minutes > 0:
            time_total += minutes
            time_count += 1

    daily = tuple(
        DailyPoint(
            day=d,
            revenue=daily_money[d][0] if d in daily_money else ZERO,
            expenses=daily_money[d][1] if d in daily_money else ZERO,
            profit=(daily_money[d][0] - daily_money[d][1]) if d in daily_money else ZERO,
            sav_count=daily_created[d],
            completed=daily_completed[d],
            late_rate=late_rate(daily_late[d], daily_active[d]),
        )
        for d in date_range.days()
    )

    monthly = tuple(
        MonthlyPoint(
            month=m,
            revenue=monthly_money[m][0] if m in monthly_money else ZERO,
            expenses=monthly_money[m][1] if m in monthly_money else ZERO,
            profit=(monthly_money[m][0] - monthly_money[m][1]) if m in monthly_money else ZERO,
            sav_count=monthly_count[m],
        )
        for m in sorted(monthly_count)
    )

    top_parts = tuple(
        TopPart(name=name, quantity=qty, revenue=part_revenue[name])
        for name, qty in sorted(part_quantity.items(), key=lambda kv: (-kv[1], kv[0]))[:top_n]
    )
    top_devices = tuple(
        TopDevice(brand=device_labels[key][0], model=device_labels[key][1], count=count)
        for key, count in sorted(device_count.items(), key=lambda kv: (-kv[1], kv[0]))[:top_n]
    )

    status_order = {s.status_key: i for i, s in enumerate(catalog.all_statuses())}
    status_distribution = []
    for key in sorted(status_count, key=lambda k: (status_order.get(k, len(status_order)), k)):
        config = catalog.resolve_status(key)
        status_distribution.append(
            StatusCount(status_key=key, label=config.label, color=config.color, count=status_count[key])
        )

    categories = tuple(
        CategoryShare(
            category=c,
            count=category_count[c],
            revenue=category_revenue[c],
            percentage=round(category_count[c] / ready_count * 100, 1),
        )
        for c in CATEGORY_ORDER
        if category_count[c]
    )

    type_order = {t.type_key: i for i, t in enumerate(catalog.all_types())}
    type_subtotals = []
    for key in sorted(type_count, key=lambda k: (type_order.get(k, len(type_order)), k)):
        cost, rev = type_money[key]
        type_subtotals.append(
            TypeSubtotal(
                type_key=key,
                label=catalog.resolve_type(key).label,
                count=type_count[key],
                cost=cost,
                revenue=rev,
                margin=rev - cost,
            )
        )

    return StatisticsSnapshot(
        total_cases=len(selected),
        ready_count=ready_count,
        active_count=active_count,
        late_count=late_count,
        completed_count=ready_count,
        late_rate=late_rate(late_count, active_count),
        revenue=revenue,
        expenses=expenses,
        profit=revenue - expenses,
        takeover_amount=takeover_amount,
        takeover_count=takeover_count,
        average_time_minutes=(time_total / time_count) if time_count else 0.0,
        daily=daily,
        monthly=monthly,
        top_parts=top_parts,
        top_devices=top_devices,
        status_distribution=tuple(status_distribution),
        categories=categories,
        type_subtotals=tuple(type_subtotals),
    )


# --------------------------------------------------------------------------- #
# Yearly views
# --------------------------------------------------------------------------- #

@dataclass(frozen=True)
class MonthlyLateRate:
    month: int
    active_count: int
    late_count: int
    late_rate: float


@dataclass(frozen=True)
class MonthlyFigures:
    month: int
    revenue: Decimal
    costs: Decimal
    profit: Decimal
    sav_count: int
    takeover_cost: Decimal
    client_cost: Decimal
    external_cost: Decimal


def _month_end(year: int, month: int) -> datetime:
    last_day = calendar.monthrange(year, month)[1]
    return datetime.combine(date(year, month, last_day), time.max)


def monthly_late_rates(
    cases: Iterable[Any],
    catalog: CatalogResolver,
    year: int,
    now: datetime,
) -> list[MonthlyLateRate]:
    """
    Late rate as it stood at the end of each month of ``year``.

    A case counts as active at month end when it was created by then and
    was still open: its status is not final, or it was last updated after
    the month ended. Future months report zero.
    """
    candidates = [
        c for c in cases
        if c.created_at is not None and not catalog.resolve_type(c.sav_type).excluded_from_stats
    ]
    results = []
    for month in range(1, 13):
        month_start = datetime(year, month, 1)
        if month_start > now:
            results.append(MonthlyLateRate(month=month, active_count=0, late_count=0, late_rate=0.0))
            continue
        month_end = _month_end(year, month)
        evaluated_at = min(month_end, now)

        active = late = 0
        for case in candidates:
            if case.created_at > month_end:
                continue
            status = catalog.resolve_status(case.status)
            if status.pause_timer:
                continue
            closed_by_then = status.is_final_status and (
                case.updated_at is None or case.updated_at <= month_end
            )
            if closed_by_then:
                continue
            type_config = catalog.resolve_type(case.sav_type)
            if not type_config.tracks_deadline:
                continue
            active += 1
            if is_late(case, type_config, evaluated_at):
                late += 1

        results.append(
            MonthlyLateRate(
                month=month,
                active_count=active,
                late_count=late,
                late_rate=round(late_rate(late, active), 1),
            )
        )
    return results


def monthly_statistics(
    cases: Iterable[Any],
    parts_by_case: Mapping[Any, Sequence[PartLine]],
    catalog: CatalogResolver,
    year: int,
) -> list[MonthlyFigures]:
    """Realised figures of the ready cases created in each month of ``year``."""
    buckets: dict[int, dict[str, Any]] = {
        m: {
            "revenue": ZERO, "costs": ZERO, "count": 0,
            "takeover": ZERO, "client": ZERO, "external": ZERO,
        }
        for m in range(1, 13)
    }
    for case in cases:
        if case.created_at is None or case.created_at.year != year:
            continue
        type_config = catalog.resolve_type(case.sav_type)
        if type_config.excluded_from_stats or not catalog.is_ready(case.status):
            continue
        alloc = allocate(case, parts_by_case.get(case.id, ()), type_config)
        bucket = buckets[case.created_at.month]
        bucket["revenue"] += alloc.revenue
        bucket["costs"] += alloc.cost
        bucket["count"] += 1
        if case.sav_type == "external":
            bucket["external"] += alloc.cost
        else:
            bucket["takeover"] += alloc.takeover_cost
            bucket["client"] += alloc.client_cost

    return [
        MonthlyFigures(
            month=m,
            revenue=b["revenue"],
            costs=b["costs"],
            profit=b["revenue"] - b["costs"],
            sav_count=b["count"],
            takeover_cost=b["takeover"],
            client_cost=b["client"],
            external_cost=b["external"],
        )
        for m, b in buckets.items()
    ]
