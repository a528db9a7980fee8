"""
SAV case repository and status state machine.

All queries are scoped by shop. Status changes are user driven: each one
writes the new status and a history row in a single commit, then fires the
post-transition hooks (satisfaction survey, review request, case limit).
A failed write rolls back and raises StatusTransitionError; the hooks only
run after a successful commit.
"""
import logging
import uuid
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Protocol

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from savtrack.models.case import SavCase, SavMessage, SavPart, SavStatusHistory
from savtrack.models.customer import Customer
from savtrack.models.part import Part
from savtrack.models.sequence import CaseSequence
from savtrack.models.shop import Shop
from savtrack.services.allocation import PartLine, part_lines_from_rows
from savtrack.services.catalog import (
    LEGACY_STATUS_ALIASES,
    CatalogResolver,
    normalize_status,
)
from savtrack.services.coerce import ZERO, to_decimal
from savtrack.services.delay import DelayInfo, delay_for_case
from savtrack.services.errors import (
    CaseLimitReachedError,
    CaseNotFoundError,
    CustomerHasActiveCasesError,
    CustomerNotFoundError,
    InvalidTakeoverError,
    PartNotFoundError,
    StatusTransitionError,
    UnknownStatusError,
    UnknownTypeError,
)
from savtrack.services.features import CaseLimit, DEFAULT_PLANS, PlanCatalog, evaluate_case_limit
from savtrack.services.notifications import UnreadSavGroup

logger = logging.getLogger(__name__)

INITIAL_STATUS = "pending"

# Cases in these statuses no longer surface unread client messages.
MESSAGE_CLOSED_STATUSES = ("ready", "delivered", "cancelled", "closed", "completed")


# --------------------------------------------------------------------------- #
# Post-transition hooks
# --------------------------------------------------------------------------- #

class CaseEventHooks(Protocol):
    async def send_satisfaction_survey(self, shop: Shop, case: SavCase) -> None: ...

    async def send_review_request(self, shop: Shop, case: SavCase) -> None: ...

    async def case_limit_changed(self, shop: Shop, limit: CaseLimit) -> None: ...


class LoggingCaseEventHooks:
    """Default hooks: SMS / email delivery lives outside this service."""

    async def send_satisfaction_survey(self, shop: Shop, case: SavCase) -> None:
        logger.info("Satisfaction survey requested for SAV %s (shop=%s)", case.case_number, shop.id)

    async def send_review_request(self, shop: Shop, case: SavCase) -> None:
        logger.info("Review request requested for SAV %s (shop=%s)", case.case_number, shop.id)

    async def case_limit_changed(self, shop: Shop, limit: CaseLimit) -> None:
        logger.debug(
            "Shop %s active cases: %d / %s", shop.id, limit.active_count, limit.max_active_cases
        )


@dataclass(frozen=True)
class StatusChangeResult:
    case: SavCase
    previous_status: str
    delay: DelayInfo
    limit: CaseLimit
    survey_sent: bool = False
    review_requested: bool = False


# --------------------------------------------------------------------------- #
# Queries
# --------------------------------------------------------------------------- #

def _status_keys(status: str) -> list[str]:
    """Stored keys matching a status, legacy aliases included."""
    key = normalize_status(status)
    return [key] + [alias for alias, target in LEGACY_STATUS_ALIASES.items() if target == key]


async def get_case(db: AsyncSession, shop_id: uuid.UUID, case_id: uuid.UUID) -> SavCase:
    result = await db.execute(
        select(SavCase).where(SavCase.id == case_id, SavCase.shop_id == shop_id)
    )
    case = result.scalars().first()
    if case is None:
        raise CaseNotFoundError(f"SAV case {case_id} not found")
    return case


async def list_cases(
    db: AsyncSession,
    shop_id: uuid.UUID,
    *,
    status: str | None = None,
    sav_type: str | None = None,
    customer_id: uuid.UUID | None = None,
    offset: int = 0,
    limit: int | None = 50,
) -> tuple[list[SavCase], int]:
    filters = [SavCase.shop_id == shop_id]
    if status:
        filters.append(SavCase.status.in_(_status_keys(status)))
    if sav_type:
        filters.append(SavCase.sav_type == sav_type)
    if customer_id:
        filters.append(SavCase.customer_id == customer_id)

    total = (await db.execute(select(func.count()).select_from(SavCase).where(*filters))).scalar_one()

    stmt = select(SavCase).where(*filters).order_by(SavCase.created_at.desc()).offset(offset)
    if limit is not None:
        stmt = stmt.limit(limit)
    rows = (await db.execute(stmt)).scalars().all()
    return list(rows), total


async def list_cases_between(
    db: AsyncSession,
    shop_id: uuid.UUID,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[SavCase]:
    stmt = select(SavCase).where(SavCase.shop_id == shop_id)
    if start is not None:
        stmt = stmt.where(SavCase.created_at >= start)
    if end is not None:
        stmt = stmt.where(SavCase.created_at <= end)
    rows = (await db.execute(stmt.order_by(SavCase.created_at))).scalars().all()
    return list(rows)


async def load_part_lines(
    db: AsyncSession, case_ids: Iterable[uuid.UUID]
) -> dict[uuid.UUID, list[PartLine]]:
    ids = list(case_ids)
    if not ids:
        return {}
    result = await db.execute(
        select(SavPart, Part)
        .outerjoin(Part, SavPart.part_id == Part.id)
        .where(SavPart.sav_case_id.in_(ids))
        .order_by(SavPart.sav_case_id, SavPart.id)
    )
    grouped: dict[uuid.UUID, list[Any]] = defaultdict(list)
    for sav_part, part in result.all():
        grouped[sav_part.sav_case_id].append((sav_part, part))
    return {case_id: part_lines_from_rows(rows) for case_id, rows in grouped.items()}


async def list_part_rows(db: AsyncSession, case_id: uuid.UUID) -> list[tuple[SavPart, Part | None]]:
    result = await db.execute(
        select(SavPart, Part)
        .outerjoin(Part, SavPart.part_id == Part.id)
        .where(SavPart.sav_case_id == case_id)
        .order_by(SavPart.id)
    )
    return [(sav_part, part) for sav_part, part in result.all()]


async def list_history(db: AsyncSession, case_id: uuid.UUID) -> list[SavStatusHistory]:
    result = await db.execute(
        select(SavStatusHistory)
        .where(SavStatusHistory.sav_case_id == case_id)
        .order_by(SavStatusHistory.created_at, SavStatusHistory.id)
    )
    return list(result.scalars().all())


async def count_active_cases(
    db: AsyncSession,
    shop_id: uuid.UUID,
    catalog: CatalogResolver,
    customer_id: uuid.UUID | None = None,
) -> int:
    stmt = (
        select(func.count())
        .select_from(SavCase)
        .where(SavCase.shop_id == shop_id, SavCase.status.not_in(sorted(catalog.closed_status_keys())))
    )
    if customer_id is not None:
        stmt = stmt.where(SavCase.customer_id == customer_id)
    return (await db.execute(stmt)).scalar_one()


async def case_limit_for(
    db: AsyncSession,
    shop: Shop,
    catalog: CatalogResolver,
    plans: PlanCatalog = DEFAULT_PLANS,
) -> CaseLimit:
    active = await count_active_cases(db, shop.id, catalog)
    return evaluate_case_limit(active, plans.get(shop.subscription_tier), shop.max_active_cases)


async def fetch_unread_sav_groups(db: AsyncSession, shop_id: uuid.UUID) -> list[UnreadSavGroup]:
    """Unread client messages grouped per open case."""
    unread = func.count(SavMessage.id).label("unread_count")
    result = await db.execute(
        select(
            SavCase.id,
            SavCase.case_number,
            SavCase.sav_type,
            SavCase.device_brand,
            SavCase.device_model,
            Customer.first_name,
            Customer.last_name,
            unread,
        )
        .join(SavCase, SavMessage.sav_case_id == SavCase.id)
        .outerjoin(Customer, SavCase.customer_id == Customer.id)
        .where(
            SavMessage.shop_id == shop_id,
            SavMessage.sender_type == "client",
            SavMessage.read_by_shop.is_(False),
            SavCase.status.not_in(MESSAGE_CLOSED_STATUSES),
        )
        .group_by(
            SavCase.id,
            SavCase.case_number,
            SavCase.sav_type,
            SavCase.device_brand,
            SavCase.device_model,
            Customer.first_name,
            Customer.last_name,
        )
    )
    return [
        UnreadSavGroup(
            case_id=row.id,
            case_number=row.case_number,
            unread_count=row.unread_count,
            sav_type=row.sav_type,
            customer_first_name=row.first_name,
            customer_last_name=row.last_name,
            device_brand=row.device_brand,
            device_model=row.device_model,
        )
        for row in result.all()
    ]


# --------------------------------------------------------------------------- #
# Creation / deletion
# --------------------------------------------------------------------------- #

async def next_case_number(db: AsyncSession, shop_id: uuid.UUID, year: int) -> str:
    result = await db.execute(
        select(CaseSequence)
        .where(CaseSequence.shop_id == shop_id, CaseSequence.year == year)
        .with_for_update()
    )
    sequence = result.scalars().first()
    if sequence is None:
        sequence = CaseSequence(shop_id=shop_id, year=year, last_seq=0)
        db.add(sequence)
    sequence.last_seq += 1
    return f"SAV-{year}-{sequence.last_seq:05d}"


async def create_case(
    db: AsyncSession,
    shop: Shop,
    catalog: CatalogResolver,
    now: datetime,
    *,
    sav_type: str,
    customer_id: uuid.UUID | None = None,
    device_brand: str | None = None,
    device_model: str | None = None,
    problem_description: str | None = None,
    user_id: uuid.UUID | None = None,
    plans: PlanCatalog = DEFAULT_PLANS,
) -> SavCase:
    if not catalog.is_known_type(sav_type):
        raise UnknownTypeError(sav_type)

    if customer_id is not None:
        customer = await db.get(Customer, customer_id)
        if customer is None or customer.shop_id != shop.id:
            raise CustomerNotFoundError(f"Customer {customer_id} not found")

    limit = await case_limit_for(db, shop, catalog, plans)
    if limit.reached:
        raise CaseLimitReachedError(limit.max_active_cases)

    case = SavCase(
        shop_id=shop.id,
        case_number=await next_case_number(db, shop.id, now.year),
        sav_type=sav_type,
        status=INITIAL_STATUS,
        customer_id=customer_id,
        device_brand=device_brand,
        device_model=device_model,
        problem_description=problem_description,
        total_cost=ZERO,
        taken_over=False,
        partial_takeover=False,
        created_at=now,
        updated_at=now,
    )
    db.add(case)
    await db.flush()
    db.add(
        SavStatusHistory(
            sav_case_id=case.id,
            prev_status=None,
            status=INITIAL_STATUS,
            changed_by_user_id=user_id,
            created_at=now,
        )
    )
    await db.commit()
    logger.info("Created SAV %s (type=%s, shop=%s)", case.case_number, sav_type, shop.id)
    return case


async def delete_case(db: AsyncSession, shop_id: uuid.UUID, case_id: uuid.UUID) -> None:
    case = await get_case(db, shop_id, case_id)
    await db.delete(case)
    await db.commit()
    logger.info("Deleted SAV %s (shop=%s)", case.case_number, shop_id)


async def delete_customer(
    db: AsyncSession,
    shop_id: uuid.UUID,
    customer_id: uuid.UUID,
    catalog: CatalogResolver,
) -> None:
    customer = await db.get(Customer, customer_id)
    if customer is None or customer.shop_id != shop_id:
        raise CustomerNotFoundError(f"Customer {customer_id} not found")

    active = await count_active_cases(db, shop_id, catalog, customer_id=customer_id)
    if active:
        raise CustomerHasActiveCasesError(active)

    await db.delete(customer)
    await db.commit()


_UPDATABLE_FIELDS = frozenset(
    {
        "device_brand",
        "device_model",
        "problem_description",
        "repair_notes",
        "taken_over",
        "partial_takeover",
        "takeover_amount",
        "total_time_minutes",
    }
)


async def update_case(db: AsyncSession, case: SavCase, now: datetime, **changes: Any) -> SavCase:
    for name, value in changes.items():
        if name in _UPDATABLE_FIELDS:
            setattr(case, name, value)

    if case.partial_takeover and (
        case.takeover_amount is None or to_decimal(case.takeover_amount) < ZERO
    ):
        await db.rollback()
        raise InvalidTakeoverError("A partial takeover needs a non-negative takeover_amount")

    case.updated_at = now
    await db.commit()
    return case


# --------------------------------------------------------------------------- #
# Part lines
# --------------------------------------------------------------------------- #

async def _refresh_total_cost(db: AsyncSession, case: SavCase, now: datetime) -> None:
    lines = part_lines_from_rows(await list_part_rows(db, case.id))
    case.total_cost = sum((line.revenue for line in lines), ZERO)
    case.updated_at = now


async def add_part_line(
    db: AsyncSession,
    case: SavCase,
    now: datetime,
    *,
    part_id: uuid.UUID | None = None,
    quantity: int = 1,
    purchase_price: Decimal | None = None,
    unit_price: Decimal | None = None,
    custom_part_name: str | None = None,
) -> SavPart:
    """
    Attach a part to a case. Prices left out fall back to the catalog
    part's purchase and selling prices.
    """
    part = None
    if part_id is not None:
        part = await db.get(Part, part_id)
        if part is None or part.shop_id != case.shop_id:
            raise PartNotFoundError(f"Part {part_id} not found")

    if purchase_price is None:
        purchase_price = part.purchase_price if part is not None else ZERO
    if unit_price is None and part is not None:
        unit_price = part.selling_price

    line = SavPart(
        sav_case_id=case.id,
        part_id=part_id,
        quantity=quantity,
        purchase_price=to_decimal(purchase_price),
        unit_price=unit_price,
        custom_part_name=custom_part_name,
    )
    db.add(line)
    await db.flush()
    await _refresh_total_cost(db, case, now)
    await db.commit()
    return line


async def remove_part_line(
    db: AsyncSession, case: SavCase, line_id: uuid.UUID, now: datetime
) -> None:
    result = await db.execute(
        delete(SavPart).where(SavPart.id == line_id, SavPart.sav_case_id == case.id)
    )
    if result.rowcount == 0:
        raise PartNotFoundError(f"Part line {line_id} not found")
    await _refresh_total_cost(db, case, now)
    await db.commit()


# --------------------------------------------------------------------------- #
# Status transitions
# --------------------------------------------------------------------------- #

async def change_status(
    db: AsyncSession,
    shop: Shop,
    case: SavCase,
    new_status: str,
    catalog: CatalogResolver,
    now: datetime,
    *,
    note: str | None = None,
    user_id: uuid.UUID | None = None,
    hooks: CaseEventHooks | None = None,
    plans: PlanCatalog = DEFAULT_PLANS,
) -> StatusChangeResult:
    key = normalize_status(new_status)
    if not catalog.is_known_status(key):
        raise UnknownStatusError(new_status)

    hooks = hooks or LoggingCaseEventHooks()
    previous = normalize_status(case.status)
    case_number = case.case_number

    try:
        case.status = key
        case.updated_at = now
        db.add(
            SavStatusHistory(
                sav_case_id=case.id,
                prev_status=previous,
                status=key,
                notes=note,
                changed_by_user_id=user_id,
                created_at=now,
            )
        )
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("Status change %s -> %s failed for SAV %s: %s", previous, key, case_number, exc)
        raise StatusTransitionError(f"Could not update status of SAV {case_number}") from exc

    logger.info("SAV %s: %s -> %s", case_number, previous, key)

    delay = delay_for_case(case, catalog, now)

    survey_sent = review_requested = False
    status_config = catalog.resolve_status(key)
    if status_config.is_final_status and not catalog.is_cancelled(key) and previous != key:
        if catalog.resolve_type(case.sav_type).show_satisfaction_survey:
            await hooks.send_satisfaction_survey(shop, case)
            survey_sent = True
            if shop.review_request_enabled:
                await hooks.send_review_request(shop, case)
                review_requested = True

    limit = await case_limit_for(db, shop, catalog, plans)
    await hooks.case_limit_changed(shop, limit)

    return StatusChangeResult(
        case=case,
        previous_status=previous,
        delay=delay,
        limit=limit,
        survey_sent=survey_sent,
        review_requested=review_requested,
    )
