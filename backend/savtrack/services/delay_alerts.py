"""
Proactive SAV delay alerts.

A case is alerted when it is overdue or its deadline falls within the type's
alert_days. Each (case, tier) pair is alerted at most once: the
sav_delay_alerts row is written in the same commit as the notification and
its unique key rejects a second insert, however often the scan runs.
"""
import logging
import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from savtrack.models.case import SavCase
from savtrack.models.notification import Notification, SavDelayAlert
from savtrack.models.shop import Shop
from savtrack.services.catalog import load_catalog
from savtrack.services.delay import DelayInfo, delay_for_case

logger = logging.getLogger(__name__)

DELAY_ALERT_TYPE = "sav_delay_alert"

OVERDUE = "overdue"
IMMINENT = "imminent"
APPROACHING = "approaching"

_DAY = timedelta(days=1)


@dataclass(frozen=True)
class AlertDecision:
    tier: str
    days: int


def _plural(n: int) -> str:
    return "s" if n > 1 else ""


def alert_tier(info: DelayInfo, alert_days: int, now: datetime) -> AlertDecision | None:
    """
    Overdue, imminent (due within the day) or approaching (due within
    ``alert_days``). Paused and untracked cases never alert.
    """
    if not info.is_tracked or info.is_paused or info.deadline is None:
        return None
    remaining_days = (info.deadline - now) / _DAY
    if info.is_overdue:
        return AlertDecision(OVERDUE, max(1, math.ceil(-remaining_days)))
    if remaining_days < 1:
        return AlertDecision(IMMINENT, 0)
    rounded = math.ceil(remaining_days)
    if rounded <= alert_days:
        return AlertDecision(APPROACHING, rounded)
    return None


def alert_text(case_number: str, sav_type: str, decision: AlertDecision) -> tuple[str, str]:
    days = decision.days
    if decision.tier == OVERDUE:
        return (
            "SAV en retard !",
            f"🚨 Le SAV {case_number} ({sav_type}) est en retard de {days} jour{_plural(days)} !",
        )
    if decision.tier == IMMINENT:
        return (
            "SAV en retard imminent !",
            f"⚠️ Le SAV {case_number} ({sav_type}) sera en retard dans moins de 24h !",
        )
    return (
        "SAV proche de la limite",
        f"⏰ Le SAV {case_number} ({sav_type}) sera en retard dans {days} jour{_plural(days)}",
    )


async def create_delay_alert(
    db: AsyncSession,
    case: SavCase,
    decision: AlertDecision,
    now: datetime,
) -> uuid.UUID | None:
    """Returns the notification id, or None when this tier was already alerted."""
    existing = await db.execute(
        select(SavDelayAlert.id).where(
            SavDelayAlert.sav_case_id == case.id,
            SavDelayAlert.alert_tier == decision.tier,
        )
    )
    if existing.first() is not None:
        return None

    title, message = alert_text(case.case_number, case.sav_type, decision)
    notification = Notification(
        id=uuid.uuid4(),
        shop_id=case.shop_id,
        sav_case_id=case.id,
        type=DELAY_ALERT_TYPE,
        title=title,
        message=message,
        is_read=False,
        created_at=now,
    )
    db.add(notification)
    db.add(
        SavDelayAlert(
            sav_case_id=case.id,
            alert_tier=decision.tier,
            notification_id=notification.id,
            created_at=now,
        )
    )
    try:
        await db.commit()
    except IntegrityError:
        # A concurrent scan got there first.
        await db.rollback()
        return None

    logger.info("Delay alert %s for SAV %s (%d day(s))", decision.tier, case.case_number, decision.days)
    return notification.id


async def scan_shop(db: AsyncSession, shop: Shop, now: datetime) -> int:
    catalog = await load_catalog(db, shop.id)
    result = await db.execute(
        select(SavCase).where(
            SavCase.shop_id == shop.id,
            SavCase.status.not_in(sorted(catalog.closed_status_keys())),
        )
    )
    cases = list(result.scalars().all())

    created = 0
    for case in cases:
        type_config = catalog.resolve_type(case.sav_type)
        if not type_config.tracks_deadline:
            continue
        info = delay_for_case(case, catalog, now)
        decision = alert_tier(info, type_config.alert_days, now)
        if decision is None:
            continue
        if await create_delay_alert(db, case, decision, now) is not None:
            created += 1

    logger.debug("Shop %s: %d open case(s), %d alert(s) created", shop.id, len(cases), created)
    return created


async def scan_all_shops(db: AsyncSession, now: datetime) -> int:
    result = await db.execute(select(Shop).where(Shop.sav_delay_alerts_enabled.is_(True)))
    shops = list(result.scalars().all())
    if not shops:
        logger.info("No shop has delay alerts enabled")
        return 0

    total = 0
    for shop in shops:
        try:
            total += await scan_shop(db, shop, now)
        except SQLAlchemyError as exc:
            # One shop failing must not stop the others.
            logger.error("Delay alert scan failed for shop %s: %s", shop.id, exc)
            await db.rollback()
    logger.info("Delay alert scan done: %d shop(s), %d alert(s)", len(shops), total)
    return total
