"""Tests for the delay alert tiers and the once-per-tier scan."""
from datetime import timedelta

import pytest
from sqlalchemy import func, select

from conftest import NOW
from savtrack.models.case import SavCase
from savtrack.models.notification import Notification, SavDelayAlert
from savtrack.models.shop import Shop
from savtrack.services.delay import DelayInfo
from savtrack.services.delay_alerts import (
    APPROACHING,
    DELAY_ALERT_TYPE,
    IMMINENT,
    OVERDUE,
    alert_text,
    alert_tier,
    scan_all_shops,
    scan_shop,
)
from savtrack.worker import within_alert_hours


def _info(deadline_delta, paused=False, tracked=True):
    deadline = NOW + deadline_delta
    return DelayInfo(
        is_overdue=tracked and not paused and deadline <= NOW,
        remaining_days=0,
        remaining_hours=0,
        total_remaining_hours=0,
        progress=0.0,
        is_paused=paused,
        is_tracked=tracked,
        deadline=deadline if tracked else None,
    )


@pytest.mark.parametrize(
    "delta,expected",
    [
        (timedelta(days=-2, hours=-12), (OVERDUE, 3)),
        (timedelta(hours=-1), (OVERDUE, 1)),
        (timedelta(0), (OVERDUE, 1)),
        (timedelta(hours=12), (IMMINENT, 0)),
        (timedelta(days=1, hours=12), (APPROACHING, 2)),
        (timedelta(days=2), (APPROACHING, 2)),
    ],
)
def test_alert_tiers(delta, expected):
    decision = alert_tier(_info(delta), alert_days=2, now=NOW)
    assert (decision.tier, decision.days) == expected


def test_no_alert_outside_the_window():
    assert alert_tier(_info(timedelta(days=5)), alert_days=2, now=NOW) is None


def test_paused_and_untracked_cases_never_alert():
    assert alert_tier(_info(timedelta(days=-3), paused=True), alert_days=2, now=NOW) is None
    assert alert_tier(_info(timedelta(days=-3), tracked=False), alert_days=2, now=NOW) is None


def test_alert_text():
    title, message = alert_text("SAV-2025-00004", "client", alert_tier(_info(timedelta(days=-3)), 2, NOW))
    assert title == "SAV en retard !"
    assert "en retard de 3 jours" in message
    title, message = alert_text("SAV-2025-00004", "client", alert_tier(_info(timedelta(hours=30)), 2, NOW))
    assert title == "SAV proche de la limite"
    assert message.endswith("dans 2 jours")


def test_alert_hours_window():
    assert within_alert_hours(8, 8, 18)
    assert within_alert_hours(18, 8, 18)
    assert not within_alert_hours(7, 8, 18)
    assert not within_alert_hours(19, 8, 18)


async def _add_case(db, shop, number, created_days_ago, status="in_progress", sav_type="client"):
    created = NOW - timedelta(days=created_days_ago)
    case = SavCase(
        shop_id=shop.id,
        case_number=number,
        sav_type=sav_type,
        status=status,
        created_at=created,
        updated_at=created,
    )
    db.add(case)
    await db.commit()
    return case


async def _count(db, model):
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


@pytest.mark.asyncio
async def test_scan_alerts_each_tier_once(db_session, shop):
    case = await _add_case(db_session, shop, "SAV-2025-00001", created_days_ago=8)

    assert await scan_shop(db_session, shop, NOW) == 1
    assert await scan_shop(db_session, shop, NOW) == 0
    assert await scan_shop(db_session, shop, NOW + timedelta(hours=3)) == 0

    assert await _count(db_session, Notification) == 1
    assert await _count(db_session, SavDelayAlert) == 1

    notification = (await db_session.execute(select(Notification))).scalar_one()
    assert notification.type == DELAY_ALERT_TYPE
    assert notification.sav_case_id == case.id
    assert notification.is_read is False


@pytest.mark.asyncio
async def test_scan_escalates_from_approaching_to_overdue(db_session, shop):
    await _add_case(db_session, shop, "SAV-2025-00002", created_days_ago=6)

    assert await scan_shop(db_session, shop, NOW) == 1
    assert await scan_shop(db_session, shop, NOW + timedelta(days=2)) == 1

    tiers = (await db_session.execute(select(SavDelayAlert.alert_tier))).scalars().all()
    assert sorted(tiers) == [APPROACHING, OVERDUE]


@pytest.mark.asyncio
async def test_scan_skips_closed_paused_and_untracked_cases(db_session, shop):
    await _add_case(db_session, shop, "SAV-2025-00003", created_days_ago=20, status="ready")
    await _add_case(db_session, shop, "SAV-2025-00004", created_days_ago=20, status="delivered")
    await _add_case(db_session, shop, "SAV-2025-00005", created_days_ago=20, status="cancelled")
    await _add_case(db_session, shop, "SAV-2025-00006", created_days_ago=1)
    await _add_case(db_session, shop, "SAV-2025-00009", created_days_ago=10, sav_type="internal")

    assert await scan_shop(db_session, shop, NOW) == 0
    assert await _count(db_session, Notification) == 0


@pytest.mark.asyncio
async def test_scan_all_shops_honours_the_shop_setting(db_session, shop):
    quiet = Shop(name="Atelier Calme", sav_delay_alerts_enabled=False, created_at=NOW)
    db_session.add(quiet)
    await db_session.commit()

    await _add_case(db_session, shop, "SAV-2025-00007", created_days_ago=10)
    await _add_case(db_session, quiet, "SAV-2025-00008", created_days_ago=10)

    assert await scan_all_shops(db_session, NOW) == 1
    rows = (await db_session.execute(select(Notification.shop_id))).scalars().all()
    assert rows == [shop.id]
