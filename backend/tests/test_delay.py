"""Tests for the SAV deadline computation."""
from datetime import timedelta

import pytest

from conftest import NOW, make_case
from savtrack.services.catalog import CatalogResolver, StatusConfig, TypeConfig
from savtrack.services.delay import (
    DelayDefaults,
    compute_delay,
    delay_for_case,
    format_delay_text,
)

IN_PROGRESS = StatusConfig("in_progress", "En cours")


def test_overdue_client_case_after_ten_days():
    case = make_case(sav_type="client", status="in_progress", created_at=NOW - timedelta(days=10))
    info = delay_for_case(case, CatalogResolver(), NOW)
    assert info.is_overdue is True
    assert info.remaining_days == 0
    assert info.remaining_hours == 0
    assert info.total_remaining_hours == 0
    assert info.progress == 100.0


def test_internal_case_without_shop_config_uses_five_days():
    case = make_case(sav_type="internal", status="pending", created_at=NOW - timedelta(days=2))
    info = delay_for_case(case, CatalogResolver(), NOW)
    assert info.is_overdue is False
    assert info.progress == pytest.approx(40.0)
    assert info.remaining_days == 3


def test_remaining_time_split_into_days_and_hours():
    case = make_case(created_at=NOW - timedelta(days=1, hours=5, minutes=30))
    info = compute_delay(case, TypeConfig("client", "Client", max_processing_days=7), IN_PROGRESS, NOW)
    # 6 days minus 5h30 left, floored to whole hours
    assert info.total_remaining_hours == 138
    assert (info.remaining_days, info.remaining_hours) == (5, 18)
    assert info.deadline == case.created_at + timedelta(days=7)


def test_deadline_reached_exactly_is_overdue():
    case = make_case(created_at=NOW - timedelta(days=7))
    info = compute_delay(case, TypeConfig("client", "Client", max_processing_days=7), IN_PROGRESS, NOW)
    assert info.is_overdue is True


@pytest.mark.parametrize("age_days", [-3, 0, 1, 6, 7, 30, 3650])
def test_progress_is_bounded(age_days):
    case = make_case(created_at=NOW - timedelta(days=age_days))
    info = compute_delay(case, None, IN_PROGRESS, NOW)
    assert 0.0 <= info.progress <= 100.0


@pytest.mark.parametrize(
    "status",
    [
        StatusConfig("waiting_customer", "Attente client", pause_timer=True),
        StatusConfig("ready", "Prêt", is_final_status=True),
        StatusConfig("archived", "Archivé", pause_timer=True, is_final_status=True),
    ],
)
def test_paused_or_final_status_is_never_overdue(status):
    case = make_case(created_at=NOW - timedelta(days=400))
    info = compute_delay(case, None, status, NOW)
    assert info.is_overdue is False
    assert info.is_paused is True


def test_zero_processing_days_is_not_tracked():
    case = make_case(sav_type="internal", created_at=NOW - timedelta(days=30))
    catalog = CatalogResolver(types=[TypeConfig("internal", "Interne", max_processing_days=0)])
    info = delay_for_case(case, catalog, NOW)
    assert info.is_tracked is False
    assert info.is_overdue is False
    assert info.progress == 0.0
    assert info.deadline is None


def test_configured_type_wins_over_fallback_days():
    case = make_case(sav_type="external", created_at=NOW - timedelta(days=4))
    catalog = CatalogResolver(types=[TypeConfig("external", "Externe", max_processing_days=3)])
    assert delay_for_case(case, catalog, NOW).is_overdue is True
    # without the shop row, external falls back to 9 days
    assert delay_for_case(case, CatalogResolver(), NOW).is_overdue is False


def test_injected_delay_defaults():
    case = make_case(sav_type="client", created_at=NOW - timedelta(days=2))
    info = compute_delay(case, None, IN_PROGRESS, NOW, DelayDefaults(by_type=(), otherwise=1))
    assert info.is_overdue is True


def test_legacy_delivered_status_is_final():
    case = make_case(status="delivered", created_at=NOW - timedelta(days=40))
    info = delay_for_case(case, CatalogResolver(), NOW)
    assert info.is_paused is True
    assert info.is_overdue is False


def test_format_delay_text():
    case = make_case(created_at=NOW - timedelta(days=5, hours=1))
    info = compute_delay(case, TypeConfig("client", "Client", max_processing_days=7), IN_PROGRESS, NOW)
    assert format_delay_text(info) == "1j 23h restantes"

    case = make_case(created_at=NOW - timedelta(days=6, hours=20))
    info = compute_delay(case, TypeConfig("client", "Client", max_processing_days=7), IN_PROGRESS, NOW)
    assert format_delay_text(info) == "4h restantes"

    case = make_case(created_at=NOW - timedelta(days=8))
    info = compute_delay(case, TypeConfig("client", "Client", max_processing_days=7), IN_PROGRESS, NOW)
    assert format_delay_text(info) == "En retard"
