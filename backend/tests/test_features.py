"""Tests for feature resolution and the active-case limit."""
import pytest

from savtrack.services.features import (
    DEFAULT_PLANS,
    FEATURE_KEYS,
    Plan,
    can_toggle,
    evaluate_case_limit,
    resolve_features,
)


def test_plan_lookup_falls_back_to_free():
    assert DEFAULT_PLANS.get("premium").name == "premium"
    assert DEFAULT_PLANS.get("gold").name == "free"
    assert DEFAULT_PLANS.get(None).name == "free"


def test_features_follow_the_plan():
    features = resolve_features(DEFAULT_PLANS.get("free"))
    assert set(features) == set(FEATURE_KEYS)
    assert features["sav"] is True
    assert features["statistics"] is False


def test_shop_can_disable_plan_features():
    features = resolve_features(DEFAULT_PLANS.get("premium"), disabled={"statistics": True})
    assert features["statistics"] is False
    assert features["quotes"] is True


def test_forced_features_win():
    plan = DEFAULT_PLANS.get("free")
    features = resolve_features(plan, disabled={"chats": True}, forced={"chats": True})
    assert features["chats"] is True


def test_only_true_flags_count():
    plan = DEFAULT_PLANS.get("free")
    features = resolve_features(plan, disabled={"sav": False}, forced={"statistics": False})
    assert features["sav"] is True
    assert features["statistics"] is False


def test_can_toggle():
    plan = DEFAULT_PLANS.get("free")
    assert can_toggle(plan, None, "sav") is True
    assert can_toggle(plan, None, "statistics") is False
    assert can_toggle(plan, {"statistics": True}, "statistics") is True


@pytest.mark.parametrize(
    "active,limit,override,reached,remaining",
    [
        (3, 15, None, False, 12),
        (15, 15, None, True, 0),
        (20, 15, None, True, 0),
        (20, 15, 50, False, 30),
        (200, None, None, False, None),
    ],
)
def test_case_limit(active, limit, override, reached, remaining):
    plan = Plan("custom", frozenset(), max_active_cases=limit)
    result = evaluate_case_limit(active, plan, override)
    assert result.reached is reached
    assert result.remaining == remaining
    assert result.unlimited is (result.max_active_cases is None)
