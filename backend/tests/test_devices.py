"""Tests for the device category heuristic."""
import pytest

from savtrack.services.devices import (
    CONSOLES,
    COMPUTERS,
    OTHERS,
    PHONES,
    TABLETS,
    DeviceRule,
    categorize_device,
    normalize_device_key,
)


@pytest.mark.parametrize(
    "brand,model,expected",
    [
        ("Nintendo", "Switch OLED", CONSOLES),
        ("Sony", "PlayStation 5", CONSOLES),
        ("Microsoft", "Xbox Series X", CONSOLES),
        ("Valve", "Steam Deck", CONSOLES),
        ("Apple", "MacBook Pro 14", COMPUTERS),
        ("Dell", "XPS 13", COMPUTERS),
        ("Lenovo", "ThinkPad T14", COMPUTERS),
        ("Apple", "iPad Air", TABLETS),
        ("Samsung", "Galaxy Tab S8", TABLETS),
        ("Amazon", "Kindle Paperwhite", TABLETS),
        ("Apple", "iPhone 13", PHONES),
        ("Samsung", "Galaxy S22", PHONES),
        ("Xiaomi", "Redmi Note 12", PHONES),
        (None, "Pixel 7", PHONES),
        ("", "Téléphone fixe", PHONES),
        ("Dyson", "V11", OTHERS),
        (None, None, OTHERS),
    ],
)
def test_categorize_device(brand, model, expected):
    assert categorize_device(brand, model) == expected


def test_first_matching_rule_wins():
    # Sony is a phone brand, but console rules run first
    assert categorize_device("Sony", "PS4 Pro") == CONSOLES
    # PC brands run before tablet patterns
    assert categorize_device("Lenovo", "Tab M10") == COMPUTERS


def test_custom_rules():
    rules = (DeviceRule(lambda brand, model: "drone" in model, "Drones"),)
    assert categorize_device("DJI", "Mini 3 drone", rules) == "Drones"
    assert categorize_device("Apple", "iPhone 13", rules) == OTHERS


def test_normalize_device_key_groups_spelling_variants():
    a = normalize_device_key("Apple", "iPhone 12")
    b = normalize_device_key("apple ", "IPHONE12")
    assert a.key == b.key
    assert a.brand == "Apple" and a.model == "iPhone 12"


def test_normalize_device_key_unknown_values():
    key = normalize_device_key(None, None)
    assert key.brand == "Marque inconnue"
    assert key.model == "Modèle inconnu"
