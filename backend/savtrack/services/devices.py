"""
Device categorisation for the statistics breakdowns.

Best-effort heuristic over free-text brand / model strings. Rules are
evaluated top to bottom and the first match wins:

  1. Consoles     : console makers and console model keywords
  2. Informatique : PC brands and computer model keywords
  3. Tablettes    : tablet model patterns
  4. Téléphones   : phone brands and phone model patterns
  5. Autres       : everything else
"""
import re
import unicodedata
from collections.abc import Callable
from dataclasses import dataclass

CONSOLES = "Consoles"
COMPUTERS = "Informatique"
TABLETS = "Tablettes"
PHONES = "Téléphones"
OTHERS = "Autres"

CATEGORY_ORDER = (CONSOLES, COMPUTERS, TABLETS, PHONES, OTHERS)

_CONSOLE_BRANDS = {"nintendo", "valve", "sega", "atari"}
_CONSOLE_PATTERN = re.compile(
    r"\b(playstation|ps[1-5]|psp|ps ?vita|xbox|switch|wii ?u?|[23]ds|game ?boy|"
    r"steam ?deck|dualsense|dualshock|joy-?con)\b"
)

_PC_BRANDS = {
    "dell", "hp", "lenovo", "asus", "acer", "msi", "toshiba", "fujitsu",
    "medion", "razer", "gigabyte", "alienware", "compaq", "packard bell",
}
_PC_PATTERN = re.compile(
    r"\b(macbook|imac|mac ?mini|mac ?pro|thinkpad|ideapad|chromebook|laptop|"
    r"notebook|ordinateur|pc|surface (laptop|book)|unite centrale|tour)\b"
)

_TABLET_PATTERN = re.compile(
    r"\b(ipad|tab|tablet|tablette|galaxy tab|mediapad|matepad|surface pro|kindle|"
    r"fire hd|yoga tab)\b"
)

_PHONE_BRANDS = {
    "apple", "samsung", "xiaomi", "redmi", "poco", "huawei", "honor", "oppo",
    "oneplus", "google", "motorola", "nokia", "sony", "realme", "vivo", "wiko",
    "alcatel", "crosscall", "fairphone", "nothing",
}
_PHONE_PATTERN = re.compile(
    r"\b(iphone|galaxy|pixel|redmi|xperia|smartphone|telephone|mobile|"
    r"moto ?[a-z]?\d*|nord)\b"
)


def _fold(text: str | None) -> str:
    """Lowercase and strip accents so 'Téléphone' matches 'telephone'."""
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(stripped.lower().split())


@dataclass(frozen=True)
class DeviceRule:
    predicate: Callable[[str, str], bool]
    category: str


def _is_console(brand: str, model: str) -> bool:
    return brand in _CONSOLE_BRANDS or bool(_CONSOLE_PATTERN.search(f"{brand} {model}"))


def _is_computer(brand: str, model: str) -> bool:
    return brand in _PC_BRANDS or bool(_PC_PATTERN.search(model))


def _is_tablet(brand: str, model: str) -> bool:
    return bool(_TABLET_PATTERN.search(model))


def _is_phone(brand: str, model: str) -> bool:
    return brand in _PHONE_BRANDS or bool(_PHONE_PATTERN.search(f"{brand} {model}"))


DEVICE_RULES: tuple[DeviceRule, ...] = (
    DeviceRule(_is_console, CONSOLES),
    DeviceRule(_is_computer, COMPUTERS),
    DeviceRule(_is_tablet, TABLETS),
    DeviceRule(_is_phone, PHONES),
)


def categorize_device(
    brand: str | None,
    model: str | None,
    rules: tuple[DeviceRule, ...] = DEVICE_RULES,
) -> str:
    folded_brand = _fold(brand)
    folded_model = _fold(model)
    for rule in rules:
        if rule.predicate(folded_brand, folded_model):
            return rule.category
    return OTHERS


@dataclass(frozen=True)
class DeviceKey:
    key: str
    brand: str
    model: str


_NON_WORD = re.compile(r"[^\w\s]")


def normalize_device_key(brand: str | None, model: str | None) -> DeviceKey:
    """Group 'iPhone 12' and 'IPHONE12' under the same key."""
    norm_brand = _NON_WORD.sub("", (brand or "MARQUE INCONNUE").upper().strip())
    norm_brand = " ".join(norm_brand.split())
    norm_model = _NON_WORD.sub("", (model or "MODÈLE INCONNU").upper().strip())
    norm_model = "".join(norm_model.split())
    return DeviceKey(
        key=f"{norm_brand}_{norm_model}",
        brand=brand or "Marque inconnue",
        model=model or "Modèle inconnu",
    )
