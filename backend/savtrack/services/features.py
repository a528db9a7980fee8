"""
Menu feature resolution and the active-case limit.

A feature is enabled when the subscription plan allows it and the shop has
not switched it off, or when a super admin has forced it on. The shop can
only toggle what its plan allows or what has been forced.
"""
from collections.abc import Mapping
from dataclasses import dataclass, field

FEATURE_KEYS = (
    "dashboard",
    "sav",
    "parts",
    "quotes",
    "orders",
    "customers",
    "chats",
    "statistics",
    "sidebar_sav_types",
    "sidebar_sav_statuses",
    "sidebar_late_sav",
)


@dataclass(frozen=True)
class Plan:
    name: str
    features: frozenset[str]
    max_active_cases: int | None = None


@dataclass(frozen=True)
class PlanCatalog:
    plans: tuple[Plan, ...]
    fallback: str = "free"
    _by_name: dict[str, Plan] = field(init=False, repr=False, compare=False, hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_by_name", {p.name: p for p in self.plans})

    def get(self, name: str | None) -> Plan:
        return self._by_name.get(name or "", self._by_name[self.fallback])


_BASE_FEATURES = frozenset(
    {"dashboard", "sav", "parts", "customers", "sidebar_sav_types",
     "sidebar_sav_statuses", "sidebar_late_sav"}
)

DEFAULT_PLANS = PlanCatalog(
    plans=(
        Plan("free", _BASE_FEATURES, max_active_cases=15),
        Plan("premium", _BASE_FEATURES | {"quotes", "orders", "statistics"}, max_active_cases=100),
        Plan("enterprise", frozenset(FEATURE_KEYS), max_active_cases=None),
    )
)


def _flagged(flags: Mapping[str, bool] | None) -> set[str]:
    return {key for key, value in (flags or {}).items() if value is True}


def resolve_features(
    plan: Plan,
    disabled: Mapping[str, bool] | None = None,
    forced: Mapping[str, bool] | None = None,
) -> dict[str, bool]:
    off = _flagged(disabled)
    on = _flagged(forced)
    return {
        key: (key in plan.features and key not in off) or key in on
        for key in FEATURE_KEYS
    }


def can_toggle(plan: Plan, forced: Mapping[str, bool] | None, key: str) -> bool:
    return key in plan.features or key in _flagged(forced)


@dataclass(frozen=True)
class CaseLimit:
    active_count: int
    max_active_cases: int | None

    @property
    def unlimited(self) -> bool:
        return self.max_active_cases is None

    @property
    def remaining(self) -> int | None:
        if self.max_active_cases is None:
            return None
        return max(0, self.max_active_cases - self.active_count)

    @property
    def reached(self) -> bool:
        return self.max_active_cases is not None and self.active_count >= self.max_active_cases


def evaluate_case_limit(active_count: int, plan: Plan, override: int | None = None) -> CaseLimit:
    """A shop-level override replaces the plan's limit."""
    limit = override if override is not None else plan.max_active_cases
    return CaseLimit(active_count=active_count, max_active_cases=limit)
