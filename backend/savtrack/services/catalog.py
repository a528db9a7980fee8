"""
Per-shop SAV type and status catalog.

A shop may configure its own types and statuses. Lookups resolve in order:
  1. the shop's active configured row for the key
  2. the default table carried by the injected CatalogDefaults
  3. a generic fallback labelled with the key itself

Resolution is a pure lookup over rows already fetched by load_catalog();
refetching is up to the caller.
"""
import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from savtrack.models.catalog import ShopSavStatus, ShopSavType

logger = logging.getLogger(__name__)

DEFAULT_COLOR = "#6b7280"

READY_STATUS = "ready"
CANCELLED_STATUS = "cancelled"

# Statuses renamed over time; the stored value is remapped when read.
LEGACY_STATUS_ALIASES = {"delivered": READY_STATUS}

_READY_LABEL_HINTS = ("prêt", "pret", "ready", "terminé", "termine")
_READY_KEYS = {"ready", "pret", "terminé", "termine"}
_CANCELLED_LABEL_HINTS = ("annulé", "annule", "cancelled", "abandon")
_CANCELLED_KEYS = {"cancelled", "annule", "annulé", "abandon"}


@dataclass(frozen=True)
class TypeConfig:
    type_key: str
    label: str
    color: str = DEFAULT_COLOR
    max_processing_days: int = 7
    alert_days: int = 2
    exclude_from_stats: bool = False
    exclude_purchase_costs: bool = False
    exclude_sales_revenue: bool = False
    show_satisfaction_survey: bool = True
    display_order: int = 0

    @property
    def tracks_deadline(self) -> bool:
        return self.max_processing_days > 0

    @property
    def excluded_from_stats(self) -> bool:
        """Excluded outright, or nothing left to count once both sides are zeroed."""
        return self.exclude_from_stats or (
            self.exclude_purchase_costs and self.exclude_sales_revenue
        )

    @classmethod
    def from_row(cls, row: ShopSavType) -> "TypeConfig":
        return cls(
            type_key=row.type_key,
            label=row.type_label,
            color=row.type_color or DEFAULT_COLOR,
            max_processing_days=row.max_processing_days or 0,
            alert_days=row.alert_days if row.alert_days is not None else 2,
            exclude_from_stats=bool(row.exclude_from_stats),
            exclude_purchase_costs=bool(row.exclude_purchase_costs),
            exclude_sales_revenue=bool(row.exclude_sales_revenue),
            show_satisfaction_survey=(
                True if row.show_satisfaction_survey is None else row.show_satisfaction_survey
            ),
            display_order=row.display_order or 0,
        )


@dataclass(frozen=True)
class StatusConfig:
    status_key: str
    label: str
    color: str = DEFAULT_COLOR
    pause_timer: bool = False
    is_final_status: bool = False
    display_order: int = 0

    @classmethod
    def from_row(cls, row: ShopSavStatus) -> "StatusConfig":
        return cls(
            status_key=row.status_key,
            label=row.status_label,
            color=row.status_color or DEFAULT_COLOR,
            pause_timer=bool(row.pause_timer),
            is_final_status=bool(row.is_final_status),
            display_order=row.display_order or 0,
        )


@dataclass(frozen=True)
class CatalogDefaults:
    """Catalog used when a shop has no configured row for a key."""

    types: tuple[TypeConfig, ...]
    statuses: tuple[StatusConfig, ...]
    fallback_processing_days: int = 7
    fallback_color: str = DEFAULT_COLOR


DEFAULT_CATALOG = CatalogDefaults(
    types=(
        # Internal repairs carry no deadline and stay out of the figures.
        TypeConfig("internal", "SAV INTERNE", "#3b82f6", max_processing_days=0,
                   exclude_from_stats=True, show_satisfaction_survey=False, display_order=1),
        TypeConfig("external", "SAV EXTERNE", "#10b981", max_processing_days=9, display_order=2),
        TypeConfig("client", "SAV CLIENT", "#f59e0b", max_processing_days=7, display_order=3),
    ),
    statuses=(
        StatusConfig("pending", "En attente", "#6b7280", display_order=1),
        StatusConfig("in_progress", "En cours", "#3b82f6", display_order=2),
        StatusConfig("testing", "Tests", "#8b5cf6", display_order=3),
        StatusConfig("parts_ordered", "Pièces commandées", "#f59e0b", display_order=4),
        StatusConfig("parts_received", "Pièces réceptionnées", "#22c55e", display_order=5),
        StatusConfig("ready", "Prêt", "#10b981", is_final_status=True, display_order=6),
        StatusConfig("cancelled", "Annulé", "#ef4444", is_final_status=True, display_order=7),
    ),
)


def normalize_status(status_key: str | None) -> str:
    key = status_key or ""
    return LEGACY_STATUS_ALIASES.get(key, key)


@dataclass
class CatalogResolver:
    types: Iterable[TypeConfig] = ()
    statuses: Iterable[StatusConfig] = ()
    defaults: CatalogDefaults = DEFAULT_CATALOG
    _types: dict[str, TypeConfig] = field(init=False, repr=False)
    _statuses: dict[str, StatusConfig] = field(init=False, repr=False)
    _default_types: dict[str, TypeConfig] = field(init=False, repr=False)
    _default_statuses: dict[str, StatusConfig] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._types = {t.type_key: t for t in self.types}
        self._statuses = {s.status_key: s for s in self.statuses}
        self._default_types = {t.type_key: t for t in self.defaults.types}
        self._default_statuses = {s.status_key: s for s in self.defaults.statuses}

    # ------------------------------------------------------------------ #
    # Types
    # ------------------------------------------------------------------ #

    def find_type(self, type_key: str) -> TypeConfig | None:
        """The shop's configured row only."""
        return self._types.get(type_key)

    def resolve_type(self, type_key: str) -> TypeConfig:
        configured = self._types.get(type_key)
        if configured is not None:
            return configured
        default = self._default_types.get(type_key)
        if default is not None:
            return default
        return TypeConfig(
            type_key=type_key,
            label=type_key,
            color=self.defaults.fallback_color,
            max_processing_days=self.defaults.fallback_processing_days,
        )

    def is_known_type(self, type_key: str) -> bool:
        return type_key in self._types or type_key in self._default_types

    def all_types(self) -> list[TypeConfig]:
        source = self._types or self._default_types
        return sorted(source.values(), key=lambda t: (t.display_order, t.type_key))

    # ------------------------------------------------------------------ #
    # Statuses
    # ------------------------------------------------------------------ #

    def find_status(self, status_key: str) -> StatusConfig | None:
        return self._statuses.get(normalize_status(status_key))

    def resolve_status(self, status_key: str) -> StatusConfig:
        key = normalize_status(status_key)
        configured = self._statuses.get(key)
        if configured is not None:
            return configured
        default = self._default_statuses.get(key)
        if default is not None:
            return default
        return StatusConfig(status_key=key, label=key, color=self.defaults.fallback_color)

    def all_statuses(self) -> list[StatusConfig]:
        source = self._statuses or self._default_statuses
        return sorted(source.values(), key=lambda s: (s.display_order, s.status_key))

    def is_known_status(self, status_key: str) -> bool:
        key = normalize_status(status_key)
        return any(s.status_key == key for s in self.all_statuses())

    def is_final(self, status_key: str) -> bool:
        return self.resolve_status(status_key).is_final_status

    def pauses_timer(self, status_key: str) -> bool:
        return self.resolve_status(status_key).pause_timer

    def is_ready(self, status_key: str) -> bool:
        key = normalize_status(status_key)
        configured = self._statuses.get(key)
        if configured is not None:
            label = configured.label.lower()
            return key == READY_STATUS or any(hint in label for hint in _READY_LABEL_HINTS)
        return key.lower() in _READY_KEYS

    def is_cancelled(self, status_key: str) -> bool:
        key = normalize_status(status_key)
        configured = self._statuses.get(key)
        if configured is not None:
            label = configured.label.lower()
            return key == CANCELLED_STATUS or any(
                hint in label for hint in _CANCELLED_LABEL_HINTS
            )
        return key.lower() in _CANCELLED_KEYS

    def closed_status_keys(self) -> set[str]:
        """Final statuses plus the legacy keys older rows may still hold."""
        keys = {s.status_key for s in self.all_statuses() if s.is_final_status}
        keys.update(LEGACY_STATUS_ALIASES)
        keys.update({READY_STATUS, CANCELLED_STATUS})
        return keys


async def load_catalog(
    db: AsyncSession,
    shop_id: uuid.UUID,
    defaults: CatalogDefaults = DEFAULT_CATALOG,
) -> CatalogResolver:
    """
    Fetch the shop's active types and statuses.

    A store error falls back to the defaults rather than blocking the caller.
    """
    try:
        type_rows = (
            await db.execute(
                select(ShopSavType)
                .where(ShopSavType.shop_id == shop_id, ShopSavType.is_active.is_(True))
                .order_by(ShopSavType.display_order)
            )
        ).scalars().all()
        status_rows = (
            await db.execute(
                select(ShopSavStatus)
                .where(ShopSavStatus.shop_id == shop_id, ShopSavStatus.is_active.is_(True))
                .order_by(ShopSavStatus.display_order)
            )
        ).scalars().all()
    except SQLAlchemyError as exc:
        logger.warning("Catalog fetch failed for shop %s, using defaults: %s", shop_id, exc)
        await db.rollback()
        return CatalogResolver(defaults=defaults)

    return CatalogResolver(
        types=[TypeConfig.from_row(r) for r in type_rows],
        statuses=[StatusConfig.from_row(r) for r in status_rows],
        defaults=defaults,
    )
