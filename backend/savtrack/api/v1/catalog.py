"""
SAV type / status catalog endpoints.

Resolved catalogs are cached in memory per shop for CATALOG_CACHE_TTL
seconds; writes drop the shop's entry. Other routers get the catalog
through the get_catalog dependency.
"""
import logging
import time

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from savtrack.core.config import get_settings
from savtrack.core.db import get_db
from savtrack.core.rbac import require_role
from savtrack.core.security import ROLE_SHOP_ADMIN, get_current_shop
from savtrack.models.catalog import ShopSavStatus, ShopSavType
from savtrack.models.shop import Shop
from savtrack.schemas.catalog import (
    SavStatusResponse,
    SavStatusUpsert,
    SavTypeResponse,
    SavTypeUpsert,
)
from savtrack.services.catalog import CatalogResolver, StatusConfig, TypeConfig, load_catalog
from savtrack.services.clock import utcnow

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/catalog", tags=["catalog"])
settings = get_settings()

# ---------------------------------------------------------------------------
# Per-shop TTL cache
# ---------------------------------------------------------------------------
_cache: dict[str, tuple[float, CatalogResolver]] = {}


def _cache_get(key: str) -> CatalogResolver | None:
    if key in _cache:
        ts, value = _cache[key]
        if time.monotonic() - ts < settings.catalog_cache_ttl:
            return value
        del _cache[key]
    return None


def _cache_set(key: str, value: CatalogResolver) -> None:
    _cache[key] = (time.monotonic(), value)


def invalidate_catalog(shop_id) -> None:
    _cache.pop(str(shop_id), None)


async def get_catalog(
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_db),
) -> CatalogResolver:
    key = str(shop.id)
    cached = _cache_get(key)
    if cached is not None:
        return cached
    catalog = await load_catalog(db, shop.id)
    _cache_set(key, catalog)
    return catalog


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("/types", response_model=list[SavTypeResponse])
async def get_types(catalog: CatalogResolver = Depends(get_catalog)) -> list[SavTypeResponse]:
    return [SavTypeResponse.model_validate(t) for t in catalog.all_types()]


@router.get("/statuses", response_model=list[SavStatusResponse])
async def get_statuses(catalog: CatalogResolver = Depends(get_catalog)) -> list[SavStatusResponse]:
    return [SavStatusResponse.model_validate(s) for s in catalog.all_statuses()]


@router.put("/types/{type_key}", response_model=SavTypeResponse)
async def upsert_type(
    type_key: str,
    payload: SavTypeUpsert,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_db),
    _admin=Depends(require_role(ROLE_SHOP_ADMIN)),
) -> SavTypeResponse:
    result = await db.execute(
        select(ShopSavType).where(ShopSavType.shop_id == shop.id, ShopSavType.type_key == type_key)
    )
    row = result.scalars().first()
    if row is None:
        row = ShopSavType(shop_id=shop.id, type_key=type_key)
        db.add(row)

    row.type_label = payload.label
    row.type_color = payload.color
    row.max_processing_days = payload.max_processing_days
    row.alert_days = payload.alert_days
    row.exclude_from_stats = payload.exclude_from_stats
    row.exclude_purchase_costs = payload.exclude_purchase_costs
    row.exclude_sales_revenue = payload.exclude_sales_revenue
    row.show_satisfaction_survey = payload.show_satisfaction_survey
    row.display_order = payload.display_order
    row.is_active = payload.is_active
    row.updated_at = utcnow()

    await db.commit()
    invalidate_catalog(shop.id)
    logger.info("Shop %s saved SAV type %s", shop.id, type_key)
    return SavTypeResponse.model_validate(TypeConfig.from_row(row))


@router.put("/statuses/{status_key}", response_model=SavStatusResponse)
async def upsert_status(
    status_key: str,
    payload: SavStatusUpsert,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_db),
    _admin=Depends(require_role(ROLE_SHOP_ADMIN)),
) -> SavStatusResponse:
    result = await db.execute(
        select(ShopSavStatus).where(
            ShopSavStatus.shop_id == shop.id, ShopSavStatus.status_key == status_key
        )
    )
    row = result.scalars().first()
    if row is None:
        row = ShopSavStatus(shop_id=shop.id, status_key=status_key)
        db.add(row)

    row.status_label = payload.label
    row.status_color = payload.color
    row.pause_timer = payload.pause_timer
    row.is_final_status = payload.is_final_status
    row.display_order = payload.display_order
    row.is_active = payload.is_active
    row.updated_at = utcnow()

    await db.commit()
    invalidate_catalog(shop.id)
    logger.info("Shop %s saved SAV status %s", shop.id, status_key)
    return SavStatusResponse.model_validate(StatusConfig.from_row(row))
