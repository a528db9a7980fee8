"""GET /shops/me: the caller's shop with its effective menu features."""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from savtrack.api.v1.catalog import get_catalog
from savtrack.core.db import get_db
from savtrack.core.security import get_current_shop
from savtrack.models.shop import Shop
from savtrack.schemas.case import CaseLimitResponse
from savtrack.schemas.shop import ShopResponse
from savtrack.services import case_service
from savtrack.services.catalog import CatalogResolver
from savtrack.services.features import DEFAULT_PLANS, FEATURE_KEYS, can_toggle, resolve_features

router = APIRouter(prefix="/shops", tags=["shops"])


@router.get("/me", response_model=ShopResponse)
async def get_my_shop(
    shop: Shop = Depends(get_current_shop),
    catalog: CatalogResolver = Depends(get_catalog),
    db: AsyncSession = Depends(get_db),
) -> ShopResponse:
    plan = DEFAULT_PLANS.get(shop.subscription_tier)
    limit = await case_service.case_limit_for(db, shop, catalog)
    return ShopResponse(
        id=shop.id,
        name=shop.name,
        subscription_tier=shop.subscription_tier,
        sav_delay_alerts_enabled=shop.sav_delay_alerts_enabled,
        review_request_enabled=shop.review_request_enabled,
        features=resolve_features(plan, shop.disabled_features, shop.forced_features),
        can_toggle={key: can_toggle(plan, shop.forced_features, key) for key in FEATURE_KEYS},
        limit=CaseLimitResponse.model_validate(limit),
    )
