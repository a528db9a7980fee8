"""Parts catalog endpoints."""
from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from savtrack.core.db import get_db
from savtrack.core.security import get_current_shop
from savtrack.models.part import Part
from savtrack.models.shop import Shop
from savtrack.schemas.part import PartCreate, PartResponse
from savtrack.services.clock import utcnow

router = APIRouter(prefix="/parts", tags=["parts"])


@router.post("", response_model=PartResponse, status_code=status.HTTP_201_CREATED)
async def create_part(
    payload: PartCreate,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_db),
) -> PartResponse:
    part = Part(shop_id=shop.id, created_at=utcnow(), **payload.model_dump())
    db.add(part)
    await db.commit()
    return PartResponse.model_validate(part)


@router.get("", response_model=list[PartResponse])
async def list_parts(
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_db),
) -> list[PartResponse]:
    rows = (
        await db.execute(select(Part).where(Part.shop_id == shop.id).order_by(Part.name))
    ).scalars().all()
    return [PartResponse.model_validate(r) for r in rows]
