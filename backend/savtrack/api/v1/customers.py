"""Customer endpoints. Deletion is refused while the customer has open cases."""
import logging
import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from savtrack.api.v1.catalog import get_catalog
from savtrack.core.db import get_db
from savtrack.core.security import get_current_shop
from savtrack.models.customer import Customer
from savtrack.models.shop import Shop
from savtrack.schemas.customer import CustomerCreate, CustomerResponse
from savtrack.services import case_service
from savtrack.services.catalog import CatalogResolver
from savtrack.services.clock import utcnow

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/customers", tags=["customers"])


@router.post("", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
async def create_customer(
    payload: CustomerCreate,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_db),
) -> CustomerResponse:
    customer = Customer(shop_id=shop.id, created_at=utcnow(), **payload.model_dump())
    db.add(customer)
    await db.commit()
    logger.info("Created customer %s (shop=%s)", customer.id, shop.id)
    return CustomerResponse.model_validate(customer)


@router.get("", response_model=list[CustomerResponse])
async def list_customers(
    search: str | None = None,
    limit: int = 50,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_db),
) -> list[CustomerResponse]:
    stmt = select(Customer).where(Customer.shop_id == shop.id)
    if search:
        pattern = f"%{search.lower()}%"
        stmt = stmt.where(
            or_(
                func.lower(Customer.first_name).like(pattern),
                func.lower(Customer.last_name).like(pattern),
                func.lower(Customer.email).like(pattern),
                Customer.phone.like(pattern),
            )
        )
    stmt = stmt.order_by(Customer.last_name, Customer.first_name).limit(min(limit, 200))
    rows = (await db.execute(stmt)).scalars().all()
    return [CustomerResponse.model_validate(r) for r in rows]


@router.delete("/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_customer(
    customer_id: uuid.UUID,
    shop: Shop = Depends(get_current_shop),
    catalog: CatalogResolver = Depends(get_catalog),
    db: AsyncSession = Depends(get_db),
) -> None:
    await case_service.delete_customer(db, shop.id, customer_id, catalog)
    logger.info("Deleted customer %s (shop=%s)", customer_id, shop.id)
