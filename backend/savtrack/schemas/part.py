import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class PartCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    reference: str | None = None
    purchase_price: Decimal = Field(default=Decimal("0"), ge=0)
    selling_price: Decimal = Field(default=Decimal("0"), ge=0)


class PartResponse(BaseModel):
    id: uuid.UUID
    name: str
    reference: str | None
    purchase_price: float
    selling_price: float
    created_at: datetime

    model_config = {"from_attributes": True}
