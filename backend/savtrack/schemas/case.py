import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator, model_validator

from savtrack.services.catalog import normalize_status


class CaseCreate(BaseModel):
    sav_type: str = Field(min_length=1, max_length=50)
    customer_id: uuid.UUID | None = None
    device_brand: str | None = None
    device_model: str | None = None
    problem_description: str | None = None


class CaseUpdate(BaseModel):
    device_brand: str | None = None
    device_model: str | None = None
    problem_description: str | None = None
    repair_notes: str | None = None
    taken_over: bool | None = None
    partial_takeover: bool | None = None
    takeover_amount: Decimal | None = Field(default=None, ge=0)
    total_time_minutes: int | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def partial_takeover_needs_amount(self):
        if self.partial_takeover and self.takeover_amount is None:
            raise ValueError("takeover_amount is required for a partial takeover")
        return self


class DelayResponse(BaseModel):
    is_overdue: bool
    remaining_days: int
    remaining_hours: int
    total_remaining_hours: int
    progress: float
    is_paused: bool
    is_tracked: bool
    deadline: datetime | None
    text: str | None = None

    model_config = {"from_attributes": True}


class AllocationResponse(BaseModel):
    cost: float
    revenue: float
    margin: float
    takeover_cost: float
    client_cost: float
    takeover_ratio: float
    excluded_from_stats: bool

    model_config = {"from_attributes": True}


class CaseResponse(BaseModel):
    id: uuid.UUID
    case_number: str
    sav_type: str
    status: str
    customer_id: uuid.UUID | None
    device_brand: str | None
    device_model: str | None
    problem_description: str | None
    repair_notes: str | None
    total_cost: float
    taken_over: bool
    partial_takeover: bool
    takeover_amount: float | None
    total_time_minutes: int | None
    created_at: datetime
    updated_at: datetime
    delay: DelayResponse | None = None

    model_config = {"from_attributes": True}

    @field_validator("status", mode="before")
    @classmethod
    def remap_legacy_status(cls, v: str) -> str:
        return normalize_status(v)


class CasePartResponse(BaseModel):
    id: uuid.UUID
    part_id: uuid.UUID | None
    name: str
    quantity: int
    purchase_price: float
    unit_price: float | None
    custom_part_name: str | None


class CaseDetailResponse(CaseResponse):
    allocation: AllocationResponse
    parts: list[CasePartResponse]


class CaseListResponse(BaseModel):
    items: list[CaseResponse]
    total: int
    page: int
    page_size: int
    pages: int


class PartLineCreate(BaseModel):
    part_id: uuid.UUID | None = None
    quantity: int = Field(default=1, ge=0)
    purchase_price: Decimal | None = Field(default=None, ge=0)
    unit_price: Decimal | None = Field(default=None, ge=0)
    custom_part_name: str | None = None

    @model_validator(mode="after")
    def needs_part_or_name(self):
        if self.part_id is None and not self.custom_part_name:
            raise ValueError("part_id or custom_part_name is required")
        return self


class StatusChangeRequest(BaseModel):
    status: str = Field(min_length=1, max_length=50)
    note: str | None = None


class CaseLimitResponse(BaseModel):
    active_count: int
    max_active_cases: int | None
    remaining: int | None
    reached: bool

    model_config = {"from_attributes": True}


class StatusChangeResponse(BaseModel):
    case: CaseResponse
    previous_status: str
    limit: CaseLimitResponse
    survey_sent: bool
    review_requested: bool


class StatusHistoryResponse(BaseModel):
    id: uuid.UUID
    prev_status: str | None
    status: str
    notes: str | None
    changed_by_user_id: uuid.UUID | None
    created_at: datetime

    model_config = {"from_attributes": True}
