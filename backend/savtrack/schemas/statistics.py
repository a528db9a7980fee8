from datetime import date

from pydantic import BaseModel


class DailyPointResponse(BaseModel):
    day: date
    revenue: float
    expenses: float
    profit: float
    sav_count: int
    completed: int
    late_rate: float

    model_config = {"from_attributes": True}


class MonthlyPointResponse(BaseModel):
    month: str
    revenue: float
    expenses: float
    profit: float
    sav_count: int

    model_config = {"from_attributes": True}


class TopPartResponse(BaseModel):
    name: str
    quantity: int
    revenue: float

    model_config = {"from_attributes": True}


class TopDeviceResponse(BaseModel):
    brand: str
    model: str
    count: int

    model_config = {"from_attributes": True}


class StatusCountResponse(BaseModel):
    status_key: str
    label: str
    color: str
    count: int

    model_config = {"from_attributes": True}


class CategoryShareResponse(BaseModel):
    category: str
    count: int
    revenue: float
    percentage: float

    model_config = {"from_attributes": True}


class TypeSubtotalResponse(BaseModel):
    type_key: str
    label: str
    count: int
    cost: float
    revenue: float
    margin: float

    model_config = {"from_attributes": True}


class StatisticsResponse(BaseModel):
    start: date
    end: date
    total_cases: int
    ready_count: int
    active_count: int
    late_count: int
    completed_count: int
    late_rate: float
    revenue: float
    expenses: float
    profit: float
    takeover_amount: float
    takeover_count: int
    average_time_minutes: float
    daily: list[DailyPointResponse]
    monthly: list[MonthlyPointResponse]
    top_parts: list[TopPartResponse]
    top_devices: list[TopDeviceResponse]
    status_distribution: list[StatusCountResponse]
    categories: list[CategoryShareResponse]
    type_subtotals: list[TypeSubtotalResponse]


class MonthlyFiguresResponse(BaseModel):
    month: int
    revenue: float
    costs: float
    profit: float
    sav_count: int
    takeover_cost: float
    client_cost: float
    external_cost: float

    model_config = {"from_attributes": True}


class MonthlyLateRateResponse(BaseModel):
    month: int
    active_count: int
    late_count: int
    late_rate: float

    model_config = {"from_attributes": True}
