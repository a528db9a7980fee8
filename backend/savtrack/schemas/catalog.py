from pydantic import BaseModel, Field


class SavTypeResponse(BaseModel):
    type_key: str
    label: str
    color: str
    max_processing_days: int
    alert_days: int
    exclude_from_stats: bool
    exclude_purchase_costs: bool
    exclude_sales_revenue: bool
    show_satisfaction_survey: bool
    display_order: int

    model_config = {"from_attributes": True}


class SavStatusResponse(BaseModel):
    status_key: str
    label: str
    color: str
    pause_timer: bool
    is_final_status: bool
    display_order: int

    model_config = {"from_attributes": True}


class SavTypeUpsert(BaseModel):
    label: str = Field(min_length=1, max_length=100)
    color: str = "#6b7280"
    max_processing_days: int = Field(default=7, ge=0)
    alert_days: int = Field(default=2, ge=0)
    exclude_from_stats: bool = False
    exclude_purchase_costs: bool = False
    exclude_sales_revenue: bool = False
    show_satisfaction_survey: bool = True
    display_order: int = 0
    is_active: bool = True


class SavStatusUpsert(BaseModel):
    label: str = Field(min_length=1, max_length=100)
    color: str = "#6b7280"
    pause_timer: bool = False
    is_final_status: bool = False
    display_order: int = 0
    is_active: bool = True
