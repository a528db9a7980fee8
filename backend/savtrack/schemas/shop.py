import uuid

from pydantic import BaseModel

from savtrack.schemas.case import CaseLimitResponse


class ShopResponse(BaseModel):
    id: uuid.UUID
    name: str
    subscription_tier: str
    sav_delay_alerts_enabled: bool
    review_request_enabled: bool
    features: dict[str, bool]
    can_toggle: dict[str, bool]
    limit: CaseLimitResponse
