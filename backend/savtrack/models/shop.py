import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Uuid, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from savtrack.models.base import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


class Shop(Base):
    __tablename__ = "shops"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    subscription_tier: Mapped[str] = mapped_column(String(20), nullable=False, default="free")
    disabled_features: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    forced_features: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    max_active_cases: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sav_delay_alerts_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    review_request_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )
