import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from savtrack.models.base import Base


class ShopSavType(Base):
    __tablename__ = "shop_sav_types"
    __table_args__ = (UniqueConstraint("shop_id", "type_key", name="uq_shop_sav_types_key"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    shop_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("shops.id", ondelete="CASCADE"), nullable=False
    )
    type_key: Mapped[str] = mapped_column(String(50), nullable=False)
    type_label: Mapped[str] = mapped_column(String(100), nullable=False)
    type_color: Mapped[str] = mapped_column(String(20), nullable=False, default="#6b7280")
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    max_processing_days: Mapped[int] = mapped_column(Integer, nullable=False, default=7)
    alert_days: Mapped[int] = mapped_column(Integer, nullable=False, default=2)
    exclude_from_stats: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    exclude_purchase_costs: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    exclude_sales_revenue: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    show_satisfaction_survey: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )


class ShopSavStatus(Base):
    __tablename__ = "shop_sav_statuses"
    __table_args__ = (UniqueConstraint("shop_id", "status_key", name="uq_shop_sav_statuses_key"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    shop_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("shops.id", ondelete="CASCADE"), nullable=False
    )
    status_key: Mapped[str] = mapped_column(String(50), nullable=False)
    status_label: Mapped[str] = mapped_column(String(100), nullable=False)
    status_color: Mapped[str] = mapped_column(String(20), nullable=False, default="#6b7280")
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    pause_timer: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_final_status: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )
