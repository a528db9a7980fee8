import uuid

from sqlalchemy import ForeignKey, Integer, SmallInteger, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from savtrack.models.base import Base


class CaseSequence(Base):
    """Per-shop yearly counter behind SAV-YYYY-NNNNN case numbers."""

    __tablename__ = "case_sequence"

    shop_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("shops.id", ondelete="CASCADE"), primary_key=True
    )
    year: Mapped[int] = mapped_column(SmallInteger, primary_key=True)
    last_seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
