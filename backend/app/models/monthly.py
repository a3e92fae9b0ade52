from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Enum, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.enums import MonthlyDataType


class MonthlyData(Base):
    __tablename__ = "monthly_data"
    __table_args__ = (
        UniqueConstraint("farm_id", "fiscal_year", "month", "type", name="uq_monthly_data_farm_year_month_type"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    farm_id: Mapped[int] = mapped_column(
        ForeignKey("farms.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    fiscal_year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[str] = mapped_column(String(3), nullable=False)
    type: Mapped[MonthlyDataType] = mapped_column(
        Enum(MonthlyDataType, name="monthly_data_type"),
        nullable=False,
    )
    data_json: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    comments_json: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    is_actual: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    farm: Mapped["Farm"] = relationship("Farm", back_populates="monthly_data")


class MonthlyDataFrozen(Base):
    __tablename__ = "monthly_data_frozen"
    __table_args__ = (
        UniqueConstraint(
            "farm_id",
            "fiscal_year",
            "month",
            "type",
            name="uq_monthly_data_frozen_farm_year_month_type",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    farm_id: Mapped[int] = mapped_column(
        ForeignKey("farms.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    fiscal_year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[str] = mapped_column(String(3), nullable=False)
    type: Mapped[MonthlyDataType] = mapped_column(
        Enum(MonthlyDataType, name="monthly_data_type"),
        nullable=False,
    )
    data_json: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    frozen_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    farm: Mapped["Farm"] = relationship("Farm", back_populates="frozen_data")
