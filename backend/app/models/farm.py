from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.enums import RoleName


class Farm(Base):
    __tablename__ = "farms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    user_roles: Mapped[list["UserFarmRole"]] = relationship(
        "UserFarmRole", back_populates="farm", cascade="all, delete-orphan"
    )
    assumptions: Mapped[list["Assumption"]] = relationship(
        "Assumption", back_populates="farm", cascade="all, delete-orphan"
    )
    categories: Mapped[list["FarmCategory"]] = relationship(
        "FarmCategory", back_populates="farm", cascade="all, delete-orphan"
    )
    gl_accounts: Mapped[list["GlAccount"]] = relationship(
        "GlAccount", back_populates="farm", cascade="all, delete-orphan"
    )
    monthly_data: Mapped[list["MonthlyData"]] = relationship(
        "MonthlyData", back_populates="farm", cascade="all, delete-orphan"
    )
    frozen_data: Mapped[list["MonthlyDataFrozen"]] = relationship(
        "MonthlyDataFrozen", back_populates="farm", cascade="all, delete-orphan"
    )
    inventory_locations: Mapped[list["InventoryLocation"]] = relationship(
        "InventoryLocation", back_populates="farm", cascade="all, delete-orphan"
    )
    commodity_conversions: Mapped[list["CommodityConversion"]] = relationship(
        "CommodityConversion", back_populates="farm", cascade="all, delete-orphan"
    )


class UserFarmRole(Base):
    __tablename__ = "user_farm_roles"
    __table_args__ = (
        UniqueConstraint("user_id", "farm_id", name="uq_user_farm_roles_user_farm"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    farm_id: Mapped[int] = mapped_column(ForeignKey("farms.id", ondelete="CASCADE"), nullable=False)
    role: Mapped[RoleName] = mapped_column(
        Enum(RoleName, name="role_name"),
        default=RoleName.viewer,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    user: Mapped["User"] = relationship("User", back_populates="farm_roles")
    farm: Mapped["Farm"] = relationship("Farm", back_populates="user_roles")
