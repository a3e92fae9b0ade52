from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Date, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base


class InventoryLocation(Base):
    __tablename__ = "inventory_locations"
    __table_args__ = (
        UniqueConstraint("farm_id", "name", name="uq_inventory_locations_farm_name"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    farm_id: Mapped[int] = mapped_column(
        ForeignKey("farms.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    location_type: Mapped[str] = mapped_column(String(50), nullable=False, default="production")
    region: Mapped[str | None] = mapped_column(String(255), nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    farm: Mapped["Farm"] = relationship("Farm", back_populates="inventory_locations")
    bins: Mapped[list["InventoryBin"]] = relationship(
        "InventoryBin", back_populates="location", cascade="all, delete-orphan"
    )


class InventoryBin(Base):
    __tablename__ = "inventory_bins"
    __table_args__ = (
        UniqueConstraint("farm_id", "location_id", "bin_number", name="uq_inventory_bins_farm_location_number"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    farm_id: Mapped[int] = mapped_column(
        ForeignKey("farms.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    location_id: Mapped[int] = mapped_column(
        ForeignKey("inventory_locations.id", ondelete="CASCADE"),
        nullable=False,
    )
    bin_number: Mapped[str] = mapped_column(String(100), nullable=False)
    bin_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    size_bu: Mapped[float | None] = mapped_column(Float, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    location: Mapped["InventoryLocation"] = relationship("InventoryLocation", back_populates="bins")
    snapshots: Mapped[list["InventorySnapshot"]] = relationship(
        "InventorySnapshot", back_populates="bin", cascade="all, delete-orphan"
    )


class InventorySnapshot(Base):
    __tablename__ = "inventory_snapshots"
    __table_args__ = (
        UniqueConstraint("farm_id", "bin_id", "snapshot_date", name="uq_inventory_snapshots_farm_bin_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    farm_id: Mapped[int] = mapped_column(
        ForeignKey("farms.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    bin_id: Mapped[int] = mapped_column(
        ForeignKey("inventory_bins.id", ondelete="CASCADE"),
        nullable=False,
    )
    snapshot_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    commodity: Mapped[str | None] = mapped_column(String(255), nullable=True)
    bushels: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    kg: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    crop_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    bin: Mapped["InventoryBin"] = relationship("InventoryBin", back_populates="snapshots")


class CommodityConversion(Base):
    __tablename__ = "commodity_conversions"
    __table_args__ = (
        UniqueConstraint("farm_id", "commodity", name="uq_commodity_conversions_farm_commodity"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    farm_id: Mapped[int] = mapped_column(
        ForeignKey("farms.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    commodity: Mapped[str] = mapped_column(String(100), nullable=False)
    lbs_per_bu: Mapped[float] = mapped_column(Float, nullable=False)

    farm: Mapped["Farm"] = relationship("Farm", back_populates="commodity_conversions")
