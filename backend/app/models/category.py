from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base


class FarmCategory(Base):
    __tablename__ = "farm_categories"
    __table_args__ = (
        UniqueConstraint("farm_id", "code", name="uq_farm_categories_farm_code"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    farm_id: Mapped[int] = mapped_column(
        ForeignKey("farms.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    code: Mapped[str] = mapped_column(String(100), nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    parent_id: Mapped[int | None] = mapped_column(
        ForeignKey("farm_categories.id", ondelete="SET NULL"),
        nullable=True,
    )
    path: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    category_type: Mapped[str] = mapped_column(String(50), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    farm: Mapped["Farm"] = relationship("Farm", back_populates="categories")
    parent: Mapped["FarmCategory | None"] = relationship(
        "FarmCategory",
        remote_side="FarmCategory.id",
        back_populates="children",
    )
    children: Mapped[list["FarmCategory"]] = relationship("FarmCategory", back_populates="parent")
    gl_accounts: Mapped[list["GlAccount"]] = relationship("GlAccount", back_populates="category")
