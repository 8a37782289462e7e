"""Energy source model - a single generation or consumption channel."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from gridbalance.database import Base

if TYPE_CHECKING:
    from gridbalance.models.energy_category import EnergyCategory
    from gridbalance.models.energy_value import EnergyValue


class EnergySource(Base):
    """A specific energy channel (hydro, wind, solar...) inside a category."""

    __tablename__ = "energy_sources"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    ree_id: Mapped[str] = mapped_column(String(100), unique=True)

    # Upstream id of the parent category; always equal to category.ree_id
    group_id: Mapped[str] = mapped_column(String(100))

    type: Mapped[str] = mapped_column(String(100))
    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text)
    color: Mapped[str | None] = mapped_column(String(20))
    icon: Mapped[str | None] = mapped_column(String(255))
    magnitude: Mapped[str | None] = mapped_column(String(50))
    is_composite: Mapped[bool] = mapped_column(Boolean, default=False)
    last_update: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    total: Mapped[float] = mapped_column(Float, default=0)
    total_percentage: Mapped[float] = mapped_column(Float, default=0)
    category_id: Mapped[int] = mapped_column(
        ForeignKey("energy_categories.id", ondelete="CASCADE"), index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    category: Mapped["EnergyCategory"] = relationship(back_populates="sources")
    values: Mapped[list["EnergyValue"]] = relationship(
        back_populates="source",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="EnergyValue.timestamp",
    )

    def __repr__(self) -> str:
        return f"<EnergySource(ree_id='{self.ree_id}', title='{self.title}', total={self.total})>"
