"""Energy category model - renewable, non-renewable, storage or demand."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from gridbalance.database import Base

if TYPE_CHECKING:
    from gridbalance.models.energy_source import EnergySource
    from gridbalance.models.power_grid_balance import PowerGridBalance


class EnergyCategory(Base):
    """A grouping of energy sources.

    Categories are unique by their upstream id across the whole table, not per
    balance. Re-ingesting a category moves it to the balance being ingested,
    so a category always hangs off the latest balance that mentioned it.
    """

    __tablename__ = "energy_categories"
    __table_args__ = (Index("idx_categories_type", "type"),)

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    ree_id: Mapped[str] = mapped_column(String(100), unique=True)
    type: Mapped[str] = mapped_column(String(100))
    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text)
    last_update: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    balance_id: Mapped[int] = mapped_column(
        ForeignKey("power_grid_balances.id", ondelete="CASCADE"), index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    balance: Mapped["PowerGridBalance"] = relationship(back_populates="categories")
    sources: Mapped[list["EnergySource"]] = relationship(
        back_populates="category",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="EnergySource.title",
    )

    def __repr__(self) -> str:
        return f"<EnergyCategory(ree_id='{self.ree_id}', type='{self.type}')>"
