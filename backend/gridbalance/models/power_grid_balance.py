"""Power grid balance model - one day's electric balance snapshot."""

from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Date, DateTime, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from gridbalance.database import Base

if TYPE_CHECKING:
    from gridbalance.models.energy_category import EnergyCategory


class PowerGridBalance(Base):
    """Electric balance published by REE for a single calendar day.

    ``ree_id`` is the identifier assigned upstream. The same upstream id is
    reused for every day, so a balance row is unique per (ree_id, balance_date).
    Deleting a balance cascades to its categories, their sources and values.
    """

    __tablename__ = "power_grid_balances"
    __table_args__ = (
        UniqueConstraint("ree_id", "balance_date", name="uq_balance_ree_id_date"),
        Index("idx_balances_balance_date", "balance_date"),
        Index("idx_balances_last_update", "last_update"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    ree_id: Mapped[str] = mapped_column(String(100))
    balance_date: Mapped[date] = mapped_column(Date)
    type: Mapped[str] = mapped_column(String(100))
    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text)
    last_update: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    # Upstream cache-control metadata
    cache_hit: Mapped[bool] = mapped_column(Boolean, default=False)
    cache_expire_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    categories: Mapped[list["EnergyCategory"]] = relationship(
        back_populates="balance", cascade="all, delete-orphan", passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<PowerGridBalance(ree_id='{self.ree_id}', balance_date={self.balance_date})>"
