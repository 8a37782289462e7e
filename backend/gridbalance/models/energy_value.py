"""Energy value model - one time-series point for a source."""

from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from gridbalance.database import Base


class EnergyValue(Base):
    """Reading for a source at a point in time (unique per source and timestamp)."""

    __tablename__ = "energy_values"
    __table_args__ = (
        UniqueConstraint("source_id", "timestamp", name="uq_energy_value_source_timestamp"),
        Index("idx_energy_values_timestamp", "timestamp"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    source_id: Mapped[int] = mapped_column(ForeignKey("energy_sources.id", ondelete="CASCADE"))
    value: Mapped[float] = mapped_column(Float)
    percentage: Mapped[float] = mapped_column(Float)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    source: Mapped["EnergySource"] = relationship(back_populates="values")

    def __repr__(self) -> str:
        return f"<EnergyValue(source_id={self.source_id}, timestamp={self.timestamp}, value={self.value})>"
