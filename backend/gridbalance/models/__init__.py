"""SQLAlchemy ORM models."""

from gridbalance.models.energy_category import EnergyCategory
from gridbalance.models.energy_source import EnergySource
from gridbalance.models.energy_value import EnergyValue
from gridbalance.models.power_grid_balance import PowerGridBalance

__all__ = [
    "EnergyCategory",
    "EnergySource",
    "EnergyValue",
    "PowerGridBalance",
]
