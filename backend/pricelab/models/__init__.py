"""Database models."""
from pricelab.models.experiment import (
    Experiment,
    ExperimentStatus,
    ProductAssociation,
    ExperimentMode,
    Variant,
)
from pricelab.models.tenant import TenantSettings

__all__ = [
    "Experiment",
    "ExperimentStatus",
    "ProductAssociation",
    "ExperimentMode",
    "Variant",
    "TenantSettings",
]
