"""Pydantic schemas for records, results and responses."""
from pricelab.schemas.pricing import (
    ExperimentRecord,
    PriceResult,
    ProductRecord,
    TenantRotationSettings,
    VariantRecord,
    VisitorSession,
)
from pricelab.schemas.rotation import (
    ExperimentFailure,
    ExperimentRotationResult,
    LiveVariant,
    PriceUpdateOutcome,
    ProductSyncResult,
    RotationRunResult,
    SchedulerStatus,
    SyncResult,
    TenantRotationResult,
)

__all__ = [
    "ExperimentRecord",
    "PriceResult",
    "ProductRecord",
    "TenantRotationSettings",
    "VariantRecord",
    "VisitorSession",
    "ExperimentFailure",
    "ExperimentRotationResult",
    "LiveVariant",
    "PriceUpdateOutcome",
    "ProductSyncResult",
    "RotationRunResult",
    "SchedulerStatus",
    "SyncResult",
    "TenantRotationResult",
]
