"""Rotation and price synchronization results."""
from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class LiveVariant(BaseModel):
    """Price written to the platform for every visitor during one slot."""

    product_id: str
    price: Decimal
    label: str
    variant_id: Optional[int] = None
    is_base: bool = False
    slot_index: int


class PriceUpdateOutcome(BaseModel):
    """Platform response to a price update."""

    ok: bool
    field_errors: List[str] = Field(default_factory=list)


class SyncResult(BaseModel):
    """Result of pushing one price to the platform. Never raised, always returned."""

    success: bool
    message: Optional[str] = None
    priceable_id: Optional[str] = None
    price: Optional[Decimal] = None


class ProductSyncResult(BaseModel):
    product_id: str
    label: Optional[str] = None
    price: Optional[Decimal] = None
    success: bool
    message: Optional[str] = None


class ExperimentRotationResult(BaseModel):
    experiment_id: int
    products: List[ProductSyncResult] = Field(default_factory=list)
    message: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.message is None and all(p.success for p in self.products)


class ExperimentFailure(BaseModel):
    experiment_id: Optional[int] = None  # None when the lookup itself failed
    product_id: Optional[str] = None
    message: str


TenantStatus = Literal["rotated", "reset", "skipped", "busy"]


class TenantRotationResult(BaseModel):
    tenant: str
    status: TenantStatus
    reason: Optional[str] = None
    experiments: List[ExperimentRotationResult] = Field(default_factory=list)
    failures: List[ExperimentFailure] = Field(default_factory=list)
    rotated_at: Optional[datetime] = None

    @property
    def success(self) -> bool:
        return not self.failures


class RotationRunResult(BaseModel):
    """Summary of one scheduler tick or manual trigger."""

    started_at: datetime
    tenants_processed: int = 0
    results: List[TenantRotationResult] = Field(default_factory=list)
    error: Optional[str] = None


class SchedulerStatus(BaseModel):
    running: bool
    interval_active: bool
    tick_seconds: int
    tenants_in_progress: List[str] = Field(default_factory=list)
    last_tick_at: Optional[datetime] = None
    last_tenants_processed: Optional[int] = None
