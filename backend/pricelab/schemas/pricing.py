"""Typed records exchanged with the experiment lookup and the storefront."""
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pricelab.models.experiment import ExperimentMode, ExperimentStatus
from pricelab.services.identifiers import same_product


class VisitorSession(BaseModel):
    """Ephemeral visitor identity used only as hashing input."""

    tenant: str = Field(..., min_length=1, description="Shop domain")
    session_id: str = Field(..., min_length=1)
    customer_id: Optional[str] = None


class VariantRecord(BaseModel):
    """One priced alternative, including the synthetic base entry."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: Optional[int] = None  # None for the synthesized base entry
    name: str
    price: Decimal = Field(..., ge=0)
    traffic_percent: int = Field(..., ge=0, le=100)
    product_id: Optional[str] = None
    is_base: bool = False


class ProductRecord(BaseModel):
    """Product under test and its effective base price."""

    model_config = ConfigDict(from_attributes=True)

    product_id: str = Field(..., min_length=1)
    product_title: Optional[str] = None
    base_price: Decimal = Field(..., ge=0)


class ExperimentRecord(BaseModel):
    """Experiment as seen by the core, validated at the lookup boundary."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant: str
    title: str = ""
    status: ExperimentStatus
    test_mode: ExperimentMode = ExperimentMode.SINGLE
    base_traffic_percent: int = Field(..., ge=0, le=100)
    created_at: datetime
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    variants: List[VariantRecord] = Field(default_factory=list)
    products: List[ProductRecord] = Field(default_factory=list)

    @property
    def is_multi_product(self) -> bool:
        return self.test_mode == ExperimentMode.MULTIPLE

    def variants_for_product(self, product_id: str) -> List[VariantRecord]:
        """Variants that apply to a product.

        Single-product experiments share every variant. Multi-product
        experiments keep untagged variants and those tagged for this product.
        """
        if not self.is_multi_product:
            return list(self.variants)
        return [
            v for v in self.variants
            if not v.product_id or same_product(v.product_id, product_id)
        ]

    def product(self, product_id: str) -> Optional[ProductRecord]:
        for association in self.products:
            if same_product(association.product_id, product_id):
                return association
        return None


class TenantRotationSettings(BaseModel):
    """Rotation configuration for one tenant."""

    tenant: str
    rotation_enabled: bool = False
    rotation_interval_minutes: int = Field(1, ge=1)
    last_rotated_at: Optional[datetime] = None

    @field_validator("last_rotated_at")
    @classmethod
    def to_naive_utc(cls, v):
        # Timestamps are stored and compared as naive UTC
        if v is not None and v.tzinfo is not None:
            return v.astimezone(timezone.utc).replace(tzinfo=None)
        return v


class PriceResult(BaseModel):
    """Price a visitor should see for a product."""

    price: Decimal
    is_test_price: bool = False
    experiment_id: Optional[int] = None
    variant: Optional[VariantRecord] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "price": "20.00",
                "is_test_price": True,
                "experiment_id": 12,
                "variant": {
                    "id": 31,
                    "name": "Variant A",
                    "price": "20.00",
                    "traffic_percent": 25,
                    "product_id": None,
                    "is_base": False
                }
            }
        }
    )
