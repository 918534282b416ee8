"""Experiment, variant and product association models."""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Numeric, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from pricelab.database import Base


class ExperimentStatus(str, enum.Enum):
    """Experiment lifecycle status."""
    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class ExperimentMode(str, enum.Enum):
    """Whether an experiment prices one product or several."""

    SINGLE = "single"
    MULTIPLE = "multiple"


class Experiment(Base):
    """Price experiment owned by a tenant."""

    __tablename__ = "experiments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant = Column(String(255), nullable=False, index=True)
    title = Column(String(255), nullable=False, default="")
    status = Column(SQLEnum(ExperimentStatus), nullable=False, default=ExperimentStatus.DRAFT, index=True)
    test_mode = Column(SQLEnum(ExperimentMode), nullable=False, default=ExperimentMode.SINGLE)
    base_traffic_percent = Column(Integer, nullable=False, default=34)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    started_at = Column(DateTime)
    ended_at = Column(DateTime)

    # Relationships
    variants = relationship(
        "Variant",
        back_populates="experiment",
        cascade="all, delete-orphan",
        order_by="Variant.id"
    )
    products = relationship(
        "ProductAssociation",
        back_populates="experiment",
        cascade="all, delete-orphan",
        order_by="ProductAssociation.id"
    )

    def __repr__(self):
        return f"<Experiment {self.id} tenant={self.tenant} status={self.status.value}>"


class Variant(Base):
    """One priced alternative within an experiment."""

    __tablename__ = "experiment_variants"

    id = Column(Integer, primary_key=True, autoincrement=True)
    experiment_id = Column(Integer, ForeignKey("experiments.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(100), nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    traffic_percent = Column(Integer, nullable=False)
    product_id = Column(String(255))  # multi-product experiments only
    is_base = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    experiment = relationship("Experiment", back_populates="variants")

    def __repr__(self):
        return f"<Variant {self.name} price={self.price} traffic={self.traffic_percent}%>"


class ProductAssociation(Base):
    """Product under test with its effective base price."""

    __tablename__ = "experiment_products"

    id = Column(Integer, primary_key=True, autoincrement=True)
    experiment_id = Column(Integer, ForeignKey("experiments.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(String(255), nullable=False, index=True)
    product_title = Column(String(255))
    base_price = Column(Numeric(12, 2), nullable=False)

    experiment = relationship("Experiment", back_populates="products")

    def __repr__(self):
        return f"<ProductAssociation {self.product_id} base={self.base_price}>"
