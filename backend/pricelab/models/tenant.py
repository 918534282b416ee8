"""Tenant rotation settings model."""
from sqlalchemy import Column, Integer, String, Boolean, DateTime
from datetime import datetime

from pricelab.database import Base


class TenantSettings(Base):
    """Per-store credentials and rotation configuration."""

    __tablename__ = "tenant_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant = Column(String(255), unique=True, nullable=False, index=True)  # shop domain
    access_token = Column(String(255))
    rotation_enabled = Column(Boolean, default=False, nullable=False)
    rotation_interval_minutes = Column(Integer, default=1, nullable=False)
    last_rotated_at = Column(DateTime)  # written only by the rotation scheduler
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<TenantSettings {self.tenant} rotation={self.rotation_enabled}>"
