"""Tenant rotation settings store."""
from datetime import datetime
from typing import Callable, List, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from pricelab.database import SessionLocal
from pricelab.middleware.logging import get_logger
from pricelab.models.tenant import TenantSettings
from pricelab.schemas.pricing import TenantRotationSettings

logger = get_logger()


class TenantSettingsStore:
    """
    Reads rotation settings and records rotation timestamps.

    `rotation_enabled` and `rotation_interval_minutes` are owned by the
    settings UI; this store only ever writes `last_rotated_at`.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        default_interval_minutes: int = 1
    ):
        self.session_factory = session_factory
        self.default_interval_minutes = default_interval_minutes

    def _to_record(self, row: TenantSettings) -> Optional[TenantRotationSettings]:
        interval = row.rotation_interval_minutes
        if not interval or interval < 1:
            interval = self.default_interval_minutes
        try:
            return TenantRotationSettings(
                tenant=row.tenant,
                rotation_enabled=row.rotation_enabled,
                rotation_interval_minutes=interval,
                last_rotated_at=row.last_rotated_at
            )
        except ValidationError as e:
            logger.warning("tenant_settings_rejected", tenant=row.tenant, error=str(e))
            return None

    def find_all_tenants_with_rotation_enabled(self) -> List[TenantRotationSettings]:
        db = self.session_factory()
        try:
            rows = db.query(TenantSettings).filter(
                TenantSettings.rotation_enabled == True
            ).order_by(TenantSettings.tenant.asc()).all()
            records = [self._to_record(row) for row in rows]
            return [r for r in records if r is not None]
        finally:
            db.close()

    def any_rotation_enabled(self) -> bool:
        db = self.session_factory()
        try:
            return db.query(TenantSettings.id).filter(
                TenantSettings.rotation_enabled == True
            ).first() is not None
        finally:
            db.close()

    def get(self, tenant: str) -> Optional[TenantRotationSettings]:
        db = self.session_factory()
        try:
            row = db.query(TenantSettings).filter(TenantSettings.tenant == tenant).first()
            return self._to_record(row) if row else None
        finally:
            db.close()

    def get_access_token(self, tenant: str) -> Optional[str]:
        db = self.session_factory()
        try:
            row = db.query(TenantSettings.access_token).filter(
                TenantSettings.tenant == tenant
            ).first()
            return row[0] if row else None
        finally:
            db.close()

    def mark_rotated(self, tenant: str, at: datetime) -> None:
        """Record the rotation time for a tenant."""
        db = self.session_factory()
        try:
            row = db.query(TenantSettings).filter(TenantSettings.tenant == tenant).first()
            if not row:
                logger.warning("tenant_settings_missing", tenant=tenant)
                return
            row.last_rotated_at = at
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
