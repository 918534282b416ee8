"""Experiment lookup backed by the database."""
from typing import Callable, List, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session, selectinload

from pricelab.database import SessionLocal
from pricelab.middleware.logging import get_logger
from pricelab.models.experiment import Experiment, ExperimentStatus, ProductAssociation
from pricelab.schemas.pricing import ExperimentRecord
from pricelab.services.identifiers import to_product_gid

logger = get_logger()


class ExperimentLookup:
    """Read-only access to experiments for price resolution and rotation."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    def find_active_experiments(
        self,
        tenant: str,
        product_id: Optional[str] = None,
        include_paused: bool = False
    ) -> List[ExperimentRecord]:
        """
        Get live experiments for a tenant, newest first.

        Args:
            tenant: Shop domain
            product_id: Restrict to experiments associated with this product
                (numeric and global id forms both match)
            include_paused: Also return paused experiments

        Returns:
            Validated records ordered by creation date, newest first.
            Rows that fail validation are logged and skipped.
        """
        statuses = [ExperimentStatus.ACTIVE]
        if include_paused:
            statuses.append(ExperimentStatus.PAUSED)

        db = self.session_factory()
        try:
            query = db.query(Experiment).options(
                selectinload(Experiment.variants),
                selectinload(Experiment.products)
            ).filter(
                Experiment.tenant == tenant,
                Experiment.status.in_(statuses)
            )

            if product_id:
                candidates = {str(product_id).strip()}
                gid = to_product_gid(product_id)
                if gid:
                    candidates.add(gid)
                    candidates.add(gid.rsplit("/", 1)[-1])
                query = query.filter(
                    Experiment.products.any(ProductAssociation.product_id.in_(candidates))
                )

            rows = query.order_by(Experiment.created_at.desc(), Experiment.id.desc()).all()
            return self._to_records(rows)
        finally:
            db.close()

    def _to_records(self, rows: List[Experiment]) -> List[ExperimentRecord]:
        records = []
        for row in rows:
            try:
                records.append(ExperimentRecord.model_validate(row))
            except ValidationError as e:
                logger.warning(
                    "experiment_record_rejected",
                    experiment_id=row.id,
                    tenant=row.tenant,
                    error=str(e)
                )
        return records
