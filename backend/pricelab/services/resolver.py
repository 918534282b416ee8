"""Per-visitor price resolution for the storefront."""
from decimal import Decimal
from typing import List

from pricelab.middleware.logging import get_logger
from pricelab.schemas.pricing import ExperimentRecord, PriceResult, VisitorSession
from pricelab.services.experiments import ExperimentLookup
from pricelab.services.hashing import experiment_bucket
from pricelab.services.selector import build_price_table, select_from_table, traffic_total

logger = get_logger()


def newest_experiment(experiments: List[ExperimentRecord]) -> ExperimentRecord:
    """Most recently created experiment; the higher id wins a timestamp tie."""
    return max(experiments, key=lambda e: (e.created_at, e.id))


class PriceResolver:
    """Answers "what price should this visitor see for this product"."""

    def __init__(self, lookup: ExperimentLookup, include_paused: bool = False):
        self.lookup = lookup
        self.include_paused = include_paused

    def resolve_price(
        self,
        product_id: str,
        original_price: Decimal,
        session: VisitorSession
    ) -> PriceResult:
        """
        Resolve the display price for a visitor.

        Visitors in an experiment are always marked `is_test_price=True`,
        including those bucketed onto the base price. Any internal error
        fails open to the original price.

        Args:
            product_id: Product being viewed
            original_price: Price the storefront would show without experiments
            session: Visitor identity

        Returns:
            PriceResult; never raises.
        """
        try:
            experiments = self.lookup.find_active_experiments(
                session.tenant,
                product_id,
                include_paused=self.include_paused
            )
            if not experiments:
                return PriceResult(price=original_price, is_test_price=False)

            experiment = newest_experiment(experiments)
            if len(experiments) > 1:
                logger.warning(
                    "multiple_experiments_for_product",
                    tenant=session.tenant,
                    product_id=product_id,
                    experiment_ids=[e.id for e in experiments],
                    chosen=experiment.id
                )

            variants = experiment.variants_for_product(product_id)
            table = build_price_table(variants, original_price, experiment.base_traffic_percent)
            total = traffic_total(table)
            if total != 100:
                logger.warning(
                    "traffic_split_anomaly",
                    tenant=session.tenant,
                    experiment_id=experiment.id,
                    product_id=product_id,
                    total_percent=total
                )

            bucket = experiment_bucket(session, experiment.id)
            chosen = select_from_table(bucket, table)

            return PriceResult(
                price=chosen.price,
                is_test_price=True,
                experiment_id=experiment.id,
                variant=chosen
            )

        except Exception as e:
            logger.error(
                "price_resolution_failed",
                tenant=session.tenant,
                product_id=product_id,
                error=str(e),
                error_type=type(e).__name__
            )
            return PriceResult(price=original_price, is_test_price=False)
