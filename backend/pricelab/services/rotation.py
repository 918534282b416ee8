"""Time-slot selection of the live price written to the store."""
from datetime import datetime, timezone
from typing import List

from pricelab.schemas.pricing import ExperimentRecord, ProductRecord, VariantRecord
from pricelab.schemas.rotation import LiveVariant
from pricelab.services.selector import build_price_table

MINUTES_PER_HOUR = 60


def rotation_slot(now: datetime, window_minutes: int, table_length: int) -> int:
    """
    Index of the table entry that is live at `now`.

    Windows that divide the hour are counted from the top of the hour, so a
    5 minute window over [base, v1, v2] shows base at :00-:04, v1 at :05-:09
    and v2 at :10-:14, repeating every 15 minutes. Other windows are counted
    from the UNIX epoch so that hourly and longer intervals still advance.
    """
    window = max(1, window_minutes)
    if window < MINUTES_PER_HOUR and MINUTES_PER_HOUR % window == 0:
        elapsed_windows = now.minute // window
    else:
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        elapsed_windows = int(now.timestamp() // 60) // window
    return elapsed_windows % table_length


def build_rotation_table(experiment: ExperimentRecord, product: ProductRecord) -> List[VariantRecord]:
    """
    Ordered [base, variant1, variant2, ...] table for one product.

    The base entry always carries the product's recorded base price; variant
    rows flagged as base are not used for rotation.
    """
    variants = [
        v for v in experiment.variants_for_product(product.product_id)
        if not v.is_base
    ]
    return build_price_table(variants, product.base_price, experiment.base_traffic_percent)


def choose_live_variant(
    experiment: ExperimentRecord,
    product: ProductRecord,
    now: datetime,
    window_minutes: int = 5
) -> LiveVariant:
    """
    Pick the price every visitor sees for `product` during the current window.

    Pure function of its arguments: repeated calls inside one window return
    the same entry.
    """
    table = build_rotation_table(experiment, product)
    slot = rotation_slot(now, window_minutes, len(table))
    entry = table[slot]
    return LiveVariant(
        product_id=product.product_id,
        price=entry.price,
        label=entry.name,
        variant_id=entry.id,
        is_base=entry.is_base,
        slot_index=slot
    )
