"""Traffic-split variant selection."""
from decimal import Decimal
from typing import Iterable, List

from pricelab.schemas.pricing import VariantRecord

BASE_VARIANT_NAME = "Original Price"


def build_price_table(
    variants: Iterable[VariantRecord],
    base_price: Decimal,
    base_traffic_percent: int
) -> List[VariantRecord]:
    """
    Order variants for cumulative bucket assignment.

    A base entry is synthesized from `base_price` when none of the variants
    is flagged as base. The base entry comes first, then the remaining
    variants by ascending traffic percent. Python's sort is stable, so ties
    keep their input order and the same input always yields the same ranges.
    """
    entries = list(variants)
    if not any(v.is_base for v in entries):
        entries.insert(0, VariantRecord(
            id=None,
            name=BASE_VARIANT_NAME,
            price=base_price,
            traffic_percent=base_traffic_percent,
            is_base=True
        ))
    return sorted(entries, key=lambda v: (not v.is_base, v.traffic_percent))


def traffic_total(table: Iterable[VariantRecord]) -> int:
    return sum(v.traffic_percent for v in table)


def select_from_table(bucket: int, table: List[VariantRecord]) -> VariantRecord:
    """Return the entry whose cumulative range contains `bucket`."""
    cumulative = 0
    for entry in table:
        cumulative += entry.traffic_percent
        if bucket < cumulative:
            return entry

    # Split sums to less than 100: unmatched buckets see the base price
    return next(v for v in table if v.is_base)


def select_variant(
    bucket: int,
    base_traffic_percent: int,
    variants: Iterable[VariantRecord],
    original_price: Decimal
) -> VariantRecord:
    """
    Pick the variant that owns `bucket` for a traffic split.

    Args:
        bucket: Visitor bucket in [0, 100)
        base_traffic_percent: Share of traffic on the unmodified price
        variants: Test variants (optionally including an explicit base entry)
        original_price: Price for the synthesized base entry

    Returns:
        The chosen variant. Never None: misconfigured splits fall back to base.

    Example:
        >>> a = VariantRecord(id=1, name="A", price=Decimal("20"), traffic_percent=25)
        >>> b = VariantRecord(id=2, name="B", price=Decimal("15"), traffic_percent=25)
        >>> select_variant(60, 50, [a, b], Decimal("25")).name
        'A'
    """
    table = build_price_table(variants, original_price, base_traffic_percent)
    return select_from_table(bucket, table)
