"""Tests for live variant selection during rotation windows."""
from datetime import datetime
from decimal import Decimal

from pricelab.models.experiment import ExperimentMode, ExperimentStatus
from pricelab.schemas.pricing import ExperimentRecord, ProductRecord, VariantRecord
from pricelab.services.rotation import build_rotation_table, choose_live_variant, rotation_slot

PRODUCT = ProductRecord(product_id="gid://shopify/Product/100", base_price=Decimal("25"))


def make_experiment(variants, mode=ExperimentMode.SINGLE, products=(PRODUCT,), base_traffic_percent=34):
    return ExperimentRecord(
        id=7,
        tenant="shop.myshopify.com",
        status=ExperimentStatus.ACTIVE,
        test_mode=mode,
        base_traffic_percent=base_traffic_percent,
        created_at=datetime(2026, 1, 1),
        variants=list(variants),
        products=list(products)
    )


def two_variant_experiment():
    return make_experiment([
        VariantRecord(id=1, name="Variant 1", price=Decimal("20"), traffic_percent=33),
        VariantRecord(id=2, name="Variant 2", price=Decimal("15"), traffic_percent=33),
    ])


def test_five_minute_windows_follow_reference_schedule():
    """:00-:04 base, :05-:09 first variant, :10-:14 second, then repeat."""
    experiment = two_variant_experiment()

    def label_at(minute):
        return choose_live_variant(experiment, PRODUCT, datetime(2026, 3, 1, 12, minute), 5).label

    assert label_at(0) == "Original Price"
    assert label_at(4) == "Original Price"
    assert label_at(5) == "Variant 1"
    assert label_at(9) == "Variant 1"
    assert label_at(10) == "Variant 2"
    assert label_at(14) == "Variant 2"
    assert label_at(15) == "Original Price"
    assert label_at(50) == "Variant 1"


def test_same_window_is_idempotent():
    experiment = two_variant_experiment()

    first = choose_live_variant(experiment, PRODUCT, datetime(2026, 3, 1, 12, 5, 1), 5)
    second = choose_live_variant(experiment, PRODUCT, datetime(2026, 3, 1, 12, 9, 59), 5)

    assert first == second


def test_base_price_comes_from_product_association():
    """Rotation never takes the base price from a variant row."""
    experiment = make_experiment([
        VariantRecord(id=9, name="Stale base", price=Decimal("99"), traffic_percent=34, is_base=True),
        VariantRecord(id=1, name="Variant 1", price=Decimal("20"), traffic_percent=66),
    ])

    live = choose_live_variant(experiment, PRODUCT, datetime(2026, 3, 1, 12, 0), 5)

    assert live.is_base
    assert live.price == Decimal("25")
    assert live.variant_id is None


def test_multi_product_table_uses_product_variants_and_base_price():
    other = ProductRecord(product_id="gid://shopify/Product/200", base_price=Decimal("50"))
    experiment = make_experiment(
        [
            VariantRecord(id=1, name="A for 100", price=Decimal("20"), traffic_percent=66,
                          product_id="gid://shopify/Product/100"),
            VariantRecord(id=2, name="A for 200", price=Decimal("45"), traffic_percent=66,
                          product_id="gid://shopify/Product/200"),
        ],
        mode=ExperimentMode.MULTIPLE,
        products=(PRODUCT, other)
    )

    table = build_rotation_table(experiment, other)

    assert [v.name for v in table] == ["Original Price", "A for 200"]
    assert table[0].price == Decimal("50")


def test_one_minute_interval_cycles_every_minute():
    experiment = two_variant_experiment()

    slots = [
        choose_live_variant(experiment, PRODUCT, datetime(2026, 3, 1, 12, minute), 1).slot_index
        for minute in range(6)
    ]

    assert slots == [0, 1, 2, 0, 1, 2]


def test_hourly_interval_still_advances():
    """Windows that do not divide the hour count from the epoch."""
    first = rotation_slot(datetime(2026, 3, 1, 12, 0), 90, 3)
    later = rotation_slot(datetime(2026, 3, 1, 13, 30), 90, 3)

    assert first != later


def test_sixty_minute_window_advances_each_hour():
    before = rotation_slot(datetime(2026, 3, 1, 12, 59), 60, 3)
    after = rotation_slot(datetime(2026, 3, 1, 13, 0), 60, 3)

    assert after == (before + 1) % 3
