"""Tests for storefront price resolution."""
from datetime import datetime
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from pricelab.models.experiment import ExperimentMode, ExperimentStatus
from pricelab.schemas.pricing import ExperimentRecord, ProductRecord, VariantRecord, VisitorSession
from pricelab.services.hashing import experiment_bucket
from pricelab.services.resolver import PriceResolver

TENANT = "shop.myshopify.com"


def make_experiment(id=1, variants=(), base_traffic_percent=50, mode=ExperimentMode.SINGLE,
                    created_at=datetime(2026, 1, 1), products=None):
    return ExperimentRecord(
        id=id,
        tenant=TENANT,
        status=ExperimentStatus.ACTIVE,
        test_mode=mode,
        base_traffic_percent=base_traffic_percent,
        created_at=created_at,
        variants=list(variants),
        products=products if products is not None else [
            ProductRecord(product_id="gid://shopify/Product/100", base_price=Decimal("25"))
        ]
    )


def session_in_bucket(experiment_id: int, bucket: int) -> VisitorSession:
    """Find a session id that hashes to `bucket` for the experiment."""
    for i in range(100000):
        session = VisitorSession(tenant=TENANT, session_id=f"sess_{i}")
        if experiment_bucket(session, experiment_id) == bucket:
            return session
    raise AssertionError(f"no session found for bucket {bucket}")


@pytest.fixture
def lookup():
    """Mock experiment lookup with no experiments."""
    mock = MagicMock()
    mock.find_active_experiments.return_value = []
    return mock


def test_no_experiment_returns_original_price(lookup):
    resolver = PriceResolver(lookup)
    session = VisitorSession(tenant=TENANT, session_id="sess_1")

    result = resolver.resolve_price("100", Decimal("25"), session)

    assert result.price == Decimal("25")
    assert result.is_test_price is False
    assert result.experiment_id is None
    lookup.find_active_experiments.assert_called_once_with(TENANT, "100", include_paused=False)


def test_lookup_failure_fails_open(lookup):
    """A failing lookup still yields the original price."""
    lookup.find_active_experiments.side_effect = RuntimeError("database unavailable")
    resolver = PriceResolver(lookup)

    result = resolver.resolve_price("100", Decimal("25"), VisitorSession(tenant=TENANT, session_id="s"))

    assert result.price == Decimal("25")
    assert result.is_test_price is False


def test_reference_scenario_buckets(lookup):
    """Buckets 10/60/90 map to base $25, A $20, B $15."""
    experiment = make_experiment(variants=[
        VariantRecord(id=11, name="Variant A", price=Decimal("20"), traffic_percent=25),
        VariantRecord(id=12, name="Variant B", price=Decimal("15"), traffic_percent=25),
    ])
    lookup.find_active_experiments.return_value = [experiment]
    resolver = PriceResolver(lookup)

    base = resolver.resolve_price("100", Decimal("25"), session_in_bucket(experiment.id, 10))
    variant_a = resolver.resolve_price("100", Decimal("25"), session_in_bucket(experiment.id, 60))
    variant_b = resolver.resolve_price("100", Decimal("25"), session_in_bucket(experiment.id, 90))

    assert base.price == Decimal("25")
    assert variant_a.price == Decimal("20")
    assert variant_b.price == Decimal("15")
    assert variant_a.variant.id == 11
    assert variant_b.variant.id == 12


def test_base_bucket_is_still_a_test_price(lookup):
    """Visitors on the base price are still in the experiment."""
    experiment = make_experiment(variants=[
        VariantRecord(id=11, name="Variant A", price=Decimal("20"), traffic_percent=50),
    ])
    lookup.find_active_experiments.return_value = [experiment]
    resolver = PriceResolver(lookup)

    result = resolver.resolve_price("100", Decimal("25"), session_in_bucket(experiment.id, 5))

    assert result.price == Decimal("25")
    assert result.is_test_price is True
    assert result.experiment_id == experiment.id
    assert result.variant.is_base


def test_same_visitor_gets_same_price(lookup):
    experiment = make_experiment(variants=[
        VariantRecord(id=11, name="A", price=Decimal("20"), traffic_percent=25),
        VariantRecord(id=12, name="B", price=Decimal("15"), traffic_percent=25),
    ])
    lookup.find_active_experiments.return_value = [experiment]
    resolver = PriceResolver(lookup)
    session = VisitorSession(tenant=TENANT, session_id="returning", customer_id="cust_9")

    prices = {resolver.resolve_price("100", Decimal("25"), session).price for _ in range(5)}

    assert len(prices) == 1


def test_multi_product_excludes_other_products_variants(lookup):
    """Variants tagged for product Y never show for product X."""
    experiment = make_experiment(
        mode=ExperimentMode.MULTIPLE,
        base_traffic_percent=50,
        variants=[
            VariantRecord(id=21, name="X cheap", price=Decimal("9"), traffic_percent=50,
                          product_id="gid://shopify/Product/1"),
            VariantRecord(id=22, name="Y cheap", price=Decimal("99"), traffic_percent=50,
                          product_id="gid://shopify/Product/2"),
        ],
        products=[
            ProductRecord(product_id="gid://shopify/Product/1", base_price=Decimal("10")),
            ProductRecord(product_id="gid://shopify/Product/2", base_price=Decimal("100")),
        ]
    )
    lookup.find_active_experiments.return_value = [experiment]
    resolver = PriceResolver(lookup)

    for i in range(200):
        session = VisitorSession(tenant=TENANT, session_id=f"sess_{i}")
        result = resolver.resolve_price("1", Decimal("10"), session)
        assert result.variant.id != 22
        assert result.price in (Decimal("10"), Decimal("9"))


def test_newest_experiment_wins(lookup):
    """With overlapping experiments the most recently created one is used."""
    older = make_experiment(id=1, created_at=datetime(2026, 1, 1), base_traffic_percent=0, variants=[
        VariantRecord(id=1, name="Old", price=Decimal("1"), traffic_percent=100),
    ])
    newer = make_experiment(id=2, created_at=datetime(2026, 2, 1), base_traffic_percent=0, variants=[
        VariantRecord(id=2, name="New", price=Decimal("2"), traffic_percent=100),
    ])
    lookup.find_active_experiments.return_value = [older, newer]
    resolver = PriceResolver(lookup)

    result = resolver.resolve_price("100", Decimal("25"), VisitorSession(tenant=TENANT, session_id="s"))

    assert result.experiment_id == 2
    assert result.price == Decimal("2")


def test_misconfigured_split_falls_back_to_base(lookup):
    """Traffic summing under 100 never errors; unmatched buckets get base."""
    experiment = make_experiment(base_traffic_percent=10, variants=[
        VariantRecord(id=11, name="A", price=Decimal("20"), traffic_percent=10),
    ])
    lookup.find_active_experiments.return_value = [experiment]
    resolver = PriceResolver(lookup)

    result = resolver.resolve_price("100", Decimal("25"), session_in_bucket(experiment.id, 80))

    assert result.price == Decimal("25")
    assert result.is_test_price is True


def test_include_paused_is_passed_to_lookup(lookup):
    resolver = PriceResolver(lookup, include_paused=True)

    resolver.resolve_price("100", Decimal("25"), VisitorSession(tenant=TENANT, session_id="s"))

    lookup.find_active_experiments.assert_called_once_with(TENANT, "100", include_paused=True)
