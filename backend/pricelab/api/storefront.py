"""Storefront price endpoint."""
from decimal import Decimal, InvalidOperation
from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional
import uuid

from pricelab.api.deps import get_resolver
from pricelab.middleware.logging import get_logger
from pricelab.schemas.pricing import PriceResult, VisitorSession
from pricelab.services.resolver import PriceResolver

router = APIRouter()
logger = get_logger()


def _parse_price(raw: Optional[str]) -> Optional[Decimal]:
    if not raw:
        return None
    try:
        price = Decimal(raw)
    except InvalidOperation:
        return None
    if not price.is_finite() or price <= 0:
        return None
    return price


@router.get("/storefront/price", response_model=PriceResult)
def get_storefront_price(
    product_id: Optional[str] = Query(None, alias="productId"),
    original_price: Optional[str] = Query(None, alias="originalPrice"),
    shop: Optional[str] = Query(None),
    session_id: Optional[str] = Query(None, alias="sessionId"),
    customer_id: Optional[str] = Query(None, alias="customerId"),
    resolver: PriceResolver = Depends(get_resolver)
):
    """
    Price a visitor should see for a product.

    Visitors without a session id get a generated one, which means their
    assignment is only stable if the storefront script keeps sending it.
    Runs in the threadpool since the experiment lookup hits the database.
    """
    price = _parse_price(original_price)
    if not product_id or price is None or not shop:
        raise HTTPException(status_code=400, detail="Missing required parameters")

    session = VisitorSession(
        tenant=shop,
        session_id=session_id or f"session_{uuid.uuid4().hex}",
        customer_id=customer_id or None
    )

    result = resolver.resolve_price(product_id, price, session)

    logger.info(
        "storefront_price_resolved",
        tenant=shop,
        product_id=product_id,
        experiment_id=result.experiment_id,
        is_test_price=result.is_test_price
    )
    return result
