"""Price synchronization with the commerce platform.

Every failure mode collapses into `SyncResult(success=False, message=...)` so
the rotation scheduler can aggregate failures per experiment without
exception handling of its own.
"""
import asyncio
from decimal import Decimal
from typing import Dict, Optional, Tuple

from pricelab.middleware.logging import get_logger
from pricelab.schemas.rotation import SyncResult
from pricelab.services.commerce import CommerceApiError, CommerceClientFactory
from pricelab.services.identifiers import is_variant_gid, to_product_gid

logger = get_logger()


class PriceSynchronizer:
    """Pushes one product's price to the tenant's store."""

    def __init__(self, clients: CommerceClientFactory, call_timeout: float = 15.0):
        """
        Args:
            clients: Per-tenant commerce client factory
            call_timeout: Upper bound in seconds for one sync, covering
                variant resolution and the update call together
        """
        self.clients = clients
        self.call_timeout = call_timeout
        # (tenant, product gid) -> priceable variant gid
        self._priceable_ids: Dict[Tuple[str, str], str] = {}

    async def sync_price(self, tenant: str, product_id: str, price: Decimal) -> SyncResult:
        """
        Write `price` to the product's primary variant.

        Args:
            tenant: Shop domain
            product_id: Numeric id or product global id
            price: New price in the store currency

        Returns:
            SyncResult; never raises.
        """
        product_gid = to_product_gid(product_id)
        if not product_gid or is_variant_gid(product_gid):
            logger.warning("price_sync_invalid_product", tenant=tenant, product_id=product_id)
            return SyncResult(success=False, message=f"Invalid product id: {product_id!r}")

        try:
            result = await asyncio.wait_for(
                self._sync(tenant, product_gid, price),
                timeout=self.call_timeout
            )
        except asyncio.TimeoutError:
            message = f"Timed out after {self.call_timeout}s updating {product_gid}"
        except CommerceApiError as e:
            if e.status_code in (401, 403):
                await self.clients.evict(tenant)
            message = str(e)
        except Exception as e:
            logger.error(
                "price_sync_unexpected_error",
                tenant=tenant,
                product_id=product_gid,
                error=str(e),
                error_type=type(e).__name__
            )
            message = f"{type(e).__name__}: {e}"
        else:
            if result.success:
                logger.info(
                    "price_synced",
                    tenant=tenant,
                    product_id=product_gid,
                    priceable_id=result.priceable_id,
                    price=str(price)
                )
            return result

        logger.warning("price_sync_failed", tenant=tenant, product_id=product_gid, error=message)
        return SyncResult(success=False, message=message)

    async def _sync(self, tenant: str, product_gid: str, price: Decimal) -> SyncResult:
        client = self.clients.for_tenant(tenant)

        priceable_id = await self._resolve_priceable_id(tenant, product_gid)
        if not priceable_id:
            return SyncResult(
                success=False,
                message=f"Could not resolve variant ID for product {product_gid}"
            )

        outcome = await client.update_price(product_gid, priceable_id, price)
        if not outcome.ok:
            # Variant may have been deleted; resolve again next time
            self._priceable_ids.pop((tenant, product_gid), None)
            message = f"Variant {priceable_id}: {', '.join(outcome.field_errors)}"
            logger.warning("price_sync_rejected", tenant=tenant, product_id=product_gid, error=message)
            return SyncResult(success=False, message=message, priceable_id=priceable_id)

        return SyncResult(success=True, priceable_id=priceable_id, price=price)

    async def _resolve_priceable_id(self, tenant: str, product_gid: str) -> Optional[str]:
        key = (tenant, product_gid)
        cached = self._priceable_ids.get(key)
        if cached:
            return cached

        priceable_id = await self.clients.for_tenant(tenant).resolve_priceable_id(product_gid)
        if priceable_id:
            self._priceable_ids[key] = priceable_id
        return priceable_id
