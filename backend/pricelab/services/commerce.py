"""
Commerce platform client - Shopify Admin GraphQL API.

Only the two calls price rotation needs are implemented: resolving a
product's priceable variant and updating that variant's price.
"""
from decimal import Decimal
from typing import Any, Callable, Dict, Optional

import httpx

from pricelab.middleware.logging import get_logger
from pricelab.schemas.rotation import PriceUpdateOutcome
from pricelab.services.identifiers import to_variant_gid

logger = get_logger()

FIRST_VARIANT_QUERY = """
query getFirstVariant($id: ID!) {
    product(id: $id) {
        variants(first: 1) {
            nodes {
                id
            }
        }
    }
}
"""

UPDATE_VARIANT_PRICE_MUTATION = """
mutation updateVariantPrice($productId: ID!, $variants: [ProductVariantsBulkInput!]!) {
    productVariantsBulkUpdate(productId: $productId, variants: $variants) {
        productVariants {
            id
            price
        }
        userErrors {
            field
            message
        }
    }
}
"""


class CommerceApiError(RuntimeError):
    """Transport or protocol failure talking to the commerce platform."""

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.status_code = status_code


def format_price(price: Decimal) -> str:
    return str(Decimal(price).quantize(Decimal("0.01")))


class ShopifyAdminClient:
    """Admin GraphQL client bound to one shop."""

    def __init__(
        self,
        shop_domain: str,
        access_token: str,
        api_version: str = "2025-01",
        timeout: float = 10.0
    ):
        """
        Initialize the client.

        Args:
            shop_domain: Shop domain, e.g. "example.myshopify.com"
            access_token: Admin API access token for the shop
            api_version: Admin API version segment of the endpoint URL
            timeout: Per-request transport timeout in seconds
        """
        self.shop_domain = shop_domain
        self.access_token = access_token
        self.api_version = api_version
        self.timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=f"https://{self.shop_domain}/admin/api/{self.api_version}",
                timeout=self.timeout,
                headers={
                    "Content-Type": "application/json",
                    "X-Shopify-Access-Token": self.access_token,
                },
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _admin_graphql(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        client = await self._get_client()
        try:
            response = await client.post(
                "/graphql.json",
                json={"query": query, "variables": variables}
            )
        except httpx.TimeoutException as exc:
            raise CommerceApiError(f"Timed out calling Shopify: {exc}", status_code=504) from exc
        except httpx.RequestError as exc:
            raise CommerceApiError(f"Network error while calling Shopify: {exc}") from exc

        if response.status_code >= 400:
            raise CommerceApiError(
                f"Shopify API call failed ({response.status_code}): {response.text}",
                status_code=response.status_code
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise CommerceApiError("Shopify API returned invalid JSON") from exc

        if not isinstance(body, dict):
            raise CommerceApiError("Shopify API response must be a JSON object")
        if body.get("errors"):
            raise CommerceApiError(f"Admin GraphQL errors: {body['errors']}")
        data = body.get("data")
        if not isinstance(data, dict):
            raise CommerceApiError("Admin GraphQL response is missing data")
        return data

    async def resolve_priceable_id(self, product_gid: str) -> Optional[str]:
        """Return the product's first variant id, or None if the product has none."""
        data = await self._admin_graphql(FIRST_VARIANT_QUERY, {"id": product_gid})
        product = data.get("product")
        if not isinstance(product, dict):
            return None
        nodes = (product.get("variants") or {}).get("nodes") or []
        if not nodes:
            return None
        return to_variant_gid(nodes[0].get("id")) or None

    async def update_price(
        self,
        product_gid: str,
        priceable_id: str,
        price: Decimal
    ) -> PriceUpdateOutcome:
        """
        Set a variant's price.

        Field-level validation errors reported by the platform come back as
        `ok=False` with messages; transport failures raise CommerceApiError.
        """
        data = await self._admin_graphql(
            UPDATE_VARIANT_PRICE_MUTATION,
            {
                "productId": product_gid,
                "variants": [{"id": priceable_id, "price": format_price(price)}]
            }
        )
        update = data.get("productVariantsBulkUpdate") or {}
        user_errors = update.get("userErrors") or []
        if user_errors:
            return PriceUpdateOutcome(
                ok=False,
                field_errors=[str(error.get("message")) for error in user_errors]
            )
        return PriceUpdateOutcome(ok=True)


class CommerceClientFactory:
    """Builds and caches one Admin client per tenant."""

    def __init__(
        self,
        token_provider: Callable[[str], Optional[str]],
        api_version: str = "2025-01",
        timeout: float = 10.0
    ):
        self.token_provider = token_provider
        self.api_version = api_version
        self.timeout = timeout
        self._clients: Dict[str, ShopifyAdminClient] = {}

    def for_tenant(self, tenant: str) -> ShopifyAdminClient:
        """
        Get the client for a tenant.

        Raises:
            CommerceApiError: If the tenant has no stored access token
        """
        client = self._clients.get(tenant)
        if client is not None:
            return client

        access_token = self.token_provider(tenant)
        if not access_token:
            raise CommerceApiError(f"No access token stored for {tenant}", status_code=401)

        client = ShopifyAdminClient(
            shop_domain=tenant,
            access_token=access_token,
            api_version=self.api_version,
            timeout=self.timeout
        )
        self._clients[tenant] = client
        return client

    async def evict(self, tenant: str):
        """Drop a tenant's cached client, e.g. after its token was rejected."""
        client = self._clients.pop(tenant, None)
        if client is not None:
            await client.close()

    async def close(self):
        for client in self._clients.values():
            await client.close()
        self._clients.clear()
        logger.info("commerce_clients_closed")
