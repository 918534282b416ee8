"""Commerce platform identifier normalization.

Stores hand us product ids in several shapes: plain numeric ids from the
storefront ("123"), Admin API global ids ("gid://shopify/Product/123"), and
occasionally ids with surrounding whitespace. Everything is compared and sent
upstream in global id form.
"""
import re
from typing import Optional

PRODUCT_GID_PREFIX = "gid://shopify/Product/"
VARIANT_GID_PREFIX = "gid://shopify/ProductVariant/"

_NUMERIC_ID = re.compile(r"^\d+$")


def _to_gid(possible_id, prefix: str) -> str:
    if possible_id is None:
        return ""
    id_str = str(possible_id).strip()
    if not id_str:
        return ""
    if id_str.startswith("gid://"):
        return id_str
    if _NUMERIC_ID.match(id_str):
        return f"{prefix}{id_str}"
    return ""


def to_product_gid(possible_id) -> str:
    """Normalize a product id to its global id, or "" if it cannot be."""
    return _to_gid(possible_id, PRODUCT_GID_PREFIX)


def to_variant_gid(possible_id) -> str:
    """Normalize a product variant id to its global id, or "" if it cannot be."""
    return _to_gid(possible_id, VARIANT_GID_PREFIX)


def is_variant_gid(value: str) -> bool:
    return value.startswith(VARIANT_GID_PREFIX)


def same_product(a: Optional[str], b: Optional[str]) -> bool:
    """True when two ids refer to the same product in any accepted form."""
    if not a or not b:
        return False
    if a == b:
        return True
    gid_a = to_product_gid(a)
    return bool(gid_a) and gid_a == to_product_gid(b)
