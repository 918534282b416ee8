"""Deterministic visitor bucketing."""
import hashlib
from typing import Optional

from pricelab.schemas.pricing import VisitorSession

BUCKET_COUNT = 100


def _identity_hash(tenant: str, session_id: str, customer_id: Optional[str]) -> int:
    hash_input = f"{tenant}-{session_id}-{customer_id or 'anonymous'}".encode('utf-8')
    hash_digest = hashlib.sha256(hash_input).hexdigest()
    return int(hash_digest[:8], 16)  # first 32 bits


def visitor_bucket(tenant: str, session_id: str, customer_id: Optional[str] = None) -> int:
    """
    Map a visitor identity to a stable bucket in [0, 100).

    The same (tenant, session_id, customer_id) always lands in the same
    bucket; no state or randomness is involved.

    Example:
        >>> visitor_bucket("shop.myshopify.com", "sess_1") == visitor_bucket("shop.myshopify.com", "sess_1")
        True
    """
    return _identity_hash(tenant, session_id, customer_id) % BUCKET_COUNT


def experiment_bucket(session: VisitorSession, experiment_id: int) -> int:
    """
    Bucket for a visitor within one experiment.

    The experiment id is added to the identity hash so a visitor's
    assignments look independent across concurrent experiments.
    """
    identity = _identity_hash(session.tenant, session.session_id, session.customer_id)
    return (identity + experiment_id) % BUCKET_COUNT
