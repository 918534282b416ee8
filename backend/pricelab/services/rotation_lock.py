"""Per-tenant rotation guard.

Prevents overlapping rotations for the same tenant, which would land
duplicate price updates on the store out of order. Always guards within the
process; with a Redis client it also guards across service instances.
"""
import redis
from typing import Dict, List, Optional, Set
from contextlib import contextmanager
import threading
import uuid

from pricelab.middleware.logging import get_logger

logger = get_logger()


class RotationInProgress(Exception):
    """Raised when a tenant is already being rotated."""
    pass


class RotationLock:
    """In-process tenant lock, optionally mirrored in Redis."""

    def __init__(self, redis_client: Optional[redis.Redis] = None, ttl_seconds: int = 300):
        self.redis = redis_client
        # Redis keys expire even if the holder crashes mid-rotation
        self.ttl_seconds = ttl_seconds
        self._held: Set[str] = set()
        self._tokens: Dict[str, str] = {}
        self._mutex = threading.Lock()

    def _get_lock_key(self, tenant: str) -> str:
        """Get Redis key for a tenant's rotation lock."""
        return f"rotation:lock:{tenant}"

    def acquire(self, tenant: str) -> bool:
        """Try to take the tenant's lock. Returns False if it is held."""
        with self._mutex:
            if tenant in self._held:
                return False
            self._held.add(tenant)

        if self.redis is None:
            return True

        token = str(uuid.uuid4())
        try:
            acquired = self.redis.set(self._get_lock_key(tenant), token, nx=True, ex=self.ttl_seconds)
        except redis.RedisError as e:
            # Redis down: keep single-instance protection only
            logger.warning("rotation_lock_redis_unavailable", tenant=tenant, error=str(e))
            return True

        with self._mutex:
            if not acquired:
                self._held.discard(tenant)
                return False
            self._tokens[tenant] = token
        return True

    def release(self, tenant: str) -> None:
        with self._mutex:
            token = self._tokens.pop(tenant, None)
        if self.redis is not None and token is not None:
            key = self._get_lock_key(tenant)
            try:
                current = self.redis.get(key)
                if isinstance(current, bytes):
                    current = current.decode()
                if current == token:
                    self.redis.delete(key)
            except redis.RedisError as e:
                logger.warning("rotation_lock_release_failed", tenant=tenant, error=str(e))

        with self._mutex:
            self._held.discard(tenant)

    def in_progress(self) -> List[str]:
        with self._mutex:
            return sorted(self._held)

    @contextmanager
    def tenant_context(self, tenant: str):
        """
        Context manager for a tenant's rotation.

        Usage:
            with rotation_lock.tenant_context("shop.myshopify.com"):
                await rotate(...)

        Raises:
            RotationInProgress: If the tenant is already being rotated
        """
        if not self.acquire(tenant):
            raise RotationInProgress(f"Rotation already running for {tenant}")
        try:
            yield
        finally:
            self.release(tenant)
