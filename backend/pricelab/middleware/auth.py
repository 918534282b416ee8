"""Admin API key and cron token authentication.

Admin endpoints (manual rotation, scheduler control) require the configured
admin key in the `x-api-key` header. Cron endpoints accept the cron secret
either as a bearer token or in `x-cron-token`.
"""
import hmac
from fastapi import HTTPException, Request, Security
from fastapi.security import APIKeyHeader
from typing import Optional

from pricelab.config import get_settings
from pricelab.middleware.logging import get_logger

logger = get_logger()

# API key header
api_key_header = APIKeyHeader(name="x-api-key", auto_error=False)


def _matches(provided: Optional[str], expected: str) -> bool:
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())


async def require_admin_key(api_key: Optional[str] = Security(api_key_header)) -> None:
    """
    Dependency that rejects requests without the admin API key.

    Usage:
        @router.post("/rotation/run", dependencies=[Depends(require_admin_key)])
        async def run_rotation(): ...

    Raises:
        HTTPException: 401 if the key is missing or wrong
    """
    if not api_key:
        raise HTTPException(
            status_code=401,
            detail="Missing API key",
            headers={"WWW-Authenticate": "ApiKey"}
        )

    if not _matches(api_key, get_settings().admin_api_key):
        raise HTTPException(
            status_code=401,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "ApiKey"}
        )


async def verify_cron_request(request: Request) -> None:
    """
    Dependency for external cron triggers.

    With no cron secret configured every request is allowed, which is only
    meant for local development.

    Raises:
        HTTPException: 401 if a secret is configured and not presented
    """
    cron_secret = get_settings().cron_secret
    if not cron_secret:
        logger.warning("cron_secret_not_set", path=request.url.path)
        return

    auth_header = request.headers.get("authorization", "")
    bearer = auth_header[len("Bearer "):] if auth_header.startswith("Bearer ") else None
    cron_token = request.headers.get("x-cron-token")

    if _matches(bearer, cron_secret) or _matches(cron_token, cron_secret):
        return

    raise HTTPException(status_code=401, detail="Unauthorized")
