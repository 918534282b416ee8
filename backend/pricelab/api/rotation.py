"""Rotation trigger, cron and scheduler control endpoints."""
from fastapi import APIRouter, Depends, Query
from typing import Optional

from pricelab.api.deps import get_scheduler
from pricelab.middleware.auth import require_admin_key, verify_cron_request
from pricelab.middleware.logging import get_logger
from pricelab.schemas.rotation import RotationRunResult, SchedulerStatus, TenantRotationResult
from pricelab.services.scheduler import RotationScheduler

router = APIRouter()
logger = get_logger()


@router.post(
    "/rotation/run",
    response_model=RotationRunResult,
    dependencies=[Depends(require_admin_key)]
)
async def run_rotation(
    tenant: Optional[str] = Query(None, description="Only rotate this shop"),
    force: bool = Query(False, description="Ignore the rotation interval"),
    scheduler: RotationScheduler = Depends(get_scheduler)
):
    """
    Manual "rotate now" trigger.

    Returns a partial-success summary; individual update failures are listed
    per tenant rather than failing the request.
    """
    logger.info("manual_rotation_triggered", tenant=tenant, force=force)
    return await scheduler.run_scheduled_rotation(tenant=tenant, force=force)


@router.api_route(
    "/cron/rotate-prices",
    methods=["GET", "POST"],
    response_model=RotationRunResult,
    dependencies=[Depends(verify_cron_request)]
)
async def cron_rotate_prices(scheduler: RotationScheduler = Depends(get_scheduler)):
    """Entry point for external cron services; honors each tenant's interval."""
    logger.info("cron_rotation_triggered")
    return await scheduler.run_scheduled_rotation()


@router.get(
    "/rotation/status",
    response_model=SchedulerStatus,
    dependencies=[Depends(require_admin_key)]
)
async def rotation_status(scheduler: RotationScheduler = Depends(get_scheduler)):
    return scheduler.get_status()


@router.post(
    "/scheduler/start",
    response_model=SchedulerStatus,
    dependencies=[Depends(require_admin_key)]
)
async def start_scheduler(scheduler: RotationScheduler = Depends(get_scheduler)):
    await scheduler.start()
    return scheduler.get_status()


@router.post(
    "/scheduler/stop",
    response_model=SchedulerStatus,
    dependencies=[Depends(require_admin_key)]
)
async def stop_scheduler(scheduler: RotationScheduler = Depends(get_scheduler)):
    await scheduler.stop()
    return scheduler.get_status()


@router.post(
    "/rotation/reset",
    response_model=TenantRotationResult,
    dependencies=[Depends(require_admin_key)]
)
async def reset_prices(
    tenant: str = Query(..., min_length=1, description="Shop whose prices are restored"),
    scheduler: RotationScheduler = Depends(get_scheduler)
):
    """Restore the base price of every running experiment's products."""
    logger.info("price_reset_triggered", tenant=tenant)
    return await scheduler.reset_prices(tenant)
