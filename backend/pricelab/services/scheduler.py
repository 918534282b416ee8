"""Multi-tenant price rotation scheduler.

Each tick walks every tenant with rotation enabled. A tenant whose interval
has elapsed is rotated: for each active experiment the live variant is chosen
per product and pushed to the store. Failures are collected, never raised,
and the tenant's `last_rotated_at` is written once all experiments were
attempted, whether or not they succeeded.

Database reads and writes run in worker threads under a timeout so a hung
database neither stalls the tick nor blocks the event loop serving
storefront requests.
"""
import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, List, Optional, Tuple
import time

from pricelab.middleware.logging import get_logger
from pricelab.schemas.pricing import ExperimentRecord, ProductRecord, TenantRotationSettings
from pricelab.schemas.rotation import (
    ExperimentFailure,
    ExperimentRotationResult,
    ProductSyncResult,
    RotationRunResult,
    SchedulerStatus,
    TenantRotationResult,
)
from pricelab.services.experiments import ExperimentLookup
from pricelab.services.rotation import build_rotation_table, choose_live_variant
from pricelab.services.rotation_lock import RotationInProgress, RotationLock
from pricelab.services.selector import BASE_VARIANT_NAME, traffic_total
from pricelab.services.synchronizer import PriceSynchronizer
from pricelab.services.tenant_settings import TenantSettingsStore

logger = get_logger()

# (label, price) to write for one product
PriceChoice = Tuple[str, Decimal]


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def is_due(tenant_settings: TenantRotationSettings, now: datetime) -> bool:
    """True when the tenant's rotation interval has elapsed (or it never rotated)."""
    if tenant_settings.last_rotated_at is None:
        return True
    interval = timedelta(minutes=tenant_settings.rotation_interval_minutes)
    return now - tenant_settings.last_rotated_at >= interval


class RepositoryTimeout(Exception):
    """Raised when a database call made by the scheduler does not finish in time."""
    pass


class RotationScheduler:
    """Periodic driver for price rotation across tenants."""

    def __init__(
        self,
        settings_store: TenantSettingsStore,
        lookup: ExperimentLookup,
        synchronizer: PriceSynchronizer,
        lock: Optional[RotationLock] = None,
        tick_seconds: int = 60,
        clock: Callable[[], datetime] = utc_now,
        repository_timeout: float = 10.0
    ):
        self.settings_store = settings_store
        self.lookup = lookup
        self.synchronizer = synchronizer
        self.lock = lock or RotationLock()
        self.tick_seconds = tick_seconds
        self.clock = clock
        self.repository_timeout = repository_timeout

        self._task: Optional[asyncio.Task] = None
        self._running = False
        self._last_tick_at: Optional[datetime] = None
        self._last_tenants_processed: Optional[int] = None

    async def start(self):
        """Start the periodic task. The first tick runs immediately."""
        if self._running:
            logger.info("rotation_scheduler_already_running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run_forever())
        logger.info("rotation_scheduler_started", tick_seconds=self.tick_seconds)

    async def stop(self):
        """Stop the periodic task, waiting for it to unwind."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self._running = False
        logger.info("rotation_scheduler_stopped")

    def get_status(self) -> SchedulerStatus:
        return SchedulerStatus(
            running=self._running,
            interval_active=self._task is not None and not self._task.done(),
            tick_seconds=self.tick_seconds,
            tenants_in_progress=self.lock.in_progress(),
            last_tick_at=self._last_tick_at,
            last_tenants_processed=self._last_tenants_processed
        )

    async def _run_forever(self):
        while True:
            started = time.monotonic()
            try:
                await self.run_scheduled_rotation()
            except Exception as e:
                logger.error("rotation_tick_failed", error=str(e), error_type=type(e).__name__)

            # Hold a fixed wall-clock period; a slow tick shortens the wait
            elapsed = time.monotonic() - started
            await asyncio.sleep(max(0.0, self.tick_seconds - elapsed))

    async def _repository_call(self, func: Callable, *args, **kwargs):
        """Run a blocking repository call off the event loop, bounded by the timeout."""
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(func, *args, **kwargs),
                timeout=self.repository_timeout
            )
        except asyncio.TimeoutError:
            raise RepositoryTimeout(f"timed out after {self.repository_timeout}s")

    async def run_scheduled_rotation(
        self,
        now: Optional[datetime] = None,
        tenant: Optional[str] = None,
        force: bool = False
    ) -> RotationRunResult:
        """
        Rotate every due tenant.

        Args:
            now: Evaluation time (defaults to the scheduler clock)
            tenant: Restrict the run to one tenant
            force: Ignore the interval gate (manual "rotate now")

        Returns:
            RotationRunResult with one entry per rotation-enabled tenant.
            `tenants_processed` counts tenants that were actually rotated.
        """
        now = to_naive_utc(now) if now is not None else self.clock()
        run = RotationRunResult(started_at=now)
        self._last_tick_at = now

        try:
            tenants = await self._repository_call(self.settings_store.find_all_tenants_with_rotation_enabled)
        except Exception as e:
            logger.error("rotation_tenant_listing_failed", error=str(e), error_type=type(e).__name__)
            run.error = f"Could not list tenants: {e}"
            return run

        if tenant is not None:
            tenants = [t for t in tenants if t.tenant == tenant]

        logger.info("rotation_tick_started", tenants=len(tenants), force=force)

        for tenant_settings in tenants:
            result = await self.rotate_tenant(tenant_settings, now, force=force)
            run.results.append(result)
            if result.status == "rotated":
                run.tenants_processed += 1

        self._last_tenants_processed = run.tenants_processed
        logger.info(
            "rotation_tick_completed",
            tenants=len(tenants),
            tenants_processed=run.tenants_processed,
            failures=sum(len(r.failures) for r in run.results)
        )
        return run

    async def rotate_tenant(
        self,
        tenant_settings: TenantRotationSettings,
        now: datetime,
        force: bool = False
    ) -> TenantRotationResult:
        """Rotate one tenant if due and not already being rotated."""
        tenant = tenant_settings.tenant

        if not force and not is_due(tenant_settings, now):
            return self._skipped(tenant_settings, now)

        try:
            with self.lock.tenant_context(tenant):
                return await self._rotate_locked(tenant_settings, now, force)
        except RotationInProgress:
            logger.warning("rotation_tenant_busy", tenant=tenant)
            return TenantRotationResult(
                tenant=tenant,
                status="busy",
                reason="Rotation already in progress"
            )

    def _skipped(self, tenant_settings: TenantRotationSettings, now: datetime) -> TenantRotationResult:
        remaining = (
            tenant_settings.last_rotated_at
            + timedelta(minutes=tenant_settings.rotation_interval_minutes)
            - now
        )
        logger.info(
            "rotation_tenant_skipped",
            tenant=tenant_settings.tenant,
            remaining_seconds=int(remaining.total_seconds()),
            interval_minutes=tenant_settings.rotation_interval_minutes
        )
        return TenantRotationResult(
            tenant=tenant_settings.tenant,
            status="skipped",
            reason=f"Not yet time (interval: {tenant_settings.rotation_interval_minutes} min)"
        )

    async def _rotate_locked(
        self,
        tenant_settings: TenantRotationSettings,
        now: datetime,
        force: bool
    ) -> TenantRotationResult:
        tenant = tenant_settings.tenant

        if not force:
            # Another run may have rotated this tenant since the list was read
            try:
                current = await self._repository_call(self.settings_store.get, tenant)
            except Exception as e:
                logger.error("rotation_settings_reread_failed", tenant=tenant, error=str(e))
                return TenantRotationResult(
                    tenant=tenant,
                    status="skipped",
                    reason=f"Could not re-read rotation settings: {e}"
                )
            if current is None or not current.rotation_enabled:
                logger.info("rotation_tenant_disabled", tenant=tenant)
                return TenantRotationResult(tenant=tenant, status="skipped", reason="Rotation disabled")
            if not is_due(current, now):
                return self._skipped(current, now)
            tenant_settings = current

        result = TenantRotationResult(tenant=tenant, status="rotated", rotated_at=now)
        window_minutes = tenant_settings.rotation_interval_minutes

        experiments = await self._load_experiments(tenant, result)

        for experiment in experiments:
            experiment_result = await self._push_prices(
                tenant,
                experiment,
                lambda product: self._live_choice(
                    tenant, experiment, product, now, window_minutes
                )
            )
            result.experiments.append(experiment_result)
            result.failures.extend(self._failures_for(experiment_result))

        try:
            await self._repository_call(self.settings_store.mark_rotated, tenant, now)
        except Exception as e:
            logger.error("rotation_mark_failed", tenant=tenant, error=str(e))
            result.failures.append(ExperimentFailure(message=f"Could not record rotation time: {e}"))

        logger.info(
            "rotation_tenant_completed",
            tenant=tenant,
            experiments=len(experiments),
            failures=len(result.failures)
        )
        return result

    async def reset_prices(self, tenant: str) -> TenantRotationResult:
        """
        Write every running experiment's base price back to the store.

        Covers active and paused experiments so a paused test does not leave
        the store on the last rotated variant. `last_rotated_at` is not
        touched. Returns status "busy" if the tenant is being rotated.
        """
        try:
            with self.lock.tenant_context(tenant):
                result = TenantRotationResult(tenant=tenant, status="reset")
                experiments = await self._load_experiments(tenant, result, include_paused=True)

                for experiment in experiments:
                    experiment_result = await self._push_prices(
                        tenant,
                        experiment,
                        lambda product: (BASE_VARIANT_NAME, product.base_price)
                    )
                    result.experiments.append(experiment_result)
                    result.failures.extend(self._failures_for(experiment_result))
        except RotationInProgress:
            logger.warning("price_reset_busy", tenant=tenant)
            return TenantRotationResult(
                tenant=tenant,
                status="busy",
                reason="Rotation already in progress"
            )

        logger.info(
            "price_reset_completed",
            tenant=tenant,
            experiments=len(result.experiments),
            failures=len(result.failures)
        )
        return result

    async def _load_experiments(
        self,
        tenant: str,
        result: TenantRotationResult,
        include_paused: bool = False
    ) -> List[ExperimentRecord]:
        try:
            return await self._repository_call(
                self.lookup.find_active_experiments,
                tenant,
                include_paused=include_paused
            )
        except Exception as e:
            logger.error("rotation_experiment_lookup_failed", tenant=tenant, error=str(e))
            result.failures.append(ExperimentFailure(message=f"Experiment lookup failed: {e}"))
            return []

    def _live_choice(
        self,
        tenant: str,
        experiment: ExperimentRecord,
        product: ProductRecord,
        now: datetime,
        window_minutes: int
    ) -> PriceChoice:
        total = traffic_total(build_rotation_table(experiment, product))
        if total != 100:
            logger.warning(
                "traffic_split_anomaly",
                tenant=tenant,
                experiment_id=experiment.id,
                product_id=product.product_id,
                total_percent=total
            )
        live = choose_live_variant(experiment, product, now, window_minutes)
        return live.label, live.price

    async def _push_prices(
        self,
        tenant: str,
        experiment: ExperimentRecord,
        choose: Callable[[ProductRecord], PriceChoice]
    ) -> ExperimentRotationResult:
        """Sync one chosen price per associated product of an experiment."""
        result = ExperimentRotationResult(experiment_id=experiment.id)

        if not experiment.products:
            result.message = "Experiment has no associated products"
            logger.warning("rotation_experiment_without_products", tenant=tenant, experiment_id=experiment.id)
            return result

        for product in experiment.products:
            try:
                label, price = choose(product)
            except Exception as e:
                logger.error(
                    "rotation_choice_failed",
                    tenant=tenant,
                    experiment_id=experiment.id,
                    product_id=product.product_id,
                    error=str(e)
                )
                result.products.append(ProductSyncResult(
                    product_id=product.product_id,
                    success=False,
                    message=f"Could not choose live variant: {e}"
                ))
                continue

            sync = await self.synchronizer.sync_price(tenant, product.product_id, price)
            result.products.append(ProductSyncResult(
                product_id=product.product_id,
                label=label,
                price=price,
                success=sync.success,
                message=sync.message
            ))

        return result

    @staticmethod
    def _failures_for(result: ExperimentRotationResult) -> List[ExperimentFailure]:
        failures = []
        if result.message:
            failures.append(ExperimentFailure(experiment_id=result.experiment_id, message=result.message))
        for product in result.products:
            if not product.success:
                failures.append(ExperimentFailure(
                    experiment_id=result.experiment_id,
                    product_id=product.product_id,
                    message=product.message or "Unknown update error"
                ))
        return failures
