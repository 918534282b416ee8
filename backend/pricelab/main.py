"""Main FastAPI application."""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import redis

from pricelab.config import Settings, get_settings
from pricelab.middleware.logging import LoggingMiddleware, configure_logging, get_logger
from pricelab.api import health, rotation, storefront
from pricelab.database import engine, Base, SessionLocal
from pricelab import models  # noqa: F401  registers tables on Base
from pricelab.services.commerce import CommerceClientFactory
from pricelab.services.experiments import ExperimentLookup
from pricelab.services.resolver import PriceResolver
from pricelab.services.rotation_lock import RotationLock
from pricelab.services.scheduler import RotationScheduler
from pricelab.services.synchronizer import PriceSynchronizer
from pricelab.services.tenant_settings import TenantSettingsStore

settings = get_settings()
configure_logging(settings.debug)
logger = get_logger()


def build_services(app: FastAPI, config: Settings, session_factory=SessionLocal) -> None:
    """Wire the resolver and scheduler onto `app.state`."""
    settings_store = TenantSettingsStore(
        session_factory,
        default_interval_minutes=config.default_rotation_interval_minutes
    )
    lookup = ExperimentLookup(session_factory)
    clients = CommerceClientFactory(
        token_provider=settings_store.get_access_token,
        api_version=config.shopify_admin_api_version,
        timeout=config.commerce_request_timeout_seconds
    )
    redis_client = redis.from_url(config.redis_url) if config.redis_url else None

    app.state.settings_store = settings_store
    app.state.commerce_clients = clients
    app.state.resolver = PriceResolver(lookup, include_paused=config.resolve_paused_experiments)
    app.state.scheduler = RotationScheduler(
        settings_store=settings_store,
        lookup=lookup,
        synchronizer=PriceSynchronizer(clients, call_timeout=config.sync_call_timeout_seconds),
        lock=RotationLock(redis_client, ttl_seconds=config.rotation_lock_ttl_seconds),
        tick_seconds=config.scheduler_tick_seconds,
        repository_timeout=config.repository_call_timeout_seconds
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan - startup and shutdown."""
    # Startup
    Base.metadata.create_all(bind=engine)
    logger.info("database_tables_ready")

    build_services(app, settings)
    scheduler = app.state.scheduler

    if settings.scheduler_enabled:
        try:
            if app.state.settings_store.any_rotation_enabled():
                await scheduler.start()
                logger.info("rotation_scheduler_autostarted")
            else:
                logger.info("rotation_scheduler_idle", reason="no tenant has rotation enabled")
        except Exception as e:
            logger.error("rotation_scheduler_start_failed", error=str(e))

    yield  # App runs here

    # Shutdown
    await scheduler.stop()
    await app.state.commerce_clients.close()
    logger.info("shutdown_complete")

# Create FastAPI app
app = FastAPI(
    title="PriceLab",
    description="Price experiments with per-visitor assignment and scheduled price rotation",
    version="0.1.0",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan
)

# CORS - the storefront price endpoint is called from any shop domain
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Trace-ID"]
)

# Logging middleware
app.add_middleware(LoggingMiddleware)

# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(storefront.router, tags=["storefront"])
app.include_router(rotation.router, tags=["rotation"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "PriceLab",
        "version": "0.1.0",
        "docs": "/docs" if settings.debug else "disabled",
        "endpoints": {
            "health": "/health",
            "price": "GET /storefront/price",
            "rotate": "POST /rotation/run",
            "status": "GET /rotation/status"
        }
    }


# uvicorn pricelab.main:app --reload
