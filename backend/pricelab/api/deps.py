"""Dependencies resolving services built in the application lifespan."""
from fastapi import Request

from pricelab.services.resolver import PriceResolver
from pricelab.services.scheduler import RotationScheduler


def get_resolver(request: Request) -> PriceResolver:
    return request.app.state.resolver


def get_scheduler(request: Request) -> RotationScheduler:
    return request.app.state.scheduler
