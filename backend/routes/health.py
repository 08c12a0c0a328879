from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from backend.dependencies import get_services
from fxrates.health import get_health_status
from fxrates.services import RateServices


router = APIRouter()


@router.get("/health")
def health(
    provider: bool = Query(True, description="Also probe the upstream provider"),
    services: RateServices = Depends(get_services),
):
    # health structure is already a dict with status, details
    return get_health_status(services, include_provider=provider)
