"""Scheduled / administrative refresh trigger.

Usage:
    curl https://host/api/cron/refresh-rates -H "Authorization: Bearer $EXCHANGE_RATE_CRON_SECRET"
"""
from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from backend.dependencies import get_scheduler, require_refresh_secret
from backend.models.responses import RefreshResponse
from fxrates.rates.scheduler import RefreshScheduler
from fxrates.utils.logging import get_logger


logger = get_logger(__name__)

router = APIRouter()


@router.get(
    "/refresh-rates",
    response_model=RefreshResponse,
    dependencies=[Depends(require_refresh_secret)],
)
def refresh_rates(scheduler: RefreshScheduler = Depends(get_scheduler)):
    logger.info("Starting triggered exchange rate refresh...")
    try:
        summary = scheduler.refresh_active_pairs()
    except Exception as e:
        logger.exception("Triggered rate refresh failed")
        return JSONResponse(
            status_code=500,
            content={
                "error": "Refresh failed",
                "details": str(e),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )

    return RefreshResponse(
        success=True,
        message="Exchange rates refreshed successfully",
        timestamp=datetime.now(timezone.utc),
        **summary.to_dict(),
    )
