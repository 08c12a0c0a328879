"""System health checks."""
from typing import Dict, Any
from datetime import datetime, timezone
from fxrates.services import RateServices
from fxrates.utils.logging import get_logger

logger = get_logger(__name__)


class HealthStatus:
    """Health check status."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


def check_database(services: RateServices) -> Dict[str, Any]:
    """Check database connectivity."""
    try:
        services.database.ping()
        return {
            "status": HealthStatus.HEALTHY,
            "message": "Database connection OK"
        }
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return {
            "status": HealthStatus.UNHEALTHY,
            "message": f"Database error: {str(e)}"
        }


def check_provider(services: RateServices) -> Dict[str, Any]:
    """Check the upstream rate provider.

    An unreachable provider only degrades the service: cached and stale rates
    keep being served.
    """
    if services.provider.health_check():
        return {
            "status": HealthStatus.HEALTHY,
            "message": f"{services.provider.NAME} reachable"
        }
    return {
        "status": HealthStatus.DEGRADED,
        "message": f"{services.provider.NAME} unreachable, serving cached rates"
    }


def get_health_status(services: RateServices, include_provider: bool = True) -> Dict[str, Any]:
    """
    Get overall system health status.

    Returns:
        Dict containing overall status and component statuses
    """
    components = {"database": check_database(services)}
    if include_provider:
        components["provider"] = check_provider(services)

    statuses = [component["status"] for component in components.values()]

    if all(s == HealthStatus.HEALTHY for s in statuses):
        overall_status = HealthStatus.HEALTHY
    elif any(s == HealthStatus.UNHEALTHY for s in statuses):
        overall_status = HealthStatus.UNHEALTHY
    else:
        overall_status = HealthStatus.DEGRADED

    return {
        "status": overall_status,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "components": components,
    }
