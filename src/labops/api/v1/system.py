# src/labops/api/v1/system.py
"""
System endpoints: liveness and build information.

Served by ErrorBoundaryRoute, so even these never leak a raw exception.
"""

from fastapi import APIRouter, Depends

from labops.config.settings import Settings, get_settings
from labops.core.responses import ResponseFormatter, get_formatter
from labops.utils.logging import DISTRIBUTION_NAME, get_project_name, get_project_version

from .boundary import ErrorBoundaryRoute

router = APIRouter(route_class=ErrorBoundaryRoute, tags=["system"])


@router.get("/health")
async def health(formatter: ResponseFormatter = Depends(get_formatter)):
    return formatter.success({"status": "ok"}, message="Service is healthy")


@router.get("/api/v1/system/info")
async def system_info(
    settings: Settings = Depends(get_settings),
    formatter: ResponseFormatter = Depends(get_formatter),
):
    """Service name, package version, environment and API version."""
    return formatter.success(
        {
            "service": get_project_name() or DISTRIBUTION_NAME,
            "version": get_project_version(),
            "env": settings.ENV,
            "api_version": settings.API_VERSION,
        }
    )
