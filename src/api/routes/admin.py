"""
Admin / observability endpoints
===============================

GET   /api/v1/admin/rides                     -- monitor rides (status filter + search)
GET   /api/v1/admin/rides/stats               -- ride counts by status
GET   /api/v1/admin/alerts                    -- alerts (active | resolved | all)
PATCH /api/v1/admin/alerts/{alert_id}/resolve -- mark an alert handled
GET   /api/v1/admin/health                    -- simple health check
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db
from src.api.middleware import limiter
from src.api.schemas import (
    AdminRideResponse,
    AlertFilter,
    AlertResponse,
    HealthResponse,
    RideStatsResponse,
)
from src.config import settings
from src.domain.clock import utcnow
from src.domain.enums import RideStatus
from src.infrastructure.repositories import AlertRepository, RideRepository

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/rides",
    response_model=list[AdminRideResponse],
    summary="Monitor rides by status and free-text search",
)
@limiter.limit(settings.rate_limit)
async def list_rides(
    request: Request,
    status: Optional[RideStatus] = None,
    q: Optional[str] = Query(None, max_length=100),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    return await RideRepository(db).search(status=status, query=q, limit=limit)


@router.get(
    "/rides/stats",
    response_model=RideStatsResponse,
    summary="Ride counts by status",
)
@limiter.limit(settings.rate_limit)
async def ride_stats(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    counts = await RideRepository(db).count_by_status()
    return RideStatsResponse(total=sum(counts.values()), by_status=counts)


@router.get(
    "/alerts",
    response_model=list[AlertResponse],
    summary="List ride alerts",
)
@limiter.limit(settings.rate_limit)
async def list_alerts(
    request: Request,
    filter: AlertFilter = "active",
    db: AsyncSession = Depends(get_db),
):
    resolved = {"active": False, "resolved": True, "all": None}[filter]
    return await AlertRepository(db).list_alerts(resolved=resolved)


@router.patch(
    "/alerts/{alert_id}/resolve",
    response_model=AlertResponse,
    summary="Resolve an alert",
)
@limiter.limit(settings.rate_limit)
async def resolve_alert(
    request: Request,
    alert_id: int,
    db: AsyncSession = Depends(get_db),
):
    alert = await AlertRepository(db).get_by_id(alert_id)
    if not alert:
        raise HTTPException(status_code=404, detail="Alert not found")
    if alert.resolved:
        raise HTTPException(status_code=409, detail="Alert already resolved")
    alert.resolved = True
    alert.resolved_at = utcnow()
    return alert


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
