from fastapi import APIRouter, Depends, Request
from typing import List

from ..models.db_models import User
from ..services.dashboard_service import DashboardService
from .schemas.dashboard import DashboardStatsResponse, ActivityResponse
from .auth import get_current_user
from .dependencies import get_dashboard_service
from .utilities.limiter import limiter

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("/stats", response_model=DashboardStatsResponse, summary="Aggregate counts and the latest courses")
@limiter.limit("60/minute")
async def get_stats(request: Request, user: User = Depends(get_current_user), service: DashboardService = Depends(get_dashboard_service)):
    stats = await service.get_stats()
    return stats.model_dump()

@router.get("/activity", response_model=List[ActivityResponse], summary="Recent enrollment activity")
@limiter.limit("60/minute")
async def get_activity(request: Request, user: User = Depends(get_current_user), service: DashboardService = Depends(get_dashboard_service)):
    return await service.get_recent_activity()
