from fastapi import APIRouter, Depends, status, Response, Request
from typing import List

from ..exceptions import ServiceError
from ..models.db_models import User
from ..services.schedule_service import ScheduleService
from .schemas.schedule import ScheduleCreateRequest, ScheduleUpdateRequest, ScheduleResponse
from .auth import get_current_user
from .dependencies import get_schedule_service
from .utilities.errors import http_error_from
from .utilities.limiter import limiter

router = APIRouter(prefix="/schedules", tags=["Schedules"])


@router.get("", response_model=List[ScheduleResponse], summary="List all schedules")
@limiter.limit("60/minute")
async def list_schedules(request: Request, user: User = Depends(get_current_user), service: ScheduleService = Depends(get_schedule_service)):
    return await service.list_schedules()

@router.get("/{schedule_id}", response_model=ScheduleResponse, summary="Get a schedule")
@limiter.limit("60/minute")
async def get_schedule(request: Request, schedule_id: int, user: User = Depends(get_current_user), service: ScheduleService = Depends(get_schedule_service)):
    try:
        return await service.get_schedule(schedule_id)
    except ServiceError as e:
        raise http_error_from(e)

@router.post("", response_model=ScheduleResponse, status_code=status.HTTP_201_CREATED, summary="Create a schedule")
@limiter.limit("60/minute")
async def create_schedule(request: Request, create_request: ScheduleCreateRequest, user: User = Depends(get_current_user), service: ScheduleService = Depends(get_schedule_service)):
    try:
        return await service.create_schedule(user, create_request.model_dump())
    except ServiceError as e:
        raise http_error_from(e)

@router.put("/{schedule_id}", response_model=ScheduleResponse, summary="Update a schedule")
@limiter.limit("60/minute")
async def update_schedule(request: Request, schedule_id: int, update_request: ScheduleUpdateRequest, user: User = Depends(get_current_user), service: ScheduleService = Depends(get_schedule_service)):
    try:
        return await service.update_schedule(user, schedule_id, update_request.model_dump(exclude_unset=True))
    except ServiceError as e:
        raise http_error_from(e)

@router.delete("/{schedule_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a schedule with its enrollments and attendance")
@limiter.limit("60/minute")
async def delete_schedule(request: Request, schedule_id: int, user: User = Depends(get_current_user), service: ScheduleService = Depends(get_schedule_service)):
    try:
        await service.delete_schedule(user, schedule_id)
    except ServiceError as e:
        raise http_error_from(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
