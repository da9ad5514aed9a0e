from fastapi import APIRouter, Depends, status, Response, Request
from typing import List

from ..exceptions import ServiceError
from ..models.db_models import User
from ..services.instructor_service import InstructorService
from .schemas.roster import InstructorCreateRequest, InstructorUpdateRequest, InstructorResponse, InstructorDetailResponse
from .auth import get_current_user
from .dependencies import get_instructor_service
from .utilities.errors import http_error_from
from .utilities.limiter import limiter

router = APIRouter(prefix="/instructors", tags=["Instructors"])


@router.get("", response_model=List[InstructorResponse], summary="List all instructors")
@limiter.limit("60/minute")
async def list_instructors(request: Request, user: User = Depends(get_current_user), service: InstructorService = Depends(get_instructor_service)):
    return await service.list_instructors()

@router.get("/{instructor_id}", response_model=InstructorDetailResponse, summary="Get an instructor with their schedules")
@limiter.limit("60/minute")
async def get_instructor(request: Request, instructor_id: int, user: User = Depends(get_current_user), service: InstructorService = Depends(get_instructor_service)):
    try:
        instructor, schedules = await service.get_instructor(instructor_id)
    except ServiceError as e:
        raise http_error_from(e)
    return {**instructor.model_dump(), "schedules": [s.model_dump() for s in schedules]}

@router.post("", response_model=InstructorResponse, status_code=status.HTTP_201_CREATED, summary="Create an instructor profile for an existing user")
@limiter.limit("60/minute")
async def create_instructor(request: Request, create_request: InstructorCreateRequest, user: User = Depends(get_current_user), service: InstructorService = Depends(get_instructor_service)):
    try:
        return await service.create_instructor(user, **create_request.model_dump())
    except ServiceError as e:
        raise http_error_from(e)

@router.put("/{instructor_id}", response_model=InstructorResponse, summary="Update an instructor and their contact details")
@limiter.limit("60/minute")
async def update_instructor(request: Request, instructor_id: int, update_request: InstructorUpdateRequest, user: User = Depends(get_current_user), service: InstructorService = Depends(get_instructor_service)):
    try:
        return await service.update_instructor(user, instructor_id, update_request.model_dump(exclude_unset=True))
    except ServiceError as e:
        raise http_error_from(e)

@router.delete("/{instructor_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete an instructor profile and their schedules")
@limiter.limit("60/minute")
async def delete_instructor(request: Request, instructor_id: int, user: User = Depends(get_current_user), service: InstructorService = Depends(get_instructor_service)):
    try:
        await service.delete_instructor(user, instructor_id)
    except ServiceError as e:
        raise http_error_from(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
