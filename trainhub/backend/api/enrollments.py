from fastapi import APIRouter, Depends, status, Response, Request
from typing import List

from ..exceptions import ServiceError
from ..models.db_models import User
from ..services.enrollment_service import EnrollmentService
from .schemas.enrollment import EnrollmentCreateRequest, EnrollmentUpdateRequest, EnrollmentResponse
from .auth import get_current_user
from .dependencies import get_enrollment_service
from .utilities.errors import http_error_from
from .utilities.limiter import limiter

router = APIRouter(prefix="/enrollments", tags=["Enrollments"])


@router.get("", response_model=List[EnrollmentResponse], summary="List enrollments (students see their own)")
@limiter.limit("60/minute")
async def list_enrollments(request: Request, user: User = Depends(get_current_user), service: EnrollmentService = Depends(get_enrollment_service)):
    try:
        return await service.list_enrollments(user)
    except ServiceError as e:
        raise http_error_from(e)

@router.get("/{enrollment_id}", response_model=EnrollmentResponse, summary="Get an enrollment")
@limiter.limit("60/minute")
async def get_enrollment(request: Request, enrollment_id: int, user: User = Depends(get_current_user), service: EnrollmentService = Depends(get_enrollment_service)):
    try:
        return await service.get_enrollment(user, enrollment_id)
    except ServiceError as e:
        raise http_error_from(e)

@router.post("", response_model=EnrollmentResponse, status_code=status.HTTP_201_CREATED, summary="Create an enrollment (admin)")
@limiter.limit("60/minute")
async def create_enrollment(request: Request, create_request: EnrollmentCreateRequest, user: User = Depends(get_current_user), service: EnrollmentService = Depends(get_enrollment_service)):
    try:
        return await service.create_enrollment(user, **create_request.model_dump())
    except ServiceError as e:
        raise http_error_from(e)

@router.put("/{enrollment_id}", response_model=EnrollmentResponse, summary="Update an enrollment's status, dates or notes (admin)")
@limiter.limit("60/minute")
async def update_enrollment(request: Request, enrollment_id: int, update_request: EnrollmentUpdateRequest, user: User = Depends(get_current_user), service: EnrollmentService = Depends(get_enrollment_service)):
    try:
        return await service.update_enrollment(user, enrollment_id, update_request.model_dump(exclude_unset=True))
    except ServiceError as e:
        raise http_error_from(e)

@router.delete("/{enrollment_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete an enrollment (admin)")
@limiter.limit("60/minute")
async def delete_enrollment(request: Request, enrollment_id: int, user: User = Depends(get_current_user), service: EnrollmentService = Depends(get_enrollment_service)):
    try:
        await service.delete_enrollment(user, enrollment_id)
    except ServiceError as e:
        raise http_error_from(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
