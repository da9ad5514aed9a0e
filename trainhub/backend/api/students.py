from fastapi import APIRouter, Depends, status, Response, Request
from typing import List


from ..exceptions import ServiceError
from ..models.db_models import User
from ..services.student_service import StudentService
from .schemas.enrollment import EnrollmentResponse
from .schemas.roster import StudentCreateRequest, StudentUpdateRequest, StudentResponse
from .auth import get_current_user
from .dependencies import get_student_service
from .utilities.errors import http_error_from
from .utilities.limiter import limiter

# --- Endpoint-specific response models ---
class StudentDetailResponse(StudentResponse):
    enrollments: List[EnrollmentResponse] = []


router = APIRouter(prefix="/students", tags=["Students"])


@router.get("", response_model=List[StudentResponse], summary="List all students")
@limiter.limit("60/minute")
async def list_students(request: Request, user: User = Depends(get_current_user), service: StudentService = Depends(get_student_service)):
    try:
        return await service.list_students(user)
    except ServiceError as e:
        raise http_error_from(e)

@router.get("/{student_id}", response_model=StudentDetailResponse, summary="Get a student with their enrollments")
@limiter.limit("60/minute")
async def get_student(request: Request, student_id: int, user: User = Depends(get_current_user), service: StudentService = Depends(get_student_service)):
    try:
        student, enrollments = await service.get_student(user, student_id)
    except ServiceError as e:
        raise http_error_from(e)
    return {**student.model_dump(), "enrollments": [e.model_dump() for e in enrollments]}

@router.post("", response_model=StudentResponse, status_code=status.HTTP_201_CREATED, summary="Create a student profile for an existing user")
@limiter.limit("60/minute")
async def create_student(request: Request, create_request: StudentCreateRequest, user: User = Depends(get_current_user), service: StudentService = Depends(get_student_service)):
    try:
        return await service.create_student(user, **create_request.model_dump())
    except ServiceError as e:
        raise http_error_from(e)

@router.put("/{student_id}", response_model=StudentResponse, summary="Update a student and their contact details")
@limiter.limit("60/minute")
async def update_student(request: Request, student_id: int, update_request: StudentUpdateRequest, user: User = Depends(get_current_user), service: StudentService = Depends(get_student_service)):
    try:
        return await service.update_student(user, student_id, update_request.model_dump(exclude_unset=True))
    except ServiceError as e:
        raise http_error_from(e)

@router.delete("/{student_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a student profile")
@limiter.limit("60/minute")
async def delete_student(request: Request, student_id: int, user: User = Depends(get_current_user), service: StudentService = Depends(get_student_service)):
    try:
        await service.delete_student(user, student_id)
    except ServiceError as e:
        raise http_error_from(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
