from fastapi import APIRouter, Depends, status, Response, Request
from typing import List

from ..exceptions import ServiceError
from ..models.db_models import User
from ..services.course_service import CourseService
from .schemas.course import CourseCreateRequest, CourseUpdateRequest, CourseResponse, CourseDetailResponse
from .auth import get_current_user
from .dependencies import get_course_service
from .utilities.errors import http_error_from
from .utilities.limiter import limiter

router = APIRouter(prefix="/courses", tags=["Courses"])


@router.get("", response_model=List[CourseResponse], summary="List all courses")
@limiter.limit("60/minute")
async def list_courses(request: Request, user: User = Depends(get_current_user), service: CourseService = Depends(get_course_service)):
    return await service.list_courses()

@router.get("/{course_id}", response_model=CourseDetailResponse, summary="Get a course with its schedules")
@limiter.limit("60/minute")
async def get_course(request: Request, course_id: int, user: User = Depends(get_current_user), service: CourseService = Depends(get_course_service)):
    try:
        course, schedules = await service.get_course(course_id)
    except ServiceError as e:
        raise http_error_from(e)
    return {**course.model_dump(), "schedules": [s.model_dump() for s in schedules]}

@router.post("", response_model=CourseResponse, status_code=status.HTTP_201_CREATED, summary="Create a course")
@limiter.limit("60/minute")
async def create_course(request: Request, create_request: CourseCreateRequest, user: User = Depends(get_current_user), service: CourseService = Depends(get_course_service)):
    try:
        return await service.create_course(user, create_request.model_dump())
    except ServiceError as e:
        raise http_error_from(e)

@router.put("/{course_id}", response_model=CourseResponse, summary="Update a course")
@limiter.limit("60/minute")
async def update_course(request: Request, course_id: int, update_request: CourseUpdateRequest, user: User = Depends(get_current_user), service: CourseService = Depends(get_course_service)):
    try:
        return await service.update_course(user, course_id, update_request.model_dump(exclude_unset=True))
    except ServiceError as e:
        raise http_error_from(e)

@router.delete("/{course_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a course and its schedules")
@limiter.limit("60/minute")
async def delete_course(request: Request, course_id: int, user: User = Depends(get_current_user), service: CourseService = Depends(get_course_service)):
    try:
        await service.delete_course(user, course_id)
    except ServiceError as e:
        raise http_error_from(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
