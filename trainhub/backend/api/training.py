from fastapi import APIRouter, Depends, status, Response, Request

from ..exceptions import ServiceError
from ..models.db_models import User
from ..services.enrollment_service import EnrollmentService
from ..services.attendance_service import AttendanceService, AttendanceMark
from .schemas.enrollment import EnrollmentResponse
from .schemas.attendance import AttendanceMarkRequest, AttendanceMarkResponse, ScheduleAttendanceResponse
from .auth import get_current_user
from .dependencies import get_enrollment_service, get_attendance_service
from .utilities.errors import http_error_from
from .utilities.limiter import limiter

router = APIRouter(prefix="/training", tags=["Training"])

# === Enrollment self-service ===

@router.post("/{schedule_id}/optin", response_model=EnrollmentResponse, status_code=status.HTTP_201_CREATED, summary="Enroll the current student in a schedule")
@limiter.limit("60/minute")
async def opt_in(request: Request, schedule_id: int, user: User = Depends(get_current_user), service: EnrollmentService = Depends(get_enrollment_service)):
    try:
        return await service.opt_in(user, schedule_id)
    except ServiceError as e:
        raise http_error_from(e)

@router.delete("/{schedule_id}/optout", response_model=EnrollmentResponse, summary="Cancel the current student's enrollment")
@limiter.limit("60/minute")
async def opt_out(request: Request, schedule_id: int, user: User = Depends(get_current_user), service: EnrollmentService = Depends(get_enrollment_service)):
    try:
        return await service.opt_out(user, schedule_id)
    except ServiceError as e:
        raise http_error_from(e)

# === Attendance ===

@router.get("/{schedule_id}/attendance", response_model=ScheduleAttendanceResponse, summary="Get a schedule's enrollments, attendance and summary")
@limiter.limit("60/minute")
async def get_attendance(request: Request, schedule_id: int, user: User = Depends(get_current_user), service: AttendanceService = Depends(get_attendance_service)):
    try:
        result = await service.list_by_schedule(user, schedule_id)
    except ServiceError as e:
        raise http_error_from(e)
    return result.model_dump()

@router.post("/{schedule_id}/attendance", response_model=AttendanceMarkResponse, summary="Mark attendance for a schedule (idempotent per student)")
@limiter.limit("60/minute")
async def mark_attendance(request: Request, schedule_id: int, mark_request: AttendanceMarkRequest, user: User = Depends(get_current_user), service: AttendanceService = Depends(get_attendance_service)):
    entries = [AttendanceMark(**entry.model_dump()) for entry in mark_request.attendance]
    try:
        result = await service.bulk_mark(user, schedule_id, entries)
    except ServiceError as e:
        raise http_error_from(e)
    return result.model_dump()

@router.get("/{schedule_id}/attendance/pdf", summary="Download the attendance sheet as PDF", response_class=Response)
@limiter.limit("10/minute")
async def export_attendance_pdf(request: Request, schedule_id: int, user: User = Depends(get_current_user), service: AttendanceService = Depends(get_attendance_service)):
    try:
        pdf_bytes = await service.export_pdf(user, schedule_id)
    except ServiceError as e:
        raise http_error_from(e)
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="attendance_schedule_{schedule_id}.pdf"'},
    )
