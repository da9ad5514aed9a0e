from fastapi import APIRouter, Depends, Request

from ..exceptions import ServiceError
from ..models.db_models import User
from ..services.attendance_service import AttendanceService
from .schemas.attendance import AttendanceUpdateRequest, AttendanceResponse
from .auth import get_current_user
from .dependencies import get_attendance_service
from .utilities.errors import http_error_from
from .utilities.limiter import limiter

router = APIRouter(prefix="/attendance", tags=["Attendance"])


@router.put("/{attendance_id}", response_model=AttendanceResponse, summary="Update a single attendance record")
@limiter.limit("60/minute")
async def update_attendance(request: Request, attendance_id: int, update_request: AttendanceUpdateRequest, user: User = Depends(get_current_user), service: AttendanceService = Depends(get_attendance_service)):
    try:
        return await service.update_attendance(user, attendance_id, update_request.status, update_request.notes)
    except ServiceError as e:
        raise http_error_from(e)
