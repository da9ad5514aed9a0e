"""
Pure enrollment rules shared by the opt-in flow, the admin CRUD and the schedule update.
No I/O happens here; callers hold the schedule lock while evaluating them.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from ..exceptions import CapacityExceededError, ConflictError, ValidationFailedError
from ..models.db_models import EnrollmentStatus, Schedule, ScheduleStatus

# enrolled is the only non-terminal state
ALLOWED_TRANSITIONS = {
    EnrollmentStatus.ENROLLED: {EnrollmentStatus.COMPLETED, EnrollmentStatus.CANCELLED},
    EnrollmentStatus.COMPLETED: set(),
    EnrollmentStatus.CANCELLED: set(),
}

# closing a schedule closes its active enrollments with the matching status
ENROLLMENT_STATUS_ON_CLOSE = {
    ScheduleStatus.COMPLETED: EnrollmentStatus.COMPLETED,
    ScheduleStatus.CANCELLED: EnrollmentStatus.CANCELLED,
}


def ensure_open_for_enrollment(schedule: Schedule):
    if schedule.status != ScheduleStatus.SCHEDULED:
        raise ConflictError(
            f"Schedule ({schedule.id}) is {schedule.status.value} and no longer accepts enrollments.",
            schedule_status=schedule.status.value,
        )


def has_capacity(max_enrollments: Optional[int], active: int) -> bool:
    """A NULL capacity means the schedule is uncapped."""
    return max_enrollments is None or active < max_enrollments


def ensure_capacity(schedule: Schedule, active: int):
    if not has_capacity(schedule.max_enrollments, active):
        raise CapacityExceededError(
            "Maximum enrollment limit reached for this schedule.",
            capacity=schedule.max_enrollments,
            active=active,
        )


def ensure_transition(current: EnrollmentStatus, target: EnrollmentStatus):
    if current == target:
        return
    if target not in ALLOWED_TRANSITIONS[current]:
        raise ValidationFailedError.for_field(
            "status", f"Cannot change enrollment status from '{current.value}' to '{target.value}'."
        )


def ensure_completion_order(enrolled_at: datetime, completed_at: Optional[datetime]):
    if completed_at is not None and completed_at < enrolled_at:
        raise ValidationFailedError.for_field("completed_at", "completed_at must not be earlier than enrolled_at.")


def ensure_time_order(start_time: datetime, end_time: datetime):
    if end_time <= start_time:
        raise ValidationFailedError.for_field("end_time", "end_time must be after start_time.")


def ensure_capacity_not_below_active(max_enrollments: Optional[int], active: int):
    if max_enrollments is not None and max_enrollments < active:
        raise ValidationFailedError.for_field(
            "max_enrollments",
            f"max_enrollments ({max_enrollments}) cannot be lower than the {active} active enrollments.",
        )


def ensure_not_null(fields: Dict[str, Any], *names: str):
    """A partial update may leave a required column out, but may not set it to null."""
    for name in names:
        if name in fields and fields[name] is None:
            raise ValidationFailedError.for_field(name, f"{name} cannot be null.")
