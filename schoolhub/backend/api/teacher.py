from fastapi import APIRouter, Depends, HTTPException, status, Request
from typing import List, Optional
from datetime import date, datetime, timezone

from ..services.teacher_service import TeacherService, AttendanceSheetEntry
from ..services.errors import ServiceError, AuthorizationError
from ..models.db_models import Profile, Role, Student, SchoolClass, AttendanceRecord, AttendanceStats
from .schemas.attendance import AttendanceUpsertRequest
from .auth import get_current_user, verify_role
from .dependencies import get_teacher_service
from .utilities.limiter import limiter


router = APIRouter(prefix="/teacher", tags=["Teacher Endpoints"])

# --- HELPERS ---

def _verify_teacher_role(user: Profile):
    verify_role(user, Role.TEACHER)

def _today() -> date:
    return datetime.now(timezone.utc).date()

# === SECTION 1: CLASSES & STUDENTS ===

@router.get("/classes", response_model=List[SchoolClass], summary="List the classes taught by the teacher")
@limiter.limit("60/minute")
async def get_my_classes(request: Request, user: Profile = Depends(get_current_user), service: TeacherService = Depends(get_teacher_service)):
    _verify_teacher_role(user)
    return await service.get_teacher_classes(user.id)

@router.get("/students", response_model=List[Student], summary="List every student enrolled in the teacher's classes")
@limiter.limit("60/minute")
async def get_my_students(request: Request, user: Profile = Depends(get_current_user), service: TeacherService = Depends(get_teacher_service)):
    _verify_teacher_role(user)
    return await service.get_teacher_students(user.id)

# === SECTION 2: ATTENDANCE ===

@router.get("/attendance", response_model=List[AttendanceSheetEntry], summary="Get the attendance sheet for a date")
@limiter.limit("60/minute")
async def get_attendance_sheet(request: Request, day: Optional[date] = None, user: Profile = Depends(get_current_user), service: TeacherService = Depends(get_teacher_service)):
    _verify_teacher_role(user)
    return await service.get_attendance_sheet(user.id, day or _today())

@router.put("/attendance", response_model=AttendanceRecord, summary="Record or correct one student's attendance for a date")
@limiter.limit("200/minute")
async def upsert_attendance(request: Request, upsert_request: AttendanceUpsertRequest, user: Profile = Depends(get_current_user), service: TeacherService = Depends(get_teacher_service)):
    _verify_teacher_role(user)
    try:
        return await service.record_attendance(
            teacher_id=user.id,
            student_id=upsert_request.student_id,
            attendance_date=upsert_request.date,
            status=upsert_request.status,
            class_id=upsert_request.class_id,
        )
    except AuthorizationError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except ServiceError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

@router.get("/stats", response_model=AttendanceStats, summary="Attendance counts and rate of the teacher's students for a date")
@limiter.limit("60/minute")
async def get_my_stats(request: Request, day: Optional[date] = None, user: Profile = Depends(get_current_user), service: TeacherService = Depends(get_teacher_service)):
    _verify_teacher_role(user)
    return await service.get_teacher_stats(user.id, day or _today())
