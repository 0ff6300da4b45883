from fastapi import APIRouter, Depends, Query, Request, Response, status
from typing import Dict, List, Optional
from uuid import UUID
from datetime import date, datetime, timezone

from ..models.db_models import Profile, Role, Student, SchoolClass, Enrollment, Invoice, FeeStructure
from ..services.admin_service import AdminService, SchoolStats, RecentStudent
from .schemas.students import StudentCreateRequest, StudentUpdateRequest, AccountCreateRequest
from .schemas.classes import ClassCreateRequest, EnrollmentRequest
from .schemas.finance import (
    InvoiceCreateRequest, InvoiceStatusUpdateRequest,
    FeeStructureCreateRequest, FeeStructureUpdateRequest,
)
from .schemas.attendance import CalendarDayResponse, MonthSummaryResponse
from .auth import get_current_user, verify_role
from .dependencies import get_admin_service
from .utilities.limiter import limiter

router = APIRouter(prefix="/admin", tags=["Admin Endpoints"])


def _verify_admin_role(user: Profile):
    verify_role(user, Role.ADMIN)


# === SECTION 1: STUDENTS ===

@router.get("/students", response_model=List[Student], summary="List all students, newest first")
@limiter.limit("60/minute")
async def list_students(request: Request, user: Profile = Depends(get_current_user), service: AdminService = Depends(get_admin_service)):
    _verify_admin_role(user)
    return await service.get_all_students()

@router.post("/students", response_model=Student, status_code=status.HTTP_201_CREATED, summary="Add a student")
@limiter.limit("30/minute")
async def create_student(request: Request, create_request: StudentCreateRequest, user: Profile = Depends(get_current_user), service: AdminService = Depends(get_admin_service)):
    _verify_admin_role(user)
    return await service.create_student(create_request.name, create_request.dob, create_request.parent_id)

@router.patch("/students/{student_id}", response_model=Student, summary="Update a student's details")
@limiter.limit("30/minute")
async def update_student(request: Request, student_id: UUID, update_request: StudentUpdateRequest, user: Profile = Depends(get_current_user), service: AdminService = Depends(get_admin_service)):
    _verify_admin_role(user)
    return await service.update_student(student_id, update_request.model_dump(exclude_unset=True))

@router.delete("/students/{student_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a student")
@limiter.limit("30/minute")
async def delete_student(request: Request, student_id: UUID, user: Profile = Depends(get_current_user), service: AdminService = Depends(get_admin_service)):
    _verify_admin_role(user)
    await service.delete_student(student_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

@router.get("/students/{student_id}/enrollments", response_model=List[Enrollment], summary="List a student's enrollments")
@limiter.limit("60/minute")
async def list_student_enrollments(request: Request, student_id: UUID, user: Profile = Depends(get_current_user), service: AdminService = Depends(get_admin_service)):
    _verify_admin_role(user)
    return await service.get_student_enrollments(student_id)

@router.get("/recent-enrollments", response_model=List[RecentStudent], summary="Newest students with days since they were added")
@limiter.limit("60/minute")
async def recent_enrollments(request: Request, limit: int = Query(5, ge=1, le=50), user: Profile = Depends(get_current_user), service: AdminService = Depends(get_admin_service)):
    _verify_admin_role(user)
    return await service.get_recent_enrollments(limit)

# === SECTION 2: ACCOUNTS ===

@router.get("/users", response_model=List[Profile], summary="List every account")
@limiter.limit("60/minute")
async def list_users(request: Request, user: Profile = Depends(get_current_user), service: AdminService = Depends(get_admin_service)):
    _verify_admin_role(user)
    return await service.get_all_users()

@router.get("/teachers", response_model=List[Profile], summary="List teacher accounts")
@limiter.limit("60/minute")
async def list_teachers(request: Request, user: Profile = Depends(get_current_user), service: AdminService = Depends(get_admin_service)):
    _verify_admin_role(user)
    return await service.get_users_by_role(Role.TEACHER)

@router.post("/teachers", response_model=Profile, status_code=status.HTTP_201_CREATED, summary="Create a teacher account")
@limiter.limit("10/minute")
async def create_teacher(request: Request, create_request: AccountCreateRequest, user: Profile = Depends(get_current_user), service: AdminService = Depends(get_admin_service)):
    _verify_admin_role(user)
    return await service.create_teacher(create_request.full_name, create_request.email, create_request.password)

@router.get("/parents", response_model=List[Profile], summary="List parent accounts")
@limiter.limit("60/minute")
async def list_parents(request: Request, user: Profile = Depends(get_current_user), service: AdminService = Depends(get_admin_service)):
    _verify_admin_role(user)
    return await service.get_users_by_role(Role.PARENT)

@router.post("/parents", response_model=Profile, status_code=status.HTTP_201_CREATED, summary="Create a parent account")
@limiter.limit("10/minute")
async def create_parent(request: Request, create_request: AccountCreateRequest, user: Profile = Depends(get_current_user), service: AdminService = Depends(get_admin_service)):
    _verify_admin_role(user)
    return await service.create_parent(create_request.full_name, create_request.email, create_request.password)

# === SECTION 3: CLASSES & ENROLLMENTS ===

@router.get("/classes", response_model=List[SchoolClass], summary="List classes with their teacher")
@limiter.limit("60/minute")
async def list_classes(request: Request, user: Profile = Depends(get_current_user), service: AdminService = Depends(get_admin_service)):
    _verify_admin_role(user)
    return await service.get_all_classes()

@router.post("/classes", response_model=SchoolClass, status_code=status.HTTP_201_CREATED, summary="Create a class")
@limiter.limit("30/minute")
async def create_class(request: Request, create_request: ClassCreateRequest, user: Profile = Depends(get_current_user), service: AdminService = Depends(get_admin_service)):
    _verify_admin_role(user)
    return await service.create_class(create_request.name, create_request.teacher_id)

@router.delete("/classes/{class_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a class and its enrollments")
@limiter.limit("30/minute")
async def delete_class(request: Request, class_id: UUID, user: Profile = Depends(get_current_user), service: AdminService = Depends(get_admin_service)):
    _verify_admin_role(user)
    await service.delete_class(class_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

@router.get("/classes/{class_id}/enrollments", response_model=List[Enrollment], summary="List the students enrolled in a class")
@limiter.limit("60/minute")
async def list_class_enrollments(request: Request, class_id: UUID, user: Profile = Depends(get_current_user), service: AdminService = Depends(get_admin_service)):
    _verify_admin_role(user)
    return await service.get_class_enrollments(class_id)

@router.get("/enrollments", response_model=List[Enrollment], summary="List all enrollments")
@limiter.limit("60/minute")
async def list_enrollments(request: Request, user: Profile = Depends(get_current_user), service: AdminService = Depends(get_admin_service)):
    _verify_admin_role(user)
    return await service.get_all_enrollments()

@router.post("/enrollments", response_model=Enrollment, status_code=status.HTTP_201_CREATED, summary="Enroll a student in a class")
@limiter.limit("60/minute")
async def enroll_student(request: Request, enrollment_request: EnrollmentRequest, user: Profile = Depends(get_current_user), service: AdminService = Depends(get_admin_service)):
    _verify_admin_role(user)
    return await service.enroll_student(enrollment_request.student_id, enrollment_request.class_id)

@router.delete("/enrollments", status_code=status.HTTP_204_NO_CONTENT, summary="Remove a student from a class")
@limiter.limit("60/minute")
async def unenroll_student(request: Request, student_id: UUID, class_id: UUID, user: Profile = Depends(get_current_user), service: AdminService = Depends(get_admin_service)):
    _verify_admin_role(user)
    await service.unenroll_student(student_id, class_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

# === SECTION 4: INVOICES & FEES ===

@router.get("/invoices", response_model=List[Invoice], summary="List invoices, newest first")
@limiter.limit("60/minute")
async def list_invoices(request: Request, user: Profile = Depends(get_current_user), service: AdminService = Depends(get_admin_service)):
    _verify_admin_role(user)
    return await service.get_all_invoices()

@router.post("/invoices", response_model=Invoice, status_code=status.HTTP_201_CREATED, summary="Issue an invoice")
@limiter.limit("30/minute")
async def create_invoice(request: Request, create_request: InvoiceCreateRequest, user: Profile = Depends(get_current_user), service: AdminService = Depends(get_admin_service)):
    _verify_admin_role(user)
    return await service.create_invoice(create_request.student_id, create_request.amount_due, create_request.due_date, create_request.fee_structure_id)

@router.patch("/invoices/{invoice_id}/status", response_model=Invoice, summary="Change an invoice's status")
@limiter.limit("30/minute")
async def update_invoice_status(request: Request, invoice_id: UUID, update_request: InvoiceStatusUpdateRequest, user: Profile = Depends(get_current_user), service: AdminService = Depends(get_admin_service)):
    _verify_admin_role(user)
    return await service.update_invoice_status(invoice_id, update_request.status)

@router.get("/invoices/overdue/count", summary="Count pending invoices past their due date")
@limiter.limit("60/minute")
async def overdue_invoices_count(request: Request, user: Profile = Depends(get_current_user), service: AdminService = Depends(get_admin_service)):
    _verify_admin_role(user)
    return {"count": await service.get_overdue_invoices_count()}

@router.get("/fee-structures", response_model=List[FeeStructure], summary="List fee structures")
@limiter.limit("60/minute")
async def list_fee_structures(request: Request, user: Profile = Depends(get_current_user), service: AdminService = Depends(get_admin_service)):
    _verify_admin_role(user)
    return await service.get_all_fee_structures()

@router.post("/fee-structures", response_model=FeeStructure, status_code=status.HTTP_201_CREATED, summary="Create a fee structure")
@limiter.limit("30/minute")
async def create_fee_structure(request: Request, create_request: FeeStructureCreateRequest, user: Profile = Depends(get_current_user), service: AdminService = Depends(get_admin_service)):
    _verify_admin_role(user)
    return await service.create_fee_structure(
        create_request.name, create_request.amount, create_request.billing_cycle,
        create_request.description, create_request.is_active,
    )

@router.patch("/fee-structures/{fee_structure_id}", response_model=FeeStructure, summary="Update a fee structure")
@limiter.limit("30/minute")
async def update_fee_structure(request: Request, fee_structure_id: UUID, update_request: FeeStructureUpdateRequest, user: Profile = Depends(get_current_user), service: AdminService = Depends(get_admin_service)):
    _verify_admin_role(user)
    return await service.update_fee_structure(fee_structure_id, update_request.model_dump(exclude_unset=True))

# === SECTION 5: STATISTICS & CALENDAR ===

@router.get("/stats", response_model=SchoolStats, summary="School-wide counters for the admin dashboard")
@limiter.limit("60/minute")
async def school_stats(request: Request, user: Profile = Depends(get_current_user), service: AdminService = Depends(get_admin_service)):
    _verify_admin_role(user)
    return await service.get_school_stats()

@router.get("/calendar/day", response_model=CalendarDayResponse, summary="Attendance of every student on one date")
@limiter.limit("60/minute")
async def calendar_day(request: Request, day: Optional[date] = None, user: Profile = Depends(get_current_user), service: AdminService = Depends(get_admin_service)):
    _verify_admin_role(user)
    day = day or datetime.now(timezone.utc).date()
    records = await service.get_attendance_on_date(day)
    counts: Dict[str, int] = {"present": 0, "absent": 0, "late": 0}
    for record in records:
        counts[record["status"]] = counts.get(record["status"], 0) + 1
    return CalendarDayResponse(date=day, total=len(records), records=records, **counts)

@router.get("/calendar/month", response_model=MonthSummaryResponse, summary="Per-day attendance counts for a month")
@limiter.limit("60/minute")
async def calendar_month(request: Request, year: int, month: int, user: Profile = Depends(get_current_user), service: AdminService = Depends(get_admin_service)):
    _verify_admin_role(user)
    days = await service.get_month_summary(year, month)
    return MonthSummaryResponse(year=year, month=month, days=days)
