import logging
from typing import List, Optional
from uuid import UUID
from datetime import date, datetime, timezone
from decimal import Decimal

from pydantic import BaseModel

from ..db.db_client import AsyncPostgresClient
from ..models.db_models import Student, AttendanceStatus, InvoiceStatus
from .errors import BackendError, AuthorizationError

logger = logging.getLogger(__name__)


class ChildAttendance(BaseModel):
    id: UUID
    date: date
    status: AttendanceStatus
    class_name: str = "N/A"


class UpcomingInvoice(BaseModel):
    id: UUID
    amount_due: Decimal
    due_date: date
    status: InvoiceStatus
    fee_structure_name: str = "General Fee"


class SkillEvidenceEntry(BaseModel):
    id: UUID
    skill_name: str
    description: Optional[str] = None
    date_recorded: date
    recorded_by_name: str = "Unknown Teacher"


class ParentService:
    """
    Read-only views a parent has on their own children.
    Lookups that find no row return None; only real failures raise.
    """
    def __init__(self, db_client: AsyncPostgresClient):
        self.db_client = db_client

    async def get_children(self, parent_id: UUID) -> List[Student]:
        try:
            return await self.db_client.get_children_of_parent(parent_id)
        except Exception as e:
            logger.error(f"Error fetching children of parent {parent_id}.", exc_info=True)
            raise BackendError(f"Could not load children: {e}") from e

    async def get_parent_child(self, parent_id: UUID) -> Optional[Student]:
        """The parent's primary child (the first one linked), or None."""
        children = await self.get_children(parent_id)
        return children[0] if children else None

    async def verify_child(self, parent_id: UUID, student_id: UUID) -> Student:
        try:
            student = await self.db_client.get_student(student_id)
        except Exception as e:
            logger.error(f"Error fetching student {student_id}.", exc_info=True)
            raise BackendError(f"Could not load the student: {e}") from e
        if not student or student.parent_id != parent_id:
            raise AuthorizationError("Student not found or not linked to your account.")
        return student

    async def get_child_attendance(self, student_id: UUID, attendance_date: Optional[date] = None) -> Optional[ChildAttendance]:
        attendance_date = attendance_date or datetime.now(timezone.utc).date()
        try:
            row = await self.db_client.get_student_attendance(student_id, attendance_date)
        except Exception as e:
            logger.error(f"Error fetching attendance of student {student_id} for {attendance_date}.", exc_info=True)
            raise BackendError(f"Could not load attendance: {e}") from e
        return ChildAttendance(**row) if row else None

    async def get_child_next_upcoming_invoice(self, student_id: UUID, today: Optional[date] = None) -> Optional[UpcomingInvoice]:
        today = today or datetime.now(timezone.utc).date()
        try:
            row = await self.db_client.get_next_pending_invoice(student_id, today)
        except Exception as e:
            logger.error(f"Error fetching next invoice of student {student_id}.", exc_info=True)
            raise BackendError(f"Could not load invoices: {e}") from e
        return UpcomingInvoice(**row) if row else None

    async def get_child_latest_skill_evidence(self, student_id: UUID, limit: int = 3) -> List[SkillEvidenceEntry]:
        try:
            rows = await self.db_client.get_latest_skill_evidence(student_id, limit)
        except Exception as e:
            logger.error(f"Error fetching skill evidence of student {student_id}.", exc_info=True)
            raise BackendError(f"Could not load skill evidence: {e}") from e
        return [SkillEvidenceEntry(**row) for row in rows]
