import logging
from typing import List, Optional
from uuid import UUID
from datetime import date

from pydantic import BaseModel

from ..db.db_client import AsyncPostgresClient
from ..models.db_models import Student, SchoolClass, AttendanceRecord, AttendanceStats, AttendanceStatus
from ..modules.attendance_stats import summarize_attendance
from .errors import ServiceError, BackendError, AuthorizationError

logger = logging.getLogger(__name__)


# --- Enriched Model for API Responses ---
class AttendanceSheetEntry(BaseModel):
    """One row of a teacher's attendance sheet: a student and their status for the day, if recorded."""
    student: Student
    status: Optional[AttendanceStatus] = None
    record_id: Optional[UUID] = None


class TeacherService:
    """
    Service layer that handles all business logic related to teachers.
    """
    def __init__(self, db_client: AsyncPostgresClient):
        self.db_client = db_client

    async def get_teacher_classes(self, teacher_id: UUID) -> List[SchoolClass]:
        try:
            return await self.db_client.get_classes_for_teacher(teacher_id)
        except Exception as e:
            logger.error(f"Error fetching classes for teacher {teacher_id}.", exc_info=True)
            raise BackendError(f"Could not load classes: {e}") from e

    async def get_teacher_student_ids(self, teacher_id: UUID, timeout: Optional[float] = None) -> List[UUID]:
        """
        Distinct ids of every student enrolled in any class owned by the teacher.
        An empty list means the teacher has no classes or no enrollments.
        """
        classes = await self.db_client.get_classes_for_teacher(teacher_id, timeout=timeout)
        if not classes:
            return []
        class_ids = [cls.id for cls in classes]
        return await self.db_client.get_student_ids_for_classes(class_ids, timeout=timeout)

    async def get_teacher_students(self, teacher_id: UUID) -> List[Student]:
        try:
            student_ids = await self.get_teacher_student_ids(teacher_id)
            if not student_ids:
                return []
            return await self.db_client.get_students_by_ids(student_ids)
        except Exception as e:
            logger.error(f"Error fetching students for teacher {teacher_id}.", exc_info=True)
            raise BackendError(f"Could not load students: {e}") from e

    async def get_attendance_for_date(self, student_ids: List[UUID], attendance_date: date) -> List[AttendanceRecord]:
        if not student_ids:
            return []
        try:
            return await self.db_client.get_attendance_for_date(student_ids, attendance_date)
        except Exception as e:
            logger.error(f"Error fetching attendance for {attendance_date}.", exc_info=True)
            raise BackendError(f"Could not load attendance: {e}") from e

    async def get_attendance_sheet(self, teacher_id: UUID, attendance_date: date) -> List[AttendanceSheetEntry]:
        """Every student of the teacher with their recorded status for the date (None when unrecorded)."""
        students = await self.get_teacher_students(teacher_id)
        records = await self.get_attendance_for_date([s.id for s in students], attendance_date)
        by_student = {record.student_id: record for record in records}

        sheet = []
        for student in students:
            record = by_student.get(student.id)
            sheet.append(AttendanceSheetEntry(
                student=student,
                status=record.status if record else None,
                record_id=record.id if record else None,
            ))
        return sheet

    async def upsert_attendance(self,
                                student_id: UUID,
                                attendance_date: date,
                                status: AttendanceStatus,
                                recorded_by: UUID,
                                class_id: Optional[UUID] = None,
                                timeout: Optional[float] = None) -> AttendanceRecord:
        """Creates or overwrites the single attendance row for (student, date)."""
        try:
            record = await self.db_client.upsert_attendance(
                student_id=student_id,
                attendance_date=attendance_date,
                status=status,
                recorded_by=recorded_by,
                class_id=class_id,
                timeout=timeout,
            )
            logger.info(f"Attendance for student {student_id} on {attendance_date} set to '{status.value}' by {recorded_by}.")
            return record
        except Exception as e:
            logger.error(f"Error recording attendance for student {student_id} on {attendance_date}.", exc_info=True)
            raise BackendError(f"Could not record attendance: {e}") from e

    async def record_attendance(self,
                                teacher_id: UUID,
                                student_id: UUID,
                                attendance_date: date,
                                status: AttendanceStatus,
                                class_id: Optional[UUID] = None,
                                timeout: Optional[float] = None) -> AttendanceRecord:
        """Teacher-facing upsert: the student must be enrolled in one of the teacher's classes."""
        try:
            allowed = await self.db_client.is_student_taught_by(student_id, teacher_id)
        except Exception as e:
            logger.error(f"Error checking enrollment of student {student_id} for teacher {teacher_id}.", exc_info=True)
            raise BackendError(f"Could not verify enrollment: {e}") from e
        if not allowed:
            logger.warning(f"Teacher {teacher_id} tried to record attendance for student {student_id} outside their classes.")
            raise AuthorizationError("This student is not enrolled in any of your classes.")

        return await self.upsert_attendance(student_id, attendance_date, status, teacher_id, class_id, timeout)

    async def get_teacher_stats(self, teacher_id: UUID, attendance_date: date, timeout: Optional[float] = None) -> AttendanceStats:
        """
        Aggregates the teacher's attendance for one date.

        A teacher with no classes, or classes without students, gets a
        zero-filled aggregate. Any lookup failure aborts the whole computation.
        """
        try:
            student_ids = await self.get_teacher_student_ids(teacher_id, timeout=timeout)
            if not student_ids:
                return AttendanceStats()
            records = await self.db_client.get_attendance_for_date(student_ids, attendance_date, timeout=timeout)
        except ServiceError:
            raise
        except Exception as e:
            logger.error(f"Error computing attendance stats for teacher {teacher_id} on {attendance_date}.", exc_info=True)
            raise BackendError(str(e) or "Attendance statistics could not be computed.") from e

        return summarize_attendance(len(student_ids), records)
