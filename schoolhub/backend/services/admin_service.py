import asyncio
import calendar
import logging
from typing import Any, Dict, List, Optional
from uuid import UUID
from datetime import date, datetime, timezone
from decimal import Decimal

import asyncpg
from pydantic import BaseModel

from ..db.db_client import AsyncPostgresClient
from ..models.db_models import (
    Profile, Student, SchoolClass, Enrollment, Invoice, FeeStructure,
    Role, AttendanceStatus, InvoiceStatus, BillingCycle,
)
from ..modules.attendance_stats import summarize_by_date
from ..modules.auth_provider import AuthProviderClient, AuthProviderError
from .errors import ServiceError, BackendError, NotFoundError, ConflictError

logger = logging.getLogger(__name__)


class SchoolStats(BaseModel):
    total_students: int = 0
    total_teachers: int = 0
    total_overdue_invoices: int = 0
    students_present_today: int = 0


class RecentStudent(Student):
    days_ago: int = 0


class AdminService:
    """
    Service layer for the admin screens: students, accounts, classes,
    enrollments, invoices, fee structures and school-wide statistics.
    """
    def __init__(self, db_client: AsyncPostgresClient, auth_provider: Optional[AuthProviderClient] = None):
        self.db_client = db_client
        self.auth_provider = auth_provider

    async def _run(self, action: str, coro):
        """Awaits a database call, translating storage failures into service errors."""
        try:
            return await coro
        except asyncpg.UniqueViolationError as e:
            logger.warning(f"Unique violation while trying to {action}: {e}")
            raise ConflictError(f"Could not {action}: a matching record already exists.") from e
        except asyncpg.ForeignKeyViolationError as e:
            logger.warning(f"Foreign key violation while trying to {action}: {e}")
            raise ServiceError(f"Could not {action}: a referenced record does not exist.") from e
        except ServiceError:
            raise
        except Exception as e:
            logger.error(f"Database error while trying to {action}.", exc_info=True)
            raise BackendError(f"Could not {action}: {e}") from e

    # ===== Students =====

    async def get_all_students(self) -> List[Student]:
        return await self._run("load students", self.db_client.get_students())

    async def create_student(self, name: str, dob: Optional[date], parent_id: Optional[UUID]) -> Student:
        student = await self._run("create the student", self.db_client.create_student(name, dob, parent_id))
        logger.info(f"Student {student.id} ('{name}') created.")
        return student

    async def update_student(self, student_id: UUID, updates: Dict[str, Any]) -> Student:
        student = await self._run("update the student", self.db_client.update_student(student_id, updates))
        if not student:
            raise NotFoundError(f"Student ({student_id}) not found.")
        return student

    async def delete_student(self, student_id: UUID) -> None:
        deleted = await self._run("delete the student", self.db_client.delete_student(student_id))
        if not deleted:
            raise NotFoundError(f"Student ({student_id}) not found.")
        logger.info(f"Student {student_id} deleted.")

    # ===== Accounts =====

    async def get_all_users(self) -> List[Profile]:
        return await self._run("load users", self.db_client.get_profiles())

    async def get_users_by_role(self, role: Role) -> List[Profile]:
        return await self._run(f"load {role.value} accounts", self.db_client.get_profiles(role=role))

    async def create_account(self, full_name: str, email: str, password: str, role: Role) -> Profile:
        """
        Creates an auth account and its profile as one unit of work.

        The profile is written right after the auth user exists (upserting over
        any row a sign-up trigger may already have produced). If that write
        fails, the auth user is removed again so no half-created account remains.
        """
        if self.auth_provider is None:
            raise BackendError("Missing Supabase configuration")

        try:
            auth_user = await self.auth_provider.create_user(
                email=email,
                password=password,
                user_metadata={"full_name": full_name, "role": role.value},
            )
        except AuthProviderError as e:
            raise ServiceError(f"Failed to create {role.value}: {e}") from e

        user_id = UUID(str(auth_user["id"]))
        try:
            profile = await self.db_client.upsert_profile(user_id, full_name, role)
        except Exception as e:
            logger.error(f"Profile write failed for new {role.value} {user_id}; rolling back the auth user.", exc_info=True)
            try:
                await self.auth_provider.delete_user(user_id)
            except AuthProviderError:
                logger.error(f"Could not remove orphaned auth user {user_id}.", exc_info=True)
            raise BackendError(f"Failed to create {role.value}: {e}") from e

        logger.info(f"{role.value.capitalize()} account {user_id} created for '{email}'.")
        return profile

    async def create_teacher(self, full_name: str, email: str, password: str) -> Profile:
        return await self.create_account(full_name, email, password, Role.TEACHER)

    async def create_parent(self, full_name: str, email: str, password: str) -> Profile:
        return await self.create_account(full_name, email, password, Role.PARENT)

    # ===== Classes =====

    async def get_all_classes(self) -> List[SchoolClass]:
        return await self._run("load classes", self.db_client.get_classes())

    async def create_class(self, name: str, teacher_id: UUID) -> SchoolClass:
        teacher = await self._run("load the teacher", self.db_client.get_profile(teacher_id))
        if not teacher or teacher.role != Role.TEACHER:
            raise ServiceError(f"Profile ({teacher_id}) is not a teacher.")
        school_class = await self._run("create the class", self.db_client.create_class(name, teacher_id))
        logger.info(f"Class {school_class.id} ('{name}') created for teacher {teacher_id}.")
        return school_class

    async def delete_class(self, class_id: UUID) -> None:
        deleted = await self._run("delete the class", self.db_client.delete_class(class_id))
        if not deleted:
            raise NotFoundError(f"Class ({class_id}) not found.")
        logger.info(f"Class {class_id} and its enrollments deleted.")

    # ===== Enrollments =====

    async def get_all_enrollments(self) -> List[Enrollment]:
        return await self._run("load enrollments", self.db_client.get_enrollments())

    async def get_student_enrollments(self, student_id: UUID) -> List[Enrollment]:
        return await self._run("load enrollments", self.db_client.get_enrollments(student_id=student_id))

    async def get_class_enrollments(self, class_id: UUID) -> List[Enrollment]:
        return await self._run("load enrollments", self.db_client.get_enrollments(class_id=class_id))

    async def enroll_student(self, student_id: UUID, class_id: UUID) -> Enrollment:
        enrollment = await self._run("enroll the student", self.db_client.create_enrollment(student_id, class_id))
        logger.info(f"Student {student_id} enrolled in class {class_id}.")
        return enrollment

    async def unenroll_student(self, student_id: UUID, class_id: UUID) -> None:
        deleted = await self._run("unenroll the student", self.db_client.delete_enrollment(student_id, class_id))
        if not deleted:
            raise NotFoundError("Enrollment not found.")
        logger.info(f"Student {student_id} unenrolled from class {class_id}.")

    # ===== Invoices =====

    async def get_all_invoices(self) -> List[Invoice]:
        return await self._run("load invoices", self.db_client.get_invoices())

    async def create_invoice(self, student_id: UUID, amount_due: Decimal, due_date: date, fee_structure_id: Optional[UUID] = None) -> Invoice:
        return await self._run(
            "create the invoice",
            self.db_client.create_invoice(student_id, amount_due, due_date, fee_structure_id),
        )

    async def update_invoice_status(self, invoice_id: UUID, status: InvoiceStatus) -> Invoice:
        invoice = await self._run("update the invoice", self.db_client.update_invoice_status(invoice_id, status))
        if not invoice:
            raise NotFoundError(f"Invoice ({invoice_id}) not found.")
        return invoice

    async def get_overdue_invoices_count(self, today: Optional[date] = None) -> int:
        today = today or datetime.now(timezone.utc).date()
        return await self._run("count overdue invoices", self.db_client.count_overdue_invoices(today))

    # ===== Fee Structures =====

    async def get_all_fee_structures(self) -> List[FeeStructure]:
        return await self._run("load fee structures", self.db_client.get_fee_structures())

    async def create_fee_structure(self, name: str, amount: Decimal, billing_cycle: BillingCycle, description: Optional[str] = None, is_active: bool = True) -> FeeStructure:
        return await self._run(
            "create the fee structure",
            self.db_client.create_fee_structure(name, amount, billing_cycle, description, is_active),
        )

    async def update_fee_structure(self, fee_structure_id: UUID, updates: Dict[str, Any]) -> FeeStructure:
        fee_structure = await self._run("update the fee structure", self.db_client.update_fee_structure(fee_structure_id, updates))
        if not fee_structure:
            raise NotFoundError(f"Fee structure ({fee_structure_id}) not found.")
        return fee_structure

    # ===== Statistics =====

    async def _safe_count(self, label: str, coro) -> int:
        """Dashboard counters degrade to 0 instead of failing the whole widget."""
        try:
            return await coro or 0
        except Exception:
            logger.error(f"Error getting count for '{label}'.", exc_info=True)
            return 0

    async def get_school_stats(self, today: Optional[date] = None) -> SchoolStats:
        today = today or datetime.now(timezone.utc).date()
        total_students, total_teachers, present_today, overdue = await asyncio.gather(
            self._safe_count("students", self.db_client.count_students()),
            self._safe_count("teachers", self.db_client.count_profiles(Role.TEACHER)),
            self._safe_count("present today", self.db_client.count_attendance(today, AttendanceStatus.PRESENT)),
            self._safe_count("overdue invoices", self.db_client.count_overdue_invoices(today)),
        )
        return SchoolStats(
            total_students=total_students,
            total_teachers=total_teachers,
            students_present_today=present_today,
            total_overdue_invoices=overdue,
        )

    async def get_recent_enrollments(self, limit: int = 5) -> List[RecentStudent]:
        """Newest students with the number of whole days since they were added."""
        try:
            students = await self.db_client.get_students(limit=limit)
        except Exception:
            logger.error("Error fetching recent enrollments.", exc_info=True)
            return []

        now = datetime.now(timezone.utc)
        recent = []
        for student in students:
            created_at = student.created_at or now
            if created_at.tzinfo is None:
                created_at = created_at.replace(tzinfo=timezone.utc)
            recent.append(RecentStudent(**student.model_dump(), days_ago=max((now - created_at).days, 0)))
        return recent

    # ===== Calendar =====

    async def get_attendance_on_date(self, attendance_date: date) -> List[Dict[str, Any]]:
        return await self._run("load attendance", self.db_client.get_attendance_with_names(attendance_date))

    async def get_month_summary(self, year: int, month: int) -> Dict[date, Dict[str, int]]:
        """Per-day present/absent/late/total counts for every recorded day of a month."""
        if not 1 <= month <= 12:
            raise ServiceError("Month must be between 1 and 12.")
        start = date(year, month, 1)
        end = date(year, month, calendar.monthrange(year, month)[1])
        records = await self._run("load attendance", self.db_client.get_attendance_between(start, end))
        return summarize_by_date(records)
