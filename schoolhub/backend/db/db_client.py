import logging
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID
import asyncpg
from datetime import date, datetime, timezone
from decimal import Decimal

from ..models.db_models import (
    Profile, Student, SchoolClass, Enrollment, AttendanceRecord, Invoice,
    FeeStructure, SkillEvidence, AttendanceStats, Role, AttendanceStatus, InvoiceStatus,
)

logger = logging.getLogger(__name__)

# Columns a partial update may touch, per table.
STUDENT_UPDATABLE_COLUMNS = ("name", "dob", "parent_id")
FEE_STRUCTURE_UPDATABLE_COLUMNS = ("name", "description", "amount", "billing_cycle", "is_active")


def rows_affected(status: str) -> int:
    """Turns an asyncpg command tag such as 'DELETE 3' into 3."""
    try:
        return int(str(status).split()[-1])
    except (ValueError, IndexError):
        return 0


class AsyncPostgresClient:
    """
    Postgres client for every table of the school database.
    Each method is a single statement (or a single transaction) on a pooled connection.
    """
    def __init__(self, pool: asyncpg.Pool):
        self._pool = pool

    async def _update_columns(self, table: str, allowed: Sequence[str], row_id: UUID, updates: Dict[str, Any]) -> Optional[asyncpg.Record]:
        fields = [column for column in allowed if column in updates]
        if not fields:
            query = f"SELECT * FROM {table} WHERE id = $1;"
            async with self._pool.acquire() as connection:
                return await connection.fetchrow(query, row_id)
        assignments = ", ".join(f"{column} = ${index}" for index, column in enumerate(fields, start=2))
        query = f"UPDATE {table} SET {assignments} WHERE id = $1 RETURNING *;"
        values = [_plain(updates[column]) for column in fields]
        async with self._pool.acquire() as connection:
            return await connection.fetchrow(query, row_id, *values)

    # ===== Profiles =====

    async def get_profile(self, profile_id: UUID) -> Optional[Profile]:
        """Returns the profile, or None when no row exists."""
        query = "SELECT id, full_name, role FROM profiles WHERE id = $1;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, profile_id)
            return Profile(**record) if record else None

    async def get_profiles(self, role: Optional[Role] = None) -> List[Profile]:
        """Lists profiles ordered by name, optionally restricted to one role."""
        if role is None:
            query = "SELECT id, full_name, role FROM profiles ORDER BY full_name ASC;"
            args = ()
        else:
            query = "SELECT id, full_name, role FROM profiles WHERE role = $1 ORDER BY full_name ASC;"
            args = (role.value,)
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, *args)
            return [Profile(**record) for record in records]

    async def upsert_profile(self, profile_id: UUID, full_name: str, role: Role) -> Profile:
        """
        Creates the profile row, or brings an existing one (e.g. created by a
        database trigger on sign-up) in line with the given name and role.
        """
        query = """
            INSERT INTO profiles (id, full_name, role)
            VALUES ($1, $2, $3)
            ON CONFLICT (id) DO UPDATE SET
                full_name = EXCLUDED.full_name,
                role = EXCLUDED.role
            RETURNING id, full_name, role;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, profile_id, full_name, role.value)
            return Profile(**record)

    async def count_profiles(self, role: Role) -> int:
        query = "SELECT count(*) FROM profiles WHERE role = $1;"
        async with self._pool.acquire() as connection:
            return await connection.fetchval(query, role.value)

    # ===== Students =====

    async def get_students(self, limit: Optional[int] = None) -> List[Student]:
        """Lists students, newest first."""
        query = "SELECT id, name, dob, parent_id, created_at FROM students ORDER BY created_at DESC"
        args = ()
        if limit is not None:
            query += " LIMIT $1"
            args = (limit,)
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query + ";", *args)
            return [Student(**record) for record in records]

    async def get_students_by_ids(self, student_ids: List[UUID]) -> List[Student]:
        if not student_ids:
            return []
        query = "SELECT id, name, dob, parent_id, created_at FROM students WHERE id = ANY($1::uuid[]) ORDER BY name ASC;"
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, student_ids)
            return [Student(**record) for record in records]

    async def get_student(self, student_id: UUID) -> Optional[Student]:
        query = "SELECT id, name, dob, parent_id, created_at FROM students WHERE id = $1;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, student_id)
            return Student(**record) if record else None

    async def create_student(self, name: str, dob: Optional[date], parent_id: Optional[UUID]) -> Student:
        query = """
            INSERT INTO students (name, dob, parent_id)
            VALUES ($1, $2, $3)
            RETURNING id, name, dob, parent_id, created_at;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, name, dob, parent_id)
            return Student(**record)

    async def update_student(self, student_id: UUID, updates: Dict[str, Any]) -> Optional[Student]:
        """Applies a partial update; returns None when the student does not exist."""
        record = await self._update_columns("students", STUDENT_UPDATABLE_COLUMNS, student_id, updates)
        return Student(**record) if record else None

    async def delete_student(self, student_id: UUID) -> int:
        query = "DELETE FROM students WHERE id = $1;"
        async with self._pool.acquire() as connection:
            return rows_affected(await connection.execute(query, student_id))

    async def get_children_of_parent(self, parent_id: UUID) -> List[Student]:
        query = "SELECT id, name, dob, parent_id, created_at FROM students WHERE parent_id = $1 ORDER BY created_at ASC;"
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, parent_id)
            return [Student(**record) for record in records]

    async def count_students(self) -> int:
        async with self._pool.acquire() as connection:
            return await connection.fetchval("SELECT count(*) FROM students;")

    # ===== Classes =====

    async def get_classes(self) -> List[SchoolClass]:
        """Lists classes, newest first, with the owning teacher's name."""
        query = """
            SELECT c.id, c.name, c.teacher_id, c.created_at,
                   COALESCE(p.full_name, 'Unknown') AS teacher_name
            FROM classes c
            LEFT JOIN profiles p ON p.id = c.teacher_id
            ORDER BY c.created_at DESC;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query)
            return [SchoolClass(**record) for record in records]

    async def get_classes_for_teacher(self, teacher_id: UUID, timeout: Optional[float] = None) -> List[SchoolClass]:
        query = "SELECT id, name, teacher_id, created_at FROM classes WHERE teacher_id = $1 ORDER BY name ASC;"
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, teacher_id, timeout=timeout)
            return [SchoolClass(**record) for record in records]

    async def create_class(self, name: str, teacher_id: UUID) -> SchoolClass:
        query = """
            WITH inserted AS (
                INSERT INTO classes (name, teacher_id)
                VALUES ($1, $2)
                RETURNING id, name, teacher_id, created_at
            )
            SELECT i.*, COALESCE(p.full_name, 'Unknown') AS teacher_name
            FROM inserted i
            LEFT JOIN profiles p ON p.id = i.teacher_id;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, name, teacher_id)
            return SchoolClass(**record)

    async def delete_class(self, class_id: UUID) -> int:
        """Deletes a class together with its enrollments in one transaction."""
        async with self._pool.acquire() as connection:
            async with connection.transaction():
                await connection.execute("DELETE FROM enrollments WHERE class_id = $1;", class_id)
                return rows_affected(await connection.execute("DELETE FROM classes WHERE id = $1;", class_id))

    # ===== Enrollments =====

    _ENROLLMENT_SELECT = """
        SELECT e.id, e.student_id, e.class_id, e.created_at,
               COALESCE(s.name, 'Unknown') AS student_name,
               COALESCE(c.name, 'Unknown') AS class_name
        FROM enrollments e
        LEFT JOIN students s ON s.id = e.student_id
        LEFT JOIN classes c ON c.id = e.class_id
    """

    async def get_enrollments(self, student_id: Optional[UUID] = None, class_id: Optional[UUID] = None) -> List[Enrollment]:
        """Lists enrollments, newest first, optionally filtered by student and/or class."""
        conditions, args = [], []
        if student_id is not None:
            args.append(student_id)
            conditions.append(f"e.student_id = ${len(args)}")
        if class_id is not None:
            args.append(class_id)
            conditions.append(f"e.class_id = ${len(args)}")
        where = f" WHERE {' AND '.join(conditions)}" if conditions else ""
        query = f"{self._ENROLLMENT_SELECT}{where} ORDER BY e.created_at DESC;"
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, *args)
            return [Enrollment(**record) for record in records]

    async def get_student_ids_for_classes(self, class_ids: List[UUID], timeout: Optional[float] = None) -> List[UUID]:
        """Distinct ids of the students enrolled in any of the given classes."""
        if not class_ids:
            return []
        query = "SELECT DISTINCT student_id FROM enrollments WHERE class_id = ANY($1::uuid[]);"
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, class_ids, timeout=timeout)
            return [record["student_id"] for record in records]

    async def create_enrollment(self, student_id: UUID, class_id: UUID) -> Enrollment:
        """Inserts an enrollment; raises asyncpg.UniqueViolationError for a duplicate pair."""
        query = """
            WITH inserted AS (
                INSERT INTO enrollments (student_id, class_id)
                VALUES ($1, $2)
                RETURNING id, student_id, class_id, created_at
            )
            SELECT i.*, COALESCE(s.name, 'Unknown') AS student_name, COALESCE(c.name, 'Unknown') AS class_name
            FROM inserted i
            LEFT JOIN students s ON s.id = i.student_id
            LEFT JOIN classes c ON c.id = i.class_id;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, student_id, class_id)
            return Enrollment(**record)

    async def delete_enrollment(self, student_id: UUID, class_id: UUID) -> int:
        query = "DELETE FROM enrollments WHERE student_id = $1 AND class_id = $2;"
        async with self._pool.acquire() as connection:
            return rows_affected(await connection.execute(query, student_id, class_id))

    async def is_student_taught_by(self, student_id: UUID, teacher_id: UUID) -> bool:
        query = """
            SELECT EXISTS (
                SELECT 1 FROM enrollments e
                JOIN classes c ON c.id = e.class_id
                WHERE e.student_id = $1 AND c.teacher_id = $2
            );
        """
        async with self._pool.acquire() as connection:
            return await connection.fetchval(query, student_id, teacher_id)

    # ===== Attendance =====

    async def get_attendance_for_date(self, student_ids: List[UUID], attendance_date: date, timeout: Optional[float] = None) -> List[AttendanceRecord]:
        """Attendance rows of the given students on one date."""
        if not student_ids:
            return []
        query = "SELECT * FROM attendance WHERE student_id = ANY($1::uuid[]) AND date = $2;"
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, student_ids, attendance_date, timeout=timeout)
            return [AttendanceRecord(**record) for record in records]

    async def upsert_attendance(self,
                                student_id: UUID,
                                attendance_date: date,
                                status: AttendanceStatus,
                                recorded_by: UUID,
                                class_id: Optional[UUID] = None,
                                timeout: Optional[float] = None) -> AttendanceRecord:
        """
        Records a student's status for a date in one atomic statement.

        The unique (student_id, date) constraint arbitrates concurrent writers:
        the last write wins on status and recording fields, the row id is kept,
        and class_id is only replaced when a new one is supplied.
        """
        query = """
            INSERT INTO attendance (student_id, date, status, recorded_by, class_id, recorded_at)
            VALUES ($1, $2, $3, $4, $5, $6)
            ON CONFLICT (student_id, date) DO UPDATE SET
                status = EXCLUDED.status,
                recorded_by = EXCLUDED.recorded_by,
                recorded_at = EXCLUDED.recorded_at,
                class_id = COALESCE(EXCLUDED.class_id, attendance.class_id)
            RETURNING *;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(
                query, student_id, attendance_date, status.value, recorded_by, class_id,
                datetime.now(timezone.utc), timeout=timeout
            )
            return AttendanceRecord(**record)

    async def get_attendance_with_names(self, attendance_date: date) -> List[Dict[str, Any]]:
        """All attendance rows of one date with the student's name."""
        query = """
            SELECT a.id, a.student_id, a.date, a.status,
                   COALESCE(s.name, 'Unknown') AS student_name
            FROM attendance a
            LEFT JOIN students s ON s.id = a.student_id
            WHERE a.date = $1
            ORDER BY student_name ASC;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, attendance_date)
            return [dict(record) for record in records]

    async def get_attendance_between(self, start: date, end: date) -> List[AttendanceRecord]:
        """Attendance rows with start <= date <= end."""
        query = "SELECT * FROM attendance WHERE date BETWEEN $1 AND $2 ORDER BY date ASC;"
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, start, end)
            return [AttendanceRecord(**record) for record in records]

    async def get_student_attendance(self, student_id: UUID, attendance_date: date) -> Optional[Dict[str, Any]]:
        """A student's attendance row for one date with the class name, or None."""
        query = """
            SELECT a.id, a.date, a.status, COALESCE(c.name, 'N/A') AS class_name
            FROM attendance a
            LEFT JOIN classes c ON c.id = a.class_id
            WHERE a.student_id = $1 AND a.date = $2
            ORDER BY a.recorded_at DESC NULLS LAST
            LIMIT 1;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, student_id, attendance_date)
            return dict(record) if record else None

    async def count_attendance(self, attendance_date: date, status: AttendanceStatus) -> int:
        query = "SELECT count(*) FROM attendance WHERE date = $1 AND status = $2;"
        async with self._pool.acquire() as connection:
            return await connection.fetchval(query, attendance_date, status.value)

    async def upsert_daily_stats(self, teacher_id: UUID, stats_date: date, stats: AttendanceStats):
        """Stores a computed aggregate, replacing any earlier snapshot for the same teacher and date."""
        query = """
            INSERT INTO attendance_daily_stats
                (teacher_id, date, total_students, present_today, absent_today, late_today, attendance_rate, computed_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            ON CONFLICT (teacher_id, date) DO UPDATE SET
                total_students = EXCLUDED.total_students,
                present_today = EXCLUDED.present_today,
                absent_today = EXCLUDED.absent_today,
                late_today = EXCLUDED.late_today,
                attendance_rate = EXCLUDED.attendance_rate,
                computed_at = EXCLUDED.computed_at;
        """
        async with self._pool.acquire() as connection:
            await connection.execute(
                query, teacher_id, stats_date, stats.total_students, stats.present_today,
                stats.absent_today, stats.late_today, stats.attendance_rate, datetime.now(timezone.utc)
            )

    # ===== Invoices =====

    async def get_invoices(self) -> List[Invoice]:
        query = """
            SELECT i.id, i.student_id, i.fee_structure_id, i.amount_due, i.due_date, i.status, i.created_at,
                   COALESCE(s.name, 'Unknown') AS student_name
            FROM invoices i
            LEFT JOIN students s ON s.id = i.student_id
            ORDER BY i.created_at DESC;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query)
            return [Invoice(**record) for record in records]

    async def create_invoice(self, student_id: UUID, amount_due: Decimal, due_date: date, fee_structure_id: Optional[UUID] = None) -> Invoice:
        query = """
            INSERT INTO invoices (student_id, amount_due, due_date, fee_structure_id, status)
            VALUES ($1, $2, $3, $4, $5)
            RETURNING id, student_id, fee_structure_id, amount_due, due_date, status, created_at;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, student_id, amount_due, due_date, fee_structure_id, InvoiceStatus.PENDING.value)
            return Invoice(**record)

    async def update_invoice_status(self, invoice_id: UUID, status: InvoiceStatus) -> Optional[Invoice]:
        query = """
            UPDATE invoices SET status = $2 WHERE id = $1
            RETURNING id, student_id, fee_structure_id, amount_due, due_date, status, created_at;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, invoice_id, status.value)
            return Invoice(**record) if record else None

    async def count_overdue_invoices(self, today: date) -> int:
        """Overdue invoices, plus pending ones past their due date that the sweep has not flipped yet."""
        query = "SELECT count(*) FROM invoices WHERE status = $1 OR (status = $2 AND due_date < $3);"
        async with self._pool.acquire() as connection:
            return await connection.fetchval(
                query, InvoiceStatus.OVERDUE.value, InvoiceStatus.PENDING.value, today
            )

    async def mark_overdue_invoices(self, today: date) -> int:
        query = "UPDATE invoices SET status = $1 WHERE status = $2 AND due_date < $3;"
        async with self._pool.acquire() as connection:
            return rows_affected(await connection.execute(
                query, InvoiceStatus.OVERDUE.value, InvoiceStatus.PENDING.value, today
            ))

    async def get_next_pending_invoice(self, student_id: UUID, today: date) -> Optional[Dict[str, Any]]:
        """The earliest pending invoice due today or later, with its fee structure name."""
        query = """
            SELECT i.id, i.amount_due, i.due_date, i.status,
                   COALESCE(f.name, 'General Fee') AS fee_structure_name
            FROM invoices i
            LEFT JOIN fee_structures f ON f.id = i.fee_structure_id
            WHERE i.student_id = $1 AND i.status = $2 AND i.due_date >= $3
            ORDER BY i.due_date ASC
            LIMIT 1;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, student_id, InvoiceStatus.PENDING.value, today)
            return dict(record) if record else None

    # ===== Fee Structures =====

    async def get_fee_structures(self) -> List[FeeStructure]:
        query = "SELECT * FROM fee_structures ORDER BY created_at DESC;"
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query)
            return [FeeStructure(**record) for record in records]

    async def create_fee_structure(self, name: str, amount: Decimal, billing_cycle: str, description: Optional[str] = None, is_active: bool = True) -> FeeStructure:
        query = """
            INSERT INTO fee_structures (name, amount, billing_cycle, description, is_active)
            VALUES ($1, $2, $3, $4, $5)
            RETURNING *;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, name, amount, _plain(billing_cycle), description, is_active)
            return FeeStructure(**record)

    async def update_fee_structure(self, fee_structure_id: UUID, updates: Dict[str, Any]) -> Optional[FeeStructure]:
        record = await self._update_columns("fee_structures", FEE_STRUCTURE_UPDATABLE_COLUMNS, fee_structure_id, updates)
        return FeeStructure(**record) if record else None

    # ===== Skill Evidence =====

    async def get_latest_skill_evidence(self, student_id: UUID, limit: int = 3) -> List[Dict[str, Any]]:
        query = """
            SELECT se.id, se.skill_name, se.description, se.date_recorded,
                   COALESCE(p.full_name, 'Unknown Teacher') AS recorded_by_name
            FROM skill_evidence se
            LEFT JOIN profiles p ON p.id = se.recorded_by
            WHERE se.student_id = $1
            ORDER BY se.date_recorded DESC, se.created_at DESC
            LIMIT $2;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, student_id, limit)
            return [dict(record) for record in records]


def _plain(value: Any) -> Any:
    """Enum members are stored by value."""
    return getattr(value, "value", value)
