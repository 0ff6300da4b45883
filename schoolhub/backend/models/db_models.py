# schoolhub/backend/models/db_models.py

from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID


class Role(str, Enum):
    """The closed set of account roles stored in 'profiles.role'."""
    ADMIN = "admin"
    TEACHER = "teacher"
    PARENT = "parent"


class AttendanceStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"


class InvoiceStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class BillingCycle(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUALLY = "annually"
    ONE_TIME = "one-time"


class Profile(BaseModel):
    """
    Represents an account, mapping to the 'profiles' table.
    The id is the auth provider's user id.
    """
    id: UUID = Field(..., description="Auth user id, acting as the Primary Key")
    full_name: Optional[str] = None
    role: Role


class Student(BaseModel):
    """Represents a student, mapping to the 'students' table."""
    id: UUID
    name: str
    dob: Optional[date] = None
    parent_id: Optional[UUID] = Field(None, description="FK linking to the parent's profile")
    created_at: Optional[datetime] = None


class SchoolClass(BaseModel):
    """Represents a class, mapping to the 'classes' table. A class belongs to exactly one teacher."""
    id: UUID
    name: str
    teacher_id: UUID = Field(..., description="FK linking to the owning teacher's profile")
    created_at: Optional[datetime] = None
    teacher_name: Optional[str] = None


class Enrollment(BaseModel):
    """Link between one student and one class, mapping to the 'enrollments' table."""
    id: UUID
    student_id: UUID
    class_id: UUID
    created_at: Optional[datetime] = None
    student_name: Optional[str] = None
    class_name: Optional[str] = None


class AttendanceRecord(BaseModel):
    """
    A single student's attendance for a single date, mapping to the 'attendance' table.
    At most one row exists per (student_id, date).
    """
    id: UUID
    student_id: UUID
    class_id: Optional[UUID] = None
    date: date
    status: AttendanceStatus
    recorded_by: Optional[UUID] = None
    recorded_at: Optional[datetime] = None


class Invoice(BaseModel):
    """Represents an invoice, mapping to the 'invoices' table."""
    id: UUID
    student_id: UUID
    fee_structure_id: Optional[UUID] = None
    amount_due: Decimal
    due_date: date
    status: InvoiceStatus = InvoiceStatus.PENDING
    created_at: Optional[datetime] = None
    student_name: Optional[str] = None


class FeeStructure(BaseModel):
    """Represents a fee template, mapping to the 'fee_structures' table."""
    id: UUID
    name: str
    description: Optional[str] = None
    amount: Decimal
    billing_cycle: BillingCycle
    is_active: Optional[bool] = True
    created_at: Optional[datetime] = None


class SkillEvidence(BaseModel):
    """Represents a recorded skill observation, mapping to the 'skill_evidence' table."""
    id: UUID
    student_id: UUID
    skill_name: str
    description: Optional[str] = None
    date_recorded: date
    recorded_by: Optional[UUID] = None
    created_at: Optional[datetime] = None


class AttendanceStats(BaseModel):
    """Per-teacher, per-date attendance aggregate."""
    total_students: int = 0
    present_today: int = 0
    absent_today: int = 0
    late_today: int = 0
    attendance_rate: int = 0
