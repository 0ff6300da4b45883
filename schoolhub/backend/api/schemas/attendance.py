from pydantic import BaseModel, Field
from datetime import date
from typing import Dict, List, Optional
from uuid import UUID

from ...models.db_models import AttendanceStatus


class AttendanceUpsertRequest(BaseModel):
    """Request model for recording or correcting one student's attendance."""
    student_id: UUID
    date: date  # YYYY-MM-DD
    status: AttendanceStatus = Field(..., description="One of: present, absent, late.")
    class_id: Optional[UUID] = Field(None, description="The class the attendance was taken in, if any.")


class CalendarDayResponse(BaseModel):
    """Attendance rows of one day plus their counts."""
    date: date
    present: int = 0
    absent: int = 0
    late: int = 0
    total: int = 0
    records: List[Dict] = []


class MonthSummaryResponse(BaseModel):
    year: int
    month: int
    days: Dict[date, Dict[str, int]]
