# schoolhub/backend/modules/attendance_stats.py

from collections import Counter
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List

from ..models.db_models import AttendanceRecord, AttendanceStats, AttendanceStatus


def attendance_rate(present: int, total: int) -> int:
    """
    Present count over total students as a whole percentage.
    Halves round up (2.5 -> 3), and an empty roster gives 0.
    """
    if total <= 0:
        return 0
    ratio = Decimal(present) * 100 / Decimal(total)
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def summarize_attendance(total_students: int, records: Iterable[AttendanceRecord]) -> AttendanceStats:
    """
    Reduces the attendance rows of one date into an AttendanceStats aggregate.

    Args:
        total_students: Size of the enrolled student set. Students without a row
            are missing, not absent, so this is not derived from the records.
        records: Attendance rows already filtered to the student set and date.
    """
    counts = Counter(record.status for record in records)
    present = counts.get(AttendanceStatus.PRESENT, 0)
    return AttendanceStats(
        total_students=total_students,
        present_today=present,
        absent_today=counts.get(AttendanceStatus.ABSENT, 0),
        late_today=counts.get(AttendanceStatus.LATE, 0),
        attendance_rate=attendance_rate(present, total_students),
    )


def summarize_by_date(records: Iterable[AttendanceRecord]) -> Dict[date, Dict[str, int]]:
    """Groups rows by date into present/absent/late/total counts for calendar views."""
    grouped: Dict[date, List[AttendanceRecord]] = {}
    for record in records:
        grouped.setdefault(record.date, []).append(record)

    summary = {}
    for day, day_records in sorted(grouped.items()):
        counts = Counter(record.status for record in day_records)
        summary[day] = {
            "present": counts.get(AttendanceStatus.PRESENT, 0),
            "absent": counts.get(AttendanceStatus.ABSENT, 0),
            "late": counts.get(AttendanceStatus.LATE, 0),
            "total": len(day_records),
        }
    return summary
