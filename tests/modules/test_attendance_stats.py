import uuid
from datetime import date

import pytest

from schoolhub.backend.models.db_models import AttendanceRecord, AttendanceStats, AttendanceStatus
from schoolhub.backend.modules.attendance_stats import attendance_rate, summarize_attendance, summarize_by_date


def make_record(status: AttendanceStatus, day: date = date(2024, 7, 1)) -> AttendanceRecord:
    return AttendanceRecord(id=uuid.uuid4(), student_id=uuid.uuid4(), date=day, status=status)


@pytest.mark.parametrize("present, total, expected", [
    (7, 10, 70),
    (0, 3, 0),
    (3, 3, 100),
    (1, 3, 33),
    (2, 3, 67),
    (1, 8, 13),   # 12.5 rounds half up
    (1, 40, 3),   # 2.5 rounds half up
    (5, 0, 0),
])
def test_attendance_rate(present, total, expected):
    assert attendance_rate(present, total) == expected


def test_summarize_ten_students_seven_present():
    records = (
        [make_record(AttendanceStatus.PRESENT) for _ in range(7)]
        + [make_record(AttendanceStatus.ABSENT) for _ in range(2)]
        + [make_record(AttendanceStatus.LATE)]
    )

    stats = summarize_attendance(10, records)

    assert stats == AttendanceStats(total_students=10, present_today=7, absent_today=2, late_today=1, attendance_rate=70)


def test_summarize_students_without_records_are_not_absent():
    """Unrecorded students count toward the total only."""
    stats = summarize_attendance(3, [])

    assert stats.total_students == 3
    assert stats.present_today == stats.absent_today == stats.late_today == 0
    assert stats.attendance_rate == 0


def test_summarize_late_is_not_present():
    stats = summarize_attendance(4, [make_record(AttendanceStatus.LATE), make_record(AttendanceStatus.PRESENT)])

    assert stats.present_today == 1
    assert stats.late_today == 1
    assert stats.attendance_rate == 25


def test_summarize_by_date_groups_and_sorts():
    day_one, day_two = date(2024, 7, 1), date(2024, 7, 2)
    records = [
        make_record(AttendanceStatus.ABSENT, day_two),
        make_record(AttendanceStatus.PRESENT, day_one),
        make_record(AttendanceStatus.PRESENT, day_one),
        make_record(AttendanceStatus.LATE, day_one),
    ]

    summary = summarize_by_date(records)

    assert list(summary) == [day_one, day_two]
    assert summary[day_one] == {"present": 2, "absent": 0, "late": 1, "total": 3}
    assert summary[day_two] == {"present": 0, "absent": 1, "late": 0, "total": 1}
