import pytest
import pytest_asyncio
import uuid
from datetime import date
from unittest.mock import AsyncMock

from schoolhub.backend.services.teacher_service import TeacherService
from schoolhub.backend.services.errors import BackendError, AuthorizationError
from schoolhub.backend.models.db_models import SchoolClass, Student, AttendanceRecord, AttendanceStats, AttendanceStatus

TARGET_DATE = date(2024, 7, 1)

# --- Test Fixtures ---

def make_class(teacher_id: uuid.UUID, name: str = "Math") -> SchoolClass:
    return SchoolClass(id=uuid.uuid4(), name=name, teacher_id=teacher_id)

def make_record(student_id: uuid.UUID, status: AttendanceStatus, day: date = TARGET_DATE) -> AttendanceRecord:
    return AttendanceRecord(id=uuid.uuid4(), student_id=student_id, date=day, status=status)

@pytest_asyncio.fixture
async def service_instance():
    """Creates a TeacherService with a mocked database client for each test."""
    mock_db_client = AsyncMock()
    service = TeacherService(db_client=mock_db_client)
    return service, mock_db_client

# --- Test Scenarios ---

@pytest.mark.asyncio
class TestTeacherStats:

    async def test_no_classes_gives_zero_aggregate(self, service_instance):
        """Scenario: The teacher owns no classes; no further lookups happen."""
        service, mock_db_client = service_instance
        mock_db_client.get_classes_for_teacher.return_value = []

        stats = await service.get_teacher_stats(uuid.uuid4(), TARGET_DATE)

        assert stats == AttendanceStats()
        mock_db_client.get_student_ids_for_classes.assert_not_called()
        mock_db_client.get_attendance_for_date.assert_not_called()

    async def test_classes_without_enrollments_gives_zero_aggregate(self, service_instance):
        service, mock_db_client = service_instance
        teacher_id = uuid.uuid4()
        mock_db_client.get_classes_for_teacher.return_value = [make_class(teacher_id)]
        mock_db_client.get_student_ids_for_classes.return_value = []

        stats = await service.get_teacher_stats(teacher_id, TARGET_DATE)

        assert stats == AttendanceStats()
        mock_db_client.get_attendance_for_date.assert_not_called()

    async def test_counts_and_rate(self, service_instance):
        """Scenario: 10 students, 7 present, 2 absent, 1 late on 2024-07-01."""
        service, mock_db_client = service_instance
        teacher_id = uuid.uuid4()
        classes = [make_class(teacher_id, "Math"), make_class(teacher_id, "Art")]
        student_ids = [uuid.uuid4() for _ in range(10)]
        statuses = [AttendanceStatus.PRESENT] * 7 + [AttendanceStatus.ABSENT] * 2 + [AttendanceStatus.LATE]
        mock_db_client.get_classes_for_teacher.return_value = classes
        mock_db_client.get_student_ids_for_classes.return_value = student_ids
        mock_db_client.get_attendance_for_date.return_value = [make_record(sid, st) for sid, st in zip(student_ids, statuses)]

        stats = await service.get_teacher_stats(teacher_id, TARGET_DATE)

        assert stats == AttendanceStats(total_students=10, present_today=7, absent_today=2, late_today=1, attendance_rate=70)
        mock_db_client.get_student_ids_for_classes.assert_awaited_once_with([c.id for c in classes], timeout=None)
        mock_db_client.get_attendance_for_date.assert_awaited_once_with(student_ids, TARGET_DATE, timeout=None)

    async def test_students_without_records(self, service_instance):
        """Scenario: 3 enrolled students and no attendance rows for the date."""
        service, mock_db_client = service_instance
        teacher_id = uuid.uuid4()
        mock_db_client.get_classes_for_teacher.return_value = [make_class(teacher_id)]
        mock_db_client.get_student_ids_for_classes.return_value = [uuid.uuid4() for _ in range(3)]
        mock_db_client.get_attendance_for_date.return_value = []

        stats = await service.get_teacher_stats(teacher_id, TARGET_DATE)

        assert stats == AttendanceStats(total_students=3)

    async def test_timeout_is_passed_to_every_lookup(self, service_instance):
        service, mock_db_client = service_instance
        teacher_id = uuid.uuid4()
        mock_db_client.get_classes_for_teacher.return_value = [make_class(teacher_id)]
        mock_db_client.get_student_ids_for_classes.return_value = [uuid.uuid4()]
        mock_db_client.get_attendance_for_date.return_value = []

        await service.get_teacher_stats(teacher_id, TARGET_DATE, timeout=2.5)

        mock_db_client.get_classes_for_teacher.assert_awaited_once_with(teacher_id, timeout=2.5)
        assert mock_db_client.get_attendance_for_date.await_args.kwargs["timeout"] == 2.5

    @pytest.mark.parametrize("failing_step", ["get_classes_for_teacher", "get_student_ids_for_classes", "get_attendance_for_date"])
    async def test_any_failed_lookup_aborts(self, service_instance, failing_step):
        """Scenario: A lookup fails midway; no partial aggregate is returned."""
        service, mock_db_client = service_instance
        teacher_id = uuid.uuid4()
        mock_db_client.get_classes_for_teacher.return_value = [make_class(teacher_id)]
        mock_db_client.get_student_ids_for_classes.return_value = [uuid.uuid4()]
        mock_db_client.get_attendance_for_date.return_value = []
        getattr(mock_db_client, failing_step).side_effect = ConnectionError("connection reset")

        with pytest.raises(BackendError, match="connection reset"):
            await service.get_teacher_stats(teacher_id, TARGET_DATE)


@pytest.mark.asyncio
class TestTeacherAttendance:

    async def test_attendance_sheet_marks_unrecorded_students(self, service_instance):
        service, mock_db_client = service_instance
        teacher_id = uuid.uuid4()
        alice = Student(id=uuid.uuid4(), name="Alice")
        bob = Student(id=uuid.uuid4(), name="Bob")
        record = make_record(alice.id, AttendanceStatus.LATE)
        mock_db_client.get_classes_for_teacher.return_value = [make_class(teacher_id)]
        mock_db_client.get_student_ids_for_classes.return_value = [alice.id, bob.id]
        mock_db_client.get_students_by_ids.return_value = [alice, bob]
        mock_db_client.get_attendance_for_date.return_value = [record]

        sheet = await service.get_attendance_sheet(teacher_id, TARGET_DATE)

        assert [entry.student.name for entry in sheet] == ["Alice", "Bob"]
        assert sheet[0].status == AttendanceStatus.LATE
        assert sheet[0].record_id == record.id
        assert sheet[1].status is None
        assert sheet[1].record_id is None

    async def test_teacher_without_students_gets_empty_sheet(self, service_instance):
        service, mock_db_client = service_instance
        mock_db_client.get_classes_for_teacher.return_value = []

        assert await service.get_attendance_sheet(uuid.uuid4(), TARGET_DATE) == []
        mock_db_client.get_attendance_for_date.assert_not_called()

    async def test_record_attendance_for_own_student(self, service_instance):
        service, mock_db_client = service_instance
        teacher_id, student_id, class_id = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
        saved = make_record(student_id, AttendanceStatus.PRESENT)
        mock_db_client.is_student_taught_by.return_value = True
        mock_db_client.upsert_attendance.return_value = saved

        result = await service.record_attendance(teacher_id, student_id, TARGET_DATE, AttendanceStatus.PRESENT, class_id)

        assert result == saved
        mock_db_client.upsert_attendance.assert_awaited_once_with(
            student_id=student_id,
            attendance_date=TARGET_DATE,
            status=AttendanceStatus.PRESENT,
            recorded_by=teacher_id,
            class_id=class_id,
            timeout=None,
        )

    async def test_record_attendance_for_foreign_student_is_refused(self, service_instance):
        service, mock_db_client = service_instance
        mock_db_client.is_student_taught_by.return_value = False

        with pytest.raises(AuthorizationError):
            await service.record_attendance(uuid.uuid4(), uuid.uuid4(), TARGET_DATE, AttendanceStatus.ABSENT)
        mock_db_client.upsert_attendance.assert_not_called()

    async def test_upsert_attendance_failure_is_wrapped(self, service_instance):
        service, mock_db_client = service_instance
        mock_db_client.upsert_attendance.side_effect = TimeoutError("statement timeout")

        with pytest.raises(BackendError, match="statement timeout"):
            await service.upsert_attendance(uuid.uuid4(), TARGET_DATE, AttendanceStatus.PRESENT, uuid.uuid4())
