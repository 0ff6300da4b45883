import pytest
import pytest_asyncio
import uuid
from datetime import date, datetime, timedelta, timezone
from unittest.mock import AsyncMock

import asyncpg

from schoolhub.backend.services.admin_service import AdminService, SchoolStats
from schoolhub.backend.services.errors import ServiceError, BackendError, NotFoundError, ConflictError
from schoolhub.backend.modules.auth_provider import AuthProviderError
from schoolhub.backend.models.db_models import (
    Profile, Role, Student, AttendanceRecord, AttendanceStatus, InvoiceStatus,
)

# --- Test Fixtures ---

@pytest_asyncio.fixture
async def service_instance():
    """Creates an AdminService with mocked database and auth provider clients."""
    mock_db_client = AsyncMock()
    mock_auth_provider = AsyncMock()
    service = AdminService(db_client=mock_db_client, auth_provider=mock_auth_provider)
    return service, mock_db_client, mock_auth_provider

# --- Test Scenarios ---

@pytest.mark.asyncio
class TestAccountCreation:

    async def test_create_teacher_success(self, service_instance):
        service, mock_db_client, mock_auth_provider = service_instance
        user_id = uuid.uuid4()
        mock_auth_provider.create_user.return_value = {"id": str(user_id)}
        mock_db_client.upsert_profile.return_value = Profile(id=user_id, full_name="Ms. Hoover", role=Role.TEACHER)

        profile = await service.create_teacher("Ms. Hoover", "hoover@school.test", "secret123")

        assert profile.id == user_id
        assert profile.role == Role.TEACHER
        mock_auth_provider.create_user.assert_awaited_once_with(
            email="hoover@school.test",
            password="secret123",
            user_metadata={"full_name": "Ms. Hoover", "role": "teacher"},
        )
        mock_db_client.upsert_profile.assert_awaited_once_with(user_id, "Ms. Hoover", Role.TEACHER)
        mock_auth_provider.delete_user.assert_not_called()

    async def test_profile_failure_removes_auth_user(self, service_instance):
        """Scenario: The profile write fails; the freshly created auth user is deleted again."""
        service, mock_db_client, mock_auth_provider = service_instance
        user_id = uuid.uuid4()
        mock_auth_provider.create_user.return_value = {"id": str(user_id)}
        mock_db_client.upsert_profile.side_effect = ConnectionError("db down")

        with pytest.raises(BackendError, match="Failed to create parent"):
            await service.create_parent("Homer", "homer@school.test", "donuts123")

        mock_auth_provider.delete_user.assert_awaited_once_with(user_id)

    async def test_failed_compensation_still_reports_original_error(self, service_instance):
        service, mock_db_client, mock_auth_provider = service_instance
        mock_auth_provider.create_user.return_value = {"id": str(uuid.uuid4())}
        mock_db_client.upsert_profile.side_effect = ConnectionError("db down")
        mock_auth_provider.delete_user.side_effect = AuthProviderError("provider down")

        with pytest.raises(BackendError, match="db down"):
            await service.create_teacher("X", "x@school.test", "secret123")

    async def test_auth_provider_refusal(self, service_instance):
        service, mock_db_client, mock_auth_provider = service_instance
        mock_auth_provider.create_user.side_effect = AuthProviderError("User already registered")

        with pytest.raises(ServiceError, match="User already registered"):
            await service.create_teacher("X", "x@school.test", "secret123")
        mock_db_client.upsert_profile.assert_not_called()

    async def test_missing_auth_provider(self):
        service = AdminService(db_client=AsyncMock(), auth_provider=None)

        with pytest.raises(BackendError, match="Missing Supabase configuration"):
            await service.create_parent("X", "x@school.test", "secret123")


@pytest.mark.asyncio
class TestErrorTranslation:

    async def test_unique_violation_becomes_conflict(self, service_instance):
        service, mock_db_client, _ = service_instance
        mock_db_client.create_enrollment.side_effect = asyncpg.UniqueViolationError("duplicate key")

        with pytest.raises(ConflictError):
            await service.enroll_student(uuid.uuid4(), uuid.uuid4())

    async def test_foreign_key_violation_becomes_service_error(self, service_instance):
        service, mock_db_client, _ = service_instance
        mock_db_client.create_invoice.side_effect = asyncpg.ForeignKeyViolationError("no such student")

        with pytest.raises(ServiceError, match="referenced record does not exist"):
            await service.create_invoice(uuid.uuid4(), 100, date(2024, 9, 1))

    async def test_other_failures_become_backend_errors(self, service_instance):
        service, mock_db_client, _ = service_instance
        mock_db_client.get_students.side_effect = OSError("network unreachable")

        with pytest.raises(BackendError, match="network unreachable"):
            await service.get_all_students()

    async def test_missing_rows_raise_not_found(self, service_instance):
        service, mock_db_client, _ = service_instance
        mock_db_client.delete_student.return_value = 0
        mock_db_client.update_invoice_status.return_value = None
        mock_db_client.delete_enrollment.return_value = 0

        with pytest.raises(NotFoundError):
            await service.delete_student(uuid.uuid4())
        with pytest.raises(NotFoundError):
            await service.update_invoice_status(uuid.uuid4(), InvoiceStatus.PAID)
        with pytest.raises(NotFoundError):
            await service.unenroll_student(uuid.uuid4(), uuid.uuid4())

    async def test_create_class_requires_teacher_profile(self, service_instance):
        service, mock_db_client, _ = service_instance
        parent_id = uuid.uuid4()
        mock_db_client.get_profile.return_value = Profile(id=parent_id, full_name="Not A Teacher", role=Role.PARENT)

        with pytest.raises(ServiceError, match="is not a teacher"):
            await service.create_class("Science", parent_id)
        mock_db_client.create_class.assert_not_called()


@pytest.mark.asyncio
class TestStatistics:

    async def test_school_stats(self, service_instance):
        service, mock_db_client, _ = service_instance
        today = date(2024, 7, 1)
        mock_db_client.count_students.return_value = 120
        mock_db_client.count_profiles.return_value = 8
        mock_db_client.count_attendance.return_value = 95
        mock_db_client.count_overdue_invoices.return_value = 4

        stats = await service.get_school_stats(today)

        assert stats == SchoolStats(total_students=120, total_teachers=8, students_present_today=95, total_overdue_invoices=4)
        mock_db_client.count_profiles.assert_awaited_once_with(Role.TEACHER)
        mock_db_client.count_attendance.assert_awaited_once_with(today, AttendanceStatus.PRESENT)

    async def test_failing_counter_degrades_to_zero(self, service_instance):
        service, mock_db_client, _ = service_instance
        mock_db_client.count_students.return_value = 120
        mock_db_client.count_profiles.side_effect = ConnectionError("db down")
        mock_db_client.count_attendance.return_value = None
        mock_db_client.count_overdue_invoices.return_value = 2

        stats = await service.get_school_stats(date(2024, 7, 1))

        assert stats.total_students == 120
        assert stats.total_teachers == 0
        assert stats.students_present_today == 0
        assert stats.total_overdue_invoices == 2

    async def test_recent_enrollments_days_ago(self, service_instance):
        service, mock_db_client, _ = service_instance
        created = datetime.now(timezone.utc) - timedelta(days=3, hours=1)
        mock_db_client.get_students.return_value = [Student(id=uuid.uuid4(), name="Lisa", created_at=created)]

        recent = await service.get_recent_enrollments(5)

        assert recent[0].name == "Lisa"
        assert recent[0].days_ago == 3
        mock_db_client.get_students.assert_awaited_once_with(limit=5)

    async def test_recent_enrollments_failure_gives_empty_list(self, service_instance):
        service, mock_db_client, _ = service_instance
        mock_db_client.get_students.side_effect = ConnectionError("db down")

        assert await service.get_recent_enrollments() == []

    async def test_month_summary(self, service_instance):
        service, mock_db_client, _ = service_instance
        day = date(2024, 2, 12)
        mock_db_client.get_attendance_between.return_value = [
            AttendanceRecord(id=uuid.uuid4(), student_id=uuid.uuid4(), date=day, status=AttendanceStatus.PRESENT),
            AttendanceRecord(id=uuid.uuid4(), student_id=uuid.uuid4(), date=day, status=AttendanceStatus.ABSENT),
        ]

        summary = await service.get_month_summary(2024, 2)

        assert summary == {day: {"present": 1, "absent": 1, "late": 0, "total": 2}}
        mock_db_client.get_attendance_between.assert_awaited_once_with(date(2024, 2, 1), date(2024, 2, 29))

    async def test_month_summary_rejects_invalid_month(self, service_instance):
        service, mock_db_client, _ = service_instance

        with pytest.raises(ServiceError):
            await service.get_month_summary(2024, 13)
        mock_db_client.get_attendance_between.assert_not_called()
