import logging
from typing import Awaitable, Callable, Dict, List, Optional, Union
from datetime import date, datetime, timezone

from pydantic import BaseModel

from ..models.db_models import Profile, Role, Student, AttendanceStats
from .admin_service import AdminService, SchoolStats, RecentStudent
from .teacher_service import TeacherService
from .parent_service import ParentService, ChildAttendance, UpcomingInvoice, SkillEvidenceEntry

logger = logging.getLogger(__name__)


class AdminDashboard(BaseModel):
    role: Role = Role.ADMIN
    stats: SchoolStats
    recent_enrollments: List[RecentStudent]


class TeacherDashboard(BaseModel):
    role: Role = Role.TEACHER
    date: date
    stats: AttendanceStats


class ParentDashboard(BaseModel):
    role: Role = Role.PARENT
    child: Optional[Student] = None
    attendance_today: Optional[ChildAttendance] = None
    next_invoice: Optional[UpcomingInvoice] = None
    latest_evidence: List[SkillEvidenceEntry] = []


Dashboard = Union[AdminDashboard, TeacherDashboard, ParentDashboard]


class DashboardService:
    """
    Builds the dashboard of the signed-in profile by dispatching on its role.
    Every Role member must have a handler; a missing one fails at construction.
    """
    def __init__(self, admin_service: AdminService, teacher_service: TeacherService, parent_service: ParentService):
        self.admin_service = admin_service
        self.teacher_service = teacher_service
        self.parent_service = parent_service
        self._handlers: Dict[Role, Callable[[Profile, date], Awaitable[Dashboard]]] = {
            Role.ADMIN: self._admin_dashboard,
            Role.TEACHER: self._teacher_dashboard,
            Role.PARENT: self._parent_dashboard,
        }
        missing = set(Role) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No dashboard handler for roles: {sorted(r.value for r in missing)}")

    async def get_dashboard(self, profile: Profile, today: Optional[date] = None) -> Dashboard:
        today = today or datetime.now(timezone.utc).date()
        try:
            handler = self._handlers[profile.role]
        except KeyError:
            raise RuntimeError(f"Unhandled role '{profile.role}'")
        logger.info(f"Building {profile.role.value} dashboard for {profile.id}.")
        return await handler(profile, today)

    async def _admin_dashboard(self, profile: Profile, today: date) -> AdminDashboard:
        stats = await self.admin_service.get_school_stats(today)
        recent = await self.admin_service.get_recent_enrollments(5)
        return AdminDashboard(stats=stats, recent_enrollments=recent)

    async def _teacher_dashboard(self, profile: Profile, today: date) -> TeacherDashboard:
        stats = await self.teacher_service.get_teacher_stats(profile.id, today)
        return TeacherDashboard(date=today, stats=stats)

    async def _parent_dashboard(self, profile: Profile, today: date) -> ParentDashboard:
        child = await self.parent_service.get_parent_child(profile.id)
        if not child:
            return ParentDashboard()
        return ParentDashboard(
            child=child,
            attendance_today=await self.parent_service.get_child_attendance(child.id, today),
            next_invoice=await self.parent_service.get_child_next_upcoming_invoice(child.id, today),
            latest_evidence=await self.parent_service.get_child_latest_skill_evidence(child.id, 3),
        )
