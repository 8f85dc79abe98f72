"""Test helpers: controllable clock, recording audit sink and service factory."""

from datetime import datetime, timedelta, timezone
from typing import List, Optional
import threading

from civic_tracker.models.report import ReportCategory, ReportCreate, ReportStatus, PriorityLevel
from civic_tracker.models.user import Profile, UserRole
from civic_tracker.services.audit import AuditSink, StatusChangeEvent
from civic_tracker.services.identifier_generator import ReportNumberGenerator
from civic_tracker.services.report_service import ReportService
from civic_tracker.services.storage import InMemoryReportStore

START = datetime(2024, 1, 15, 10, 0, 0, tzinfo=timezone.utc)

FORWARD_PATH = [
    ReportStatus.ACKNOWLEDGED,
    ReportStatus.IN_PROGRESS,
    ReportStatus.RESOLVED,
    ReportStatus.CLOSED,
]


class TickingClock:
    """Each call returns a time ``step`` later than the previous one."""

    def __init__(self, start: datetime = START, step: timedelta = timedelta(seconds=1)):
        self._now = start
        self._step = step
        self._lock = threading.Lock()

    def __call__(self) -> datetime:
        with self._lock:
            current = self._now
            self._now = current + self._step
            return current

    def advance(self, delta: timedelta) -> None:
        with self._lock:
            self._now = self._now + delta


class RecordingAuditSink(AuditSink):

    def __init__(self):
        self.events: List[StatusChangeEvent] = []

    def publish(self, event: StatusChangeEvent) -> None:
        self.events.append(event)


class FailingAuditSink(AuditSink):

    def publish(self, event: StatusChangeEvent) -> None:
        raise ConnectionError("audit backend down")


def build_service(
    clock: Optional[TickingClock] = None,
    audit_sink: Optional[AuditSink] = None,
    prefix: str = "CIV"
) -> ReportService:
    clock = clock or TickingClock()
    store = InMemoryReportStore(clock=clock)
    return ReportService(
        store=store,
        number_generator=ReportNumberGenerator(store, prefix=prefix, clock=clock),
        audit_sink=audit_sink or RecordingAuditSink(),
    )


def make_profile(user_id: str, role: UserRole = UserRole.CITIZEN, department: Optional[str] = None) -> Profile:
    return Profile(user_id=user_id, role=role, department=department, is_verified=True)


def seed_profiles(service: ReportService) -> dict:
    """Save one profile per role plus a second citizen; returns them by key."""
    profiles = {
        "citizen": make_profile("citizen-1"),
        "other_citizen": make_profile("citizen-2"),
        "officer": make_profile("officer-1", UserRole.FIELD_OFFICER, "Roads"),
        "head": make_profile("head-1", UserRole.DEPARTMENT_HEAD, "Roads"),
        "admin": make_profile("admin-1", UserRole.ADMIN),
    }
    return {key: service.store.save_profile(profile) for key, profile in profiles.items()}


def report_input(
    category: ReportCategory = ReportCategory.POTHOLE,
    title: str = "Pothole on MG Road",
    location_text: str = "MG Road, near City Mall",
    priority: PriorityLevel = PriorityLevel.MEDIUM,
    description: str = "Deep pothole in the left lane.",
) -> ReportCreate:
    return ReportCreate(
        category=category,
        title=title,
        description=description,
        location_text=location_text,
        priority=priority,
    )


def advance_to(service: ReportService, report_id: str, actor: Profile, target: ReportStatus):
    """Walk a report forward one legal step at a time until it reaches ``target``."""
    report = service.store.get_report(report_id)
    for status in FORWARD_PATH:
        if service.workflow.rank(report.status) >= service.workflow.rank(target):
            break
        if service.workflow.rank(status) <= service.workflow.rank(report.status):
            continue
        report = service.transition_status(report_id, actor, status, f"Moved to {status.value}")
    return report
