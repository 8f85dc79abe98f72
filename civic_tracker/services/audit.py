"""
Audit sink for status-change events.

Events are published after a transition has committed. A sink failure
is logged and never rolls the transition back.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from firebase_admin import firestore
from pydantic import BaseModel

from civic_tracker.models.report import ReportStatus
import logging

logger = logging.getLogger(__name__)


class StatusChangeEvent(BaseModel):
    report_id: str
    report_number: str
    from_status: ReportStatus
    to_status: ReportStatus
    changed_by: str
    message: str
    occurred_at: datetime


class AuditSink(ABC):

    @abstractmethod
    def publish(self, event: StatusChangeEvent) -> None:
        raise NotImplementedError


class LoggingAuditSink(AuditSink):

    def publish(self, event: StatusChangeEvent) -> None:
        logger.info(
            f"[AUDIT] {event.report_number}: {event.from_status.value} -> "
            f"{event.to_status.value} by {event.changed_by}"
        )


class FirestoreAuditSink(AuditSink):
    """Appends events to the status_events collection."""

    def __init__(self, db):
        self.db = db

    def publish(self, event: StatusChangeEvent) -> None:
        payload = event.model_dump(mode="json")
        payload["recorded_at"] = firestore.SERVER_TIMESTAMP
        self.db.collection("status_events").document().set(payload)
        logger.info(f"[AUDIT] Recorded {event.report_number} -> {event.to_status.value}")


_audit_sink: Optional[AuditSink] = None


def get_audit_sink() -> AuditSink:
    """Firestore-backed sink unless running against the in-process store."""
    global _audit_sink
    if _audit_sink is not None:
        return _audit_sink

    from civic_tracker.core.settings import settings

    if settings.USE_MOCK_DB:
        _audit_sink = LoggingAuditSink()
    else:
        from civic_tracker.config.firebase import get_db
        _audit_sink = FirestoreAuditSink(get_db())
    return _audit_sink


def publish_safely(sink: AuditSink, event: StatusChangeEvent) -> None:
    try:
        sink.publish(event)
    except Exception as e:
        logger.error(f"Audit sink failed for {event.report_number}: {e}", exc_info=True)
