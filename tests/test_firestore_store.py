"""Tests for the Firestore-backed pieces using in-process fakes of the client."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from google.api_core import exceptions as google_exceptions

from civic_tracker.core.errors import (
    AlreadyRatedError,
    CivicTrackerError,
    ConcurrentModificationError,
    IdentifierUnavailableError,
    NotFoundError,
    StoreFailureError,
)
from civic_tracker.models.report import ReportStatus
from civic_tracker.models.user import Profile, UserRole
from civic_tracker.services.audit import FirestoreAuditSink, StatusChangeEvent
from civic_tracker.services.identifier_generator import ReportNumberGenerator
from civic_tracker.services.report_filter import ReportCriteria, SortOrder, build_query_plan
from civic_tracker.services.storage import firestore_store
from civic_tracker.services.storage.firestore_store import FirestoreReportStore
from civic_tracker.utils.firestore_helpers import snapshot_to_dict, to_datetime

NOW = datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)


class FakeSnapshot:

    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = data
        self.exists = data is not None

    def to_dict(self):
        return dict(self._data) if self._data is not None else None

    def get(self, field):
        return self._data[field]


class FakeQuery:
    """Records where/order_by/limit calls and streams canned snapshots."""

    def __init__(self, docs):
        self.docs = docs
        self.calls = []

    def where(self, *args):
        self.calls.append(("where",) + args)
        return self

    def order_by(self, field, direction=None):
        self.calls.append(("order_by", field, direction))
        return self

    def limit(self, count):
        self.calls.append(("limit", count))
        return self

    def stream(self):
        return iter(self.docs)


def _report_data(number, title="Pothole", location="MG Road", **extra):
    data = {
        "report_number": number,
        "owner_id": "citizen-1",
        "category": "pothole",
        "title": title,
        "description": "Deep pothole",
        "location_text": location,
        "priority": "medium",
        "status": "open",
        "created_at": NOW.replace(tzinfo=None),
        "updated_at": NOW,
    }
    data.update(extra)
    return data


def _report_doc(doc_id, number, title="Pothole", location="MG Road", **extra):
    return FakeSnapshot(doc_id, _report_data(number, title, location, **extra))


class TestHelpers:

    def test_naive_datetime_becomes_utc(self) -> None:
        assert to_datetime(datetime(2024, 1, 15, 10, 0)) == NOW

    def test_aware_datetime_is_kept(self) -> None:
        assert to_datetime(NOW) is NOW

    def test_objects_with_to_datetime_are_converted(self) -> None:
        legacy = MagicMock()
        legacy.to_datetime.return_value = NOW
        assert to_datetime(legacy) == NOW

    def test_unsupported_value_raises(self) -> None:
        with pytest.raises(ValueError):
            to_datetime("2024-01-15")

    def test_snapshot_to_dict_adds_id_and_normalizes_timestamps(self) -> None:
        data = snapshot_to_dict(_report_doc("doc-1", "CIV-20240115-000001"))
        assert data["id"] == "doc-1"
        assert data["created_at"].tzinfo is not None


class TestFirestoreReads:

    def test_get_report_missing_returns_none(self) -> None:
        db = MagicMock()
        db.collection.return_value.document.return_value.get.return_value = FakeSnapshot("x", None)
        assert FirestoreReportStore(db).get_report("x") is None

    def test_get_report_builds_model(self) -> None:
        db = MagicMock()
        db.collection.return_value.document.return_value.get.return_value = _report_doc("r1", "CIV-20240115-000001")
        report = FirestoreReportStore(db).get_report("r1")
        assert report.id == "r1"
        assert report.status == ReportStatus.OPEN

    def test_query_pushes_filters_and_ordering(self) -> None:
        query = FakeQuery([_report_doc("r1", "CIV-20240115-000001")])
        db = MagicMock()
        db.collection.return_value = query

        plan = build_query_plan(ReportCriteria(status="open", category="pothole", sort=SortOrder.OLDEST))
        result = FirestoreReportStore(db).query_reports(plan, limit=10)

        assert [r.id for r in result] == ["r1"]
        assert ("where", "status", "==", "open") in query.calls
        assert ("where", "category", "==", "pothole") in query.calls
        assert [c[1] for c in query.calls if c[0] == "order_by"] == ["created_at", "report_number"]
        assert ("limit", 10) in query.calls

    def test_free_text_is_applied_after_streaming(self) -> None:
        query = FakeQuery([
            _report_doc("r1", "CIV-20240115-000001", title="Broken light", location="Station Road"),
            _report_doc("r2", "CIV-20240115-000002", title="Pothole", location="Park Street"),
            _report_doc("r3", "CIV-20240115-000003", title="Road cave-in", location="Elm Lane"),
        ])
        db = MagicMock()
        db.collection.return_value = query

        result = FirestoreReportStore(db).query_reports(build_query_plan(ReportCriteria(search="ROAD")), limit=5)

        assert [r.id for r in result] == ["r1", "r3"]
        assert not any(c[0] == "limit" for c in query.calls)

    def test_history_is_read_oldest_first(self) -> None:
        query = FakeQuery([FakeSnapshot("u1", {
            "report_id": "r1",
            "status": "acknowledged",
            "message": "Seen",
            "internal_notes": None,
            "updated_by": "officer-1",
            "created_at": NOW,
        })])
        db = MagicMock()
        db.collection.return_value = query

        updates = FirestoreReportStore(db).list_updates("r1")

        assert updates[0].id == "u1"
        assert ("where", "report_id", "==", "r1") in query.calls
        assert query.calls[-1][1] == "created_at"


class TestStoreFailures:

    def test_client_errors_become_store_failures(self) -> None:
        db = MagicMock()
        db.collection.return_value.document.return_value.get.side_effect = (
            google_exceptions.ServiceUnavailable("backend down")
        )
        with pytest.raises(StoreFailureError) as exc_info:
            FirestoreReportStore(db).get_report("r1")
        assert exc_info.value.retryable
        assert exc_info.value.status_code == 503

    def test_ping_failure_is_a_store_failure(self) -> None:
        db = MagicMock()
        db.collections.side_effect = google_exceptions.DeadlineExceeded("timeout")
        with pytest.raises(StoreFailureError):
            FirestoreReportStore(db).ping()

    def test_ping_reports_backend(self) -> None:
        db = MagicMock()
        db.collections.return_value = [MagicMock(), MagicMock()]
        assert FirestoreReportStore(db).ping() == {
            "connected": True, "backend": "firestore", "collections_count": 2,
        }


class TestFirestoreAuditSink:

    def test_event_is_written_to_status_events(self) -> None:
        db = MagicMock()
        event = StatusChangeEvent(
            report_id="r1",
            report_number="CIV-20240115-000001",
            from_status=ReportStatus.OPEN,
            to_status=ReportStatus.ACKNOWLEDGED,
            changed_by="officer-1",
            message="Seen",
            occurred_at=NOW,
        )

        FirestoreAuditSink(db).publish(event)

        db.collection.assert_called_once_with("status_events")
        payload = db.collection.return_value.document.return_value.set.call_args[0][0]
        assert payload["to_status"] == "acknowledged"
        assert payload["report_number"] == "CIV-20240115-000001"
        assert "recorded_at" in payload


class FakeDocumentRef:

    def __init__(self, db, collection, doc_id):
        self.db = db
        self.key = (collection, doc_id)
        self.id = doc_id

    def get(self, transaction=None):
        return FakeSnapshot(self.id, self.db.docs.get(self.key))


class FakeCollection:

    def __init__(self, db, name):
        self.db = db
        self.name = name

    def document(self, doc_id=None):
        if doc_id is None:
            self.db.auto_ids += 1
            doc_id = f"auto-{self.db.auto_ids}"
        return FakeDocumentRef(self.db, self.name, doc_id)


class FakeTransaction:
    """Buffers writes until commit, like a Firestore transaction."""

    def __init__(self, db):
        self.db = db
        self.writes = []

    def create(self, ref, data):
        self.writes.append(("create", ref.key, data, False))

    def set(self, ref, data, merge=False):
        self.writes.append(("set", ref.key, data, merge))

    def update(self, ref, data):
        self.writes.append(("update", ref.key, data, True))

    def commit(self):
        for _, key, data, merge in self.writes:
            stamped = {k: (NOW if v is firestore_store.firestore.SERVER_TIMESTAMP else v) for k, v in data.items()}
            self.db.docs[key] = {**self.db.docs.get(key, {}), **stamped} if merge else stamped


class FakeFirestore:

    def __init__(self, docs=None):
        self.docs = dict(docs or {})
        self.transactions = []
        self.auto_ids = 0

    def collection(self, name):
        return FakeCollection(self, name)

    def transaction(self):
        transaction = FakeTransaction(self)
        self.transactions.append(transaction)
        return transaction

    def ops(self):
        return [write[0] for t in self.transactions for write in t.writes]


def committing(body):
    def run(transaction):
        result = body(transaction)
        transaction.commit()
        return result
    return run


def always_aborted(body):
    def run(transaction):
        body(transaction)
        raise ValueError("Failed to commit transaction in 5 attempts.")
    return run


@pytest.fixture
def commits(monkeypatch):
    monkeypatch.setattr(firestore_store.firestore, "transactional", committing)


@pytest.fixture
def contended(monkeypatch):
    monkeypatch.setattr(firestore_store.firestore, "transactional", always_aborted)


NEW_REPORT = {
    "report_number": "CIV-20240115-000001",
    "owner_id": "citizen-1",
    "category": "pothole",
    "title": "Pothole",
    "description": "Deep pothole",
    "location_text": "MG Road",
    "priority": "medium",
    "status": "open",
}


def _history_entry(status="acknowledged"):
    return {
        "report_id": "r1",
        "status": status,
        "message": "Seen",
        "internal_notes": None,
        "updated_by": "officer-1",
    }


@pytest.mark.usefixtures("commits")
class TestFirestoreWrites:

    def test_counter_increments_per_bucket(self) -> None:
        db = FakeFirestore()
        store = FirestoreReportStore(db)

        assert [store.increment_counter("20240115") for _ in range(3)] == [1, 2, 3]
        assert store.increment_counter("20240116") == 1
        assert db.docs[("report_counters", "20240115")]["value"] == 3

    def test_create_report_writes_guard_and_report_together(self) -> None:
        db = FakeFirestore()

        report = FirestoreReportStore(db).create_report(dict(NEW_REPORT))

        assert report.id == "auto-1"
        assert report.created_at == NOW
        assert db.ops() == ["create", "create"]
        assert db.docs[("report_numbers", "CIV-20240115-000001")] == {"report_id": "auto-1"}

    def test_duplicate_number_is_rejected_without_writes(self) -> None:
        db = FakeFirestore({("report_numbers", "CIV-20240115-000001"): {"report_id": "older"}})

        with pytest.raises(StoreFailureError) as exc_info:
            FirestoreReportStore(db).create_report(dict(NEW_REPORT))

        assert exc_info.value.field == "report_number"
        assert db.ops() == []
        assert not any(key[0] == "reports" for key in db.docs)

    def test_transition_updates_status_and_appends_history(self) -> None:
        db = FakeFirestore({("reports", "r1"): _report_data("CIV-20240115-000001", id="r1")})

        report = FirestoreReportStore(db).apply_transition(
            "r1", ReportStatus.OPEN, ReportStatus.ACKNOWLEDGED, _history_entry(),
        )

        assert report.status == ReportStatus.ACKNOWLEDGED
        assert db.ops() == ["update", "set"]
        history = [data for key, data in db.docs.items() if key[0] == "report_updates"]
        assert len(history) == 1
        assert history[0]["report_id"] == "r1"
        assert history[0]["created_at"] == NOW

    def test_stale_expected_status_writes_nothing(self) -> None:
        db = FakeFirestore({("reports", "r1"): _report_data("CIV-20240115-000001", status="acknowledged")})

        with pytest.raises(ConcurrentModificationError):
            FirestoreReportStore(db).apply_transition(
                "r1", ReportStatus.OPEN, ReportStatus.ACKNOWLEDGED, _history_entry(),
            )

        assert db.ops() == []
        assert db.docs[("reports", "r1")]["status"] == "acknowledged"

    def test_transition_on_missing_report(self) -> None:
        with pytest.raises(NotFoundError):
            FirestoreReportStore(FakeFirestore()).apply_transition(
                "r1", ReportStatus.OPEN, ReportStatus.ACKNOWLEDGED, _history_entry(),
            )

    def test_rating_is_written_once(self) -> None:
        db = FakeFirestore({("reports", "r1"): _report_data("CIV-20240115-000001", status="resolved")})
        store = FirestoreReportStore(db)

        rated = store.apply_rating("r1", 4, "Quick fix")
        assert (rated.citizen_rating, rated.citizen_feedback) == (4, "Quick fix")

        with pytest.raises(AlreadyRatedError):
            store.apply_rating("r1", 1, "Changed my mind")

        assert db.ops() == ["update"]
        assert db.docs[("reports", "r1")]["citizen_rating"] == 4

    def test_field_update_keeps_other_fields(self) -> None:
        db = FakeFirestore({("reports", "r1"): _report_data("CIV-20240115-000001")})

        report = FirestoreReportStore(db).update_report_fields("r1", {"priority": "urgent"})

        assert report.priority.value == "urgent"
        assert report.title == "Pothole"

    def test_profile_created_at_is_stamped_only_on_first_save(self) -> None:
        db = FakeFirestore()
        store = FirestoreReportStore(db)
        profile = Profile(user_id="citizen-9", phone_number="+919800000009")

        first = store.save_profile(profile)
        store.save_profile(profile.model_copy(update={"role": UserRole.FIELD_OFFICER}))

        first_write, second_write = (t.writes[0][2] for t in db.transactions)
        assert "created_at" in first_write
        assert "created_at" not in second_write
        assert first.phone_number == "+919800000009"
        assert store.get_profile("citizen-9").role == UserRole.FIELD_OFFICER


@pytest.mark.usefixtures("contended")
class TestCommitContention:
    """Every commit attempt aborted by concurrent writers."""

    def test_counter_contention_is_a_store_failure(self) -> None:
        with pytest.raises(StoreFailureError) as exc_info:
            FirestoreReportStore(FakeFirestore()).increment_counter("20240115")
        assert exc_info.value.retryable

    def test_generator_reports_identifier_unavailable(self) -> None:
        generator = ReportNumberGenerator(FirestoreReportStore(FakeFirestore()))
        with pytest.raises(IdentifierUnavailableError):
            generator.next()

    def test_create_contention_writes_nothing(self) -> None:
        db = FakeFirestore()
        with pytest.raises(StoreFailureError):
            FirestoreReportStore(db).create_report(dict(NEW_REPORT))
        assert db.docs == {}

    @pytest.mark.parametrize("write", [
        lambda store: store.apply_transition("r1", ReportStatus.RESOLVED, ReportStatus.CLOSED, _history_entry("closed")),
        lambda store: store.apply_rating("r1", 5, None),
        lambda store: store.update_report_fields("r1", {"priority": "high"}),
    ], ids=["transition", "rating", "fields"])
    def test_report_write_contention_is_concurrent_modification(self, write) -> None:
        original = _report_data("CIV-20240115-000001", status="resolved")
        db = FakeFirestore({("reports", "r1"): dict(original)})

        with pytest.raises(ConcurrentModificationError) as exc_info:
            write(FirestoreReportStore(db))

        assert exc_info.value.retryable
        assert db.docs[("reports", "r1")] == original

    def test_profile_contention_is_a_store_failure(self) -> None:
        with pytest.raises(StoreFailureError):
            FirestoreReportStore(FakeFirestore()).save_profile(Profile(user_id="citizen-9"))


def test_unrelated_value_errors_are_not_relabelled(monkeypatch) -> None:
    def broken(body):
        def run(transaction):
            raise ValueError("bad document path")
        return run

    monkeypatch.setattr(firestore_store.firestore, "transactional", broken)

    with pytest.raises(ValueError) as exc_info:
        FirestoreReportStore(FakeFirestore()).increment_counter("20240115")
    assert not isinstance(exc_info.value, CivicTrackerError)
