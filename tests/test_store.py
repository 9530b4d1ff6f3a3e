"""Tests for loan stores, the loan repository and the factory."""

import json
from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest

from emi_tracker.config import ScheduleConfig, StorageConfig, TrackerConfig
from emi_tracker.exceptions import (
    ConfigurationError,
    LoanNotFoundError,
    NotDueError,
    StoreError,
    ValidationError,
)
from emi_tracker.factory import build_backend, build_repository
from emi_tracker.models import (
    ChangeType,
    DateDrivenLoan,
    LoanStatus,
    ManuallyTrackedLoan,
    NewLoan,
    TrackingMode,
)
from emi_tracker.store import (
    ChangeEvent,
    InMemoryBackend,
    JsonFileBackend,
    LoanBackend,
    LoanRepository,
)
from emi_tracker.store.repository import write_status


@pytest.fixture
def new_loan() -> NewLoan:
    """Terms of a loan to record."""
    return NewLoan(
        name="Car Loan - Acme Motors",
        total_amount=Decimal("60000"),
        installment_amount=Decimal("5000"),
        start_date=date(2024, 1, 15),
        tenure=12,
        interest_rate=Decimal("9.5"),
    )


@pytest.fixture
def backend(fixed_now) -> InMemoryBackend:
    """Empty in-memory store with a fixed clock."""
    return InMemoryBackend(clock=lambda: fixed_now)


@pytest.fixture
def repository(backend) -> LoanRepository:
    """Watching repository over the in-memory store."""
    repo = LoanRepository(backend)
    repo.watch()
    return repo


class TestInMemoryBackend:
    """Tests for InMemoryBackend."""

    def test_create_assigns_id(self, backend, new_loan, fixed_now) -> None:
        loan = backend.create(new_loan)

        assert loan.loan_id
        assert isinstance(loan, DateDrivenLoan)
        assert loan.status == LoanStatus.ACTIVE
        assert loan.updated_at == fixed_now
        assert backend.get(loan.loan_id) == loan

    def test_ids_are_unique(self, backend, new_loan) -> None:
        ids = {backend.create(new_loan).loan_id for _ in range(5)}

        assert len(ids) == 5

    def test_create_manual(self, backend, new_loan) -> None:
        new_loan.tracking = TrackingMode.MANUAL

        loan = backend.create(new_loan)

        assert isinstance(loan, ManuallyTrackedLoan)
        assert loan.installment_count == 0

    def test_update(self, backend, new_loan) -> None:
        loan = backend.create(new_loan)
        loan.name = "Car Loan - Renamed"

        backend.update(loan)

        assert backend.get(loan.loan_id).name == "Car Loan - Renamed"

    def test_update_unknown(self, backend, make_loan) -> None:
        with pytest.raises(LoanNotFoundError):
            backend.update(make_loan(loan_id="missing"))

    def test_update_status(self, backend, new_loan) -> None:
        loan = backend.create(new_loan)
        events = []
        backend.subscribe(events.append)

        backend.update_status(loan.loan_id, LoanStatus.COMPLETED)

        stored = backend.get(loan.loan_id)
        assert stored.status == LoanStatus.COMPLETED
        assert stored == replace(loan, status=LoanStatus.COMPLETED)
        assert [e.change_type for e in events] == [ChangeType.MODIFIED]
        assert events[0].loan.status == LoanStatus.COMPLETED

    def test_update_status_keeps_manual_fields(self, backend, new_loan) -> None:
        new_loan.tracking = TrackingMode.MANUAL
        loan = backend.create(new_loan)
        backend.update(replace(loan, installment_count=3, last_payment_at=datetime(2024, 3, 16)))

        backend.update_status(loan.loan_id, LoanStatus.COMPLETED)

        doc = backend.documents()[loan.loan_id]
        assert doc["currentEMI"] == 3
        assert doc["lastPaymentDate"] == "2024-03-16T00:00:00"
        assert doc["status"] == "completed"

    def test_update_status_unknown(self, backend) -> None:
        with pytest.raises(LoanNotFoundError):
            backend.update_status("missing", LoanStatus.ACTIVE)

    def test_delete(self, backend, new_loan) -> None:
        loan = backend.create(new_loan)

        backend.delete(loan.loan_id)
        backend.delete(loan.loan_id)

        assert backend.get(loan.loan_id) is None
        assert backend.list_all() == []

    def test_returned_loans_are_copies(self, backend, new_loan) -> None:
        loan = backend.create(new_loan)
        loan.name = "mutated"

        assert backend.get(loan.loan_id).name == new_loan.name

    def test_initial_documents(self) -> None:
        backend = InMemoryBackend(
            documents={"loan-1": {"name": "A", "startDate": "2024-01-01", "tenure": 3}}
        )

        [loan] = backend.list_all()
        assert loan.loan_id == "loan-1"
        assert loan.tenure == 3

    def test_events(self, backend, new_loan) -> None:
        events = []
        backend.subscribe(events.append)

        loan = backend.create(new_loan)
        loan.name = "Renamed"
        backend.update(loan)
        backend.delete(loan.loan_id)

        assert [e.change_type for e in events] == [
            ChangeType.ADDED,
            ChangeType.MODIFIED,
            ChangeType.REMOVED,
        ]
        assert events[1].loan.name == "Renamed"
        assert events[2].loan is None

    def test_unsubscribe(self, backend, new_loan) -> None:
        events = []
        unsubscribe = backend.subscribe(events.append)

        unsubscribe()
        unsubscribe()
        backend.create(new_loan)

        assert events == []

    def test_failing_subscriber_does_not_break_store(self, backend, new_loan, caplog) -> None:
        events = []
        backend.subscribe(MagicMock(side_effect=RuntimeError("boom")))
        backend.subscribe(events.append)

        loan = backend.create(new_loan)

        assert backend.get(loan.loan_id) is not None
        assert len(events) == 1
        assert "Change subscriber failed" in caplog.text


class TestJsonFileBackend:
    """Tests for JsonFileBackend."""

    def test_persists_documents(self, tmp_path, new_loan) -> None:
        path = tmp_path / "emis.json"
        store = JsonFileBackend(path)

        loan = store.create(new_loan)

        with open(path) as f:
            data = json.load(f)
        assert data[loan.loan_id]["emiAmount"] == "5000"
        assert data[loan.loan_id]["startDate"] == "2024-01-15"
        assert data[loan.loan_id]["status"] == "active"

    def test_reload(self, tmp_path, new_loan) -> None:
        path = tmp_path / "emis.json"
        loan = JsonFileBackend(path).create(new_loan)

        reloaded = JsonFileBackend(path)

        assert reloaded.get(loan.loan_id) == loan

    def test_pretty_output(self, tmp_path, new_loan) -> None:
        path = tmp_path / "nested" / "emis.json"
        JsonFileBackend(path, pretty=True).create(new_loan)

        assert "\n  " in path.read_text()

    def test_rejects_non_object_file(self, tmp_path) -> None:
        path = tmp_path / "emis.json"
        path.write_text("[1, 2, 3]")

        with pytest.raises(StoreError, match="JSON object"):
            JsonFileBackend(path)

    def test_failed_write_leaves_state(self, tmp_path, new_loan) -> None:
        path = tmp_path / "emis.json"
        store = JsonFileBackend(path)
        loan = store.create(new_loan)
        events = []
        store.subscribe(events.append)

        with patch("emi_tracker.store.json_file.json.dump", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                store.delete(loan.loan_id)

        assert store.get(loan.loan_id) == loan
        assert events == []
        assert loan.loan_id in json.loads(path.read_text())


class TestLoanRepository:
    """Tests for LoanRepository."""

    def test_add_loan(self, repository, new_loan) -> None:
        loan = repository.add_loan(new_loan)

        assert repository.get_loan(loan.loan_id) == loan
        assert len(repository) == 1

    @pytest.mark.parametrize(
        "field, value",
        [
            ("name", "  "),
            ("total_amount", Decimal("-1")),
            ("installment_amount", Decimal("-0.01")),
            ("tenure", 0),
            ("tenure", True),
            ("start_date", "15/01/2024"),
            ("start_date", None),
        ],
    )
    def test_add_loan_validation(self, repository, backend, new_loan, field, value) -> None:
        setattr(new_loan, field, value)

        with pytest.raises(ValidationError):
            repository.add_loan(new_loan)

        assert backend.list_all() == []

    def test_update_loan(self, repository, backend, new_loan) -> None:
        loan = repository.add_loan(new_loan)
        loan.tenure = 24

        repository.update_loan(loan)

        assert repository.get_loan(loan.loan_id).tenure == 24
        assert backend.get(loan.loan_id).tenure == 24

    def test_update_loan_validation(self, repository, new_loan) -> None:
        loan = repository.add_loan(new_loan)
        loan.name = ""

        with pytest.raises(ValidationError):
            repository.update_loan(loan)

    def test_delete_loan(self, repository, new_loan) -> None:
        loan = repository.add_loan(new_loan)

        repository.delete_loan(loan.loan_id)

        assert repository.get_loan(loan.loan_id) is None
        assert repository.fetch_loan(loan.loan_id) is None

    def test_listeners(self, repository, new_loan) -> None:
        calls = []
        remove = repository.add_listener(lambda: calls.append(len(repository)))

        loan = repository.add_loan(new_loan)
        repository.delete_loan(loan.loan_id)
        remove()
        repository.add_loan(new_loan)

        assert calls and calls[-1] == 0
        assert len(repository) == 1

    def test_one_notification_per_change_while_watching(self, repository, new_loan) -> None:
        listener = MagicMock()
        repository.add_listener(listener)

        loan = repository.add_loan(new_loan)
        assert listener.call_count == 1

        repository.mark_installment_paid(loan.loan_id, datetime(2024, 2, 10, 9, 0))
        assert listener.call_count == 2

        edited = repository.get_loan(loan.loan_id)
        repository.update_loan(replace(edited, name="Car Loan - Renamed"))
        assert listener.call_count == 3

        repository.delete_loan(loan.loan_id)
        assert listener.call_count == 4

    def test_notifies_without_watching(self, backend, new_loan) -> None:
        repository = LoanRepository(backend)
        listener = MagicMock()
        repository.add_listener(listener)

        repository.add_loan(new_loan)

        listener.assert_called_once_with()

    def test_failing_listener_logged(self, repository, new_loan, caplog) -> None:
        repository.add_listener(MagicMock(side_effect=RuntimeError("render failed")))

        repository.add_loan(new_loan)

        assert "Loan listener failed" in caplog.text
        assert len(repository) == 1

    def test_load(self, backend, new_loan) -> None:
        backend.create(new_loan)
        backend.create(new_loan)
        repository = LoanRepository(backend)

        assert not repository.loaded
        loans = repository.load()

        assert repository.loaded
        assert len(loans) == 2
        assert len(repository) == 2

    def test_watch_applies_backend_changes(self, repository, backend, new_loan) -> None:
        loan = backend.create(new_loan)
        assert repository.get_loan(loan.loan_id) == loan

        backend.delete(loan.loan_id)
        assert repository.get_loan(loan.loan_id) is None

    def test_close_stops_watching(self, repository, backend, new_loan) -> None:
        repository.close()

        backend.create(new_loan)

        assert len(repository) == 0

    def test_apply_event_last_write_wins(self, repository, make_loan) -> None:
        repository.apply_event(ChangeEvent(ChangeType.ADDED, "loan-test-001", make_loan()))
        repository.apply_event(
            ChangeEvent(ChangeType.MODIFIED, "loan-test-001", make_loan(name="Second"))
        )
        repository.apply_event(
            ChangeEvent(ChangeType.MODIFIED, "loan-test-001", make_loan(name="Third"))
        )

        assert repository.get_loan("loan-test-001").name == "Third"

        repository.apply_event(ChangeEvent(ChangeType.REMOVED, "loan-test-001"))
        assert len(repository) == 0

    def test_mark_installment_paid(self, repository, backend, new_loan) -> None:
        loan = repository.add_loan(new_loan)
        paid_at = datetime(2024, 2, 10, 9, 0)

        updated = repository.mark_installment_paid(loan.loan_id, paid_at)

        assert updated.installment_count == 2
        stored = backend.get(loan.loan_id)
        assert isinstance(stored, ManuallyTrackedLoan)
        assert stored.installment_count == 2
        assert stored.last_payment_at == paid_at
        assert repository.get_loan(loan.loan_id) == stored

    def test_mark_installment_paid_rejected(self, repository, backend, new_loan) -> None:
        loan = repository.add_loan(new_loan)

        with pytest.raises(NotDueError):
            repository.mark_installment_paid(loan.loan_id, date(2024, 1, 20))

        assert isinstance(backend.get(loan.loan_id), DateDrivenLoan)

    def test_mark_unknown_loan(self, repository) -> None:
        with pytest.raises(LoanNotFoundError):
            repository.mark_installment_paid("missing", date(2024, 2, 10))

    def test_backend_failure_wrapped(self, new_loan) -> None:
        backend = MagicMock(spec=LoanBackend)
        cause = ConnectionError("unreachable")
        backend.create.side_effect = cause
        repository = LoanRepository(backend)

        with pytest.raises(StoreError, match="Failed to add loan") as exc_info:
            repository.add_loan(new_loan)

        assert exc_info.value.__cause__ is cause
        assert len(repository) == 0

    def test_load_failure_wrapped(self) -> None:
        backend = MagicMock(spec=LoanBackend)
        backend.list_all.side_effect = TimeoutError("slow")
        repository = LoanRepository(backend)

        with pytest.raises(StoreError, match="Failed to list loans"):
            repository.load()

        assert not repository.loaded

    def test_sync_status(self, repository, backend, new_loan) -> None:
        loan = repository.add_loan(new_loan)

        repository.sync_status(loan.loan_id, LoanStatus.COMPLETED)

        assert backend.get(loan.loan_id).status == LoanStatus.COMPLETED
        assert repository.get_loan(loan.loan_id).status == LoanStatus.COMPLETED


class TestWriteStatus:
    """Tests for write_status."""

    def test_only_status_changes(self, backend, new_loan) -> None:
        loan = backend.create(new_loan)

        write_status(backend, loan.loan_id, LoanStatus.COMPLETED)

        stored = backend.get(loan.loan_id)
        assert stored.status == LoanStatus.COMPLETED
        assert stored.name == loan.name
        assert stored.start_date == loan.start_date

    def test_payment_before_write_is_kept(self, repository, backend, new_loan) -> None:
        """A payment stored after the status was computed survives the write."""
        loan = repository.add_loan(new_loan)
        stale = repository.engine.compute_status(loan, date(2025, 6, 1))
        assert stale.status == LoanStatus.COMPLETED
        update_status = backend.update_status

        def pay_then_update(loan_id, status):
            repository.mark_installment_paid(loan_id, datetime(2024, 2, 10, 9, 0))
            update_status(loan_id, status)

        with patch.object(backend, "update_status", side_effect=pay_then_update):
            write_status(backend, loan.loan_id, stale.status)

        stored = backend.get(loan.loan_id)
        assert stored.status == LoanStatus.COMPLETED
        assert stored.installment_count == 2
        assert stored.last_payment_at == datetime(2024, 2, 10, 9, 0)
        cached = repository.get_loan(loan.loan_id)
        assert cached.installment_count == 2
        assert cached.status == LoanStatus.COMPLETED

    def test_never_rewrites_whole_record(self) -> None:
        backend = MagicMock(spec=LoanBackend)

        write_status(backend, "loan-1", LoanStatus.COMPLETED)

        backend.update_status.assert_called_once_with("loan-1", LoanStatus.COMPLETED)
        backend.get.assert_not_called()
        backend.update.assert_not_called()

    def test_skips_deleted_loan(self) -> None:
        backend = MagicMock(spec=LoanBackend)
        backend.update_status.side_effect = LoanNotFoundError("Loan gone not found")

        write_status(backend, "gone", LoanStatus.ACTIVE)

        backend.update.assert_not_called()

    def test_skips_matching_status(self, backend, new_loan) -> None:
        loan = backend.create(new_loan)
        events = []
        backend.subscribe(events.append)

        write_status(backend, loan.loan_id, LoanStatus.ACTIVE)

        assert events == []


class TestFactory:
    """Tests for build_backend and build_repository."""

    def test_memory_backend(self) -> None:
        assert isinstance(build_backend(TrackerConfig()), InMemoryBackend)

    def test_json_backend(self, tmp_path) -> None:
        config = TrackerConfig(storage=StorageConfig(backend="json", json_path=tmp_path / "e.json"))

        assert isinstance(build_backend(config), JsonFileBackend)

    def test_unknown_backend(self) -> None:
        with pytest.raises(ConfigurationError):
            build_repository(TrackerConfig(storage=StorageConfig(backend="firestore")))

    def test_build_repository_loads(self, tmp_path, new_loan) -> None:
        path = tmp_path / "emis.json"
        loan = JsonFileBackend(path).create(new_loan)
        config = TrackerConfig(storage=StorageConfig(backend="json", json_path=path))

        repository = build_repository(config)

        assert repository.loaded
        assert repository.get_loan(loan.loan_id) == loan
        repository.engine.close()

    def test_status_reconciled_in_background(self, tmp_path) -> None:
        path = tmp_path / "emis.json"
        path.write_text(
            json.dumps(
                {
                    "old-loan": {
                        "name": "Consumer Durable - Old Shop",
                        "totalAmount": "3000",
                        "emiAmount": "500",
                        "startDate": "2020-01-10",
                        "tenure": 6,
                        "status": "active",
                    }
                }
            )
        )
        config = TrackerConfig(
            schedule=ScheduleConfig(reconcile_status=True),
            storage=StorageConfig(backend="json", json_path=path),
        )
        repository = build_repository(config)

        snap = repository.engine.compute_status(repository.get_loan("old-loan"))
        repository.engine.close()

        assert snap.status == LoanStatus.COMPLETED
        assert repository.backend.get("old-loan").status == LoanStatus.COMPLETED
        assert repository.get_loan("old-loan").status == LoanStatus.COMPLETED
        assert json.loads(path.read_text())["old-loan"]["status"] == "completed"

    def test_reconciliation_disabled(self) -> None:
        config = TrackerConfig(schedule=ScheduleConfig(reconcile_status=False))

        repository = build_repository(config)

        assert repository.engine._reconciler is None
