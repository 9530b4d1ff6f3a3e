"""Observable in-process cache of loans backed by a loan store."""

from __future__ import annotations

import logging
import threading
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, TypeVar

from emi_tracker.exceptions import LoanNotFoundError, StoreError, ValidationError
from emi_tracker.models.enums import ChangeType, LoanStatus
from emi_tracker.models.loan import Loan, ManuallyTrackedLoan, NewLoan
from emi_tracker.schedule.calendar import to_date
from emi_tracker.schedule.engine import ScheduleEngine
from emi_tracker.store.base import ChangeEvent, LoanBackend, Unsubscribe

logger = logging.getLogger(__name__)

Listener = Callable[[], None]
T = TypeVar("T")


class LoanRepository:
    """Canonical list of loans plus a registry of change listeners.

    The cache is refreshed by ``load`` (bulk reload), by its own mutations,
    and, after ``watch``, by change events from the backend. Events are
    applied one at a time and the last write wins. Listeners are called
    synchronously, without arguments, after every cache change.

    Parameters
    ----------
    backend : LoanBackend
        Store holding the loan records.
    engine : ScheduleEngine | None
        Engine used for payments and status queries.
    """

    def __init__(self, backend: LoanBackend, engine: ScheduleEngine | None = None) -> None:
        self.backend = backend
        self.engine = engine or ScheduleEngine()
        self._loans: dict[str, Loan] = {}
        self._listeners: list[Listener] = []
        self._lock = threading.RLock()
        self._unsubscribe: Unsubscribe | None = None
        self.loaded = False

    # Cache lifecycle
    def load(self) -> list[Loan]:
        """Replace the cache with every loan in the backend."""
        loans = self._call("list loans", self.backend.list_all)
        with self._lock:
            self._loans = {loan.loan_id: loan for loan in loans}
            self.loaded = True
        logger.info("Loaded %d loans", len(loans))
        self._notify()
        return loans

    def watch(self) -> Unsubscribe:
        """Apply backend change events to the cache until unsubscribed."""
        if self._unsubscribe is None:
            self._unsubscribe = self.backend.subscribe(self.apply_event)
        return self.close

    def close(self) -> None:
        """Stop applying backend change events."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def apply_event(self, event: ChangeEvent) -> None:
        """Apply one incremental change to the cache."""
        if event.change_type is ChangeType.REMOVED:
            self._remove(event.loan_id)
        elif event.loan is not None:
            self._put(event.loan)
        else:
            logger.warning(
                "Ignoring %s event without a loan for %s",
                event.change_type.value,
                event.loan_id,
            )

    # Listeners
    def add_listener(self, callback: Listener) -> Unsubscribe:
        """Register a change listener and return a function removing it."""
        with self._lock:
            self._listeners.append(callback)

        def remove() -> None:
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return remove

    # Cache reads
    def loans(self) -> list[Loan]:
        """Return the cached loans."""
        with self._lock:
            return list(self._loans.values())

    def get_loan(self, loan_id: str) -> Loan | None:
        """Return a cached loan by id."""
        with self._lock:
            return self._loans.get(loan_id)

    def __len__(self) -> int:
        return len(self._loans)

    # Store-backed operations
    def fetch_loan(self, loan_id: str) -> Loan | None:
        """Read a loan directly from the backend."""
        return self._call("get loan", self.backend.get, loan_id)

    def add_loan(self, new_loan: NewLoan) -> Loan:
        """Validate and store a new loan."""
        validate_terms(
            new_loan.name,
            new_loan.total_amount,
            new_loan.installment_amount,
            new_loan.start_date,
            new_loan.tenure,
        )
        loan = self._call("add loan", self.backend.create, new_loan)
        logger.info("Added loan %s (%s)", loan.loan_id, loan.name)
        self._put(loan)
        return loan

    def update_loan(self, loan: Loan) -> None:
        """Validate and store an edited loan."""
        validate_terms(
            loan.name,
            loan.total_amount,
            loan.installment_amount,
            loan.start_date,
            loan.tenure,
        )
        self._call("update loan", self.backend.update, loan)
        self._put(loan)

    def delete_loan(self, loan_id: str) -> None:
        """Delete a loan from the store and the cache."""
        self._call("delete loan", self.backend.delete, loan_id)
        logger.info("Deleted loan %s", loan_id)
        self._remove(loan_id)

    def mark_installment_paid(
        self, loan_id: str, as_of: date | datetime | None = None
    ) -> ManuallyTrackedLoan:
        """Record one installment payment for a cached loan.

        Raises
        ------
        LoanNotFoundError
            If the loan is not in the cache.
        PaymentError
            If the payment is not allowed (see ``ScheduleEngine``).
        StoreError
            If the backend fails to store the update.
        """
        loan = self.get_loan(loan_id)
        if loan is None:
            raise LoanNotFoundError(f"Loan {loan_id} not found")

        updated = self.engine.mark_installment_paid(loan, as_of)
        self._call("mark installment paid", self.backend.update, updated)
        self._put(updated)
        return updated

    def sync_status(self, loan_id: str, status: LoanStatus) -> None:
        """Persist a recomputed status without touching any other field.

        Same write as the background reconciler performs, for callers that
        want it synchronously.
        """
        self._call("sync status", write_status, self.backend, loan_id, status)

    def _call(self, action: str, operation: Callable[..., T], *args: Any) -> T:
        try:
            return operation(*args)
        except StoreError:
            logger.error("Failed to %s", action)
            raise
        except Exception as exc:
            logger.error("Failed to %s: %s", action, exc)
            raise StoreError(f"Failed to {action}: {exc}") from exc

    def _put(self, loan: Loan) -> None:
        with self._lock:
            # Already applied from the backend's change event while watching
            if self._loans.get(loan.loan_id) == loan:
                return
            self._loans[loan.loan_id] = loan
        self._notify()

    def _remove(self, loan_id: str) -> None:
        with self._lock:
            removed = self._loans.pop(loan_id, None)
        if removed is not None:
            self._notify()

    def _notify(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for callback in listeners:
            try:
                callback()
            except Exception:
                logger.exception("Loan listener failed")


def write_status(backend: LoanBackend, loan_id: str, status: LoanStatus) -> None:
    """Store ``status`` on the backend record of a loan.

    Only the status field is written. A loan deleted in the meantime is
    skipped.
    """
    try:
        backend.update_status(loan_id, status)
    except LoanNotFoundError:
        logger.info("Skipping status sync of deleted loan %s", loan_id)
        return
    logger.debug("Synced status of loan %s to %s", loan_id, status.value)


def validate_terms(
    name: str,
    total_amount: Decimal,
    installment_amount: Decimal,
    start_date: date | str | None,
    tenure: int,
) -> None:
    """Check user-entered loan terms.

    Raises
    ------
    ValidationError
        If a field is missing or out of range.
    """
    if not name or not name.strip():
        raise ValidationError("Loan name is required")
    if total_amount is None or total_amount < 0:
        raise ValidationError("Total amount must be a non-negative number")
    if installment_amount is None or installment_amount < 0:
        raise ValidationError("Installment amount must be a non-negative number")
    if isinstance(tenure, bool) or not isinstance(tenure, int) or tenure <= 0:
        raise ValidationError("Tenure must be a positive whole number of installments")
    to_date(start_date)
