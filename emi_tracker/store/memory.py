"""In-process document store for loans."""

from __future__ import annotations

import copy
import threading
import uuid
from datetime import datetime
from typing import Any, Callable

from emi_tracker.exceptions import LoanNotFoundError
from emi_tracker.models.enums import ChangeType, LoanStatus
from emi_tracker.models.loan import Loan, NewLoan
from emi_tracker.store.base import ChangeEvent, LoanBackend
from emi_tracker.store.serialization import (
    loan_from_document,
    loan_to_document,
    new_loan_document,
)


class InMemoryBackend(LoanBackend):
    """Loan store keeping serialized documents in a dict.

    Records round-trip through the document format on every read and write,
    so callers never share mutable state with the store.

    Parameters
    ----------
    documents : dict[str, dict] | None
        Initial documents keyed by loan id.
    clock : Callable[[], datetime]
        Source of creation timestamps.
    """

    def __init__(
        self,
        documents: dict[str, dict[str, Any]] | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        super().__init__()
        self._documents: dict[str, dict[str, Any]] = copy.deepcopy(documents or {})
        self._clock = clock
        self._lock = threading.RLock()

    def create(self, new_loan: NewLoan) -> Loan:
        """Store a new loan under a fresh id."""
        loan_id = uuid.uuid4().hex
        doc = new_loan_document(new_loan, self._clock())
        with self._lock:
            self._commit({**self._documents, loan_id: doc})
        loan = loan_from_document(loan_id, doc)
        self._emit(ChangeEvent(ChangeType.ADDED, loan_id, loan))
        return loan

    def update(self, loan: Loan) -> None:
        """Replace an existing loan's document."""
        doc = loan_to_document(loan)
        with self._lock:
            if loan.loan_id not in self._documents:
                raise LoanNotFoundError(f"Loan {loan.loan_id} not found")
            self._commit({**self._documents, loan.loan_id: doc})
        self._emit(
            ChangeEvent(ChangeType.MODIFIED, loan.loan_id, loan_from_document(loan.loan_id, doc))
        )

    def update_status(self, loan_id: str, status: LoanStatus) -> None:
        """Set the stored ``status`` field, leaving the rest of the document."""
        with self._lock:
            doc = self._documents.get(loan_id)
            if doc is None:
                raise LoanNotFoundError(f"Loan {loan_id} not found")
            if doc.get("status") == status.value:
                return
            doc = {**doc, "status": status.value}
            self._commit({**self._documents, loan_id: doc})
        self._emit(ChangeEvent(ChangeType.MODIFIED, loan_id, loan_from_document(loan_id, doc)))

    def delete(self, loan_id: str) -> None:
        """Remove a loan's document if present."""
        with self._lock:
            if loan_id not in self._documents:
                return
            self._commit({k: v for k, v in self._documents.items() if k != loan_id})
        self._emit(ChangeEvent(ChangeType.REMOVED, loan_id))

    def get(self, loan_id: str) -> Loan | None:
        """Return a loan by id."""
        with self._lock:
            doc = self._documents.get(loan_id)
            if doc is None:
                return None
            return loan_from_document(loan_id, doc)

    def list_all(self) -> list[Loan]:
        """Return all loans in insertion order."""
        with self._lock:
            return [loan_from_document(lid, doc) for lid, doc in self._documents.items()]

    def documents(self) -> dict[str, dict[str, Any]]:
        """Return a copy of the raw stored documents."""
        with self._lock:
            return copy.deepcopy(self._documents)

    def _commit(self, documents: dict[str, dict[str, Any]]) -> None:
        # State only changes once persisting the new documents succeeded
        self._persist(documents)
        self._documents = documents

    def _persist(self, documents: dict[str, dict[str, Any]]) -> None:
        """Hook for subclasses writing documents elsewhere; called under the lock."""
