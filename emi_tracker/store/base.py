"""Loan store contract and change notifications."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable

from emi_tracker.models.enums import ChangeType, LoanStatus
from emi_tracker.models.loan import Loan, NewLoan

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChangeEvent:
    """Incremental change to one stored loan, keyed by identifier."""

    change_type: ChangeType
    loan_id: str
    loan: Loan | None = None  # None for removals


ChangeCallback = Callable[[ChangeEvent], None]
Unsubscribe = Callable[[], None]


class LoanBackend(ABC):
    """Document store holding loan records.

    Implementations assign identifiers on ``create`` and publish a
    ``ChangeEvent`` to subscribers after every successful mutation.
    """

    def __init__(self) -> None:
        self._subscribers: list[ChangeCallback] = []
        self._subscribers_lock = threading.Lock()

    @abstractmethod
    def create(self, new_loan: NewLoan) -> Loan:
        """Store a new loan and return it with its assigned id."""

    @abstractmethod
    def update(self, loan: Loan) -> None:
        """Replace the stored record of an existing loan."""

    @abstractmethod
    def update_status(self, loan_id: str, status: LoanStatus) -> None:
        """Set only the ``status`` field of a stored loan.

        Raises ``LoanNotFoundError`` for an unknown id. Other fields are
        left exactly as stored, so a concurrent payment is never undone.
        """

    @abstractmethod
    def delete(self, loan_id: str) -> None:
        """Remove a loan; removing an unknown id is a no-op."""

    @abstractmethod
    def get(self, loan_id: str) -> Loan | None:
        """Return the stored loan or None."""

    @abstractmethod
    def list_all(self) -> list[Loan]:
        """Return every stored loan."""

    def subscribe(self, callback: ChangeCallback) -> Unsubscribe:
        """Register a change callback and return a function removing it."""
        with self._subscribers_lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._subscribers_lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _emit(self, event: ChangeEvent) -> None:
        with self._subscribers_lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(event)
            except Exception:
                logger.exception(
                    "Change subscriber failed for %s of loan %s",
                    event.change_type.value,
                    event.loan_id,
                )
