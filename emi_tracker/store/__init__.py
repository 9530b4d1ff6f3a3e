"""Loan stores and the observable loan cache."""

from emi_tracker.store.base import ChangeEvent, LoanBackend
from emi_tracker.store.json_file import JsonFileBackend
from emi_tracker.store.memory import InMemoryBackend
from emi_tracker.store.repository import LoanRepository

__all__ = [
    "ChangeEvent",
    "InMemoryBackend",
    "JsonFileBackend",
    "LoanBackend",
    "LoanRepository",
]
