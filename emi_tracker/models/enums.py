"""Enumeration types for loan entities."""

from enum import Enum


class LoanStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


class TrackingMode(str, Enum):
    DATE_DRIVEN = "date_driven"
    MANUAL = "manual"


class ElapsedCountPolicy(str, Enum):
    """Rule deciding when an installment counts as elapsed."""

    CALENDAR_DAY = "calendar_day"  # counts from the due day itself
    WHOLE_DAY = "whole_day"  # counts once the due day has fully passed
    NEXT_MONTH = "next_month"  # first installment due one month after start


class ChangeType(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"
