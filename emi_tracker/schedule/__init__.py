"""Installment schedule calculation."""

from emi_tracker.schedule.engine import ScheduleEngine
from emi_tracker.schedule.reconcile import StatusReconciler

__all__ = ["ScheduleEngine", "StatusReconciler"]
