"""Compose stores, engine and repository from configuration."""

from __future__ import annotations

import logging
from functools import partial

from emi_tracker.config import TrackerConfig
from emi_tracker.exceptions import ConfigurationError
from emi_tracker.schedule.engine import ScheduleEngine
from emi_tracker.schedule.reconcile import StatusReconciler
from emi_tracker.store.base import LoanBackend
from emi_tracker.store.json_file import JsonFileBackend
from emi_tracker.store.memory import InMemoryBackend
from emi_tracker.store.repository import LoanRepository, write_status

logger = logging.getLogger(__name__)


def build_backend(config: TrackerConfig) -> LoanBackend:
    """Create the loan store named by ``config.storage.backend``."""
    storage = config.storage
    if storage.backend == "memory":
        return InMemoryBackend()
    if storage.backend == "json":
        return JsonFileBackend(storage.json_path, pretty=storage.pretty_json)
    raise ConfigurationError(f"Unknown store backend {storage.backend!r}")


def build_engine(config: TrackerConfig, backend: LoanBackend) -> ScheduleEngine:
    """Create the schedule engine, with status reconciliation if enabled."""
    reconciler = None
    if config.schedule.reconcile_status:
        reconciler = StatusReconciler(
            partial(write_status, backend),
            max_workers=config.schedule.reconcile_workers,
        )
    return ScheduleEngine(config.schedule.elapsed_policy, reconciler=reconciler)


def build_repository(config: TrackerConfig | None = None, load: bool = True) -> LoanRepository:
    """Create a watching repository over the configured store.

    Parameters
    ----------
    config : TrackerConfig | None
        Configuration (default: ``TrackerConfig.from_env()``).
    load : bool
        Bulk-load the cache before returning.
    """
    config = config or TrackerConfig.from_env()
    config.validate()

    backend = build_backend(config)
    engine = build_engine(config, backend)
    repository = LoanRepository(backend, engine)
    repository.watch()
    if load:
        repository.load()

    logger.info(
        "Loan repository ready (store=%s, policy=%s, reconcile=%s)",
        config.storage.backend,
        engine.policy.value,
        config.schedule.reconcile_status,
    )
    return repository
