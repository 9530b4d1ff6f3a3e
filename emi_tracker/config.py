"""Configuration management for emi-tracker."""

import os
from dataclasses import dataclass, field
from pathlib import Path

from emi_tracker.exceptions import ConfigurationError
from emi_tracker.logging import LOG_FORMATS
from emi_tracker.models.enums import ElapsedCountPolicy

STORE_BACKENDS = ("memory", "json")


@dataclass
class ScheduleConfig:
    """Schedule engine configuration."""

    elapsed_policy: ElapsedCountPolicy = ElapsedCountPolicy.CALENDAR_DAY
    reconcile_status: bool = True
    reconcile_workers: int = 1


@dataclass
class StorageConfig:
    """Loan store configuration."""

    backend: str = "memory"
    json_path: Path = field(default_factory=lambda: Path("emis.json"))
    pretty_json: bool = False


@dataclass
class TrackerConfig:
    """Main configuration for emi-tracker."""

    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    log_level: str = "INFO"
    log_format: str = "standard"
    seed: int | None = None

    def validate(self) -> None:
        """Raise ConfigurationError for out-of-range values."""
        if self.storage.backend not in STORE_BACKENDS:
            raise ConfigurationError(
                f"Unknown store backend {self.storage.backend!r}, expected one of {STORE_BACKENDS}"
            )
        if self.schedule.reconcile_workers < 1:
            raise ConfigurationError("reconcile_workers must be at least 1")
        if self.log_format not in LOG_FORMATS:
            raise ConfigurationError(f"Unknown log format {self.log_format!r}")

    @classmethod
    def from_env(cls) -> "TrackerConfig":
        """Create config from environment variables."""
        policy_name = os.getenv("EMI_ELAPSED_POLICY", ElapsedCountPolicy.CALENDAR_DAY.value)
        try:
            policy = ElapsedCountPolicy(policy_name.lower())
        except ValueError:
            raise ConfigurationError(f"Unknown elapsed-count policy {policy_name!r}") from None

        schedule = ScheduleConfig(
            elapsed_policy=policy,
            reconcile_status=os.getenv("EMI_RECONCILE_STATUS", "true").lower() == "true",
            reconcile_workers=_int_env("EMI_RECONCILE_WORKERS", "1"),
        )

        storage = StorageConfig(
            backend=os.getenv("EMI_STORE_BACKEND", "memory").lower(),
            json_path=Path(os.getenv("EMI_STORE_PATH", "emis.json")),
            pretty_json=os.getenv("EMI_PRETTY_JSON", "false").lower() == "true",
        )

        config = cls(
            schedule=schedule,
            storage=storage,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "standard").lower(),
            seed=_int_env("SEED", None),
        )
        config.validate()
        return config


def _int_env(name: str, default: str | None) -> int | None:
    value = os.getenv(name, default)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from None
