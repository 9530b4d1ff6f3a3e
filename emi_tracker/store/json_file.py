"""JSON file document store for loans."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Callable

from emi_tracker.exceptions import StoreError
from emi_tracker.store.memory import InMemoryBackend

logger = logging.getLogger(__name__)


class JsonFileBackend(InMemoryBackend):
    """Loan store persisted as one JSON object keyed by loan id.

    The whole file is rewritten after every mutation.
    """

    def __init__(
        self,
        path: str | Path,
        pretty: bool = False,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """Initialize JSON file store.

        Parameters
        ----------
        path : str | Path
            JSON file to read and write; created on first write.
        pretty : bool
            Pretty-print JSON output.
        clock : Callable[[], datetime]
            Source of creation timestamps.
        """
        self.path = Path(path)
        self.pretty = pretty
        documents = {}
        if self.path.exists():
            with open(self.path, encoding="utf-8") as f:
                documents = json.load(f)
            if not isinstance(documents, dict):
                raise StoreError(f"{self.path} must contain a JSON object keyed by loan id")
            logger.info("Loaded %d loans from %s", len(documents), self.path)
        super().__init__(documents, clock=clock)

    def _persist(self, documents: dict[str, dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            if self.pretty:
                json.dump(documents, f, indent=2, ensure_ascii=False, default=str)
            else:
                json.dump(documents, f, ensure_ascii=False, default=str)
        tmp_path.replace(self.path)
