"""Helpers for managing the service records JSON store."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
import logging
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from desklib.storage import ListStore

from ..models import RecordModel, RecordPatchModel

logger = logging.getLogger(__name__)


class RecordNotFound(LookupError):
    """Raised when no record carries the requested identifier."""

    def __init__(self, record_id: str):
        super().__init__(f"No record with id {record_id!r}")
        self.record_id = record_id


@dataclass(slots=True)
class RecordCatalog:
    """High-level operations for the records JSON store."""

    path: str | Path
    backups: int = 2
    _store: ListStore = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._store = ListStore(self.path, backups=self.backups, recovery_label="records store")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def all(self) -> list[dict]:
        return self._store.load()

    def get(self, record_id: str) -> Optional[dict]:
        target = str(record_id)
        for item in self._store.load():
            if str(item.get("id")) == target:
                return item
        return None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def update(self, record_id: str, changes: Mapping[str, Any]) -> dict:
        """Shallow-merge ``changes`` into the matching record and persist.

        Raises ``RecordNotFound`` without touching the file when the id is
        unknown.
        """

        target = str(record_id)
        updated: dict = {}

        def mutator(items: list[dict]) -> None:
            for item in items:
                if str(item.get("id")) == target:
                    item.update(changes)
                    updated.update(item)
                    return
            raise RecordNotFound(target)

        self._store.mutate(mutator)
        logger.info("Updated record %s: %s", target, dict(changes))
        return updated

    def patch(self, record_id: str, payload: Mapping[str, Any]) -> dict:
        """Validate a ``{price, on_sale}`` payload and apply it.

        ``ValidationError`` and ``RecordNotFound`` propagate to the caller;
        neither one writes to the store.
        """

        patch = RecordPatchModel.model_validate(dict(payload))
        return self.update(record_id, patch.changes())

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------
    def check(self) -> list[str]:
        """Return a list of problems found in the stored records."""

        problems: list[str] = []
        items = self._store.load()
        for index, item in enumerate(items):
            try:
                RecordModel.model_validate(item)
            except ValidationError as err:
                fields = ", ".join(".".join(str(p) for p in e["loc"]) for e in err.errors())
                problems.append(f"record #{index} ({item.get('id', '?')}): invalid {fields}")
        counts = Counter(str(item.get("id")) for item in items)
        for record_id, count in counts.items():
            if count > 1:
                problems.append(f"duplicate id {record_id!r} ({count} records)")
        return problems
