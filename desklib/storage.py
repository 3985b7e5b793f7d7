"""Shared JSON storage helpers for the price desk.

The records dashboard keeps its whole data set in a single pretty-printed
JSON array. ``ListStore`` owns that file: reads fall back to rotating
``.bakN`` backups when the primary copy is unreadable, and writes go through a
temporary file that is fsynced and atomically swapped into place.
"""
from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Sequence

logger = logging.getLogger(__name__)


class StoreError(RuntimeError):
    """Raised when a persistence operation fails."""


class ListStore:
    """JSON list store with atomic writes and backup recovery.

    ``mutate`` runs a full read-modify-write under a lock owned by the store
    instance, so callers sharing one instance never interleave their writes.
    Separate processes (or separate instances on the same path) are not
    coordinated.
    """

    def __init__(
        self,
        path: Path | str,
        backups: int = 2,
        *,
        recovery_label: str | None = None,
    ) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.backups = max(0, backups)
        self._recovery_label = recovery_label or self.path.name
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------
    def _backup_path(self, index: int) -> Path:
        return self.path.with_suffix(self.path.suffix + f".bak{index}")

    def _candidate_paths(self) -> list[Path]:
        return [self.path] + [self._backup_path(idx) for idx in range(1, self.backups + 1)]

    def _read_json(self, path: Path) -> List[Dict[str, Any]] | None:
        if not path.exists():
            return None
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StoreError(str(exc)) from exc
        if not raw.strip():
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Ignoring unreadable JSON in %s", path.name)
            return None
        return data if isinstance(data, list) else None

    def _write_json(self, path: Path, data: Sequence[Dict[str, Any]]) -> None:
        payload = json.dumps(list(data), indent=2, ensure_ascii=False) + "\n"
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            with tmp_path.open("w", encoding="utf-8") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, path)
        except OSError as exc:
            raise StoreError(str(exc)) from exc
        finally:
            tmp_path.unlink(missing_ok=True)

    def _rotate_backups(self) -> None:
        if self.backups <= 0 or not self.path.exists():
            return
        for idx in range(self.backups, 0, -1):
            src = self.path if idx == 1 else self._backup_path(idx - 1)
            if not src.exists():
                continue
            try:
                if idx == 1:
                    # Primary stays in place until _write_json replaces it.
                    self._backup_path(1).write_bytes(src.read_bytes())
                else:
                    os.replace(src, self._backup_path(idx))
            except OSError:
                logger.warning("Could not rotate backup %s", src.name)
                continue

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def exists(self) -> bool:
        return any(candidate.exists() for candidate in self._candidate_paths())

    def load(self) -> List[Dict[str, Any]]:
        """Return the stored list, recovering from a backup when needed.

        Raises ``StoreError`` when neither the primary file nor any backup
        holds a readable JSON array.
        """

        for candidate in self._candidate_paths():
            data = self._read_json(candidate)
            if data is not None:
                if candidate != self.path:
                    logger.warning(
                        "Recovered %s from backup %s", self._recovery_label, candidate.name
                    )
                return list(data)
        if not self.exists():
            raise StoreError(f"No {self._recovery_label} at {self.path}")
        raise StoreError(f"No readable {self._recovery_label} at {self.path}")

    def save(self, items: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
        snapshot = [dict(item) for item in items]
        with self._lock:
            self._rotate_backups()
            self._write_json(self.path, snapshot)
        return snapshot

    def mutate(
        self,
        mutator: Callable[[List[Dict[str, Any]]], Iterable[Dict[str, Any]] | None],
    ) -> List[Dict[str, Any]]:
        """Apply ``mutator`` to a fresh snapshot and persist the result.

        The mutator edits the list in place (returning ``None``) or returns a
        replacement iterable. Exceptions raised by the mutator abort the write.
        """

        with self._lock:
            snapshot = self.load()
            outcome = mutator(snapshot)
            if outcome is None:
                updated = snapshot
            else:
                updated = [dict(item) for item in outcome]
            self._rotate_backups()
            self._write_json(self.path, updated)
        return updated
