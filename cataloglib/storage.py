"""JSON list persistence for the product catalog.

The whole catalog lives in one JSON document holding an ordered list of
records. ``ListStore`` keeps that document crash-safe (atomic replace after
``fsync``), keeps a configurable number of rotating ``.bakN`` copies and
serializes every read-modify-write cycle behind a single lock so two writers
in the same process can never lose each other's changes.

A store pointed at a fresh location (no document, no backups) writes an empty
list once when it is created. After that the store never guesses: a document
that is missing or does not parse is reported as :class:`StoreError` on every
load until an operator repairs it, for example with :meth:`ListStore.restore_backup`.
"""
from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Sequence

from .errors import StoreError

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


class ListStore:
    """JSON list store with atomic writes, rotating backups and a writer lock."""

    def __init__(
        self,
        path: Path | str,
        backups: int = 3,
        *,
        label: str = "records",
    ) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.backups = max(0, backups)
        self.label = label
        self._lock = threading.RLock()
        if not self.path.exists() and not any(p.exists() for p in self._backup_paths()):
            logger.info("Initialising empty %s at %s", self.label, self.path)
            self._write_json(self.path, [])

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------
    def _backup_path(self, index: int) -> Path:
        return self.path.with_suffix(self.path.suffix + f".bak{index}")

    def _backup_paths(self) -> list[Path]:
        return [self._backup_path(idx) for idx in range(1, self.backups + 1)]

    def _parse(self, path: Path) -> List[Record]:
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StoreError(f"Unable to read {self.label} from {path.name}: {exc}") from exc
        if not raw.strip():
            raise StoreError(f"{path.name} is empty")
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StoreError(f"{path.name} is not valid JSON: {exc}") from exc
        if not isinstance(data, list):
            raise StoreError(f"{path.name} must hold a JSON list")
        if not all(isinstance(item, dict) for item in data):
            raise StoreError(f"{path.name} contains entries that are not objects")
        return data

    def _write_json(self, path: Path, data: Sequence[Record]) -> None:
        payload = json.dumps(list(data), indent=2, ensure_ascii=False)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            with tmp_path.open("w", encoding="utf-8") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, path)
        except OSError as exc:
            raise StoreError(f"Unable to write {self.label}: {exc}") from exc
        finally:
            tmp_path.unlink(missing_ok=True)

    def _rotate_backups(self) -> None:
        if self.backups <= 0 or not self.path.exists():
            return
        for idx in range(self.backups, 0, -1):
            src = self.path if idx == 1 else self._backup_path(idx - 1)
            dest = self._backup_path(idx)
            if not src.exists():
                continue
            try:
                if src == self.path:
                    # Copy rather than move so the primary is never absent.
                    dest.write_bytes(src.read_bytes())
                else:
                    os.replace(src, dest)
            except OSError as exc:
                logger.warning("Could not rotate %s backup %s: %s", self.label, dest.name, exc)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def lock(self) -> threading.RLock:
        """The writer lock; re-entrant so callers can group several cycles."""

        return self._lock

    def load(self) -> List[Record]:
        """Return every record, or raise :class:`StoreError` if unreadable."""

        with self._lock:
            if not self.path.exists():
                existing = [p.name for p in self._backup_paths() if p.exists()]
                hint = f" (backups: {', '.join(existing)})" if existing else ""
                raise StoreError(f"{self.path.name} is missing{hint}")
            try:
                return self._parse(self.path)
            except StoreError:
                logger.error(
                    "%s document %s is unreadable; run restore to recover from a backup",
                    self.label,
                    self.path,
                )
                raise

    def save(self, items: Iterable[Record]) -> List[Record]:
        snapshot = [dict(item) for item in items]
        with self._lock:
            self._rotate_backups()
            self._write_json(self.path, snapshot)
        return snapshot

    def mutate(
        self,
        mutator: Callable[[List[Record]], Iterable[Record] | None],
    ) -> List[Record]:
        """Run ``mutator`` against the current records and persist the result.

        The load, the edit and the write happen while holding the store lock.
        ``mutator`` may edit the list in place (returning ``None``) or return a
        replacement. Any exception it raises aborts the cycle before anything
        is written.
        """

        with self._lock:
            snapshot = self.load()
            outcome = mutator(snapshot)
            updated = snapshot if outcome is None else list(outcome)
            return self.save(updated)

    def restore_backup(self) -> List[Record]:
        """Replace the primary document with the newest readable backup."""

        with self._lock:
            for candidate in self._backup_paths():
                if not candidate.exists():
                    continue
                try:
                    data = self._parse(candidate)
                except StoreError as exc:
                    logger.warning("Skipping %s backup %s: %s", self.label, candidate.name, exc)
                    continue
                self._write_json(self.path, data)
                logger.warning("Recovered %s from backup %s", self.label, candidate.name)
                return data
        raise StoreError(f"No readable backup found for {self.path.name}")
