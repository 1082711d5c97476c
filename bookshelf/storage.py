# bookshelf/storage.py
"""
Entity store for authors and books.

Records live in memory, one ``Repository`` per collection. When a data
file is configured, ``CatalogStore`` loads it at start-up and writes the
full snapshot back after every ``save`` or ``delete``. There is no unit of
work: nothing is written unless one of those two calls is made.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, Generic, List, Optional, Tuple, Type, TypeVar

from pydantic import ValidationError

from .models import Author, Book, Entity


logger = logging.getLogger(__name__)

EntityT = TypeVar("EntityT", bound=Entity)


class Repository(Generic[EntityT]):
    """In-memory collection of one entity type, ordered by id."""

    def __init__(self, model: Type[EntityT], lock: threading.RLock):
        self.model = model
        self._lock = lock
        self._records: Dict[int, EntityT] = {}
        self._next_id = 1

    def find_by_id(self, entity_id: int) -> Optional[EntityT]:
        with self._lock:
            record = self._records.get(entity_id)
            return record.model_copy() if record is not None else None

    def find_all(self) -> List[EntityT]:
        with self._lock:
            return [self._records[k].model_copy() for k in sorted(self._records)]

    def find_page(self, offset: int, limit: int) -> List[EntityT]:
        """Return at most ``limit`` records starting at ``offset``.

        Parameters
        ----------
        offset : int
            Number of records to skip, in id order.
        limit : int
            Maximum number of records to return.
        """
        if offset < 0 or limit < 1:
            raise ValueError("offset must be >= 0 and limit >= 1")
        with self._lock:
            ids = sorted(self._records)[offset:offset + limit]
            return [self._records[k].model_copy() for k in ids]

    def count(self) -> int:
        with self._lock:
            return len(self._records)

    def save(self, entity: EntityT) -> EntityT:
        """Insert or replace ``entity``; a new id is assigned when it has none."""
        with self._lock:
            if entity.id is None:
                entity.id = self._next_id
            self._next_id = max(self._next_id, entity.id + 1)
            self._records[entity.id] = entity.model_copy()
            return entity

    def delete(self, entity_id: int) -> bool:
        with self._lock:
            return self._records.pop(entity_id, None) is not None

    # Snapshot helpers used by CatalogStore persistence
    def snapshot(self) -> Tuple[Dict[int, EntityT], int]:
        with self._lock:
            return dict(self._records), self._next_id

    def restore(self, state: Tuple[Dict[int, EntityT], int]) -> None:
        with self._lock:
            records, next_id = state
            self._records = dict(records)
            self._next_id = next_id

    def dump(self) -> List[dict]:
        with self._lock:
            return [self._records[k].model_dump() for k in sorted(self._records)]

    def load(self, rows: List[dict]) -> None:
        with self._lock:
            self._records.clear()
            self._next_id = 1
            for row in rows:
                entity = self.model.model_validate(row)
                if entity.id is None:
                    entity.id = self._next_id
                self._records[entity.id] = entity
                self._next_id = max(self._next_id, entity.id + 1)


class CatalogStore:
    """Authors and books, optionally mirrored to a JSON file."""

    def __init__(self, data_file: Optional[Path] = None):
        # One lock for both collections so a snapshot is consistent.
        self._lock = threading.RLock()
        self.authors: Repository[Author] = Repository(Author, self._lock)
        self.books: Repository[Book] = Repository(Book, self._lock)
        self.data_file = Path(data_file) if data_file else None
        if self.data_file is not None:
            self._load()

    def books_by_author(self, author_id: int) -> List[Book]:
        return [b for b in self.books.find_all() if b.author_id == author_id]

    def save(self, entity: Entity) -> Entity:
        """Persist ``entity``.

        If the data file cannot be written the in-memory change is undone
        and the ``OSError`` propagates.
        """
        repository = self._repository_for(entity)
        with self._lock:
            previous = repository.snapshot()
            saved = repository.save(entity)
            self._flush_or_restore(repository, previous)
        return saved

    def delete(self, entity: Entity) -> bool:
        repository = self._repository_for(entity)
        with self._lock:
            previous = repository.snapshot()
            removed = repository.delete(entity.id)
            if removed:
                self._flush_or_restore(repository, previous)
        return removed

    def _flush_or_restore(self, repository: Repository, previous) -> None:
        try:
            self._flush()
        except OSError:
            repository.restore(previous)
            raise

    def _repository_for(self, entity: Entity) -> Repository:
        if isinstance(entity, Author):
            return self.authors
        if isinstance(entity, Book):
            return self.books
        raise TypeError(f"No repository for {type(entity).__name__}")

    def _load(self) -> None:
        """Read the data file into memory.

        A missing file means an empty catalog. A malformed one is logged and
        also treated as empty, so the service can still start.
        """
        if not self.data_file.exists():
            return
        try:
            with self.data_file.open("r", encoding="utf-8") as f:
                data = json.load(f)
            self.authors.load(data.get("authors", []))
            self.books.load(data.get("books", []))
        except (OSError, ValueError, AttributeError, ValidationError) as exc:
            logger.warning("Could not load catalog from %s: %s", self.data_file, exc)
            self.authors.load([])
            self.books.load([])

    def _flush(self) -> None:
        """Write the snapshot to a temp file, then move it over the data file.

        The data file is either the old snapshot or the new one, never a
        partial write.
        """
        if self.data_file is None:
            return
        self.data_file.parent.mkdir(parents=True, exist_ok=True)
        snapshot = {"authors": self.authors.dump(), "books": self.books.dump()}
        fd, tmp_name = tempfile.mkstemp(
            dir=str(self.data_file.parent), prefix=f".{self.data_file.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(snapshot, f, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self.data_file)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
