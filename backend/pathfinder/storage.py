# backend/pathfinder/storage.py
"""
Storage backends.

Both backends expose the same four collections (candidates, submissions,
papers, assignments) through the ``Collection`` interface. Records are plain
JSON-serializable dicts whose keys match the fields in ``schemas.py``.

* ``SqlBackend`` talks to the remote database through SQLAlchemy.
* ``LocalBackend`` keeps each collection as one JSON array in its own file,
  read and rewritten whole on every operation.
"""
import json
import logging
import os
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, inspect
from sqlalchemy.orm.attributes import flag_modified

from . import models
from .db import Base, make_engine, make_session_factory

logger = logging.getLogger(__name__)

Record = Dict[str, Any]

# Fixed keys for the local store, one file per collection
LOCAL_KEYS = {
    "candidates": "pathfinder_candidates",
    "submissions": "pathfinder_submissions",
    "papers": "pathfinder_papers",
    "assignments": "pathfinder_assignments",
}


class Collection(ABC):
    key_field = "id"

    @abstractmethod
    def get(self, key: str) -> Optional[Record]:
        ...

    @abstractmethod
    def find(self, field: str, value: Any) -> Optional[Record]:
        """First record whose ``field`` equals ``value``."""

    @abstractmethod
    def all(self) -> List[Record]:
        ...

    @abstractmethod
    def put(self, record: Record) -> None:
        """Insert, or fully replace the record with the same key."""

    @abstractmethod
    def update(self, key: str, changes: Record) -> Optional[Record]:
        """Apply ``changes`` to an existing record. Returns None when missing."""

    @abstractmethod
    def merge(self, record: Record) -> None:
        """Create the record, or merge its fields into the existing one."""

    @abstractmethod
    def delete(self, key: str) -> None:
        ...

    @abstractmethod
    def delete_where(self, field: str, value: Any) -> int:
        ...


# -------------------- SQL --------------------
class SqlCollection(Collection):
    def __init__(self, session_factory, model):
        self.session_factory = session_factory
        self.model = model
        self.key_field = inspect(model).primary_key[0].name
        self.columns = [c.name for c in model.__table__.columns]
        self.json_columns = {
            c.name for c in model.__table__.columns if isinstance(c.type, JSON)
        }

    @contextmanager
    def _session(self):
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _to_dict(self, row) -> Record:
        return {c: getattr(row, c) for c in self.columns}

    def _assign(self, row, changes: Record):
        for field, value in changes.items():
            if field not in self.columns or field == self.key_field:
                continue
            setattr(row, field, value)
            if field in self.json_columns:
                flag_modified(row, field)

    def get(self, key):
        with self._session() as session:
            row = session.get(self.model, key)
            return self._to_dict(row) if row is not None else None

    def find(self, field, value):
        with self._session() as session:
            row = session.query(self.model).filter(
                getattr(self.model, field) == value
            ).first()
            return self._to_dict(row) if row is not None else None

    def all(self):
        with self._session() as session:
            return [self._to_dict(row) for row in session.query(self.model).all()]

    def put(self, record):
        with self._session() as session:
            session.merge(self.model(**{c: record.get(c) for c in self.columns}))

    def update(self, key, changes):
        with self._session() as session:
            row = session.get(self.model, key)
            if row is None:
                return None
            self._assign(row, changes)
            session.flush()
            return self._to_dict(row)

    def merge(self, record):
        key = record[self.key_field]
        with self._session() as session:
            row = session.get(self.model, key)
            if row is None:
                session.add(self.model(**{c: record.get(c) for c in self.columns}))
            else:
                self._assign(row, record)

    def delete(self, key):
        with self._session() as session:
            row = session.get(self.model, key)
            if row is not None:
                session.delete(row)

    def delete_where(self, field, value):
        with self._session() as session:
            return session.query(self.model).filter(
                getattr(self.model, field) == value
            ).delete(synchronize_session=False)


# -------------------- LOCAL --------------------
class LocalCollection(Collection):
    def __init__(self, path: Path, key_field: str = "id"):
        self.path = Path(path)
        self.key_field = key_field

    def _load(self) -> List[Record]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "[]")
        except (OSError, ValueError) as e:
            logger.warning("Unreadable local collection %s, treating as empty: %s", self.path, e)
            return []
        return data if isinstance(data, list) else []

    def _save(self, records: List[Record]):
        tmp = self.path.with_suffix(".tmp")
        tmp.write_text(json.dumps(records), encoding="utf-8")
        os.replace(tmp, self.path)

    def _index(self, records, key) -> int:
        for i, r in enumerate(records):
            if r.get(self.key_field) == key:
                return i
        return -1

    def get(self, key):
        records = self._load()
        idx = self._index(records, key)
        return records[idx] if idx >= 0 else None

    def find(self, field, value):
        return next((r for r in self._load() if r.get(field) == value), None)

    def all(self):
        return self._load()

    def put(self, record):
        records = self._load()
        idx = self._index(records, record[self.key_field])
        if idx >= 0:
            records[idx] = dict(record)
        else:
            records.append(dict(record))
        self._save(records)

    def update(self, key, changes):
        records = self._load()
        idx = self._index(records, key)
        if idx < 0:
            return None
        changes = {k: v for k, v in changes.items() if k != self.key_field}
        records[idx] = {**records[idx], **changes}
        self._save(records)
        return records[idx]

    def merge(self, record):
        records = self._load()
        idx = self._index(records, record[self.key_field])
        if idx >= 0:
            records[idx] = {**records[idx], **record}
        else:
            records.append(dict(record))
        self._save(records)

    def delete(self, key):
        self.delete_where(self.key_field, key)

    def delete_where(self, field, value):
        records = self._load()
        kept = [r for r in records if r.get(field) != value]
        removed = len(records) - len(kept)
        if removed:
            self._save(kept)
        return removed


# -------------------- BACKENDS --------------------
class StorageBackend(ABC):
    mode = ""

    candidates: Collection
    submissions: Collection
    papers: Collection
    assignments: Collection

    @abstractmethod
    def prepare(self):
        """Make the backend ready to serve (tables, directories)."""

    def close(self):
        pass


class SqlBackend(StorageBackend):
    mode = "remote"

    def __init__(self, database_url: str):
        self.engine = make_engine(database_url)
        session_factory = make_session_factory(self.engine)
        self.candidates = SqlCollection(session_factory, models.Candidate)
        self.submissions = SqlCollection(session_factory, models.ExamSubmission)
        self.papers = SqlCollection(session_factory, models.QuestionPaper)
        self.assignments = SqlCollection(session_factory, models.ExamAssignment)

    def prepare(self):
        Base.metadata.create_all(bind=self.engine)

    def close(self):
        self.engine.dispose()


class LocalBackend(StorageBackend):
    mode = "local"

    def __init__(self, directory):
        self.directory = Path(directory)
        self.candidates = LocalCollection(self._path("candidates"))
        self.submissions = LocalCollection(self._path("submissions"), key_field="candidate_id")
        self.papers = LocalCollection(self._path("papers"))
        self.assignments = LocalCollection(self._path("assignments"))

    def _path(self, name: str) -> Path:
        return self.directory / f"{LOCAL_KEYS[name]}.json"

    def prepare(self):
        self.directory.mkdir(parents=True, exist_ok=True)
