"""Repository classes encapsulating collection operations.

Each repository wraps one collection of the `DocumentStore`. Mutations
are whole-collection round trips (load, modify in memory, save) and always
run under the collection lock so concurrent requests cannot lose updates
or slip a duplicate key past the uniqueness check. Reads go straight to
the store, which only ever exposes complete files.
"""

import logging
import uuid
from typing import List, Optional

from passlib.context import CryptContext

from . import models
from .errors import (
    DuplicateKeyError,
    InvalidCredentialsError,
    NotFoundError,
    RecordValidationError,
)
from .storage import DocumentStore

logger = logging.getLogger("library_api.repositories")


class CollectionRepository:
    """CRUD by unique key over a single JSON collection."""
    def __init__(self, store: DocumentStore, spec: models.CollectionSpec):
        self.store = store
        self.spec = spec

    @property
    def collection(self) -> str:
        return self.spec.name

    def _index_of(self, records: List[dict], key: str) -> int:
        for idx, record in enumerate(records):
            if record.get(self.spec.key_field) == key:
                return idx
        return -1

    def _not_found(self, key: str) -> NotFoundError:
        return NotFoundError(f"{self.spec.entity_label} not found", key=key)

    def list_all(self) -> List[dict]:
        """Return every record in the collection."""
        return self.store.load(self.collection)

    def get(self, key: str) -> Optional[dict]:
        """Return the record with unique key `key` or `None`."""
        records = self.store.load(self.collection)
        idx = self._index_of(records, key)
        return records[idx] if idx >= 0 else None

    def find_by_key(self, key: str) -> dict:
        """Return the record with unique key `key` or raise `NotFoundError`."""
        record = self.get(key)
        if record is None:
            raise self._not_found(key)
        return record

    def insert(self, record: dict) -> dict:
        """Append a new record, enforcing key uniqueness.

        A surrogate `id` is assigned when the record has none. The check
        and the save happen under one lock acquisition.
        """
        key = record.get(self.spec.key_field)
        if not isinstance(key, str) or not key:
            raise RecordValidationError.for_field(self.spec.key_field, f"{self.spec.key_label} is required")
        new_record = dict(record)
        new_record.setdefault(models.ID_FIELD, uuid.uuid4().hex)
        with self.store.locked(self.collection):
            records = self.store.load(self.collection)
            if self._index_of(records, key) >= 0:
                raise DuplicateKeyError(f"{self.spec.key_label} already exists", key=key)
            records.append(new_record)
            self.store.save(self.collection, records)
        logger.info("record_inserted collection=%s key=%s", self.collection, key)
        return new_record

    def update(self, key: str, partial: dict) -> dict:
        """Shallow-merge `partial` over the stored record and return the result.

        Fields present in `partial` replace stored values, absent fields are
        kept. The surrogate id and the unique key cannot be changed.
        """
        key_field = self.spec.key_field
        if key_field in partial and partial[key_field] != key:
            raise RecordValidationError.for_field(key_field, f"{self.spec.key_label} cannot be changed")
        with self.store.locked(self.collection):
            records = self.store.load(self.collection)
            idx = self._index_of(records, key)
            if idx < 0:
                raise self._not_found(key)
            current = records[idx]
            if models.ID_FIELD in partial and partial[models.ID_FIELD] != current.get(models.ID_FIELD):
                raise RecordValidationError.for_field(models.ID_FIELD, "id cannot be changed")
            merged = {**current, **partial}
            records[idx] = merged
            self.store.save(self.collection, records)
        logger.info("record_updated collection=%s key=%s fields=%s", self.collection, key, sorted(partial))
        return merged

    def delete(self, key: str) -> dict:
        """Remove the record with unique key `key` and return it."""
        with self.store.locked(self.collection):
            records = self.store.load(self.collection)
            remaining = [r for r in records if r.get(self.spec.key_field) != key]
            if len(remaining) == len(records):
                raise self._not_found(key)
            removed = next(r for r in records if r.get(self.spec.key_field) == key)
            self.store.save(self.collection, remaining)
        logger.info("record_deleted collection=%s key=%s", self.collection, key)
        return removed


class StudentRepository(CollectionRepository):
    """Student records plus credential hashing and checking."""
    def __init__(self, store: DocumentStore, password_context: CryptContext):
        super().__init__(store, models.STUDENTS)
        self.password_context = password_context

    def register_with_credential(self, fields: dict, raw_secret: str) -> dict:
        """Hash `raw_secret` and insert a new student built from `fields`.

        Any `password` value already present in `fields` is discarded; only
        the hash is ever stored.
        """
        record = {k: v for k, v in fields.items() if k != models.CREDENTIAL_FIELD}
        record[models.CREDENTIAL_FIELD] = self.password_context.hash(raw_secret)
        return self.insert(record)

    def authenticate(self, admission_number: str, raw_secret: str) -> dict:
        """Return the student if `raw_secret` matches the stored hash.

        Unknown admission numbers still run a dummy hash verification.
        """
        student = self.get(admission_number)
        if student is None:
            self.password_context.dummy_verify()
            raise InvalidCredentialsError("Invalid admission number or password")
        stored = student.get(models.CREDENTIAL_FIELD)
        try:
            ok = isinstance(stored, str) and self.password_context.verify(raw_secret, stored)
        except (ValueError, TypeError):
            logger.warning("unusable credential hash for student %s", admission_number)
            ok = False
        if not ok:
            raise InvalidCredentialsError("Invalid admission number or password")
        return student


class BookRepository(CollectionRepository):
    """Book records keyed by ISBN."""
    def __init__(self, store: DocumentStore):
        super().__init__(store, models.BOOKS)
