"""In-process record store for tests and single-instance deployments."""

import logging
import threading
from collections import OrderedDict
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from src.api.errors import (
    ConcurrencyConflictError,
    DuplicateRecordError,
    RecordNotFoundError,
    ValidationError,
)
from src.api.models.domain import utcnow

from .base import COLLECTION_MODELS, DELETABLE_COLLECTIONS, MESSAGES, RecordStore, RecordT

logger = logging.getLogger(__name__)


class InMemoryRecordStore(RecordStore):
    """Dict-backed store guarded by a single lock."""

    def __init__(self):
        self._lock = threading.Lock()
        self._data: Dict[str, "OrderedDict[str, BaseModel]"] = {
            name: OrderedDict() for name in COLLECTION_MODELS
        }

    def _collection(self, collection: str) -> "OrderedDict[str, BaseModel]":
        if collection not in self._data:
            raise ValidationError(f"Unknown collection: {collection}")
        return self._data[collection]

    def get(self, collection: str, record_id: str) -> BaseModel:
        with self._lock:
            record = self._collection(collection).get(record_id)
            if record is None:
                raise RecordNotFoundError(collection, record_id)
            return record.model_copy(deep=True)

    def insert(self, collection: str, record: RecordT) -> RecordT:
        with self._lock:
            records = self._collection(collection)
            if record.id in records:
                raise DuplicateRecordError(collection, "id", record.id)
            if collection == MESSAGES and any(
                existing.message_id == record.message_id for existing in records.values()
            ):
                raise DuplicateRecordError(collection, "message_id", record.message_id)
            records[record.id] = record.model_copy(deep=True)
            return record.model_copy(deep=True)

    def update(
        self,
        collection: str,
        record_id: str,
        patch: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> BaseModel:
        with self._lock:
            records = self._collection(collection)
            current = records.get(record_id)
            if current is None:
                raise RecordNotFoundError(collection, record_id)

            version = getattr(current, "version", None)
            if expected_version is not None and version != expected_version:
                logger.info(
                    f"Version conflict on {collection}/{record_id}: "
                    f"expected {expected_version}, found {version}"
                )
                raise ConcurrencyConflictError(record_id, expected_version, version)

            changes = dict(patch)
            if version is not None:
                changes["version"] = version + 1
            if "updated_at" in type(current).model_fields:
                changes["updated_at"] = utcnow()

            updated = current.model_copy(update=changes).model_copy(deep=True)
            records[record_id] = updated
            return updated.model_copy(deep=True)

    def list_by(self, collection: str, **filters: Any) -> List[BaseModel]:
        with self._lock:
            return [
                record.model_copy(deep=True)
                for record in self._collection(collection).values()
                if all(getattr(record, key) == value for key, value in filters.items())
            ]

    def delete(self, collection: str, record_id: str) -> None:
        if collection not in DELETABLE_COLLECTIONS:
            raise ValidationError(f"Records in '{collection}' cannot be deleted")
        with self._lock:
            if self._collection(collection).pop(record_id, None) is None:
                raise RecordNotFoundError(collection, record_id)
