import copy
import threading
from collections import OrderedDict
from typing import List, Dict, Any
from uuid import uuid4

from core.database import DocumentStoreInterface
from core.errors import DuplicateKeyError
from core.logger import get_logger

logger = get_logger(__name__)


class InMemoryDocumentStore(DocumentStoreInterface):
    """
    Process-local implementation of the DocumentStoreInterface.
    Used by the test suite and for running the API without a MongoDB server.
    Every single-document operation runs under one lock, so set-add and pull
    are atomic per document just like in MongoDB.
    """
    def __init__(self):
        self._collections: Dict[str, "OrderedDict[str, Dict[str, Any]]"] = {}
        self._unique: Dict[str, set] = {}
        self._lock = threading.RLock()
        logger.info("Configured in-memory document store.")

    def _collection(self, name: str) -> "OrderedDict[str, Dict[str, Any]]":
        return self._collections.setdefault(name, OrderedDict())

    @staticmethod
    def _matches(document: Dict[str, Any], filter: Dict[str, Any]) -> bool:
        for field, expected in filter.items():
            actual = document.get(field)
            if isinstance(actual, list) and not isinstance(expected, list):
                if expected not in actual:
                    return False
            elif actual != expected:
                return False
        return True

    def _first(self, collection: str, filter: Dict[str, Any]) -> Dict[str, Any] | None:
        docs = self._collection(collection)
        if isinstance(filter.get("_id"), str):
            doc = docs.get(filter["_id"])
            return doc if doc is not None and self._matches(doc, filter) else None
        return next((doc for doc in docs.values() if self._matches(doc, filter)), None)

    def _check_unique(self, collection: str, document: Dict[str, Any]):
        for field in self._unique.get(collection, ()):
            if field not in document:
                continue
            for other in self._collection(collection).values():
                if other["_id"] != document["_id"] and other.get(field) == document[field]:
                    raise DuplicateKeyError(f"Duplicate value {document[field]!r} for unique field '{collection}.{field}'.")

    def find_one(self, collection: str, filter: Dict[str, Any]) -> Dict[str, Any] | None:
        with self._lock:
            return copy.deepcopy(self._first(collection, filter))

    def find(self, collection: str, filter: Dict[str, Any], skip: int = 0, limit: int = 0) -> List[Dict[str, Any]]:
        with self._lock:
            matched = [doc for doc in self._collection(collection).values() if self._matches(doc, filter)]
            matched = matched[skip:skip + limit] if limit else matched[skip:]
            return copy.deepcopy(matched)

    def count_documents(self, collection: str, filter: Dict[str, Any]) -> int:
        with self._lock:
            return sum(1 for doc in self._collection(collection).values() if self._matches(doc, filter))

    def insert_one(self, collection: str, document: Dict[str, Any]) -> str:
        with self._lock:
            stored = copy.deepcopy(document)
            stored["_id"] = str(stored.get("_id") or uuid4().hex)
            if stored["_id"] in self._collection(collection):
                raise DuplicateKeyError(f"Duplicate _id {stored['_id']!r} in '{collection}'.")
            self._check_unique(collection, stored)
            self._collection(collection)[stored["_id"]] = stored
            return stored["_id"]

    def update_fields(self, collection: str, filter: Dict[str, Any], fields: Dict[str, Any]) -> int:
        with self._lock:
            doc = self._first(collection, filter)
            if doc is None:
                return 0
            updated = {**doc, **copy.deepcopy(fields)}
            if updated == doc:
                return 0
            self._check_unique(collection, updated)
            doc.update(copy.deepcopy(fields))
            return 1

    def add_to_set(self, collection: str, filter: Dict[str, Any], field: str, value: Any) -> int:
        with self._lock:
            doc = self._first(collection, filter)
            if doc is None:
                return 0
            values = doc.setdefault(field, [])
            if value in values:
                return 0
            values.append(value)
            return 1

    def pull(self, collection: str, filter: Dict[str, Any], field: str, value: Any) -> int:
        with self._lock:
            doc = self._first(collection, filter)
            if doc is None or value not in doc.get(field, []):
                return 0
            doc[field] = [v for v in doc[field] if v != value]
            return 1

    def delete_one(self, collection: str, filter: Dict[str, Any]) -> int:
        with self._lock:
            doc = self._first(collection, filter)
            if doc is None:
                return 0
            del self._collection(collection)[doc["_id"]]
            return 1

    def ensure_unique_index(self, collection: str, field: str):
        with self._lock:
            self._unique.setdefault(collection, set()).add(field)

    def close(self):
        with self._lock:
            self._collections.clear()
