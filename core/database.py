# /core/database.py

from abc import ABC, abstractmethod
from typing import List, Dict, Any

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, MongoClient
from pymongo import errors as mongo_errors

from core.errors import DuplicateKeyError, StoreError
from core.logger import get_logger

logger = get_logger(__name__)


class DocumentStoreInterface(ABC):
    """
    An abstract base class defining the standard interface for interacting with a document store.

    Filters are flat ``{field: value}`` equality matches. A filter value matches an
    array field when the array contains it. Documents always carry an ``_id`` and
    are returned with that ``_id`` as a string.
    """
    @abstractmethod
    def find_one(self, collection: str, filter: Dict[str, Any]) -> Dict[str, Any] | None:
        pass

    @abstractmethod
    def find(self, collection: str, filter: Dict[str, Any], skip: int = 0, limit: int = 0) -> List[Dict[str, Any]]:
        """Returns matching documents in insertion order. ``limit=0`` means no limit."""
        pass

    @abstractmethod
    def count_documents(self, collection: str, filter: Dict[str, Any]) -> int:
        pass

    @abstractmethod
    def insert_one(self, collection: str, document: Dict[str, Any]) -> str:
        """Inserts a document and returns the identifier the store assigned to it."""
        pass

    @abstractmethod
    def update_fields(self, collection: str, filter: Dict[str, Any], fields: Dict[str, Any]) -> int:
        """Sets the named fields on the first match, leaving the others alone. Returns the modified count."""
        pass

    @abstractmethod
    def add_to_set(self, collection: str, filter: Dict[str, Any], field: str, value: Any) -> int:
        """Appends ``value`` to the array ``field`` unless it is already present."""
        pass

    @abstractmethod
    def pull(self, collection: str, filter: Dict[str, Any], field: str, value: Any) -> int:
        """Removes every occurrence of ``value`` from the array ``field``."""
        pass

    @abstractmethod
    def delete_one(self, collection: str, filter: Dict[str, Any]) -> int:
        pass

    @abstractmethod
    def ensure_unique_index(self, collection: str, field: str):
        pass

    @abstractmethod
    def close(self):
        pass


class MongoDocumentStore(DocumentStoreInterface):
    """Concrete implementation of the DocumentStoreInterface for MongoDB."""
    def __init__(self, uri: str, db_name: str, timeout_ms: int = 5000, client: MongoClient | None = None):
        if not uri:
            raise ValueError("MongoDB connection string not configured.")
        self._client = client or MongoClient(uri, serverSelectionTimeoutMS=timeout_ms)
        self._db = self._client[db_name]
        logger.info(f"Configured MongoDB store for database '{db_name}'.")

    @staticmethod
    def _to_query(filter: Dict[str, Any]) -> Dict[str, Any] | None:
        """Converts string ids to ObjectIds. Returns None when the id can never match."""
        query = dict(filter)
        if isinstance(query.get("_id"), str):
            try:
                query["_id"] = ObjectId(query["_id"])
            except InvalidId:
                return None
        return query

    @staticmethod
    def _from_mongo(document: Dict[str, Any] | None) -> Dict[str, Any] | None:
        if document is not None and "_id" in document:
            document["_id"] = str(document["_id"])
        return document

    def _run(self, operation: str, call):
        try:
            return call()
        except mongo_errors.DuplicateKeyError as e:
            raise DuplicateKeyError(f"{operation} violated a unique index: {e}") from e
        except mongo_errors.PyMongoError as e:
            logger.error(f"MongoDB {operation} failed: {e}", exc_info=True)
            raise StoreError(f"MongoDB {operation} failed: {e}") from e

    def find_one(self, collection: str, filter: Dict[str, Any]) -> Dict[str, Any] | None:
        query = self._to_query(filter)
        if query is None:
            return None
        document = self._run("find_one", lambda: self._db[collection].find_one(query))
        return self._from_mongo(document)

    def find(self, collection: str, filter: Dict[str, Any], skip: int = 0, limit: int = 0) -> List[Dict[str, Any]]:
        query = self._to_query(filter)
        if query is None:
            return []
        cursor_docs = self._run(
            "find",
            lambda: list(
                self._db[collection].find(query).sort("_id", ASCENDING).skip(skip).limit(limit)
            ),
        )
        return [self._from_mongo(doc) for doc in cursor_docs]

    def count_documents(self, collection: str, filter: Dict[str, Any]) -> int:
        query = self._to_query(filter)
        if query is None:
            return 0
        return self._run("count_documents", lambda: self._db[collection].count_documents(query))

    def insert_one(self, collection: str, document: Dict[str, Any]) -> str:
        # insert_one mutates its argument by adding _id
        payload = dict(document)
        result = self._run("insert_one", lambda: self._db[collection].insert_one(payload))
        return str(result.inserted_id)

    def _update(self, operation: str, collection: str, filter: Dict[str, Any], update: Dict[str, Any]) -> int:
        query = self._to_query(filter)
        if query is None:
            return 0
        result = self._run(operation, lambda: self._db[collection].update_one(query, update))
        return result.modified_count

    def update_fields(self, collection: str, filter: Dict[str, Any], fields: Dict[str, Any]) -> int:
        return self._update("update_fields", collection, filter, {"$set": fields})

    def add_to_set(self, collection: str, filter: Dict[str, Any], field: str, value: Any) -> int:
        return self._update("add_to_set", collection, filter, {"$addToSet": {field: value}})

    def pull(self, collection: str, filter: Dict[str, Any], field: str, value: Any) -> int:
        return self._update("pull", collection, filter, {"$pull": {field: value}})

    def delete_one(self, collection: str, filter: Dict[str, Any]) -> int:
        query = self._to_query(filter)
        if query is None:
            return 0
        result = self._run("delete_one", lambda: self._db[collection].delete_one(query))
        return result.deleted_count

    def ensure_unique_index(self, collection: str, field: str):
        self._run("create_index", lambda: self._db[collection].create_index(field, unique=True))
        logger.info(f"MongoDB unique index on '{collection}.{field}' ensured.")

    def close(self):
        self._client.close()
