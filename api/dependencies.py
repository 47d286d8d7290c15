from functools import lru_cache

from fastapi import Depends

from core.config import settings
from core.database import DocumentStoreInterface, MongoDocumentStore
from core.memory_database import InMemoryDocumentStore
from core.reconciler import Reconciler
from core.reference_manager import SCP_KEY, ReferenceManager


@lru_cache(maxsize=1)
def get_document_store() -> DocumentStoreInterface:
    """Process-wide store handle, built on first use. Overridden in tests."""
    if settings.STORE_BACKEND == "memory":
        store = InMemoryDocumentStore()
    else:
        store = MongoDocumentStore(settings.MONGO_URI, settings.MONGO_DB_NAME, timeout_ms=settings.MONGO_TIMEOUT_MS)
    store.ensure_unique_index(settings.SCP_COLLECTION, SCP_KEY)
    return store


def get_reference_manager(store: DocumentStoreInterface = Depends(get_document_store)) -> ReferenceManager:
    return ReferenceManager(
        store,
        scp_collection=settings.SCP_COLLECTION,
        tale_collection=settings.TALE_COLLECTION,
        delete_policy=settings.ENTITY_DELETE_POLICY,
    )


def get_reconciler(store: DocumentStoreInterface = Depends(get_document_store)) -> Reconciler:
    return Reconciler(
        store,
        scp_collection=settings.SCP_COLLECTION,
        tale_collection=settings.TALE_COLLECTION,
    )
