"""Entity store interface and its Firestore and in-memory backends."""

from tallyboard.store.base import (
    Collection,
    EntityStore,
    NotFoundError,
    OrderBy,
    Predicate,
    Record,
    StoreError,
    where,
)
from tallyboard.store.firestore import FirestoreStore, RateLimitError
from tallyboard.store.memory import InMemoryStore

__all__ = [
    # Interface
    "EntityStore",
    "Collection",
    "Record",
    "Predicate",
    "OrderBy",
    "where",
    # Errors
    "StoreError",
    "NotFoundError",
    "RateLimitError",
    # Backends
    "FirestoreStore",
    "InMemoryStore",
]
