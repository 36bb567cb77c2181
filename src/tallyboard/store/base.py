"""Entity store interface shared by the Firestore and in-memory backends."""

from __future__ import annotations

import operator
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

Record = dict[str, Any]


class Collection(str, Enum):
    """Collections held by the store."""

    ACCOUNTS = "accounts"
    ENTRIES = "entries"
    AGENTS = "agents"
    USERS = "users"


class StoreError(Exception):
    """Base exception for entity store failures."""

    def __init__(self, message: str, status_code: int | None = None, details: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class NotFoundError(StoreError):
    """The document to update does not exist."""

    pass


# Comparison operators accepted in query predicates
OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


@dataclass(frozen=True)
class Predicate:
    """A single field comparison; predicates in a query are ANDed."""

    field: str
    op: str
    value: Any

    def __post_init__(self) -> None:
        if self.op not in OPERATORS:
            raise ValueError(f"Unsupported operator: {self.op!r}")

    def matches(self, record: Record) -> bool:
        if self.field not in record:
            return False
        try:
            return OPERATORS[self.op](record[self.field], self.value)
        except TypeError:
            return False


def where(field: str, op: str, value: Any) -> Predicate:
    return Predicate(field, op, value)


@dataclass(frozen=True)
class OrderBy:
    field: str
    descending: bool = False


class EntityStore(Protocol):
    """Document store consumed by the services.

    Records are plain dicts keyed by stored field names; reads return them
    with the document id under "id".
    """

    async def create(
        self, collection: Collection, record: Record, document_id: str | None = None
    ) -> str:
        """Insert a document and return its id."""
        ...

    async def get(self, collection: Collection, document_id: str) -> Record | None:
        """Return the document, or None when it does not exist."""
        ...

    async def query(
        self,
        collection: Collection,
        predicates: list[Predicate] | None = None,
        order_by: OrderBy | None = None,
    ) -> list[Record]:
        ...

    async def update(self, collection: Collection, document_id: str, partial: Record) -> None:
        """Merge fields into an existing document."""
        ...

    async def delete(self, collection: Collection, document_id: str) -> None:
        ...
