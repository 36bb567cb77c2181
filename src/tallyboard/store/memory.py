"""In-memory entity store for tests, seeding dry runs and offline use."""

from __future__ import annotations

import copy
from uuid import uuid4

import structlog

from tallyboard.store.base import Collection, NotFoundError, OrderBy, Predicate, Record, StoreError

logger = structlog.get_logger(__name__)


class InMemoryStore:
    """Dict-backed store mirroring the query semantics of the document database.

    Ordering on a field drops documents that lack it, as Firestore does.
    Records are copied on the way in and out so callers cannot mutate state.
    """

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, Record]] = {}

    def _docs(self, collection: Collection | str) -> dict[str, Record]:
        return self._collections.setdefault(Collection(collection).value, {})

    @staticmethod
    def _with_id(document_id: str, record: Record) -> Record:
        result = copy.deepcopy(record)
        result["id"] = document_id
        return result

    async def create(
        self, collection: Collection, record: Record, document_id: str | None = None
    ) -> str:
        docs = self._docs(collection)
        document_id = document_id or uuid4().hex[:20]
        if document_id in docs:
            raise StoreError(
                f"Document already exists: {Collection(collection).value}/{document_id}", 409
            )
        body = copy.deepcopy(record)
        body.pop("id", None)
        docs[document_id] = body
        logger.debug("document_created", collection=Collection(collection).value, id=document_id)
        return document_id

    async def get(self, collection: Collection, document_id: str) -> Record | None:
        record = self._docs(collection).get(document_id)
        if record is None:
            return None
        return self._with_id(document_id, record)

    async def query(
        self,
        collection: Collection,
        predicates: list[Predicate] | None = None,
        order_by: OrderBy | None = None,
    ) -> list[Record]:
        predicates = predicates or []
        rows = [
            (doc_id, record)
            for doc_id, record in self._docs(collection).items()
            if all(p.matches(record) for p in predicates)
        ]
        if order_by is not None:
            rows = [row for row in rows if order_by.field in row[1]]
            rows.sort(key=lambda row: row[1][order_by.field], reverse=order_by.descending)
        return [self._with_id(doc_id, record) for doc_id, record in rows]

    async def update(self, collection: Collection, document_id: str, partial: Record) -> None:
        docs = self._docs(collection)
        if document_id not in docs:
            raise NotFoundError(f"No document {Collection(collection).value}/{document_id}", 404)
        changes = copy.deepcopy(partial)
        changes.pop("id", None)
        docs[document_id].update(changes)

    async def delete(self, collection: Collection, document_id: str) -> None:
        self._docs(collection).pop(document_id, None)

    def count(self, collection: Collection) -> int:
        return len(self._docs(collection))
