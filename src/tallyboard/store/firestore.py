"""Cloud Firestore REST client implementing the entity store interface."""

from __future__ import annotations

import asyncio
import math
from collections.abc import Mapping
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any, Protocol, cast

import httpx
import structlog

from tallyboard.config import get_settings
from tallyboard.store.base import (
    Collection,
    NotFoundError,
    OrderBy,
    Predicate,
    Record,
    StoreError,
)

logger = structlog.get_logger(__name__)

_FIELD_OPERATORS = {
    "==": "EQUAL",
    "<": "LESS_THAN",
    "<=": "LESS_THAN_OR_EQUAL",
    ">": "GREATER_THAN",
    ">=": "GREATER_THAN_OR_EQUAL",
}

_SPECIAL_DOUBLES = {"NaN": math.nan, "Infinity": math.inf, "-Infinity": -math.inf}


class RateLimitError(StoreError):
    """Rate limit exceeded."""

    pass


class TokenSource(Protocol):
    """Supplies the bearer token for requests (see `tallyboard.auth.IdentityClient`)."""

    async def id_token(self) -> str | None:
        ...

    async def refresh_tokens(self) -> None:
        ...


# === Value codec ===


def encode_value(value: Any) -> dict[str, Any]:
    """Encode a Python value as a Firestore typed value."""
    if isinstance(value, Enum):
        value = value.value
    if value is None:
        return {"nullValue": None}
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        if math.isnan(value):
            return {"doubleValue": "NaN"}
        if math.isinf(value):
            return {"doubleValue": "Infinity" if value > 0 else "-Infinity"}
        return {"doubleValue": value}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        stamp = value.astimezone(UTC).isoformat().replace("+00:00", "Z")
        return {"timestampValue": stamp}
    if isinstance(value, date):
        return {"stringValue": value.isoformat()}
    if isinstance(value, Mapping):
        return {"mapValue": {"fields": encode_fields(value)}}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [encode_value(v) for v in value]}}
    raise TypeError(f"Cannot store value of type {type(value).__name__}")


def encode_fields(record: Mapping[str, Any]) -> dict[str, Any]:
    return {key: encode_value(v) for key, v in record.items() if key != "id"}


def decode_value(value: Mapping[str, Any]) -> Any:
    """Decode a Firestore typed value into a Python value."""
    if "nullValue" in value:
        return None
    if "booleanValue" in value:
        return bool(value["booleanValue"])
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        raw = value["doubleValue"]
        if isinstance(raw, str):
            return _SPECIAL_DOUBLES[raw] if raw in _SPECIAL_DOUBLES else float(raw)
        return float(raw)
    if "stringValue" in value:
        return value["stringValue"]
    if "timestampValue" in value:
        return datetime.fromisoformat(value["timestampValue"])
    if "mapValue" in value:
        return decode_fields(value["mapValue"].get("fields", {}))
    if "arrayValue" in value:
        return [decode_value(v) for v in value["arrayValue"].get("values", [])]
    # referenceValue, geoPointValue, bytesValue: pass through untouched
    return next(iter(value.values()), None)


def decode_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    return {key: decode_value(v) for key, v in fields.items()}


def id_from_name(name: str) -> str:
    """Last path segment of a document resource name."""
    return name.rsplit("/", 1)[-1]


def decode_document(document: Mapping[str, Any]) -> Record:
    record = decode_fields(document.get("fields", {}))
    record["id"] = id_from_name(document["name"])
    return record


def build_structured_query(
    collection: Collection,
    predicates: list[Predicate] | None = None,
    order_by: OrderBy | None = None,
) -> dict[str, Any]:
    """Build a runQuery structuredQuery body."""
    query: dict[str, Any] = {"from": [{"collectionId": Collection(collection).value}]}

    filters = [
        {
            "fieldFilter": {
                "field": {"fieldPath": p.field},
                "op": _FIELD_OPERATORS[p.op],
                "value": encode_value(p.value),
            }
        }
        for p in predicates or []
    ]
    if len(filters) == 1:
        query["where"] = filters[0]
    elif filters:
        query["where"] = {"compositeFilter": {"op": "AND", "filters": filters}}

    if order_by is not None:
        query["orderBy"] = [
            {
                "field": {"fieldPath": order_by.field},
                "direction": "DESCENDING" if order_by.descending else "ASCENDING",
            }
        ]
    return {"structuredQuery": query}


class FirestoreStore:
    """Async entity store backed by the Firestore REST API."""

    def __init__(
        self,
        project_id: str | None = None,
        api_key: str | None = None,
        database: str | None = None,
        base_url: str | None = None,
        tokens: TokenSource | None = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.firestore_url).rstrip("/")
        self._project_id = project_id or settings.firebase_project_id
        self._api_key = api_key or settings.firebase_api_key.get_secret_value()
        self._database = database or settings.firestore_database
        self._timeout = settings.request_timeout
        self._max_retries = settings.store_max_retries
        self._tokens = tokens

        self._client: httpx.AsyncClient | None = None

    @property
    def documents_path(self) -> str:
        return f"/projects/{self._project_id}/databases/{self._database}/documents"

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self._timeout),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "FirestoreStore":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _get_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = await self._tokens.id_token() if self._tokens else None
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    # === Generic Request Method ===

    async def _request(
        self,
        method: str,
        path: str,
        params: list[tuple[str, str]] | None = None,
        json: dict[str, Any] | None = None,
        retry_count: int = 0,
    ) -> Any:
        """Make an authenticated request; raise StoreError on failure."""
        client = await self._get_client()
        query_params = list(params or []) + [("key", self._api_key)]

        try:
            response = await client.request(
                method=method,
                url=path,
                params=query_params,
                json=json,
                headers=await self._get_headers(),
            )

            if response.status_code == 401 and self._tokens and retry_count < 1:
                # Token expired during request, refresh and retry once
                await self._tokens.refresh_tokens()
                return await self._request(method, path, params, json, retry_count + 1)

            if response.status_code == 404:
                raise NotFoundError(f"Not found: {path}", status_code=404)

            if response.status_code == 429:
                retry_after = int(response.headers.get("Retry-After", "60"))
                raise RateLimitError(
                    f"Rate limited, retry after {retry_after}s",
                    status_code=429,
                    details={"retry_after": retry_after},
                )

            if response.status_code >= 400:
                try:
                    error_detail = response.json() if response.content else {}
                except Exception:
                    error_detail = {
                        "raw": response.text[:500] if response.text else "empty response"
                    }
                raise StoreError(
                    f"Firestore error: {response.status_code}",
                    status_code=response.status_code,
                    details=error_detail,
                )

            return response.json() if response.content else {}

        except httpx.RequestError as e:
            if retry_count < self._max_retries:
                await asyncio.sleep(2**retry_count)
                return await self._request(method, path, params, json, retry_count + 1)
            raise StoreError(f"Request failed: {e}") from e

    # === Entity store operations ===

    async def create(
        self, collection: Collection, record: Record, document_id: str | None = None
    ) -> str:
        params = [("documentId", document_id)] if document_id else None
        result = await self._request(
            "POST",
            f"{self.documents_path}/{Collection(collection).value}",
            params=params,
            json={"fields": encode_fields(record)},
        )
        if not isinstance(result, dict) or "name" not in result:
            raise StoreError("Invalid create response format", details=result)
        new_id = id_from_name(result["name"])
        logger.debug("document_created", collection=Collection(collection).value, id=new_id)
        return new_id

    async def get(self, collection: Collection, document_id: str) -> Record | None:
        try:
            result = await self._request(
                "GET", f"{self.documents_path}/{Collection(collection).value}/{document_id}"
            )
        except NotFoundError:
            return None
        return decode_document(cast(dict[str, Any], result))

    async def query(
        self,
        collection: Collection,
        predicates: list[Predicate] | None = None,
        order_by: OrderBy | None = None,
    ) -> list[Record]:
        result = await self._request(
            "POST",
            f"{self.documents_path}:runQuery",
            json=build_structured_query(collection, predicates, order_by),
        )
        if not isinstance(result, list):
            raise StoreError("Invalid runQuery response format", details=result)
        # Rows without "document" only carry readTime
        return [decode_document(row["document"]) for row in result if "document" in row]

    async def update(self, collection: Collection, document_id: str, partial: Record) -> None:
        fields = encode_fields(partial)
        params = [("updateMask.fieldPaths", name) for name in fields]
        params.append(("currentDocument.exists", "true"))
        await self._request(
            "PATCH",
            f"{self.documents_path}/{Collection(collection).value}/{document_id}",
            params=params,
            json={"fields": fields},
        )

    async def delete(self, collection: Collection, document_id: str) -> None:
        await self._request(
            "DELETE", f"{self.documents_path}/{Collection(collection).value}/{document_id}"
        )
