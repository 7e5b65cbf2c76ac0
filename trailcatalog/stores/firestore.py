"""Firestore REST implementation of :class:`~trailcatalog.stores.base.DocumentStore`."""

from __future__ import annotations

import base64
import logging
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from typing import Any

import httpx

from trailcatalog.errors import (
    DocumentNotFoundError,
    PermanentStoreError,
    TransientStoreError,
)
from trailcatalog.stores.base import Document, StoreQuery

logger = logging.getLogger(__name__)

_TRANSIENT_STATUS_CODES = frozenset({409, 429, 500, 503, 504})
_TRANSIENT_RPC_STATUSES = frozenset({"ABORTED", "UNAVAILABLE", "DEADLINE_EXCEEDED"})


def decode_value(value: Mapping[str, Any]) -> Any:
    """Translate a Firestore typed value into a plain Python value."""

    if "nullValue" in value:
        return None
    if "booleanValue" in value:
        return bool(value["booleanValue"])
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "timestampValue" in value:
        return datetime.fromisoformat(value["timestampValue"].replace("Z", "+00:00"))
    if "stringValue" in value:
        return value["stringValue"]
    if "bytesValue" in value:
        return base64.b64decode(value["bytesValue"])
    if "referenceValue" in value:
        return value["referenceValue"]
    if "geoPointValue" in value:
        return dict(value["geoPointValue"])
    if "arrayValue" in value:
        return [decode_value(item) for item in value["arrayValue"].get("values", [])]
    if "mapValue" in value:
        return decode_fields(value["mapValue"].get("fields", {}))
    return None


def decode_fields(fields: Mapping[str, Mapping[str, Any]]) -> dict[str, Any]:
    return {name: decode_value(raw) for name, raw in fields.items()}


def encode_value(value: Any) -> dict[str, Any]:
    """Translate a Python value into a Firestore typed value."""

    if value is None:
        return {"nullValue": None}
    # bool is a subclass of int and must be checked first.
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        stamp = value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
        return {"timestampValue": stamp}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, bytes):
        return {"bytesValue": base64.b64encode(value).decode("ascii")}
    if isinstance(value, Mapping):
        return {"mapValue": {"fields": {str(k): encode_value(v) for k, v in value.items()}}}
    if isinstance(value, (list, tuple, set, frozenset)):
        return {"arrayValue": {"values": [encode_value(item) for item in value]}}
    raise TypeError(f"Unsupported Firestore value: {value!r}")


def _decode_document(payload: Mapping[str, Any]) -> Document:
    document = decode_fields(payload.get("fields", {}))
    document["id"] = str(payload["name"]).rsplit("/", 1)[-1]
    return document


def build_structured_query(query: StoreQuery) -> dict[str, Any]:
    """Render ``query`` as a ``structuredQuery`` body for ``:runQuery``."""

    structured: dict[str, Any] = {"from": [{"collectionId": query.collection}]}
    field_filters = [
        {
            "fieldFilter": {
                "field": {"fieldPath": item.field_path},
                "op": "EQUAL",
                "value": encode_value(item.value),
            }
        }
        for item in query.filters
    ]
    if len(field_filters) == 1:
        structured["where"] = field_filters[0]
    elif field_filters:
        structured["where"] = {"compositeFilter": {"op": "AND", "filters": field_filters}}
    if query.order_by:
        structured["orderBy"] = [
            {
                "field": {"fieldPath": query.order_by},
                "direction": "DESCENDING" if query.descending else "ASCENDING",
            }
        ]
    return {"structuredQuery": structured}


def _error_status(response: httpx.Response) -> tuple[str, str]:
    """Return the RPC status and message carried by an error response."""

    try:
        payload = response.json()
    except ValueError:
        return "", response.text[:200]
    if isinstance(payload, list):
        payload = payload[0] if payload else {}
    error = payload.get("error", {}) if isinstance(payload, Mapping) else {}
    return str(error.get("status", "")), str(error.get("message", ""))


def _raise_for_status(response: httpx.Response, operation: str) -> None:
    if response.is_success:
        return

    rpc_status, message = _error_status(response)
    detail = f"{response.status_code} {rpc_status}: {message}".strip()
    if response.status_code in _TRANSIENT_STATUS_CODES or rpc_status in _TRANSIENT_RPC_STATUSES:
        raise TransientStoreError(f"Document store unavailable during {operation}", detail=detail)
    if response.status_code == httpx.codes.NOT_FOUND:
        raise DocumentNotFoundError(f"Document not found during {operation}", detail=detail)
    raise PermanentStoreError(f"Document store rejected {operation}", detail=detail)


class FirestoreDocumentStore:
    """Async client for the Firestore v1 REST API.

    The caller owns ``client`` and is responsible for closing it. Every request
    carries ``timeout`` so a stalled connection surfaces as a transient error
    instead of hanging the load cycle.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        base_url: str,
        project_id: str,
        database: str = "(default)",
        api_key: str | None = None,
        timeout: float = 12.0,
    ) -> None:
        self._client = client
        self._database_path = f"projects/{project_id}/databases/{database}"
        self._documents_url = f"{base_url.rstrip('/')}/{self._database_path}/documents"
        self._params = {"key": api_key} if api_key else None
        self._timeout = timeout

    def _document_name(self, collection: str, doc_id: str) -> str:
        return f"{self._database_path}/documents/{collection}/{doc_id}"

    async def _request(
        self, method: str, url: str, operation: str, *, json: Any = None
    ) -> httpx.Response:
        try:
            response = await self._client.request(
                method, url, params=self._params, json=json, timeout=self._timeout
            )
        except httpx.TimeoutException as exc:
            raise TransientStoreError(f"Document store timeout during {operation}") from exc
        except httpx.TransportError as exc:
            raise TransientStoreError(
                f"Document store unavailable during {operation}", detail=str(exc)
            ) from exc
        return response

    async def run_query(self, query: StoreQuery) -> list[Document]:
        response = await self._request(
            "POST",
            f"{self._documents_url}:runQuery",
            "runQuery",
            json=build_structured_query(query),
        )
        _raise_for_status(response, "runQuery")

        documents: list[Document] = []
        for entry in response.json():
            if "error" in entry:
                # Errors after the first result arrive inside the stream body.
                status = str(entry["error"].get("status", ""))
                message = str(entry["error"].get("message", ""))
                if status in _TRANSIENT_RPC_STATUSES:
                    raise TransientStoreError(
                        "Document store unavailable during runQuery", detail=message
                    )
                raise PermanentStoreError("Document store rejected runQuery", detail=message)
            if "document" in entry:
                documents.append(_decode_document(entry["document"]))

        logger.debug("runQuery %s returned %d documents", query.cache_key(), len(documents))
        return documents

    async def get_document(self, collection: str, doc_id: str) -> Document | None:
        response = await self._request(
            "GET", f"{self._documents_url}/{collection}/{doc_id}", "getDocument"
        )
        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        _raise_for_status(response, "getDocument")
        return _decode_document(response.json())

    async def apply_transforms(
        self,
        collection: str,
        doc_id: str,
        *,
        increments: Mapping[str, int] | None = None,
        array_union: Mapping[str, Sequence[Any]] | None = None,
        array_remove: Mapping[str, Sequence[Any]] | None = None,
    ) -> None:
        transforms: list[dict[str, Any]] = []
        for path, amount in (increments or {}).items():
            transforms.append({"fieldPath": path, "increment": encode_value(int(amount))})
        for path, values in (array_union or {}).items():
            transforms.append(
                {"fieldPath": path, "appendMissingElements": encode_value(list(values))["arrayValue"]}
            )
        for path, values in (array_remove or {}).items():
            transforms.append(
                {"fieldPath": path, "removeAllFromArray": encode_value(list(values))["arrayValue"]}
            )
        if not transforms:
            return

        body = {
            "writes": [
                {
                    "transform": {
                        "document": self._document_name(collection, doc_id),
                        "fieldTransforms": transforms,
                    },
                    "currentDocument": {"exists": True},
                }
            ]
        }
        response = await self._request("POST", f"{self._documents_url}:commit", "commit", json=body)
        _raise_for_status(response, "commit")
        logger.debug("Applied %d transforms to %s/%s", len(transforms), collection, doc_id)


__all__ = [
    "FirestoreDocumentStore",
    "build_structured_query",
    "decode_fields",
    "decode_value",
    "encode_value",
]
