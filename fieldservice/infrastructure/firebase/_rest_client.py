"""Thin Firestore REST API client (no firebase-admin).

Uses google-auth for service account tokens and Firestore REST v1.
Keeps the deployment small (avoids grpcio / firebase-admin).
All HTTP calls use httpx.AsyncClient so they do not block the event loop.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

import httpx

from fieldservice.infrastructure.exceptions import (
    DocumentStoreUnavailableError,
    DocumentWriteDeniedError,
)
from fieldservice.infrastructure.firebase._rest_encoding import (
    decode_document,
    decode_update_time,
    encode_document,
    merge_field_paths,
)

_FIRESTORE_SCOPE = "https://www.googleapis.com/auth/datastore"
_BASE = "https://firestore.googleapis.com/v1"


def _get_credentials(key_dict: dict):
    """Return google.oauth2.service_account.Credentials for Firestore."""
    from google.oauth2 import service_account

    return service_account.Credentials.from_service_account_info(
        key_dict, scopes=[_FIRESTORE_SCOPE]
    )


def _get_access_token(credentials) -> str:
    from google.auth.transport.requests import Request

    if not credentials.valid:
        credentials.refresh(Request())
    return credentials.token


async def _request_async(
    client: httpx.AsyncClient,
    url: str,
    method: str = "GET",
    body: dict | None = None,
    access_token: str | None = None,
    params: Sequence[tuple[str, str]] | None = None,
    *,
    path: str = "",
) -> dict | None:
    """Perform async HTTP request to Firestore REST API. 404 returns None.

    Raises:
        DocumentWriteDeniedError: 401/403 from the backend.
        DocumentStoreUnavailableError: transport failure or other non-2xx status.
    """
    headers = {"Content-Type": "application/json"}
    if access_token:
        headers["Authorization"] = f"Bearer {access_token}"
    try:
        resp = await client.request(
            method, url, headers=headers, json=body, params=list(params or [])
        )
    except httpx.HTTPError as e:
        raise DocumentStoreUnavailableError(path or url, str(e)) from e
    if resp.status_code == 404:
        return None
    if resp.status_code in (401, 403):
        raise DocumentWriteDeniedError(path or url)
    if resp.status_code not in (200, 204):
        raise DocumentStoreUnavailableError(path or url, f"HTTP {resp.status_code}")
    raw = resp.content
    return json.loads(raw.decode()) if raw else {}


class DocumentSnapshot:
    """Snapshot of a document (id + data + server update time)."""

    def __init__(self, id_: str, data: dict, update_time: datetime | None = None):
        self.id = id_
        self._data = data
        self.update_time = update_time

    def to_dict(self) -> dict:
        return self._data


class DocumentReference:
    """Reference to a single document; matches firestore API style."""

    def __init__(self, client: FirestoreRESTClient, path: str, relative_path: str):
        self._client = client
        self._path = path
        self._relative_path = relative_path

    @property
    def url(self) -> str:
        return f"{_BASE}/{self._path}"

    async def get(self) -> DocumentSnapshot | None:
        """Fetch the document; returns None if not found."""
        out = await _request_async(
            self._client._http,
            self.url,
            access_token=await self._client.get_token(),
            path=self._relative_path,
        )
        if not out:
            return None
        return DocumentSnapshot(
            self._path.split("/")[-1],
            decode_document(out.get("fields")),
            decode_update_time(out.get("updateTime")),
        )

    async def set(self, data: Mapping[str, Any], *, merge: bool = False) -> None:
        """Create or overwrite the document; with merge=True only the given leaves change."""
        params = (
            [("updateMask.fieldPaths", p) for p in merge_field_paths(data)] if merge else None
        )
        await _request_async(
            self._client._http,
            self.url,
            method="PATCH",
            body=encode_document(data),
            access_token=await self._client.get_token(),
            params=params,
            path=self._relative_path,
        )


class CollectionReference:
    """Reference to a collection; matches firestore API style."""

    def __init__(self, client: FirestoreRESTClient, path: str, relative_path: str):
        self._client = client
        self._path = path.rstrip("/")
        self._relative_path = relative_path.rstrip("/")

    def document(self, document_id: str) -> DocumentReference:
        return DocumentReference(
            self._client,
            f"{self._path}/{document_id}",
            f"{self._relative_path}/{document_id}",
        )

    async def add(self, data: Mapping[str, Any]) -> str:
        """Create a document with a server-generated ID; return the ID."""
        out = await _request_async(
            self._client._http,
            f"{_BASE}/{self._path}",
            method="POST",
            body=encode_document(data),
            access_token=await self._client.get_token(),
            path=self._relative_path,
        )
        name = (out or {}).get("name", "")
        return name.split("/")[-1]


class FirestoreRESTClient:
    """Lightweight Firestore client using REST API (no firebase-admin)."""

    def __init__(
        self,
        project_id: str,
        credentials,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._project_id = project_id
        self._credentials = credentials
        self._prefix = f"projects/{project_id}/databases/(default)/documents"
        self._http = http_client if http_client is not None else httpx.AsyncClient(timeout=30.0)
        self._owns_http = http_client is None

    async def aclose(self) -> None:
        """Close the HTTP client only if we created it (do not close injected client)."""
        if self._owns_http:
            await self._http.aclose()

    async def get_token(self) -> str:
        """Return a valid access token; refreshes in thread pool to avoid blocking."""
        return await asyncio.to_thread(_get_access_token, self._credentials)

    def collection(self, collection_path: str) -> CollectionReference:
        """Collection by slash path, e.g. featureFlagAudit/t1/logs."""
        relative = collection_path.strip("/")
        return CollectionReference(self, f"{self._prefix}/{relative}", relative)

    def document(self, document_path: str) -> DocumentReference:
        """Document by slash path, e.g. users/u1/userTenants/t1."""
        relative = document_path.strip("/")
        return DocumentReference(self, f"{self._prefix}/{relative}", relative)
