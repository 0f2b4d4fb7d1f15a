"""HTTP client for the Sanity Content Lake (data and asset endpoints)."""

from __future__ import annotations

import json
import threading
from typing import Any

import requests

from .async_utils import run_sync

DEFAULT_API_VERSION = "2024-05-15"


class SanityError(Exception):
    """Sanity API request failed."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class SanityPatch:
    """Accumulates one patch mutation for a document.

    ``set`` and ``set_if_missing`` may be called repeatedly; later keys win.
    Nothing is sent until ``commit()``.
    """

    def __init__(self, client: SanityClient, doc_id: str) -> None:
        self._client = client
        self.doc_id = doc_id
        self.set_fields: dict[str, Any] = {}
        self.unset_paths: list[str] = []
        self.set_if_missing_fields: dict[str, Any] = {}

    def set(self, fields: dict[str, Any]) -> SanityPatch:
        self.set_fields.update(fields)
        return self

    def unset(self, paths: list[str]) -> SanityPatch:
        for path in paths:
            if path not in self.unset_paths:
                self.unset_paths.append(path)
        return self

    def set_if_missing(self, fields: dict[str, Any]) -> SanityPatch:
        self.set_if_missing_fields.update(fields)
        return self

    def to_mutation(self) -> dict[str, Any]:
        body: dict[str, Any] = {"id": self.doc_id}
        if self.set_if_missing_fields:
            body["setIfMissing"] = self.set_if_missing_fields
        if self.unset_paths:
            body["unset"] = self.unset_paths
        if self.set_fields:
            body["set"] = self.set_fields
        return {"patch": body}

    async def commit(self) -> Any:
        return await run_sync(self._client.mutate, [self.to_mutation()])


class SanityClient:
    def __init__(
        self,
        project_id: str,
        dataset: str,
        token: str,
        api_version: str = DEFAULT_API_VERSION,
    ):
        self.project_id = project_id
        self.dataset = dataset
        self.token = token
        self.api_version = api_version
        self.base_url = (
            f"https://{project_id}.api.sanity.io/v{api_version.lstrip('v')}"
        )
        self._thread_local = threading.local()

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers["Authorization"] = f"Bearer {self.token}"
        return session

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        response = self._get_session().request(
            method,
            f"{self.base_url}{path}",
            timeout=(10, 60),
            **kwargs,
        )
        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise SanityError(
                f"{method} {path} failed: {exc}",
                status_code=response.status_code,
            ) from exc
        return response.json()

    # ------------------------------------------------------------------
    # Blocking API
    # ------------------------------------------------------------------

    def fetch_document(self, doc_id: str) -> dict[str, Any] | None:
        try:
            data = self._request(
                "GET", f"/data/doc/{self.dataset}/{doc_id}"
            )
        except SanityError as exc:
            if exc.status_code == 404:
                return None
            raise
        documents = data.get("documents") or []
        return documents[0] if documents else None

    def mutate(self, mutations: list[dict[str, Any]]) -> Any:
        return self._request(
            "POST",
            f"/data/mutate/{self.dataset}",
            params={"returnIds": "true"},
            json={"mutations": mutations},
        )

    def run_query(
        self, query: str, params: dict[str, Any] | None = None
    ) -> Any:
        query_params = {"query": query}
        for key, value in (params or {}).items():
            query_params[f"${key}"] = json.dumps(value)
        data = self._request(
            "GET", f"/data/query/{self.dataset}", params=query_params
        )
        return data.get("result")

    def upload(
        self, kind: str, body: bytes, filename: str | None = None
    ) -> dict[str, Any]:
        endpoint = "images" if kind == "image" else "files"
        params = {"filename": filename} if filename else None
        data = self._request(
            "POST",
            f"/assets/{endpoint}/{self.dataset}",
            params=params,
            data=body,
            headers={"Content-Type": "application/octet-stream"},
        )
        document = data.get("document") or {}
        return {"id": document.get("_id"), "document": document}

    # ------------------------------------------------------------------
    # DocumentStore protocol
    # ------------------------------------------------------------------

    async def get_by_id(self, doc_id: str) -> dict[str, Any] | None:
        return await run_sync(self.fetch_document, doc_id)

    async def create(self, document: dict[str, Any]) -> Any:
        # createIfNotExists keeps a retried create from failing on the
        # document written by the attempt that timed out.
        return await run_sync(
            self.mutate, [{"createIfNotExists": document}]
        )

    async def query(
        self, query: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        result = await run_sync(self.run_query, query, params)
        return result or []

    def patch(self, doc_id: str) -> SanityPatch:
        return SanityPatch(self, doc_id)

    async def upload_asset(
        self, kind: str, body: bytes, *, filename: str | None = None
    ) -> dict[str, Any]:
        return await run_sync(self.upload, kind, body, filename)
