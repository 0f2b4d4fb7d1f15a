"""HTTP client for the Are.na v2 API."""

from __future__ import annotations

import threading
from typing import Any

import requests

from .async_utils import run_sync

DEFAULT_API_URL = "https://api.are.na/v2"


class ArenaError(Exception):
    """Are.na API request failed."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ArenaClient:
    def __init__(self, token: str, api_url: str = DEFAULT_API_URL):
        self.token = token
        self.api_url = api_url.rstrip("/")
        self._thread_local = threading.local()

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers["Authorization"] = f"Bearer {self.token}"
        session.headers["Accept"] = "application/json"
        return session

    def _get_json(self, path: str, params: dict | None = None) -> Any:
        response = self._get_session().get(
            f"{self.api_url}{path}",
            params=params,
            timeout=(10, 60),
        )
        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise ArenaError(
                f"GET {path} failed: {exc}",
                status_code=response.status_code,
            ) from exc
        return response.json()

    def fetch_channel_page(
        self, slug: str, page: int, per: int
    ) -> dict[str, Any]:
        """Fetch one page of a channel's contents (blocking)."""
        data = self._get_json(
            f"/channels/{slug}", params={"page": page, "per": per}
        )
        return {
            "items": data.get("contents"),
            "total_pages": data.get("total_pages") or 1,
            "title": data.get("title"),
        }

    def fetch_channel_info(self, slug: str) -> dict[str, Any]:
        """Fetch channel metadata without contents (blocking)."""
        data = self._get_json(f"/channels/{slug}/thumb")
        return {"title": data.get("title")}

    async def get_page(
        self, slug: str, *, page: int, page_size: int
    ) -> dict[str, Any]:
        return await run_sync(self.fetch_channel_page, slug, page, page_size)

    async def get_channel_info(self, slug: str) -> dict[str, Any]:
        return await run_sync(self.fetch_channel_info, slug)
