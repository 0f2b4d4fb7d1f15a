"""Interfaces the sync engine expects from its collaborators.

Any object with these coroutine methods can be used; ``ArenaClient`` and
``SanityClient`` are the bundled implementations.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class ContentSource(Protocol):
    """Paged access to remote channels.

    ``get_page`` returns ``{"items": [...], "total_pages": int, "title": str}``;
    ``items`` is ``None`` (or missing) when the channel is empty or not
    accessible.
    """

    async def get_page(
        self, slug: str, *, page: int, page_size: int
    ) -> dict[str, Any] | None: ...


@runtime_checkable
class ChannelInfoSource(Protocol):
    """Optional capability: channel metadata lookup."""

    async def get_channel_info(self, slug: str) -> dict[str, Any] | None: ...


class PatchBuilder(Protocol):
    def set(self, fields: dict[str, Any]) -> PatchBuilder: ...

    def unset(self, paths: list[str]) -> PatchBuilder: ...

    def set_if_missing(self, fields: dict[str, Any]) -> PatchBuilder: ...

    async def commit(self) -> Any: ...


class DocumentStore(Protocol):
    """Destination document store.

    ``get_by_id`` returns ``None`` for a missing document instead of raising.
    ``upload_asset`` returns a mapping with the new asset's ``id``.
    """

    async def get_by_id(self, doc_id: str) -> dict[str, Any] | None: ...

    async def create(self, document: dict[str, Any]) -> Any: ...

    async def query(
        self, query: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]: ...

    def patch(self, doc_id: str) -> PatchBuilder: ...

    async def upload_asset(
        self, kind: str, body: bytes, *, filename: str | None = None
    ) -> dict[str, Any]: ...
