"""Client-side mirror of the remote content catalog.

:class:`CatalogStore` is the single writer of the in-memory list. Each
operation performs one request against the portal proxy and only touches the
local list once that request has succeeded; failures become notifications.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import httpx

from .events import emit_catalog_event, track_duration
from .metadata import ContentMetadata, decode_context
from .notifications import NotificationQueue


LOGGER = logging.getLogger(__name__)

TOKEN_HEADER = "X-Portal-Token"

ConfirmCallback = Callable[[str], bool]


@dataclass(frozen=True)
class ContentItem:
    """One stored file plus its classroom metadata."""

    id: str
    url: str
    created_at: str
    kind: str
    format: Optional[str] = None
    metadata: ContentMetadata = field(default_factory=ContentMetadata)

    @property
    def created(self) -> Optional[datetime]:
        if not self.created_at:
            return None
        try:
            return datetime.fromisoformat(self.created_at.replace("Z", "+00:00"))
        except ValueError:
            return None

    @classmethod
    def from_resource(cls, resource: Mapping[str, Any]) -> "ContentItem":
        context = resource.get("context") or {}
        custom = context.get("custom") if isinstance(context, Mapping) else None
        return cls(
            id=str(resource.get("public_id") or ""),
            url=str(resource.get("secure_url") or resource.get("url") or ""),
            created_at=str(resource.get("created_at") or ""),
            kind=str(resource.get("resource_type") or "image"),
            format=resource.get("format"),
            metadata=decode_context(custom if isinstance(custom, Mapping) else None),
        )


class CatalogRequestError(RuntimeError):
    """Raised internally when the proxy answers with a failure."""


class CatalogStore:
    """Owns the catalog list and the four remote operations that change it."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        notifications: NotificationQueue,
        *,
        surface_refresh_errors: bool = False,
        api_token: Optional[str] = None,
    ) -> None:
        self._client = client
        self._notifications = notifications
        self._surface_refresh_errors = surface_refresh_errors
        self._api_token = api_token
        self._items: List[ContentItem] = []

    @property
    def items(self) -> Tuple[ContentItem, ...]:
        return tuple(self._items)

    @property
    def notifications(self) -> NotificationQueue:
        return self._notifications

    def find(self, item_id: str) -> Optional[ContentItem]:
        return next((item for item in self._items if item.id == item_id), None)

    # ------------------------------------------------------------------
    # Remote operations
    # ------------------------------------------------------------------
    async def refresh(self) -> Tuple[ContentItem, ...]:
        """Replace the local list with the provider's newest items."""

        try:
            with track_duration() as timing:
                data = await self._call("GET", "/api/content")
            resources = data.get("resources")
            if not isinstance(resources, list):
                raise CatalogRequestError("Response did not include resources")
            if not all(isinstance(resource, Mapping) for resource in resources):
                raise CatalogRequestError("Response included a malformed resource")
            items = [ContentItem.from_resource(resource) for resource in resources]
        except (httpx.HTTPError, CatalogRequestError) as error:
            LOGGER.error("Failed to fetch content: %s", error)
            if self._surface_refresh_errors:
                self._notifications.push("error", "Failed to load content")
            return self.items

        self._items = items
        emit_catalog_event("refresh", payload={"count": len(items)}, duration_ms=timing["ms"])
        return self.items

    async def create(
        self,
        filename: str,
        data: bytes,
        metadata: ContentMetadata,
        *,
        content_type: Optional[str] = None,
    ) -> Optional[ContentItem]:
        """Upload a file; on success the returned item joins the front of the list."""

        files = {"file": (filename, data, content_type or "application/octet-stream")}
        try:
            payload = await self._call("POST", "/api/upload", data=metadata.to_form(), files=files)
            resource = payload.get("resource")
            if not payload.get("success") or not isinstance(resource, Mapping):
                raise CatalogRequestError("Upload response was not successful")
        except (httpx.HTTPError, CatalogRequestError) as error:
            LOGGER.error("Failed to upload %s: %s", filename, error)
            self._notifications.push("error", "Failed to upload content")
            return None

        item = ContentItem.from_resource(resource)
        if item.metadata == ContentMetadata():
            item = replace(item, metadata=metadata)
        self._items = [item] + [existing for existing in self._items if existing.id != item.id]
        emit_catalog_event("create", payload={"id": item.id, "filename": filename})
        self._notifications.push("success", "Content uploaded successfully")
        return item

    async def update(self, item_id: str, resource_kind: str, metadata: ContentMetadata) -> bool:
        """Resend all six metadata fields for ``item_id`` and mirror them locally."""

        body: Dict[str, Any] = {
            "public_id": item_id,
            "resource_type": resource_kind,
            **metadata.to_form(),
        }
        try:
            payload = await self._call("PUT", "/api/content", json=body)
            if not payload.get("success"):
                raise CatalogRequestError("Update response was not successful")
        except (httpx.HTTPError, CatalogRequestError) as error:
            LOGGER.error("Failed to update %s: %s", item_id, error)
            self._notifications.push("error", "Failed to update content")
            return False

        self._items = [
            replace(item, metadata=metadata) if item.id == item_id else item for item in self._items
        ]
        emit_catalog_event("update", payload={"id": item_id})
        self._notifications.push("success", "Content updated successfully")
        return True

    async def delete(
        self,
        item_id: str,
        resource_kind: str,
        *,
        confirm: Optional[ConfirmCallback] = None,
    ) -> bool:
        """Delete ``item_id`` after ``confirm`` agrees; nothing is sent otherwise."""

        if confirm is not None and not confirm(item_id):
            LOGGER.debug("Delete of %s cancelled", item_id)
            return False

        try:
            payload = await self._call(
                "DELETE",
                "/api/content",
                params={"public_id": item_id, "resource_type": resource_kind},
            )
            if not payload.get("success"):
                raise CatalogRequestError("Delete response was not successful")
        except (httpx.HTTPError, CatalogRequestError) as error:
            LOGGER.error("Failed to delete %s: %s", item_id, error)
            self._notifications.push("error", "Failed to delete content")
            return False

        self._items = [item for item in self._items if item.id != item_id]
        emit_catalog_event("delete", payload={"id": item_id})
        self._notifications.push("success", "Content deleted successfully")
        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    async def _call(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        headers = kwargs.pop("headers", None) or {}
        if self._api_token and method != "GET":
            headers[TOKEN_HEADER] = self._api_token
        response = await self._client.request(method, url, headers=headers, **kwargs)
        response.raise_for_status()
        try:
            payload = response.json()
        except ValueError as error:
            raise CatalogRequestError("Response was not JSON") from error
        if not isinstance(payload, dict):
            raise CatalogRequestError("Response was not a JSON object")
        return payload


__all__ = ["CatalogRequestError", "CatalogStore", "ContentItem", "TOKEN_HEADER"]
