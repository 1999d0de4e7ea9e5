"""Client for the external media-storage/CDN provider.

All persistent state of the portal lives with the provider: the uploaded
files and their classroom metadata (stored in the provider's context
annotation). The proxy only marshals requests through this client.
"""

from __future__ import annotations

import hashlib
import logging
import time
from typing import Any, Dict, List, Mapping, Optional

import httpx

from ..config import ProviderSettings
from .events import emit_provider_event, track_duration
from .metadata import ContentMetadata, encode_context


LOGGER = logging.getLogger(__name__)

RESOURCE_TYPES = ("image", "video", "raw")
DEFAULT_RESOURCE_TYPE = "image"

# Fields that are sent with a signed request but never signed themselves.
_UNSIGNED_FIELDS = {"file", "api_key", "resource_type", "cloud_name"}


class ProviderError(RuntimeError):
    """Raised when the media provider rejects a call or cannot be reached."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def normalize_resource_type(value: Optional[str]) -> str:
    """Return a provider resource type, defaulting to ``image``."""

    candidate = (value or "").strip().lower()
    if not candidate:
        return DEFAULT_RESOURCE_TYPE
    if candidate not in RESOURCE_TYPES:
        raise ValueError(f"Unsupported resource type: {value}")
    return candidate


def sign_parameters(params: Mapping[str, Any], api_secret: str) -> str:
    """Return the SHA-1 request signature the provider expects for ``params``."""

    signable = []
    for key in sorted(params):
        if key in _UNSIGNED_FIELDS:
            continue
        value = params[key]
        if value is None or value == "":
            continue
        if isinstance(value, (list, tuple)):
            value = ",".join(str(item) for item in value)
        signable.append(f"{key}={value}")
    to_sign = "&".join(signable) + api_secret
    return hashlib.sha1(to_sign.encode("utf-8")).hexdigest()


class CloudinaryMediaProvider:
    """Cloudinary REST API client covering the four calls the portal needs."""

    def __init__(
        self,
        settings: ProviderSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    @property
    def settings(self) -> ProviderSettings:
        return self._settings

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    async def list_resources(self) -> List[Dict[str, Any]]:
        """Return the newest resources of the configured folder with their context."""

        body = {
            "expression": f"folder:{self._settings.folder}",
            "with_field": ["context"],
            "sort_by": [{"created_at": "desc"}],
            "max_results": self._settings.max_results,
        }
        data = await self._request(
            "search",
            "/resources/search",
            json=body,
            auth=(self._settings.api_key or "", self._settings.api_secret or ""),
        )
        resources = data.get("resources") or []
        if not isinstance(resources, list):
            raise ProviderError("Malformed search response")
        return resources

    async def upload(
        self,
        data: bytes,
        *,
        filename: str,
        content_type: Optional[str],
        metadata: ContentMetadata,
    ) -> Dict[str, Any]:
        """Upload ``data`` into the folder, annotated with ``metadata``."""

        params = self._signed(
            {
                "folder": self._settings.folder,
                "context": encode_context(metadata),
            }
        )
        files = {"file": (filename or "upload", data, content_type or "application/octet-stream")}
        return await self._request(
            "upload",
            "/auto/upload",
            data=params,
            files=files,
            details={"filename": filename, "bytes": len(data)},
        )

    async def update_metadata(
        self,
        public_id: str,
        resource_type: str,
        metadata: ContentMetadata,
    ) -> Dict[str, Any]:
        """Replace the classroom annotation of ``public_id``."""

        resource_type = normalize_resource_type(resource_type)
        params = self._signed(
            {
                "command": "add",
                "context": encode_context(metadata),
                "public_ids": [public_id],
            }
        )
        form = {key: value for key, value in params.items() if key != "public_ids"}
        form["public_ids[]"] = public_id
        result = await self._request(
            "update_context",
            f"/{resource_type}/context",
            data=form,
            details={"public_id": public_id, "resource_type": resource_type},
        )
        updated = result.get("public_ids")
        if isinstance(updated, list) and public_id not in updated:
            raise ProviderError(f"Resource {public_id} was not updated", status_code=404)
        return result

    async def delete(self, public_id: str, resource_type: str) -> Dict[str, Any]:
        """Destroy ``public_id`` and invalidate cached copies."""

        resource_type = normalize_resource_type(resource_type)
        params = self._signed({"public_id": public_id, "invalidate": "true"})
        result = await self._request(
            "destroy",
            f"/{resource_type}/destroy",
            data=params,
            details={"public_id": public_id, "resource_type": resource_type},
        )
        outcome = result.get("result")
        if outcome != "ok":
            raise ProviderError(f"Delete of {public_id} returned '{outcome}'", status_code=404)
        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _require_credentials(self) -> None:
        if not self._settings.is_configured:
            raise ProviderError("Media provider credentials are not configured")

    def _signed(self, params: Dict[str, Any]) -> Dict[str, Any]:
        self._require_credentials()
        signed = dict(params)
        signed["timestamp"] = str(int(time.time()))
        signed["signature"] = sign_parameters(signed, self._settings.api_secret or "")
        signed["api_key"] = self._settings.api_key
        return signed

    async def _request(
        self,
        action: str,
        path: str,
        *,
        details: Optional[Dict[str, Any]] = None,
        **kwargs: Any,
    ) -> Dict[str, Any]:
        self._require_credentials()
        payload = dict(details or {})
        try:
            with track_duration() as timing:
                async with httpx.AsyncClient(
                    base_url=self._settings.account_url,
                    timeout=self._settings.timeout,
                    transport=self._transport,
                ) as client:
                    response = await client.post(path, **kwargs)
        except httpx.HTTPError as error:
            emit_provider_event(
                f"{action} failed",
                payload={**payload, "error": str(error) or type(error).__name__},
                level=logging.ERROR,
            )
            raise ProviderError(f"{action} request failed: {error}") from error

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code >= 400 or (isinstance(data, dict) and "error" in data):
            message = _extract_error_message(data) or response.reason_phrase or "error"
            emit_provider_event(
                f"{action} rejected",
                payload={**payload, "status": response.status_code, "error": message},
                duration_ms=timing["ms"],
                level=logging.ERROR,
            )
            raise ProviderError(f"{action} rejected: {message}", status_code=response.status_code)

        if not isinstance(data, dict):
            raise ProviderError(f"{action} returned a malformed response")

        emit_provider_event(
            action,
            payload={**payload, "status": response.status_code},
            duration_ms=timing["ms"],
        )
        return data


def _extract_error_message(data: Any) -> Optional[str]:
    if not isinstance(data, dict):
        return None
    error = data.get("error")
    if isinstance(error, dict):
        message = error.get("message")
        return str(message) if message else None
    if error:
        return str(error)
    return None


__all__ = [
    "CloudinaryMediaProvider",
    "DEFAULT_RESOURCE_TYPE",
    "ProviderError",
    "RESOURCE_TYPES",
    "normalize_resource_type",
    "sign_parameters",
]
