"""FastAPI application acting as the portal's proxy to the media provider."""

from __future__ import annotations

import contextvars
import logging
import uuid
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from fastapi import Body, FastAPI, File, Form, Query, Request, UploadFile
from fastapi import status
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel
from starlette.types import ASGIApp, Receive, Scope, Send

from ..config import AppConfig
from ..services.catalog import TOKEN_HEADER
from ..services.events import emit_file_event, emit_structured_event
from ..services.metadata import ContentMetadata
from ..services.provider import CloudinaryMediaProvider, ProviderError, normalize_resource_type


_REQUEST_ID_VAR: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "classroom_portal_request_id",
    default=None,
)
_API_PREFIX = "api"


def _new_correlation_id() -> str:
    return uuid.uuid4().hex


def _collect_correlation_context() -> Dict[str, str]:
    context: Dict[str, str] = {}
    request_id = _REQUEST_ID_VAR.get()
    if request_id:
        context["request_id"] = str(request_id)
    return context


class RequestContextMiddleware:
    """Assign a correlation identifier to each request and expose it via contextvars."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        request_id = _new_correlation_id()
        scope_state = scope.get("state")
        if scope_state is None:
            scope_state = {}
            scope["state"] = scope_state
        if isinstance(scope_state, dict):
            scope_state["request_id"] = request_id
        else:
            setattr(scope_state, "request_id", request_id)

        request_token = _REQUEST_ID_VAR.set(request_id)
        try:
            await self.app(scope, receive, send)
        finally:
            _REQUEST_ID_VAR.reset(request_token)


class ContextualLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that injects correlation context into records."""

    def process(self, msg: Any, kwargs: Dict[str, Any]) -> tuple[Any, Dict[str, Any]]:  # type: ignore[override]
        extra: Dict[str, Any] = dict(self.extra)
        provided = kwargs.get("extra")
        if isinstance(provided, dict):
            extra.update(provided)
        for key, value in _collect_correlation_context().items():
            extra.setdefault(key, value)
        kwargs["extra"] = extra
        return msg, kwargs


LOGGER = ContextualLoggerAdapter(logging.getLogger(__name__), {})
EVENT_LOGGER = ContextualLoggerAdapter(logging.getLogger("classroom_portal.events"), {})


def _log_event(message: str, **context: Any) -> None:
    emit_structured_event(
        "APP_EVENT",
        message,
        payload=context,
        correlation=_collect_correlation_context(),
        logger=EVENT_LOGGER,
    )


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


class ContentUpdatePayload(BaseModel):
    public_id: Optional[str] = None
    resource_type: Optional[str] = None
    title: Optional[str] = None
    teacher: Optional[str] = None
    subject: Optional[str] = None
    className: Optional[str] = None
    description: Optional[str] = None
    fileType: Optional[str] = None

    def to_metadata(self) -> ContentMetadata:
        return ContentMetadata(
            title=self.title,
            teacher=self.teacher,
            subject=self.subject,
            class_name=self.className,
            description=self.description,
            file_type=self.fileType,
        )


def _resolve_static_file(static_root: Path, requested_path: str) -> Optional[Path]:
    """Return the built client file for ``requested_path`` if it lives under ``static_root``."""

    if not requested_path:
        return None
    root = static_root.resolve()
    candidate = (root / requested_path).resolve()
    try:
        candidate.relative_to(root)
    except ValueError:
        return None
    if candidate.is_file():
        return candidate
    return None


def create_app(
    provider: CloudinaryMediaProvider,
    *,
    config: AppConfig,
    root_path: str | None = None,
) -> FastAPI:
    """Return a configured FastAPI application."""

    app = FastAPI(
        title="Classroom Portal",
        description="Browse and manage classroom content stored with the media provider",
        root_path=root_path or "",
    )
    app.state.provider = provider
    app.state.config = config
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestContextMiddleware)

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> Any:
        path = request.url.path
        mount = request.scope.get("root_path") or ""
        if mount and path.startswith(mount):
            path = path[len(mount):]
        if path ==f"/{_API_PREFIX}" or path.startswith(f"/{_API_PREFIX}/"):
            LOGGER.warning("Rejected malformed request to %s: %s", path, exc.errors())
            return _error_response(status.HTTP_400_BAD_REQUEST, "Invalid request")
        return await request_validation_exception_handler(request, exc)

    def _token_rejected(request: Request) -> Optional[JSONResponse]:
        expected = config.api_token
        if not expected:
            return None
        if request.headers.get(TOKEN_HEADER) == expected:
            return None
        _log_event("Rejected request without portal token", path=request.url.path)
        return _error_response(status.HTTP_401_UNAUTHORIZED, "Unauthorized")

    def _resolve_kind(value: Optional[str]) -> Tuple[Optional[str], Optional[JSONResponse]]:
        try:
            return normalize_resource_type(value), None
        except ValueError as error:
            return None, _error_response(status.HTTP_400_BAD_REQUEST, str(error))

    @app.get("/api/health")
    async def health() -> Dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/content")
    async def list_content() -> Any:
        _log_event("Listing content")
        try:
            resources = await provider.list_resources()
        except ProviderError as error:
            LOGGER.error("Error fetching content: %s", error)
            return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to fetch content")
        _log_event("Listed content", count=len(resources))
        return {"resources": resources}

    @app.post("/api/upload")
    async def upload_content(
        request: Request,
        file: Optional[UploadFile] = File(None),
        title: Optional[str] = Form(None),
        teacher: Optional[str] = Form(None),
        subject: Optional[str] = Form(None),
        className: Optional[str] = Form(None),
        description: Optional[str] = Form(None),
        fileType: Optional[str] = Form(None),
    ) -> Any:
        rejected = _token_rejected(request)
        if rejected is not None:
            return rejected
        if file is None or not file.filename:
            return _error_response(status.HTTP_400_BAD_REQUEST, "No file uploaded")

        data = await file.read()
        emit_file_event(
            "Received upload",
            payload={
                "filename": file.filename,
                "content_type": file.content_type,
                "bytes": len(data),
            },
            correlation=_collect_correlation_context(),
            logger=EVENT_LOGGER,
        )
        if config.max_upload_bytes > 0 and len(data) > config.max_upload_bytes:
            return _error_response(
                status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                "File exceeds the upload size limit",
            )

        metadata = ContentMetadata(
            title=title,
            teacher=teacher,
            subject=subject,
            class_name=className,
            description=description,
            file_type=fileType,
        )
        try:
            resource = await provider.upload(
                data,
                filename=file.filename,
                content_type=file.content_type,
                metadata=metadata,
            )
        except ProviderError as error:
            LOGGER.error("Error uploading file: %s", error)
            return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to upload file")

        _log_event("Uploaded content", public_id=resource.get("public_id"))
        return {"success": True, "resource": resource}

    @app.put("/api/content")
    async def update_content(
        request: Request,
        payload: Optional[ContentUpdatePayload] = Body(None),
    ) -> Any:
        rejected = _token_rejected(request)
        if rejected is not None:
            return rejected
        if payload is None:
            return _error_response(status.HTTP_400_BAD_REQUEST, "Missing public_id")
        public_id = (payload.public_id or "").strip()
        if not public_id:
            return _error_response(status.HTTP_400_BAD_REQUEST, "Missing public_id")
        resource_type, invalid = _resolve_kind(payload.resource_type)
        if invalid is not None:
            return invalid

        _log_event("Updating content", public_id=public_id, resource_type=resource_type)
        try:
            await provider.update_metadata(public_id, resource_type, payload.to_metadata())
        except ProviderError as error:
            LOGGER.error("Error updating content %s: %s", public_id, error)
            return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to update content")
        return {"success": True}

    @app.delete("/api/content")
    async def delete_content(
        request: Request,
        public_id: Optional[str] = Query(None),
        resource_type: Optional[str] = Query(None),
    ) -> Any:
        rejected = _token_rejected(request)
        if rejected is not None:
            return rejected
        identifier = (public_id or "").strip()
        if not identifier:
            return _error_response(status.HTTP_400_BAD_REQUEST, "Missing public_id")
        kind, invalid = _resolve_kind(resource_type)
        if invalid is not None:
            return invalid

        _log_event("Deleting content", public_id=identifier, resource_type=kind)
        try:
            await provider.delete(identifier, kind)
        except ProviderError as error:
            LOGGER.error("Error deleting content %s: %s", identifier, error)
            return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to delete content")
        return {"success": True}

    if config.is_production:
        static_root = config.static_root
        index_file = static_root / "index.html"

        @app.get("/{requested_path:path}")
        async def spa_fallback(requested_path: str) -> Any:
            """Serve the built client, falling back to ``index.html`` for client-side routes."""

            normalized = requested_path.lstrip("/")
            if normalized == _API_PREFIX or normalized.startswith(f"{_API_PREFIX}/"):
                return _error_response(status.HTTP_404_NOT_FOUND, "Not Found")

            static_file = _resolve_static_file(static_root, normalized)
            if static_file is not None:
                return FileResponse(static_file)
            if index_file.is_file():
                _log_event("Serving SPA fallback", path=requested_path)
                return FileResponse(index_file)
            return _error_response(status.HTTP_404_NOT_FOUND, "Not Found")

    return app


__all__ = ["ContentUpdatePayload", "create_app"]
