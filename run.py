"""Entry-point for the Classroom Portal application."""

from __future__ import annotations

import asyncio
import inspect
import logging
import mimetypes
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

import httpx
import typer
import uvicorn

from classroom_portal.bootstrap import initialize_app
from classroom_portal.config import AppConfig
from classroom_portal.logging_utils import build_handlers, configure_logging, get_log_file_path
from classroom_portal.services.catalog import CatalogStore
from classroom_portal.services.filters import ALL, FilterCriteria, filter_catalog
from classroom_portal.services.metadata import (
    ContentMetadata,
    DEFAULT_CLASS,
    DEFAULT_SUBJECT,
    MetadataValidationError,
    detect_file_type,
    edit_defaults,
    validate_required,
)
from classroom_portal.services.notifications import NotificationQueue
from classroom_portal.services.provider import CloudinaryMediaProvider
from classroom_portal.services.session import AuthGate, SessionStore
from classroom_portal.ui.console import ConsoleUI
from classroom_portal.ui.modern import ModernUI
from classroom_portal.ui.overview import collect_overview
from classroom_portal.web.server import create_app


LOGGER = logging.getLogger("classroom_portal.cli")


cli = typer.Typer(add_completion=False, help="Classroom Portal commands")


DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000


def _prepare_logging(storage_root: Path, *, console: bool = True) -> None:
    configure_logging(handlers=build_handlers(get_log_file_path(storage_root), console=console))


class UIStyle(str, Enum):
    MODERN = "modern"
    CONSOLE = "console"


style_option = typer.Option(
    UIStyle.MODERN,
    "--style",
    "-s",
    help="Select the listing presentation style.",
    show_default=True,
)


def _build_ui(style: UIStyle):
    if style is UIStyle.MODERN:
        return ModernUI()
    return ConsoleUI(writer=typer.echo)


def _build_client(config: AppConfig) -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url=config.portal_url, timeout=config.provider.timeout)


def _build_gate(config: AppConfig) -> AuthGate:
    return AuthGate(SessionStore(config))


def _build_store(config: AppConfig, client: httpx.AsyncClient) -> CatalogStore:
    return CatalogStore(
        client,
        NotificationQueue(),
        surface_refresh_errors=config.surface_refresh_errors,
        api_token=config.api_token,
    )


def _client_config() -> AppConfig:
    config = initialize_app()
    _prepare_logging(config.storage_root, console=False)
    return config


def _require_session(config: AppConfig) -> None:
    if not _build_gate(config).is_authenticated:
        typer.echo("Teacher login required. Run 'run.py login' first.")
        raise typer.Exit(code=1)


def _normalize_root_path(root_path: Optional[str]) -> str:
    if root_path is None:
        return ""
    normalized = root_path.strip()
    if not normalized:
        return ""
    if not normalized.startswith("/"):
        normalized = f"/{normalized}"
    return normalized.rstrip("/")


@cli.callback(invoke_without_command=True)
def main(ctx: typer.Context) -> None:
    """Launch the web server when no explicit command is provided."""

    if ctx.invoked_subcommand is None:
        ctx.invoke(serve, host=DEFAULT_HOST, port=DEFAULT_PORT, root_path=None)


@cli.command()
def serve(
    host: str = typer.Option(DEFAULT_HOST, help="Host interface for the web server"),
    port: int = typer.Option(DEFAULT_PORT, help="Port for the web server"),
    root_path: Optional[str] = typer.Option(
        None,
        help="Prefix the application expects when mounted behind a proxy",
        envvar="CLASSROOM_PORTAL_ROOT_PATH",
    ),
) -> None:
    """Run the FastAPI proxy in front of the media provider."""

    app_config = initialize_app()
    _prepare_logging(app_config.storage_root)

    provider = CloudinaryMediaProvider(app_config.provider)
    normalized_root = _normalize_root_path(root_path)
    app = create_app(provider, config=app_config, root_path=normalized_root)

    config_kwargs = {}
    if app_config.max_upload_bytes > 0:
        config_signature = inspect.signature(uvicorn.Config.__init__)
        if "limit_max_request_size" in config_signature.parameters:
            config_kwargs["limit_max_request_size"] = app_config.max_upload_bytes
        else:
            LOGGER.warning(
                "Ignoring max upload size limit; uvicorn.Config does not support "
                "'limit_max_request_size'.",
            )

    server_config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_config=None,
        root_path=normalized_root,
        **config_kwargs,
    )
    server = uvicorn.Server(server_config)
    app.state.server = server
    LOGGER.info("Server running on http://%s:%s%s", host, port, normalized_root or "/")
    server.run()


@cli.command()
def browse(
    search: str = typer.Option("", "--search", "-q", help="Case-insensitive title search"),
    class_name: str = typer.Option(ALL, "--class", help="Only show this class"),
    subject: str = typer.Option(ALL, "--subject", help="Only show this subject"),
    file_type: str = typer.Option(ALL, "--type", help="Only show this file type"),
    style: UIStyle = style_option,
) -> None:
    """List the catalog, filtered by search text, class, subject and type."""

    config = _client_config()
    criteria = FilterCriteria(query=search, class_name=class_name, subject=subject, file_type=file_type)

    async def _load() -> CatalogStore:
        async with _build_client(config) as client:
            store = _build_store(config, client)
            await store.refresh()
            return store

    store = asyncio.run(_load())
    visible = filter_catalog(store.items, criteria)
    snapshot = collect_overview(visible, total=len(store.items), criteria=criteria)
    _build_ui(style).render(
        snapshot,
        authenticated=_build_gate(config).is_authenticated,
        notifications=store.notifications.notifications,
    )


@cli.command()
def upload(
    path: Path = typer.Argument(
        ...,
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
        help="File to upload",
    ),
    title: str = typer.Option(..., help="Document title"),
    teacher: str = typer.Option(..., help="Teacher name"),
    class_name: str = typer.Option(DEFAULT_CLASS, "--class", help="Class"),
    subject: str = typer.Option(DEFAULT_SUBJECT, help="Subject"),
    description: str = typer.Option("", help="Short description"),
    file_type: Optional[str] = typer.Option(None, "--type", help="File type (detected when omitted)"),
    style: UIStyle = style_option,
) -> None:
    """Upload a file with its classroom metadata."""

    config = _client_config()
    _require_session(config)

    content_type, _ = mimetypes.guess_type(path.name)
    metadata = ContentMetadata(
        title=title.strip(),
        teacher=teacher.strip(),
        subject=subject,
        class_name=class_name,
        description=description,
        file_type=file_type or detect_file_type(content_type),
    )
    try:
        validate_required(metadata)
    except MetadataValidationError as error:
        raise typer.BadParameter(str(error)) from error

    data = path.read_bytes()

    async def _upload() -> tuple[CatalogStore, bool]:
        async with _build_client(config) as client:
            store = _build_store(config, client)
            item = await store.create(path.name, data, metadata, content_type=content_type)
            return store, item is not None

    store, succeeded = asyncio.run(_upload())
    _build_ui(style).render_notifications(store.notifications.notifications)
    if not succeeded:
        raise typer.Exit(code=1)


@cli.command()
def edit(
    public_id: str = typer.Argument(..., help="Identifier of the content item"),
    resource_type: Optional[str] = typer.Option(None, help="Provider resource type (image, video, raw)"),
    title: Optional[str] = typer.Option(None, help="New title"),
    teacher: Optional[str] = typer.Option(None, help="New teacher"),
    class_name: Optional[str] = typer.Option(None, "--class", help="New class"),
    subject: Optional[str] = typer.Option(None, help="New subject"),
    description: Optional[str] = typer.Option(None, help="New description"),
    file_type: Optional[str] = typer.Option(None, "--type", help="New file type"),
    style: UIStyle = style_option,
) -> None:
    """Change the metadata of an item; all six fields are sent."""

    config = _client_config()
    _require_session(config)

    async def _edit() -> tuple[CatalogStore, bool]:
        async with _build_client(config) as client:
            store = _build_store(config, client)
            await store.refresh()
            current = store.find(public_id)
            base = edit_defaults(
                current.metadata if current is not None else ContentMetadata(),
                item_id=public_id,
            )
            metadata = base.merged(
                title=title,
                teacher=teacher,
                class_name=class_name,
                subject=subject,
                description=description,
                file_type=file_type,
            )
            try:
                validate_required(metadata)
            except MetadataValidationError as error:
                raise typer.BadParameter(str(error)) from error
            kind = resource_type or (current.kind if current is not None else "image")
            return store, await store.update(public_id, kind, metadata)

    store, succeeded = asyncio.run(_edit())
    _build_ui(style).render_notifications(store.notifications.notifications)
    if not succeeded:
        raise typer.Exit(code=1)


@cli.command()
def delete(
    public_id: str = typer.Argument(..., help="Identifier of the content item"),
    resource_type: Optional[str] = typer.Option(None, help="Provider resource type (image, video, raw)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
    style: UIStyle = style_option,
) -> None:
    """Delete an item after confirmation."""

    config = _client_config()
    _require_session(config)

    def _ask(item_id: str) -> bool:
        return typer.confirm(f"Are you sure you want to delete '{item_id}'?", default=False)

    confirm: Optional[Callable[[str], bool]] = None if yes else _ask

    async def _delete() -> tuple[CatalogStore, bool]:
        async with _build_client(config) as client:
            store = _build_store(config, client)
            kind = resource_type
            if kind is None:
                await store.refresh()
                current = store.find(public_id)
                kind = current.kind if current is not None else "image"
            return store, await store.delete(public_id, kind, confirm=confirm)

    store, succeeded = asyncio.run(_delete())
    _build_ui(style).render_notifications(store.notifications.notifications)
    if not succeeded and store.notifications.notifications:
        raise typer.Exit(code=1)


@cli.command()
def login(
    portal_id: str = typer.Option(..., "--id", prompt="ID", help="Portal ID"),
    password: str = typer.Option(..., prompt=True, hide_input=True, help="Portal password"),
) -> None:
    """Unlock the teacher controls on this machine."""

    config = _client_config()
    if _build_gate(config).login(portal_id, password):
        typer.echo("Logged in successfully")
        return
    typer.echo("Invalid credentials")
    raise typer.Exit(code=1)


@cli.command()
def logout() -> None:
    """Hide the teacher controls again."""

    config = _client_config()
    _build_gate(config).logout()
    typer.echo("Logged out")


@cli.command()
def session() -> None:
    """Report whether the teacher controls are unlocked."""

    config = _client_config()
    if _build_gate(config).is_authenticated:
        typer.echo("Teacher session active")
    else:
        typer.echo("Not logged in")


if __name__ == "__main__":
    cli()
