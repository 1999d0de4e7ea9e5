from __future__ import annotations

import asyncio

import httpx
import pytest

from classroom_portal.services.catalog import CatalogStore, ContentItem, TOKEN_HEADER
from classroom_portal.services.metadata import ContentMetadata
from classroom_portal.services.notifications import NotificationQueue
from classroom_portal.web.server import create_app

from conftest import make_resource


def _run_with_store(app_or_transport, action, **store_kwargs):
    if isinstance(app_or_transport, httpx.AsyncBaseTransport):
        transport = app_or_transport
    else:
        transport = httpx.ASGITransport(app=app_or_transport)

    async def _main():
        async with httpx.AsyncClient(transport=transport, base_url="http://portal.test") as client:
            queue = NotificationQueue(scheduler=lambda delay, callback: None)
            store = CatalogStore(client, queue, **store_kwargs)
            result = await action(store)
            return store, result

    return asyncio.run(_main())


@pytest.fixture()
def app(temp_config, provider):
    return create_app(provider, config=temp_config)


def _messages(store: CatalogStore):
    return [(entry.kind, entry.message) for entry in store.notifications.notifications]


def test_content_item_from_resource_decodes_context() -> None:
    item = ContentItem.from_resource(
        make_resource("sunrise_classroom/a", title="Optics", teacher="Das", **{"class": "Class 12"})
    )

    assert item.id == "sunrise_classroom/a"
    assert item.url == "https://cdn.test/sunrise_classroom/a"
    assert item.kind == "image"
    assert item.format == "png"
    assert item.metadata.title == "Optics"
    assert item.metadata.class_name == "Class 12"
    assert item.metadata.subject is None
    assert item.created is not None and item.created.year == 2024


def test_content_item_tolerates_missing_context() -> None:
    item = ContentItem.from_resource({"public_id": "x", "created_at": "not a date"})

    assert item.metadata == ContentMetadata()
    assert item.kind == "image"
    assert item.created is None


def test_refresh_replaces_items_in_provider_order(app, provider) -> None:
    provider.resources = [make_resource("b", title="Newest"), make_resource("a", title="Older")]

    store, items = _run_with_store(app, lambda store: store.refresh())

    assert [item.id for item in items] == ["b", "a"]
    assert store.items == items
    assert _messages(store) == []


def test_refresh_failure_keeps_previous_items_silently(app, provider) -> None:
    provider.resources = [make_resource("a", title="Kept")]

    async def action(store):
        await store.refresh()
        provider.fail = True
        return await store.refresh()

    store, items = _run_with_store(app, action)

    assert [item.id for item in items] == ["a"]
    assert _messages(store) == []


def test_refresh_with_malformed_entry_keeps_previous_items() -> None:
    responses = iter(
        [
            {"resources": [{"public_id": "a"}]},
            {"resources": [{"public_id": "b"}, None]},
        ]
    )

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=next(responses))

    async def action(store):
        await store.refresh()
        return await store.refresh()

    store, items = _run_with_store(httpx.MockTransport(handler), action)

    assert [item.id for item in items] == ["a"]
    assert _messages(store) == []


def test_refresh_failure_can_be_surfaced(app, provider) -> None:
    provider.fail = True

    store, items = _run_with_store(app, lambda store: store.refresh(), surface_refresh_errors=True)

    assert items == ()
    assert _messages(store) == [("error", "Failed to load content")]


def test_create_prepends_uploaded_item(app, provider) -> None:
    provider.resources = [make_resource("a", title="Existing")]
    metadata = ContentMetadata(title="Worksheet", teacher="Rao", file_type="PDF")

    async def action(store):
        await store.refresh()
        return await store.create("sheet.pdf", b"%PDF", metadata, content_type="application/pdf")

    store, item = _run_with_store(app, action)

    assert item is not None
    assert item.id == "sunrise_classroom/sheet.pdf"
    assert [entry.id for entry in store.items] == ["sunrise_classroom/sheet.pdf", "a"]
    assert _messages(store) == [("success", "Content uploaded successfully")]
    _, filename, content_type, data, sent = provider.calls[-1]
    assert (filename, content_type, data) == ("sheet.pdf", "application/pdf", b"%PDF")
    assert (sent.title, sent.teacher, sent.file_type) == ("Worksheet", "Rao", "PDF")


def test_create_falls_back_to_submitted_metadata() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"success": True, "resource": {"public_id": "new", "resource_type": "raw"}},
        )

    metadata = ContentMetadata(title="Lab", teacher="Iyer")
    store, item = _run_with_store(
        httpx.MockTransport(handler),
        lambda store: store.create("lab.txt", b"data", metadata),
    )

    assert item.metadata == metadata


def test_create_failure_leaves_list_unchanged(app, provider) -> None:
    provider.fail = True

    store, item = _run_with_store(
        app, lambda store: store.create("x.png", b"img", ContentMetadata(title="x", teacher="y"))
    )

    assert item is None
    assert store.items == ()
    assert _messages(store) == [("error", "Failed to upload content")]


def test_update_mirrors_metadata_locally(app, provider) -> None:
    provider.resources = [make_resource("a", title="Old"), make_resource("b", title="Other")]
    metadata = ContentMetadata(
        title="New",
        teacher="Das",
        subject="Physics",
        class_name="Class 11",
        description="",
        file_type="Image",
    )

    async def action(store):
        await store.refresh()
        return await store.update("a", "image", metadata)

    store, succeeded = _run_with_store(app, action)

    assert succeeded is True
    assert store.find("a").metadata == metadata
    assert store.find("b").metadata.title == "Other"
    assert provider.calls[-1] == ("update", "a", "image", metadata)
    assert _messages(store) == [("success", "Content updated successfully")]


def test_update_failure_keeps_local_metadata(app, provider) -> None:
    provider.resources = [make_resource("a", title="Old")]

    async def action(store):
        await store.refresh()
        provider.fail = True
        return await store.update("a", "image", ContentMetadata(title="New", teacher="x"))

    store, succeeded = _run_with_store(app, action)

    assert succeeded is False
    assert store.find("a").metadata.title == "Old"
    assert _messages(store) == [("error", "Failed to update content")]


def test_delete_requires_confirmation(app, provider) -> None:
    provider.resources = [make_resource("a", title="Keep me")]

    async def action(store):
        await store.refresh()
        return await store.delete("a", "image", confirm=lambda item_id: False)

    store, succeeded = _run_with_store(app, action)

    assert succeeded is False
    assert [item.id for item in store.items] == ["a"]
    assert all(call[0] != "delete" for call in provider.calls)
    assert _messages(store) == []


def test_delete_removes_item_after_confirmation(app, provider) -> None:
    provider.resources = [make_resource("a"), make_resource("b")]
    asked = []

    async def action(store):
        await store.refresh()
        return await store.delete("a", "raw", confirm=lambda item_id: asked.append(item_id) or True)

    store, succeeded = _run_with_store(app, action)

    assert succeeded is True
    assert asked == ["a"]
    assert [item.id for item in store.items] == ["b"]
    assert provider.calls[-1] == ("delete", "a", "raw")
    assert _messages(store) == [("success", "Content deleted successfully")]


def test_delete_failure_keeps_item(app, provider) -> None:
    provider.resources = [make_resource("a")]

    async def action(store):
        await store.refresh()
        provider.fail = True
        return await store.delete("a", "image")

    store, succeeded = _run_with_store(app, action)

    assert succeeded is False
    assert [item.id for item in store.items] == ["a"]
    assert _messages(store) == [("error", "Failed to delete content")]


def test_mutations_carry_the_portal_token() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, request.headers.get(TOKEN_HEADER)))
        if request.method == "GET":
            return httpx.Response(200, json={"resources": []})
        return httpx.Response(200, json={"success": True})

    async def action(store):
        await store.refresh()
        await store.update("a", "image", ContentMetadata(title="t", teacher="u"))
        await store.delete("a", "image")

    _run_with_store(httpx.MockTransport(handler), action, api_token="s3cret")

    assert seen == [("GET", None), ("PUT", "s3cret"), ("DELETE", "s3cret")]


def test_non_json_response_counts_as_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>proxy error</html>")

    store, succeeded = _run_with_store(
        httpx.MockTransport(handler),
        lambda store: store.update("a", "image", ContentMetadata(title="t", teacher="u")),
    )

    assert succeeded is False
    assert _messages(store) == [("error", "Failed to update content")]


def test_update_of_unknown_id_reports_error_without_touching_list(app, provider) -> None:
    provider.resources = [make_resource("a", title="Only")]

    async def action(store):
        await store.refresh()
        before = store.items
        provider.fail = True
        succeeded = await store.update("missing", "image", ContentMetadata(title="x", teacher="y"))
        return before, succeeded

    store, (before, succeeded) = _run_with_store(app, action)

    assert succeeded is False
    assert store.items == before
    assert provider.calls[-1][:2] == ("update", "missing")
    assert _messages(store) == [("error", "Failed to update content")]
