from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, List

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from classroom_portal.bootstrap import Bootstrapper
from classroom_portal.config import AppConfig
from classroom_portal.services.provider import ProviderError


class ManualScheduler:
    """Collects scheduled callbacks so tests can fire expiries on demand."""

    def __init__(self) -> None:
        self.calls = []

    def __call__(self, delay, callback):
        self.calls.append((delay, callback))
        return None

    def fire_all(self) -> None:
        pending, self.calls = self.calls, []
        for _, callback in pending:
            callback()


class FakeProvider:
    """In-memory stand-in for the media provider."""

    def __init__(self) -> None:
        self.resources: List[Dict[str, Any]] = []
        self.calls: List[tuple] = []
        self.fail = False

    def _maybe_fail(self) -> None:
        if self.fail:
            raise ProviderError("provider unavailable", status_code=503)

    async def list_resources(self) -> List[Dict[str, Any]]:
        self.calls.append(("list",))
        self._maybe_fail()
        return list(self.resources)

    async def upload(self, data, *, filename, content_type, metadata) -> Dict[str, Any]:
        self.calls.append(("upload", filename, content_type, data, metadata))
        self._maybe_fail()
        resource = {
            "public_id": f"sunrise_classroom/{filename}",
            "secure_url": f"https://cdn.test/{filename}",
            "created_at": "2024-05-01T10:00:00Z",
            "resource_type": "raw",
            "context": {"custom": {"title": metadata.title, "teacher": metadata.teacher}},
        }
        self.resources.insert(0, resource)
        return resource

    async def update_metadata(self, public_id, resource_type, metadata) -> Dict[str, Any]:
        self.calls.append(("update", public_id, resource_type, metadata))
        self._maybe_fail()
        return {"public_ids": [public_id]}

    async def delete(self, public_id, resource_type) -> Dict[str, Any]:
        self.calls.append(("delete", public_id, resource_type))
        self._maybe_fail()
        self.resources = [item for item in self.resources if item.get("public_id") != public_id]
        return {"result": "ok"}


def make_resource(public_id: str, **custom: str) -> Dict[str, Any]:
    return {
        "public_id": public_id,
        "secure_url": f"https://cdn.test/{public_id}",
        "created_at": "2024-05-01T10:00:00Z",
        "resource_type": "image",
        "format": "png",
        "context": {"custom": dict(custom)},
    }


@pytest.fixture()
def temp_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> AppConfig:
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    config_file = config_dir / "default.json"
    config_file.write_text(
        """
        {
            \"storage_root\": \"storage\",\n
            \"static_root\": \"dist\"\n
        }
        """,
        encoding="utf-8",
    )
    monkeypatch.chdir(tmp_path)

    config = AppConfig.from_mapping(
        {
            "storage_root": "storage",
            "static_root": "dist",
            "provider": {"cloud_name": "demo", "api_key": "key", "api_secret": "secret"},
        },
        base_path=tmp_path,
        environ={},
    )

    Bootstrapper(config).initialize()
    return config


@pytest.fixture()
def manual_scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture()
def provider() -> FakeProvider:
    return FakeProvider()
