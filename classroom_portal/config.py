"""Configuration loading utilities for the Classroom Portal application."""

from __future__ import annotations

import contextlib
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from dotenv import load_dotenv


LOGGER = logging.getLogger(__name__)


_PERMISSION_SENTINEL = ".classroom_portal_write_check"

DEFAULT_API_BASE_URL = "https://api.cloudinary.com/v1_1"
DEFAULT_FOLDER = "sunrise_classroom"
DEFAULT_MAX_RESULTS = 100
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_PORTAL_URL = "http://127.0.0.1:3000"
DEFAULT_MAX_UPLOAD_BYTES = 100 * 1024 * 1024


def _ensure_writable_directory(path: Path) -> bool:
    """Return ``True`` if *path* can be created and written to."""

    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError:
        return False

    test_file = path / _PERMISSION_SENTINEL
    try:
        with test_file.open("w", encoding="utf-8") as handle:
            handle.write("ok")
    except OSError:
        return False
    finally:
        with contextlib.suppress(OSError):
            test_file.unlink()

    return True


def _select_writable_directory(
    preferred: Path,
    *,
    label: str,
    fallbacks: Iterable[Path] = (),
) -> Tuple[Path, bool]:
    """Return a usable directory based on ``preferred`` and ``fallbacks``.

    The first writable candidate wins. When no candidate can be prepared the
    original ``preferred`` path is returned so that the bootstrapper can
    report the problem.
    """

    preferred = preferred.resolve()
    if _ensure_writable_directory(preferred):
        return preferred, False

    for fallback in fallbacks:
        candidate = fallback.resolve()
        if candidate == preferred:
            continue
        if _ensure_writable_directory(candidate):
            LOGGER.warning(
                "Preferred %s directory '%s' is not writable; using fallback '%s'.",
                label,
                preferred,
                candidate,
            )
            return candidate, True

    LOGGER.warning(
        "%s directory '%s' is not writable and no fallback is available.",
        label.capitalize(),
        preferred,
    )
    return preferred, False


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _coerce_int(value: Any, default: int) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


def _coerce_float(value: Any, default: float) -> float:
    try:
        return float(str(value).strip())
    except (TypeError, ValueError):
        return default


def _coerce_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    text = _clean(value)
    if text is None:
        return default
    lowered = text.lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    return default


@dataclass(frozen=True)
class ProviderSettings:
    """Credentials and query options for the external media provider."""

    cloud_name: Optional[str] = None
    api_key: Optional[str] = None
    api_secret: Optional[str] = None
    folder: str = DEFAULT_FOLDER
    max_results: int = DEFAULT_MAX_RESULTS
    api_base_url: str = DEFAULT_API_BASE_URL
    timeout: float = DEFAULT_TIMEOUT_SECONDS

    @property
    def is_configured(self) -> bool:
        return bool(self.cloud_name and self.api_key and self.api_secret)

    @property
    def account_url(self) -> str:
        return f"{self.api_base_url.rstrip('/')}/{self.cloud_name or ''}"


@dataclass(frozen=True)
class AppConfig:
    """Container describing runtime paths and service settings."""

    storage_root: Path
    static_root: Path
    provider: ProviderSettings = field(default_factory=ProviderSettings)
    environment: str = "development"
    api_token: Optional[str] = None
    portal_url: str = DEFAULT_PORTAL_URL
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    surface_refresh_errors: bool = False

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def session_file(self) -> Path:
        """Location of the persisted login flag."""

        return self.storage_root / "session.json"

    @classmethod
    def from_mapping(
        cls,
        mapping: Mapping[str, Any],
        *,
        base_path: Path,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "AppConfig":
        env = os.environ if environ is None else environ

        preferred_storage = (base_path / mapping["storage_root"]).resolve()
        storage_fallback = Path.home() / ".classroom_portal" / "storage"
        storage_root, _ = _select_writable_directory(
            preferred_storage,
            label="storage",
            fallbacks=(storage_fallback,),
        )

        static_root = (base_path / mapping.get("static_root", "dist")).resolve()

        raw_provider: Dict[str, Any] = dict(mapping.get("provider") or {})
        provider = ProviderSettings(
            cloud_name=_clean(env.get("CLOUDINARY_CLOUD_NAME") or raw_provider.get("cloud_name")),
            api_key=_clean(env.get("CLOUDINARY_API_KEY") or raw_provider.get("api_key")),
            api_secret=_clean(env.get("CLOUDINARY_API_SECRET") or raw_provider.get("api_secret")),
            folder=_clean(raw_provider.get("folder")) or DEFAULT_FOLDER,
            max_results=_coerce_int(raw_provider.get("max_results"), DEFAULT_MAX_RESULTS),
            api_base_url=_clean(raw_provider.get("api_base_url")) or DEFAULT_API_BASE_URL,
            timeout=_coerce_float(raw_provider.get("timeout"), DEFAULT_TIMEOUT_SECONDS),
        )

        environment = (
            _clean(env.get("CLASSROOM_PORTAL_ENV"))
            or _clean(mapping.get("environment"))
            or "development"
        ).lower()

        max_upload_bytes = _coerce_int(
            env.get("CLASSROOM_PORTAL_MAX_UPLOAD_BYTES") or mapping.get("max_upload_bytes"),
            DEFAULT_MAX_UPLOAD_BYTES,
        )

        return cls(
            storage_root=storage_root,
            static_root=static_root,
            provider=provider,
            environment=environment,
            api_token=_clean(env.get("CLASSROOM_PORTAL_API_TOKEN") or mapping.get("api_token")),
            portal_url=(
                _clean(env.get("CLASSROOM_PORTAL_URL"))
                or _clean(mapping.get("portal_url"))
                or DEFAULT_PORTAL_URL
            ),
            max_upload_bytes=max_upload_bytes,
            surface_refresh_errors=_coerce_bool(mapping.get("surface_refresh_errors"), False),
        )


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load the application configuration from ``config/default.json`` by default.

    Provider credentials are read from the environment, after loading a
    ``.env`` file when one is present.
    """

    load_dotenv()

    base_path = Path(__file__).resolve().parent.parent
    if config_path is None:
        config_path = base_path / "config" / "default.json"

    with config_path.open("r", encoding="utf-8") as config_file:
        raw_config = json.load(config_file)

    return AppConfig.from_mapping(raw_config, base_path=base_path)


__all__ = ["AppConfig", "ProviderSettings", "load_config"]
