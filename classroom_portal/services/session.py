"""Persisted login flag gating the teacher-only controls.

The gate compares against one fixed credential pair and remembers the
outcome in a small JSON file. It only decides what the client shows; it is
not an authorization boundary for the proxy.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path

from ..config import AppConfig


LOGGER = logging.getLogger(__name__)

PORTAL_ID = "sunrise"
PORTAL_PASSWORD = "password"


@dataclass
class SessionState:
    authenticated: bool = False


class SessionStore:
    """Load and store :class:`SessionState` in the portal storage root."""

    def __init__(self, config: AppConfig) -> None:
        self._path = config.session_file

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> SessionState:
        if not self._path.exists():
            return SessionState()

        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            LOGGER.warning("Ignoring unreadable session file %s", self._path)
            return SessionState()

        if not isinstance(payload, dict):
            return SessionState()
        return SessionState(authenticated=payload.get("authenticated") is True)

    def save(self, state: SessionState) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(asdict(state), indent=2), encoding="utf-8")

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)


class AuthGate:
    def __init__(self, store: SessionStore) -> None:
        self._store = store
        self._authenticated = store.load().authenticated

    @property
    def is_authenticated(self) -> bool:
        return self._authenticated

    def login(self, portal_id: str, password: str) -> bool:
        if portal_id != PORTAL_ID or password != PORTAL_PASSWORD:
            LOGGER.info("Rejected login attempt for id %r", portal_id)
            return False
        self._store.save(SessionState(authenticated=True))
        self._authenticated = True
        LOGGER.info("Portal session started")
        return True

    def logout(self) -> None:
        self._store.clear()
        self._authenticated = False
        LOGGER.info("Portal session ended")


__all__ = ["AuthGate", "PORTAL_ID", "PORTAL_PASSWORD", "SessionState", "SessionStore"]
