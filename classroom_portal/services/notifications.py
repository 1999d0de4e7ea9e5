"""Ephemeral user-facing notifications with a fixed lifetime."""

from __future__ import annotations

import asyncio
import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Literal, Optional, Tuple


LOGGER = logging.getLogger(__name__)

NotificationKind = Literal["success", "error", "info"]
NOTIFICATION_KINDS: Tuple[str, ...] = ("success", "error", "info")
DEFAULT_LIFETIME_SECONDS = 5.0

Scheduler = Callable[[float, Callable[[], None]], Any]
Listener = Callable[[List["Notification"]], None]


@dataclass(frozen=True)
class Notification:
    id: str
    kind: NotificationKind
    message: str


def _default_scheduler(delay: float, callback: Callable[[], None]) -> Any:
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer
    return loop.call_later(delay, callback)


class NotificationQueue:
    """Ordered store of notifications that removes each entry after ``lifetime`` seconds.

    Listeners registered with :meth:`subscribe` receive the full snapshot
    whenever an entry is added or removed. Removal is idempotent, so a
    scheduled expiry that fires after an explicit dismissal does nothing.
    """

    def __init__(
        self,
        *,
        lifetime: float = DEFAULT_LIFETIME_SECONDS,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        self._lifetime = float(lifetime)
        self._scheduler = scheduler or _default_scheduler
        self._entries: List[Notification] = []
        self._listeners: Dict[int, Listener] = {}
        self._next_listener = 0
        self._lock = threading.Lock()

    @property
    def lifetime(self) -> float:
        return self._lifetime

    @property
    def notifications(self) -> List[Notification]:
        with self._lock:
            return list(self._entries)

    def push(self, kind: NotificationKind, message: str) -> Notification:
        if kind not in NOTIFICATION_KINDS:
            raise ValueError(f"Unknown notification kind: {kind}")
        entry = Notification(id=uuid.uuid4().hex[:8], kind=kind, message=str(message))
        with self._lock:
            self._entries.append(entry)
            snapshot = list(self._entries)
        LOGGER.debug("Notification %s (%s): %s", entry.id, kind, entry.message)
        self._scheduler(self._lifetime, lambda: self.dismiss(entry.id))
        self._publish(snapshot)
        return entry

    def dismiss(self, notification_id: str) -> bool:
        """Remove ``notification_id``; returns ``False`` when it was already gone."""

        with self._lock:
            remaining = [entry for entry in self._entries if entry.id != notification_id]
            if len(remaining) == len(self._entries):
                return False
            self._entries = remaining
            snapshot = list(remaining)
        self._publish(snapshot)
        return True

    def clear(self) -> None:
        with self._lock:
            if not self._entries:
                return
            self._entries = []
        self._publish([])

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` and return a callable that unregisters it."""

        with self._lock:
            token = self._next_listener
            self._next_listener += 1
            self._listeners[token] = listener

        def _unsubscribe() -> None:
            with self._lock:
                self._listeners.pop(token, None)

        return _unsubscribe

    def _publish(self, snapshot: List[Notification]) -> None:
        with self._lock:
            listeners = list(self._listeners.values())
        for listener in listeners:
            try:
                listener(list(snapshot))
            except Exception:  # noqa: BLE001
                LOGGER.exception("Notification listener raised an error")


__all__ = [
    "DEFAULT_LIFETIME_SECONDS",
    "NOTIFICATION_KINDS",
    "Notification",
    "NotificationKind",
    "NotificationQueue",
]
