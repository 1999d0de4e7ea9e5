"""Plain-text listing for terminals without Rich rendering."""

from __future__ import annotations

from typing import Callable, Iterable, Optional, Sequence

from ..services.notifications import Notification
from .overview import ItemRow, OverviewSnapshot


class ConsoleUI:
    """Minimal console UI that prints one block per content item."""

    def __init__(self, *, writer: Optional[Callable[[str], None]] = None) -> None:
        self._write = writer or print

    def render(
        self,
        snapshot: OverviewSnapshot,
        *,
        authenticated: bool = False,
        notifications: Sequence[Notification] = (),
    ) -> None:
        self._write("Classroom Portal - Content")
        self._write("=" * 40)
        if snapshot.active_filters:
            self._write("Filters: " + ", ".join(snapshot.active_filters))
        self._write(f"Showing {snapshot.visible_count} of {snapshot.total_count} item(s)")
        self._write("")

        if not snapshot.rows:
            self._write("(no matching content)")
        for row in snapshot.rows:
            for line in self._format_row(row, authenticated=authenticated):
                self._write(line)
            self._write("")

        self.render_notifications(notifications)

    def render_notifications(self, notifications: Sequence[Notification]) -> None:
        for notification in notifications:
            self._write(f"[{notification.kind}] {notification.message}")

    @staticmethod
    def _format_row(row: ItemRow, *, authenticated: bool) -> Iterable[str]:
        yield f"{row.title} ({row.file_type})"
        yield f"  By {row.teacher} · {row.class_name} · {row.subject} · {row.created}"
        if row.description:
            yield f"  {row.description}"
        yield f"  {row.url}"
        if authenticated:
            yield f"  id: {row.id} [{row.kind}]"


__all__ = ["ConsoleUI"]
