"""A Rich-powered console front-end for browsing classroom content."""

from __future__ import annotations

from typing import Dict, Optional, Sequence

from rich import box
from rich.columns import Columns
from rich.console import Console, Group
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from ..services.notifications import Notification
from .overview import OverviewSnapshot


TYPE_ICONS: Dict[str, str] = {
    "PDF": "📄",
    "Video": "🎬",
    "Image": "🖼️",
    "PPT": "📊",
}

NOTIFICATION_STYLES: Dict[str, str] = {
    "success": "green",
    "error": "red",
    "info": "cyan",
}


class ModernUI:
    """Render the content hub using Rich widgets."""

    def __init__(self, *, console: Optional[Console] = None) -> None:
        self._console = console or Console()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def render(
        self,
        snapshot: OverviewSnapshot,
        *,
        authenticated: bool = False,
        notifications: Sequence[Notification] = (),
    ) -> None:
        console = self._console
        console.rule("[bold magenta]Smart Classroom Content Hub")

        if snapshot.active_filters:
            console.print(Text("Filters: " + " · ".join(snapshot.active_filters), style="dim"))

        if snapshot.visible_count == 0:
            console.print(
                Panel(
                    "No content matches the current filters.",
                    border_style="yellow",
                    box=box.ROUNDED,
                )
            )
        else:
            console.print(
                Columns(
                    [self._build_table(snapshot, authenticated=authenticated), self._build_stats_panel(snapshot)],
                    expand=True,
                )
            )

        if notifications:
            self.render_notifications(notifications)

        if authenticated:
            console.print(
                Text.from_markup(
                    "Teacher mode: use [bold]run.py edit ID[/bold] or [bold]run.py delete ID[/bold].",
                    style="dim",
                ),
                justify="center",
            )

    def render_notifications(self, notifications: Sequence[Notification]) -> None:
        for notification in notifications:
            style = NOTIFICATION_STYLES.get(notification.kind, "white")
            self._console.print(
                Panel(
                    Text(notification.message),
                    title=notification.kind.capitalize(),
                    border_style=style,
                    box=box.ROUNDED,
                    expand=False,
                )
            )

    # ------------------------------------------------------------------
    # Rendering helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _build_table(snapshot: OverviewSnapshot, *, authenticated: bool) -> Table:
        table = Table(box=box.SIMPLE_HEAVY, expand=True, show_lines=False)
        if authenticated:
            table.add_column("ID", style="dim", overflow="fold")
        table.add_column("Title", style="bold")
        table.add_column("Teacher")
        table.add_column("Class", style="bright_cyan")
        table.add_column("Subject", style="magenta")
        table.add_column("Type")
        table.add_column("Added", justify="right", style="dim")

        for row in snapshot.rows:
            icon = TYPE_ICONS.get(row.file_type, "📁")
            cells = [
                row.title,
                row.teacher,
                row.class_name,
                row.subject,
                f"{icon} {row.file_type}",
                row.created,
            ]
            if authenticated:
                cells.insert(0, f"{row.id} ({row.kind})")
            table.add_row(*cells)
        return table

    @staticmethod
    def _build_stats_panel(snapshot: OverviewSnapshot) -> Panel:
        metrics = Table.grid(expand=True, padding=(0, 1))
        metrics.add_column(style="dim")
        metrics.add_column(justify="right", style="bold")
        metrics.add_row("Showing", f"{snapshot.visible_count} / {snapshot.total_count}")

        sections = [metrics]
        for label, totals in (
            ("Classes", snapshot.class_totals),
            ("Subjects", snapshot.subject_totals),
            ("Types", snapshot.type_totals),
        ):
            grid = Table.grid(expand=True, padding=(0, 1))
            grid.add_column(style="dim")
            grid.add_column(justify="right", style="bold")
            for name, count in sorted(totals.items()):
                grid.add_row(name, str(count))
            sections.append(Rule(label, style="magenta"))
            sections.append(grid)

        return Panel(Group(*sections), title="At a glance", border_style="magenta", box=box.ROUNDED)


__all__ = ["ModernUI"]
