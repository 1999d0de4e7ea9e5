from rich.console import Console

from classroom_portal.services.catalog import ContentItem
from classroom_portal.services.filters import FilterCriteria
from classroom_portal.services.metadata import ContentMetadata
from classroom_portal.services.notifications import Notification
from classroom_portal.ui.console import ConsoleUI
from classroom_portal.ui.modern import ModernUI
from classroom_portal.ui.overview import build_row, collect_overview, describe_criteria


ITEMS = [
    ContentItem(
        id="sunrise_classroom/algebra",
        url="https://cdn.test/algebra.pdf",
        created_at="2024-05-01T10:00:00Z",
        kind="raw",
        metadata=ContentMetadata(
            title="Algebra Basics",
            teacher="Ms. Rao",
            subject="Mathematics",
            class_name="Class 10",
            description="Chapter 1",
            file_type="PDF",
        ),
    ),
    ContentItem(
        id="sunrise_classroom/blank",
        url="https://cdn.test/blank.png",
        created_at="",
        kind="image",
    ),
]


def test_build_row_applies_display_fallbacks() -> None:
    row = build_row(ITEMS[1])

    assert row.title == "Untitled Document"
    assert row.teacher == "Unknown"
    assert row.file_type == "Unknown"
    assert row.created == "-"
    assert build_row(ITEMS[0]).created == "May 01, 2024"


def test_collect_overview_counts_visible_items() -> None:
    criteria = FilterCriteria(query="alg", subject="Mathematics")
    snapshot = collect_overview(ITEMS[:1], total=len(ITEMS), criteria=criteria)

    assert snapshot.visible_count == 1
    assert snapshot.total_count == 2
    assert snapshot.class_totals == {"Class 10": 1}
    assert snapshot.type_totals == {"PDF": 1}
    assert snapshot.active_filters == ["search: alg", "subject: Mathematics"]
    assert describe_criteria(None) == []


def test_console_ui_hides_ids_until_authenticated() -> None:
    lines = []
    ui = ConsoleUI(writer=lines.append)
    snapshot = collect_overview(ITEMS, total=len(ITEMS))

    ui.render(snapshot)
    assert "Algebra Basics (PDF)" in lines
    assert not any("id:" in line for line in lines)

    lines.clear()
    ui.render(snapshot, authenticated=True, notifications=[Notification("n1", "success", "Saved")])
    assert "  id: sunrise_classroom/algebra [raw]" in lines
    assert lines[-1] == "[success] Saved"


def test_modern_ui_renders_table_and_notifications() -> None:
    console = Console(record=True, width=240)
    ui = ModernUI(console=console)

    ui.render(
        collect_overview(ITEMS, total=len(ITEMS)),
        authenticated=True,
        notifications=[Notification("n1", "error", "Failed to load content")],
    )

    output = console.export_text()
    assert "Algebra Basics" in output
    assert "Untitled" in output
    assert "Teacher mode" in output
    assert "Failed to load content" in output


def test_modern_ui_reports_empty_results() -> None:
    console = Console(record=True, width=120)

    ModernUI(console=console).render(collect_overview([], total=3))

    assert "No content matches the current filters." in console.export_text()
