"""Shared helpers for building overview snapshots of the visible catalog."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from ..services.catalog import ContentItem
from ..services.filters import ALL, FilterCriteria
from ..services.metadata import UNKNOWN, display_file_type, display_teacher, display_title


DATE_FORMAT = "%b %d, %Y"


@dataclass
class ItemRow:
    id: str
    kind: str
    title: str
    teacher: str
    class_name: str
    subject: str
    file_type: str
    created: str
    url: str
    description: str


@dataclass
class OverviewSnapshot:
    rows: List[ItemRow]
    visible_count: int
    total_count: int
    class_totals: Dict[str, int] = field(default_factory=dict)
    subject_totals: Dict[str, int] = field(default_factory=dict)
    type_totals: Dict[str, int] = field(default_factory=dict)
    active_filters: List[str] = field(default_factory=list)


def _format_created(item: ContentItem) -> str:
    created = item.created
    if created is None:
        return item.created_at or "-"
    return created.strftime(DATE_FORMAT)


def build_row(item: ContentItem) -> ItemRow:
    metadata = item.metadata
    return ItemRow(
        id=item.id,
        kind=item.kind,
        title=display_title(metadata),
        teacher=display_teacher(metadata),
        class_name=metadata.class_name or UNKNOWN,
        subject=metadata.subject or UNKNOWN,
        file_type=display_file_type(metadata),
        created=_format_created(item),
        url=item.url,
        description=metadata.description or "",
    )


def describe_criteria(criteria: Optional[FilterCriteria]) -> List[str]:
    if criteria is None:
        return []
    active: List[str] = []
    if criteria.query:
        active.append(f"search: {criteria.query}")
    if criteria.class_name != ALL:
        active.append(f"class: {criteria.class_name}")
    if criteria.subject != ALL:
        active.append(f"subject: {criteria.subject}")
    if criteria.file_type != ALL:
        active.append(f"type: {criteria.file_type}")
    return active


def collect_overview(
    visible: Sequence[ContentItem],
    *,
    total: int,
    criteria: Optional[FilterCriteria] = None,
) -> OverviewSnapshot:
    """Aggregate the visible items into rows and per-category counts for UIs."""

    rows = [build_row(item) for item in visible]
    return OverviewSnapshot(
        rows=rows,
        visible_count=len(rows),
        total_count=total,
        class_totals=dict(Counter(row.class_name for row in rows)),
        subject_totals=dict(Counter(row.subject for row in rows)),
        type_totals=dict(Counter(row.file_type for row in rows)),
        active_filters=describe_criteria(criteria),
    )


__all__ = [
    "ItemRow",
    "OverviewSnapshot",
    "build_row",
    "collect_overview",
    "describe_criteria",
]
