"""Derive the visible slice of the catalog from search text and category filters."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from .catalog import ContentItem


ALL = "All"


@dataclass(frozen=True)
class FilterCriteria:
    query: str = ""
    class_name: str = ALL
    subject: str = ALL
    file_type: str = ALL


def _category_matches(selected: str, value: Optional[str]) -> bool:
    return selected == ALL or value == selected


def matches(item: ContentItem, criteria: FilterCriteria) -> bool:
    """Return ``True`` when ``item`` passes the search text and every category filter."""

    metadata = item.metadata
    title = metadata.title or item.id
    if criteria.query.lower() not in title.lower():
        return False
    return (
        _category_matches(criteria.class_name, metadata.class_name)
        and _category_matches(criteria.subject, metadata.subject)
        and _category_matches(criteria.file_type, metadata.file_type)
    )


def filter_catalog(
    items: Iterable[ContentItem],
    criteria: Optional[FilterCriteria] = None,
) -> List[ContentItem]:
    """Return the matching items in their catalog order."""

    active = criteria or FilterCriteria()
    return [item for item in items if matches(item, active)]


def facet_values(items: Sequence[ContentItem]) -> Dict[str, List[str]]:
    """Distinct class, subject and file-type values, in order of first appearance."""

    facets: Dict[str, List[str]] = {"class_name": [], "subject": [], "file_type": []}
    for item in items:
        for facet, values in facets.items():
            value = getattr(item.metadata, facet)
            if value and value not in values:
                values.append(value)
    return facets


__all__ = ["ALL", "FilterCriteria", "facet_values", "filter_catalog", "matches"]
