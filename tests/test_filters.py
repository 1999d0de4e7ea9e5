from classroom_portal.services.catalog import ContentItem
from classroom_portal.services.filters import ALL, FilterCriteria, facet_values, filter_catalog, matches
from classroom_portal.services.metadata import ContentMetadata


def _item(item_id: str, **metadata) -> ContentItem:
    return ContentItem(
        id=item_id,
        url=f"https://cdn.test/{item_id}",
        created_at="2024-05-01T10:00:00Z",
        kind="image",
        metadata=ContentMetadata(**metadata),
    )


CATALOG = [
    _item("algebra-1", title="Algebra Basics", class_name="Class 10", subject="Mathematics", file_type="PDF"),
    _item("optics", title="Optics Lab", class_name="Class 12", subject="Physics", file_type="Video"),
    _item("cells", title="Cell Structure", class_name="Class 11", subject="Biology", file_type="Image"),
    _item("sunrise_classroom/untitled-algebra"),
]


def test_no_criteria_returns_everything_in_order() -> None:
    assert filter_catalog(CATALOG) == CATALOG
    assert filter_catalog(CATALOG, FilterCriteria()) == CATALOG


def test_search_is_case_insensitive_substring_of_title() -> None:
    visible = filter_catalog(CATALOG, FilterCriteria(query="LAB"))

    assert [item.id for item in visible] == ["optics"]


def test_search_falls_back_to_id_when_title_missing() -> None:
    visible = filter_catalog(CATALOG, FilterCriteria(query="algebra"))

    assert [item.id for item in visible] == ["algebra-1", "sunrise_classroom/untitled-algebra"]


def test_category_filters_combine() -> None:
    criteria = FilterCriteria(class_name="Class 12", subject="Physics", file_type="Video")

    assert [item.id for item in filter_catalog(CATALOG, criteria)] == ["optics"]
    assert filter_catalog(CATALOG, FilterCriteria(class_name="Class 12", subject="Biology")) == []


def test_category_filter_excludes_items_without_that_field() -> None:
    visible = filter_catalog(CATALOG, FilterCriteria(file_type="PDF"))

    assert [item.id for item in visible] == ["algebra-1"]


def test_filtering_is_a_subset_of_the_catalog() -> None:
    for criteria in (
        FilterCriteria(query="o"),
        FilterCriteria(subject="Mathematics"),
        FilterCriteria(class_name=ALL, file_type="Image"),
    ):
        visible = filter_catalog(CATALOG, criteria)
        assert all(item in CATALOG for item in visible)
        assert all(matches(item, criteria) for item in visible)


def test_facet_values_in_first_seen_order() -> None:
    assert facet_values(CATALOG) == {
        "class_name": ["Class 10", "Class 12", "Class 11"],
        "subject": ["Mathematics", "Physics", "Biology"],
        "file_type": ["PDF", "Video", "Image"],
    }


def test_class_filter_is_exact_match() -> None:
    assert [item.id for item in filter_catalog(CATALOG, FilterCriteria(class_name="Class 11"))] == ["cells"]
    assert filter_catalog(CATALOG, FilterCriteria(class_name="class 11")) == []


def test_partial_query_matches_regardless_of_case() -> None:
    catalog = [_item("a", title="Algebra Notes"), _item("b", title="Biology Slides")]

    for query in ("algeb", "ALGEB", "AlGeB"):
        assert [item.id for item in filter_catalog(catalog, FilterCriteria(query=query))] == ["a"]
