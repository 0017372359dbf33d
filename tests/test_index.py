import pytest

from site_search.core.exceptions import DuplicateIdError, IndexBuildError, NotFoundError
from site_search.services.index import ContentIndex

from tests.conftest import make_item


def test_build_exposes_items_in_order(items):
    index = ContentIndex.build(items)
    assert [i.id for i in index.all()] == ["p1", "s1", "p2", "k1", "c1"]
    assert index.by_id("s1").title == "SEO Services"
    assert len(index) == 5
    assert "p2" in index
    assert "missing" not in index


def test_duplicate_ids_fail_the_build():
    items = [make_item("a", "First"), make_item("a", "Second")]
    with pytest.raises(DuplicateIdError) as exc:
        ContentIndex.build(items)
    assert exc.value.item_id == "a"
    assert isinstance(exc.value, IndexBuildError)


def test_unknown_id(index):
    with pytest.raises(NotFoundError):
        index.by_id("nope")
    assert index.get("nope") is None


def test_categories_and_tags_are_unique_and_sorted(index):
    assert index.categories() == ["accessibility", "languages", "marketing", "web-development"]
    tags = index.tags()
    assert tags.count("react") == 1
    assert tags == sorted(tags, key=str.lower)


def test_empty_index():
    index = ContentIndex.build([])
    assert index.all() == []
    assert index.categories() == []
