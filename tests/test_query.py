"""
Tests for the content query engine.

Run: pytest tests/test_query.py -v
"""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from stories.models import ALL_ITEMS, FilterCriteria, QueryResult, SortDirection, SortField
from tests.conftest import make_story


def test_empty_category_lists_every_category(seeded):
    result = seeded.query.query(FilterCriteria(per_page=20))
    assert result.found_posts == 9
    assert {c for item in result.items for c in item.categories} == {"featured", "news"}


def test_category_filter_only_returns_that_category(seeded):
    result = seeded.query.query(FilterCriteria(category="featured", per_page=20))
    assert result.found_posts == 5
    assert all("featured" in item.categories for item in result.items)


def test_unknown_category_is_empty_not_an_error(seeded):
    result = seeded.query.query(FilterCriteria(category="does-not-exist"))
    assert result.items == []
    assert result.found_posts == 0
    assert result.max_pages == 0


def test_default_order_is_newest_first(seeded):
    result = seeded.query.query(FilterCriteria())
    assert [item.slug for item in result.items][:3] == ["story-9", "story-8", "story-7"]


def test_title_ascending(seeded):
    seeded.db.upsert_story(make_story(10, title="Aardvark"), seeded.config.post_type)
    result = seeded.query.query(FilterCriteria(order_by=SortField.TITLE, order=SortDirection.ASC))
    assert result.items[0].title == "Aardvark"


def test_pagination_splits_results(seeded):
    page1 = seeded.query.query(FilterCriteria(per_page=4, page=1))
    page3 = seeded.query.query(FilterCriteria(per_page=4, page=3))
    assert len(page1.items) == 4
    assert len(page3.items) == 1
    assert page1.max_pages == page3.max_pages == 3
    assert not {i.id for i in page1.items} & {i.id for i in page3.items}


def test_page_past_the_end_is_empty(seeded):
    result = seeded.query.query(FilterCriteria(per_page=4, page=10))
    assert result.items == []
    assert result.found_posts == 9
    assert result.max_pages == 3


@pytest.mark.parametrize("found,per_page,expected", [(0, 9, 0), (9, 9, 1), (10, 9, 2), (5, 2, 3)])
def test_max_pages_is_ceil(found, per_page, expected):
    assert QueryResult.page_count(found, per_page) == expected


def test_all_items_is_a_single_page(seeded):
    result = seeded.query.query(FilterCriteria(per_page=ALL_ITEMS, page=1))
    assert len(result.items) == 9
    assert result.max_pages == 1


def test_invalid_page_size_rejected():
    with pytest.raises(ValidationError):
        FilterCriteria(per_page=0)


def test_random_order_returns_the_whole_set(seeded):
    result = seeded.query.query(FilterCriteria(order_by=SortField.RANDOM, per_page=ALL_ITEMS))
    assert sorted(i.slug for i in result.items) == sorted(f"story-{n}" for n in range(1, 10))


def test_drafts_are_not_listed(seeded):
    seeded.db.upsert_story(make_story(10, status="draft"), seeded.config.post_type)
    assert seeded.query.query(FilterCriteria(per_page=20)).found_posts == 9
    assert seeded.query.get_story("story-10") is None


def test_items_are_hydrated(seeded):
    item = seeded.query.get_story("story-3")
    assert item.title == "Story 3"
    assert item.date == "January 3, 2024"
    assert [b.content for b in item.blocks] == ["<p>Body 3</p>", "<blockquote>Stay strong</blockquote>"]
    assert item.categories == ["featured"]


def test_categories_in_use(seeded):
    categories = seeded.query.categories_in_use()
    assert [(c.slug, c.count) for c in categories] == [("featured", 5), ("news", 4)]


def test_adjacent_stories(seeded):
    item = seeded.query.get_story("story-5")
    previous, following = seeded.query.adjacent(item)
    assert previous.slug == "story-4"
    assert following.slug == "story-6"

    first = seeded.query.get_story("story-1")
    assert seeded.query.adjacent(first)[0] is None


def test_reimport_replaces_story(seeded):
    seeded.db.upsert_story(make_story(2, title="Renamed", categories=[]), seeded.config.post_type)
    item = seeded.query.get_story("story-2")
    assert item.title == "Renamed"
    assert item.categories == []
    assert seeded.query.query(FilterCriteria(per_page=20)).found_posts == 9


def test_huge_page_number_is_empty_not_an_error(seeded):
    result = seeded.query.query(FilterCriteria(page=2 ** 62))
    assert result.items == []
    assert result.found_posts == 9
    assert result.max_pages == 1


def test_dates_are_ordered_across_utc_offsets(ctx):
    plus_five = timezone(timedelta(hours=5))
    # 13:00+05:00 is 08:00 UTC, earlier than the naive (UTC) 10:00 story
    ctx.db.upsert_story(
        make_story(1, published_at=datetime(2024, 1, 1, 13, 0, tzinfo=plus_five)), ctx.config.post_type
    )
    ctx.db.upsert_story(make_story(2, published_at=datetime(2024, 1, 1, 10, 0)), ctx.config.post_type)
    ctx.db.upsert_story(
        make_story(3, published_at=datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)), ctx.config.post_type
    )

    result = ctx.query.query(FilterCriteria())
    assert [item.slug for item in result.items] == ["story-2", "story-3", "story-1"]

    previous, following = ctx.query.adjacent(ctx.query.get_story("story-3"))
    assert previous.slug == "story-1"
    assert following.slug == "story-2"


def test_published_at_is_read_back_in_utc(ctx):
    plus_two = timezone(timedelta(hours=2))
    ctx.db.upsert_story(
        make_story(4, published_at=datetime(2024, 1, 4, 12, 0, tzinfo=plus_two)), ctx.config.post_type
    )
    item = ctx.query.get_story("story-4")
    assert item.published_at == datetime(2024, 1, 4, 10, 0, tzinfo=timezone.utc)
    assert item.published_at.utcoffset() == timedelta(0)
