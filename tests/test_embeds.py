"""
Tests for the embed directives ([cpht_posts], [cpht_breadcrumbs]).

Run: pytest tests/test_embeds.py -v
"""

import pytest

from stories.embeds import (
    EmbedRequest,
    ShortcodeRegistry,
    parse_atts,
    register_embeds,
    shortcode_atts,
)


@pytest.fixture
def embeds(seeded):
    registry = ShortcodeRegistry()
    register_embeds(registry, seeded.shortcodes)
    return registry


def test_parse_atts_quoting_styles():
    atts = parse_atts(' columns=2 category="the news" ORDER=\'asc\' bare "positional"')
    assert atts == {"columns": "2", "category": "the news", "order": "asc"}


def test_shortcode_atts_drops_unknown_and_fills_defaults():
    assert shortcode_atts({"a": "1", "b": "2"}, {"b": "x", "c": "y"}) == {"a": "1", "b": "x"}


def test_posts_defaults(embeds):
    html = embeds.render("[cpht_posts]")
    assert "cpht-posts-wrapper" in html
    assert "cpht-columns-3" in html
    assert html.count('class="cpht-grid-item"') == 9
    assert 'data-nonce="' in html


@pytest.mark.parametrize("columns,expected", [("1", 1), ("4", 4), ("0", 3), ("7", 3), ("x", 3)])
def test_posts_columns_clamped(embeds, columns, expected):
    html = embeds.render(f"[cpht_posts columns={columns}]")
    assert f"cpht-columns-{expected}" in html


def test_posts_per_page_and_pagination(embeds):
    html = embeds.render('[cpht_posts posts_per_page="4"]', EmbedRequest(path="/stories/"))
    assert html.count('class="cpht-grid-item"') == 4
    assert 'href="/stories/?paged=2"' in html


def test_zero_page_size_falls_back_to_nine(embeds):
    html = embeds.render("[cpht_posts posts_per_page=0]")
    assert html.count('class="cpht-grid-item"') == 9


def test_query_parameter_overrides_category_attribute(embeds):
    request = EmbedRequest(query_params={"cpht_category": "news"})
    html = embeds.render('[cpht_posts category="featured"]', request)
    assert html.count('class="cpht-grid-item"') == 4
    assert '<option value="news" selected="selected">' in html


def test_category_attribute_used_without_query(embeds):
    html = embeds.render('[cpht_posts category="featured"]')
    assert html.count('class="cpht-grid-item"') == 5


def test_paged_query_parameter(embeds):
    request = EmbedRequest(query_params={"paged": "2"})
    html = embeds.render("[cpht_posts posts_per_page=4]", request)
    assert 'aria-current="page" class="page-numbers current">2<' in html


def test_orderby_title_ascending(embeds):
    html = embeds.render("[cpht_posts orderby=title order=ASC posts_per_page=1]")
    assert "Story 1" in html


def test_breadcrumbs_on_single_story(embeds, seeded):
    story = seeded.query.get_story("story-2")
    html = embeds.render("[cpht_breadcrumbs]", EmbedRequest(current_story=story))
    assert '<span class="breadcrumb_last">Story 2</span>' in html


def test_unknown_and_escaped_tags_left_alone(embeds):
    assert embeds.render("[gallery ids=1]") == "[gallery ids=1]"
    assert embeds.render("[[cpht_breadcrumbs]]") == "[cpht_breadcrumbs]"


def test_surrounding_text_is_kept(embeds):
    html = embeds.render("<p>Intro</p>[cpht_breadcrumbs]<p>Outro</p>")
    assert html.startswith("<p>Intro</p><div class=\"cpht-breadcrumbs\">")
    assert html.endswith("<p>Outro</p>")


def test_render_tag_unknown():
    with pytest.raises(KeyError):
        ShortcodeRegistry().render_tag("nope", {})
