"""
HTML fragments for the story listing.

The same fragments serve full page renders and AJAX updates. Output depends
only on the arguments and the (immutable) configuration. Text is escaped;
stored rich-text blocks are trusted HTML from the authoring side.
"""

import re
from html import escape
from typing import List, Optional, Sequence
from urllib.parse import urlencode

from stories.config import StoriesConfig
from stories.models import CATEGORY_PARAM, PAGE_PARAM, Category, ContentItem, QueryResult

NO_RESULTS_MESSAGE = "No posts found."
FILTER_LABEL = "FILTER STORIES"
FILTER_PLACEHOLDER = "Filter by Category"

# paginate_links() defaults: pages kept at each end / around the current page
END_SIZE = 1
MID_SIZE = 2

_BLOCKQUOTE_RE = re.compile(r"<blockquote>", re.IGNORECASE)


def clamp_columns(value: int, default: int = 3) -> int:
    """Columns outside 1-4 fall back to the default."""
    return value if 1 <= value <= 4 else default


class FragmentRenderer:
    """Builds the listing markup. Stateless apart from config."""

    def __init__(self, config: StoriesConfig):
        self.config = config

    # ============================================================
    # GRID
    # ============================================================

    def render_card(self, item: ContentItem) -> str:
        parts = [
            '<div class="cpht-grid-item">',
            f'<a href="{escape(self.config.permalink(item.slug))}" class="cpht-card-link">',
            '<div class="cpht-card">',
        ]
        if item.image_url:
            parts.append(
                '<div class="cpht-card-image">'
                f'<img src="{escape(item.image_url)}" alt="{escape(item.title)}" '
                'class="cpht-thumbnail" loading="lazy">'
                "</div>"
            )
        parts.append('<div class="cpht-card-content">')
        if item.date:
            parts.append(f'<div class="cpht-card-date">{escape(item.date)}</div>')
        parts.append(f'<h3 class="cpht-card-title">{escape(item.title)}</h3>')
        if item.excerpt:
            parts.append(f'<div class="cpht-card-excerpt">{escape(item.excerpt)}</div>')
        parts.extend(["</div>", "</div>", "</a>", "</div>"])
        return "\n".join(parts)

    def render_grid(self, items: Sequence[ContentItem], columns: int) -> str:
        cards = "\n".join(self.render_card(item) for item in items)
        return f'<div class="cpht-grid cpht-columns-{int(columns)}">\n{cards}\n</div>'

    def render_empty_state(self) -> str:
        return f'<div class="cpht-no-results">\n<p>{escape(NO_RESULTS_MESSAGE)}</p>\n</div>'

    # ============================================================
    # PAGINATION
    # ============================================================

    def page_url(self, page: int, category: str = "", base_url: Optional[str] = None) -> str:
        """Link target for a page; the controller reads `paged` back out of it."""
        params = []
        if category:
            params.append((CATEGORY_PARAM, category))
        if page > 1:
            params.append((PAGE_PARAM, str(page)))
        base = base_url if base_url is not None else self.config.archive_url
        return f"{base}?{urlencode(params)}" if params else base

    def render_pagination(
        self,
        current: int,
        total: int,
        category: str = "",
        base_url: Optional[str] = None,
    ) -> str:
        if total <= 1:
            return ""

        def link(page: int, label: str, css: str) -> str:
            href = escape(self.page_url(page, category, base_url))
            return f'<a class="{css}" href="{href}">{label}</a>'

        links: List[str] = []
        if current > 1:
            links.append(link(current - 1, "&laquo; Previous", "prev page-numbers"))

        dots = False
        for n in range(1, total + 1):
            if n == current:
                links.append(f'<span aria-current="page" class="page-numbers current">{n}</span>')
                dots = True
            elif n <= END_SIZE or current - MID_SIZE <= n <= current + MID_SIZE or n > total - END_SIZE:
                links.append(link(n, str(n), "page-numbers"))
                dots = True
            elif dots:
                links.append('<span class="page-numbers dots">&hellip;</span>')
                dots = False

        if current < total:
            links.append(link(current + 1, "Next &raquo;", "next page-numbers"))

        return '<div class="cpht-pagination">\n' + "\n".join(links) + "\n</div>"

    # ============================================================
    # COMPOSITES
    # ============================================================

    def render_results(
        self,
        result: QueryResult,
        columns: int,
        category: str = "",
        base_url: Optional[str] = None,
    ) -> str:
        """Content-area fragment: grid + pagination, or the empty state."""
        if not result.items:
            return self.render_empty_state()
        return "\n".join(
            part
            for part in (
                self.render_grid(result.items, columns),
                self.render_pagination(result.page, result.max_pages, category, base_url),
            )
            if part
        )

    def render_filter(self, categories: Sequence[Category], active: str, nonce: str) -> str:
        if not categories:
            return ""
        options = [f'<option value="">{escape(FILTER_PLACEHOLDER)}</option>']
        for category in categories:
            selected = ' selected="selected"' if category.slug == active else ""
            options.append(
                f'<option value="{escape(category.slug)}"{selected}>{escape(category.name)}</option>'
            )
        return (
            '<div class="cpht-filter-section">\n'
            '<div class="cpht-filter-container">\n'
            f'<div class="cpht-filter-label">{escape(FILTER_LABEL)}</div>\n'
            '<div class="cpht-filter-wrapper">\n'
            f'<select id="cpht-category-filter" class="cpht-filter-select" data-nonce="{escape(nonce)}">\n'
            + "\n".join(options)
            + "\n</select>\n</div>\n</div>\n</div>"
        )

    def render_listing(
        self,
        result: QueryResult,
        columns: int,
        categories: Sequence[Category],
        active_category: str,
        nonce: str,
        base_url: Optional[str] = None,
    ) -> str:
        """The whole embed: filter section + content area."""
        parts = ['<div class="cpht-posts-wrapper">']
        filter_html = self.render_filter(categories, active_category, nonce)
        if filter_html:
            parts.append(filter_html)
        parts.append(
            f'<div class="cpht-content-area" data-columns="{int(columns)}">\n'
            f"{self.render_results(result, columns, active_category, base_url)}\n"
            "</div>"
        )
        parts.append("</div>")
        return "\n".join(parts)

    # ============================================================
    # NAVIGATION & SINGLE STORY
    # ============================================================

    def render_breadcrumbs(self, story_title: Optional[str] = None) -> str:
        divider = '<span class="cpht-breadcrumb-divider">/</span>'
        parts = [
            '<div class="cpht-breadcrumbs">',
            f'<a href="{escape(self.config.home_url)}">{escape(self.config.home_label)}</a>',
            divider,
            f'<a href="{escape(self.config.archive_url)}">{escape(self.config.archive_label)}</a>',
        ]
        if story_title:
            parts.append(divider)
            parts.append(f'<span class="breadcrumb_last">{escape(story_title)}</span>')
        parts.append("</div>")
        return "".join(parts)

    def render_story(
        self,
        item: ContentItem,
        previous: Optional[ContentItem] = None,
        following: Optional[ContentItem] = None,
    ) -> str:
        parts = [f'<article id="cpht-post-{item.id}" class="cpht-post">']
        if item.excerpt:
            parts.append(
                '<div class="cpht-post-excerpt-section"><div class="cpht-post-excerpt">'
                f'<span class="cpht-label">Excerpt:</span> {escape(item.excerpt)}'
                "</div></div>"
            )
        if item.date:
            parts.append(
                '<div class="cpht-post-date-section"><div class="cpht-post-date">'
                f'<span class="cpht-label">Date:</span> {escape(item.date)}'
                "</div></div>"
            )
        if item.blocks:
            parts.append('<div class="cpht-post-content-section">')
            for block in item.blocks:
                if not block.content:
                    continue
                content = _BLOCKQUOTE_RE.sub('<blockquote class="cpht-blockquote">', block.content)
                parts.append(f'<div class="cpht-post-content-row">{content}</div>')
            parts.append("</div>")

        nav = ['<nav class="cpht-post-navigation container">', '<div class="cpht-nav-links">']
        nav.append('<div class="cpht-nav-button cpht-nav-previous">')
        if previous is not None:
            nav.append(f'<a href="{escape(self.config.permalink(previous.slug))}" rel="prev">See Previous</a>')
        nav.append("</div>")
        nav.append(
            '<div class="cpht-nav-button cpht-nav-all">'
            f'<a href="{escape(self.config.archive_url)}">See All</a></div>'
        )
        nav.append('<div class="cpht-nav-button cpht-nav-next">')
        if following is not None:
            nav.append(f'<a href="{escape(self.config.permalink(following.slug))}" rel="next">See Next</a>')
        nav.append("</div>")
        nav.extend(["</div>", "</nav>"])
        parts.extend(nav)
        parts.append("</article>")
        return "\n".join(parts)

    def render_page(self, title: str, body: str, head: str = "", footer: str = "") -> str:
        """Minimal document shell around embedded content."""
        return (
            "<!DOCTYPE html>\n"
            '<html lang="en">\n<head>\n<meta charset="utf-8">\n'
            '<meta name="viewport" content="width=device-width, initial-scale=1">\n'
            f"<title>{escape(title)}</title>\n{head}\n</head>\n"
            f'<body>\n<main id="main" class="site-main">\n{body}\n</main>\n{footer}\n</body>\n</html>\n'
        )
