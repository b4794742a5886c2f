"""
Content query engine: filtered, sorted, paginated story listings.

Ordering by SortField.RANDOM is not stable between requests, so items can
move between pages while paginating a random listing. Known limitation.
"""

import sqlite3
from datetime import datetime
from typing import List, Optional, Tuple

from stories.db import StoryDatabase
from stories.log import EventType, log_event
from stories.models import (
    Category,
    ContentBlock,
    ContentItem,
    FilterCriteria,
    QueryResult,
    SortDirection,
    SortField,
    sortable_timestamp,
)

_ORDER_COLUMNS = {
    SortField.DATE: "s.published_at",
    SortField.TITLE: "s.title COLLATE NOCASE",
    SortField.MENU_ORDER: "s.menu_order",
}

PUBLISHED = "publish"


class StoryQuery:
    """Runs listing queries against the stories of one post type."""

    def __init__(self, db: StoryDatabase, post_type: str):
        self.db = db
        self.post_type = post_type

    def _where(self, category: str) -> Tuple[str, list]:
        clause = "s.post_type = ? AND s.status = ?"
        params: list = [self.post_type, PUBLISHED]
        if category:
            clause += (
                " AND EXISTS (SELECT 1 FROM story_categories sc"
                " WHERE sc.story_id = s.id AND sc.category_slug = ?)"
            )
            params.append(category)
        return clause, params

    @staticmethod
    def _order_by(criteria: FilterCriteria) -> str:
        if criteria.order_by == SortField.RANDOM:
            return "RANDOM()"
        direction = "ASC" if criteria.order == SortDirection.ASC else "DESC"
        return f"{_ORDER_COLUMNS[criteria.order_by]} {direction}, s.id {direction}"

    def query(self, criteria: FilterCriteria) -> QueryResult:
        where, params = self._where(criteria.category)
        conn = self.db.connection()

        found = conn.execute(
            f"SELECT COUNT(*) AS n FROM stories s WHERE {where}", params
        ).fetchone()["n"]

        # An offset past the last row never reaches SQLite (it overflows int64)
        if not criteria.unbounded and criteria.offset >= found:
            rows = []
        else:
            sql = f"SELECT s.* FROM stories s WHERE {where} ORDER BY {self._order_by(criteria)}"
            page_params = list(params)
            if not criteria.unbounded:
                sql += " LIMIT ? OFFSET ?"
                page_params += [criteria.per_page, criteria.offset]
            rows = conn.execute(sql, page_params).fetchall()

        result = QueryResult(
            items=self._hydrate(rows),
            found_posts=found,
            max_pages=QueryResult.page_count(found, criteria.per_page),
            page=criteria.page,
            per_page=criteria.per_page,
        )
        log_event(
            EventType.QUERY,
            f"Query category={criteria.category or '*'} page={criteria.page} "
            f"found={result.found_posts} pages={result.max_pages}",
        )
        return result

    def categories_in_use(self) -> List[Category]:
        """Categories with at least one published story of this type."""
        rows = self.db.connection().execute(
            """
            SELECT c.slug, c.name, COUNT(DISTINCT s.id) AS n
            FROM categories c
            JOIN story_categories sc ON sc.category_slug = c.slug
            JOIN stories s ON s.id = sc.story_id
            WHERE s.post_type = ? AND s.status = ?
            GROUP BY c.slug, c.name
            ORDER BY c.name COLLATE NOCASE
            """,
            (self.post_type, PUBLISHED),
        ).fetchall()
        return [Category(slug=r["slug"], name=r["name"], count=r["n"]) for r in rows]

    def get_story(self, slug: str) -> Optional[ContentItem]:
        row = self.db.connection().execute(
            "SELECT s.* FROM stories s WHERE s.slug = ? AND s.post_type = ? AND s.status = ?",
            (slug, self.post_type, PUBLISHED),
        ).fetchone()
        if row is None:
            return None
        return self._hydrate([row])[0]

    def adjacent(self, item: ContentItem) -> Tuple[Optional[ContentItem], Optional[ContentItem]]:
        """(previous, next): the next older and the next newer story."""
        conn = self.db.connection()
        published = sortable_timestamp(item.published_at)
        base = "s.post_type = ? AND s.status = ? AND s.id != ?"
        previous = conn.execute(
            f"SELECT s.* FROM stories s WHERE {base} "
            "AND (s.published_at < ? OR (s.published_at = ? AND s.id < ?)) "
            "ORDER BY s.published_at DESC, s.id DESC LIMIT 1",
            (self.post_type, PUBLISHED, item.id, published, published, item.id),
        ).fetchone()
        following = conn.execute(
            f"SELECT s.* FROM stories s WHERE {base} "
            "AND (s.published_at > ? OR (s.published_at = ? AND s.id > ?)) "
            "ORDER BY s.published_at ASC, s.id ASC LIMIT 1",
            (self.post_type, PUBLISHED, item.id, published, published, item.id),
        ).fetchone()
        return (
            self._hydrate([previous])[0] if previous else None,
            self._hydrate([following])[0] if following else None,
        )

    def _hydrate(self, rows: List[sqlite3.Row]) -> List[ContentItem]:
        ids = [r["id"] for r in rows]
        blocks = self.db.blocks_for(ids)
        categories = self.db.categories_for(ids)
        return [
            ContentItem(
                id=r["id"],
                slug=r["slug"],
                title=r["title"],
                published_at=datetime.fromisoformat(r["published_at"]),
                date=r["display_date"],
                image_url=r["image_url"],
                excerpt=r["excerpt"],
                blocks=[ContentBlock(content=b) for b in blocks.get(r["id"], [])],
                categories=categories.get(r["id"], []),
                menu_order=r["menu_order"],
            )
            for r in rows
        ]
