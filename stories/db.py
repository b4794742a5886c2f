"""
SQLite layer: stories, categories and the live definition registry.
"""

import json
import os
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, List

from stories.models import Category, StoryImport, sortable_timestamp


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class StoryDatabase:
    """
    One SQLite file. Connections are thread-local; the schema is created on
    the first connection of each thread (CREATE ... IF NOT EXISTS).
    """

    def __init__(self, path: str):
        self.path = path
        self._local = threading.local()
        self._conn_lock = threading.Lock()

    def connection(self) -> sqlite3.Connection:
        """
        Get the thread-local connection, creating it on first use.

        Returns:
            sqlite3.Connection with row_factory set
        """
        conn = getattr(self._local, "conn", None)
        if conn is None:
            with self._conn_lock:
                directory = os.path.dirname(self.path)
                if directory:
                    os.makedirs(directory, exist_ok=True)

                conn = sqlite3.connect(self.path, check_same_thread=False)
                conn.row_factory = sqlite3.Row  # Access columns by name
                conn.execute("PRAGMA foreign_keys = ON")
                _init_schema(conn)
                self._local.conn = conn
        return conn

    @contextmanager
    def transaction(self):
        """
        Context manager for database transactions.

        Usage:
            with db.transaction() as conn:
                conn.execute(...)
            # Auto-commits on success, rolls back on exception
        """
        conn = self.connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def close(self) -> None:
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            conn.close()
            self._local.conn = None

    # ── Stories (write side, used by the import script) ──────────

    def upsert_category(self, category: Category) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT INTO categories (slug, name) VALUES (?, ?)
                ON CONFLICT(slug) DO UPDATE SET name = excluded.name
                """,
                (category.slug, category.name),
            )

    def upsert_story(self, story: StoryImport, post_type: str) -> int:
        """Insert or replace a story by slug. Returns its id."""
        for category in story.categories:
            self.upsert_category(category)
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT INTO stories (slug, post_type, status, title, published_at,
                                     display_date, excerpt, image_url, menu_order)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(slug) DO UPDATE SET
                    post_type = excluded.post_type,
                    status = excluded.status,
                    title = excluded.title,
                    published_at = excluded.published_at,
                    display_date = excluded.display_date,
                    excerpt = excluded.excerpt,
                    image_url = excluded.image_url,
                    menu_order = excluded.menu_order
                """,
                (
                    story.slug,
                    post_type,
                    story.status,
                    story.title,
                    sortable_timestamp(story.published_at),
                    story.date,
                    story.excerpt,
                    story.image_url,
                    story.menu_order,
                ),
            )
            story_id = conn.execute(
                "SELECT id FROM stories WHERE slug = ?", (story.slug,)
            ).fetchone()["id"]
            conn.execute("DELETE FROM story_blocks WHERE story_id = ?", (story_id,))
            conn.executemany(
                "INSERT INTO story_blocks (story_id, position, content) VALUES (?, ?, ?)",
                [(story_id, i, block) for i, block in enumerate(story.blocks)],
            )
            conn.execute("DELETE FROM story_categories WHERE story_id = ?", (story_id,))
            conn.executemany(
                "INSERT INTO story_categories (story_id, category_slug) VALUES (?, ?)",
                [(story_id, c.slug) for c in story.categories],
            )
        return story_id

    # ── Stories (read helpers for the query engine) ──────────────

    def blocks_for(self, story_ids: List[int]) -> Dict[int, List[str]]:
        if not story_ids:
            return {}
        marks = ",".join("?" * len(story_ids))
        rows = self.connection().execute(
            f"SELECT story_id, content FROM story_blocks WHERE story_id IN ({marks}) "
            "ORDER BY story_id, position",
            story_ids,
        ).fetchall()
        result: Dict[int, List[str]] = {}
        for row in rows:
            result.setdefault(row["story_id"], []).append(row["content"])
        return result

    def categories_for(self, story_ids: List[int]) -> Dict[int, List[str]]:
        if not story_ids:
            return {}
        marks = ",".join("?" * len(story_ids))
        rows = self.connection().execute(
            f"SELECT story_id, category_slug FROM story_categories WHERE story_id IN ({marks}) "
            "ORDER BY story_id, category_slug",
            story_ids,
        ).fetchall()
        result: Dict[int, List[str]] = {}
        for row in rows:
            result.setdefault(row["story_id"], []).append(row["category_slug"])
        return result


def _init_schema(conn: sqlite3.Connection):
    """Create tables and indexes if they don't exist."""

    conn.execute("""
        CREATE TABLE IF NOT EXISTS stories (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            slug TEXT NOT NULL UNIQUE,
            post_type TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'publish',
            title TEXT NOT NULL,
            published_at TEXT NOT NULL,
            display_date TEXT,
            excerpt TEXT,
            image_url TEXT,
            menu_order INTEGER NOT NULL DEFAULT 0
        )
    """)

    conn.execute("""
        CREATE TABLE IF NOT EXISTS story_blocks (
            story_id INTEGER NOT NULL,
            position INTEGER NOT NULL,
            content TEXT NOT NULL,
            PRIMARY KEY (story_id, position),
            FOREIGN KEY (story_id) REFERENCES stories(id) ON DELETE CASCADE
        )
    """)

    conn.execute("""
        CREATE TABLE IF NOT EXISTS categories (
            slug TEXT PRIMARY KEY,
            name TEXT NOT NULL
        )
    """)

    conn.execute("""
        CREATE TABLE IF NOT EXISTS story_categories (
            story_id INTEGER NOT NULL,
            category_slug TEXT NOT NULL,
            PRIMARY KEY (story_id, category_slug),
            FOREIGN KEY (story_id) REFERENCES stories(id) ON DELETE CASCADE,
            FOREIGN KEY (category_slug) REFERENCES categories(slug)
        )
    """)

    # Live definition registry. (kind, key) is not UNIQUE: duplicates
    # are collapsed by the sync pass.
    conn.execute("""
        CREATE TABLE IF NOT EXISTS definitions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            kind TEXT NOT NULL,
            key TEXT NOT NULL,
            title TEXT NOT NULL DEFAULT '',
            modified INTEGER NOT NULL DEFAULT 0,
            document TEXT NOT NULL DEFAULT '{}',
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """)

    conn.execute("""
        CREATE INDEX IF NOT EXISTS idx_stories_type_status
        ON stories(post_type, status)
    """)

    conn.execute("""
        CREATE INDEX IF NOT EXISTS idx_story_categories_slug
        ON story_categories(category_slug)
    """)

    conn.execute("""
        CREATE INDEX IF NOT EXISTS idx_definitions_kind_key
        ON definitions(kind, key)
    """)

    conn.commit()


def dump_document(document: dict) -> str:
    return json.dumps(document, ensure_ascii=False, sort_keys=True)
