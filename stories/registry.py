"""
Live definition registry (post types and field groups) on top of StoryDatabase.

Entries are never unique by key at the storage level; callers get them
oldest-first so "the first-created entry" is always index 0.
"""

import json
import sqlite3
from typing import Any, Callable, Dict, List, Optional

from stories.db import StoryDatabase, dump_document, now_iso
from stories.models import DefinitionKind, RegistryEntry


class RegistryUnavailable(RuntimeError):
    """Raised when the registry is used before it is ready."""


def _entry_from_row(row: sqlite3.Row) -> RegistryEntry:
    return RegistryEntry(
        id=row["id"],
        kind=DefinitionKind(row["kind"]),
        key=row["key"],
        title=row["title"],
        modified=row["modified"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        document=json.loads(row["document"] or "{}"),
    )


class DefinitionRegistry:
    """
    CRUD over the `definitions` table.

    ready_check lets the host decide when the registry may be used (e.g. a
    schema migration still running). Defaults to "the table can be queried".
    """

    def __init__(
        self,
        db: StoryDatabase,
        ready_check: Optional[Callable[[], bool]] = None,
    ):
        self.db = db
        self._ready_check = ready_check

    def is_ready(self) -> bool:
        if self._ready_check is not None:
            return bool(self._ready_check())
        try:
            self.db.connection().execute("SELECT 1 FROM definitions LIMIT 1")
            return True
        except sqlite3.Error:
            return False

    def _require_ready(self) -> None:
        if not self.is_ready():
            raise RegistryUnavailable("definition registry is not ready")

    # ── Read ─────────────────────────────────────────────────────

    def find(self, kind: DefinitionKind, key: str) -> List[RegistryEntry]:
        """All entries for (kind, key), earliest created first."""
        self._require_ready()
        rows = self.db.connection().execute(
            "SELECT * FROM definitions WHERE kind = ? AND key = ? ORDER BY created_at, id",
            (kind.value, key),
        ).fetchall()
        return [_entry_from_row(r) for r in rows]

    def get(self, kind: DefinitionKind, key: str) -> Optional[RegistryEntry]:
        entries = self.find(kind, key)
        return entries[0] if entries else None

    def list(self, kind: Optional[DefinitionKind] = None) -> List[RegistryEntry]:
        self._require_ready()
        conn = self.db.connection()
        if kind is None:
            rows = conn.execute("SELECT * FROM definitions ORDER BY created_at, id").fetchall()
        else:
            rows = conn.execute(
                "SELECT * FROM definitions WHERE kind = ? ORDER BY created_at, id",
                (kind.value,),
            ).fetchall()
        return [_entry_from_row(r) for r in rows]

    # ── Write ────────────────────────────────────────────────────

    def insert(self, kind: DefinitionKind, document: Dict[str, Any]) -> RegistryEntry:
        self._require_ready()
        now = now_iso()
        with self.db.transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO definitions (kind, key, title, modified, document, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    kind.value,
                    document["key"],
                    document.get("title", ""),
                    int(document.get("modified", 0) or 0),
                    dump_document(document),
                    now,
                    now,
                ),
            )
            entry_id = cursor.lastrowid
        return self._get_by_id(entry_id)

    def update(self, entry_id: int, document: Dict[str, Any]) -> RegistryEntry:
        """Replace an entry's document in place (id and created_at are kept)."""
        self._require_ready()
        with self.db.transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE definitions
                SET title = ?, modified = ?, document = ?, updated_at = ?
                WHERE id = ?
                """,
                (
                    document.get("title", ""),
                    int(document.get("modified", 0) or 0),
                    dump_document(document),
                    now_iso(),
                    entry_id,
                ),
            )
            if cursor.rowcount == 0:
                raise KeyError(entry_id)
        return self._get_by_id(entry_id)

    def delete(self, entry_id: int) -> bool:
        self._require_ready()
        with self.db.transaction() as conn:
            cursor = conn.execute("DELETE FROM definitions WHERE id = ?", (entry_id,))
            return cursor.rowcount > 0

    def _get_by_id(self, entry_id: int) -> RegistryEntry:
        row = self.db.connection().execute(
            "SELECT * FROM definitions WHERE id = ?", (entry_id,)
        ).fetchone()
        if row is None:
            raise KeyError(entry_id)
        return _entry_from_row(row)
