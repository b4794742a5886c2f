"""
Pydantic models for the story service.

Defines stories and categories (read side), listing criteria and results,
definition documents (post type + field group) and the registry rows they
are mirrored into.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, urlencode

from pydantic import BaseModel, ConfigDict, Field, field_validator


ALL_ITEMS = -1  # per_page value meaning "no pagination"

CATEGORY_PARAM = "cpht_category"
PAGE_PARAM = "paged"


def as_utc(value: datetime) -> datetime:
    """Naive timestamps are taken as UTC; aware ones are converted to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def sortable_timestamp(value: datetime) -> str:
    """Fixed-width UTC ISO string; text order equals time order."""
    return as_utc(value).isoformat(timespec="seconds")


class SortField(str, Enum):
    """Orderings accepted by the query engine."""
    DATE = "date"
    TITLE = "title"
    MENU_ORDER = "menu_order"
    RANDOM = "rand"


class SortDirection(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


# ============================================================
# CONTENT
# ============================================================

class ContentBlock(BaseModel):
    """One row of the content_section repeater (rich-text HTML)."""

    content: str = Field(..., description="Stored HTML of the block")


class Category(BaseModel):
    slug: str
    name: str
    count: int = Field(0, description="Published stories in this category")


class ContentItem(BaseModel):
    """A single story. Authored elsewhere; read-only to the engine."""

    id: int
    slug: str
    title: str
    published_at: datetime
    date: Optional[str] = Field(None, description="Display date field")
    image_url: Optional[str] = Field(None, description="Featured image")
    excerpt: Optional[str] = None
    blocks: List[ContentBlock] = Field(default_factory=list)
    categories: List[str] = Field(default_factory=list, description="Category slugs")
    menu_order: int = 0

    @field_validator("published_at")
    @classmethod
    def _utc_published_at(cls, value: datetime) -> datetime:
        return as_utc(value)


class StoryImport(BaseModel):
    """Input shape for scripts/import_stories.py."""

    slug: str
    title: str
    published_at: datetime
    date: Optional[str] = None
    image_url: Optional[str] = None
    excerpt: Optional[str] = None
    blocks: List[str] = Field(default_factory=list)
    categories: List[Category] = Field(default_factory=list)
    menu_order: int = 0
    status: str = "publish"

    @field_validator("published_at")
    @classmethod
    def _utc_published_at(cls, value: datetime) -> datetime:
        return as_utc(value)


# ============================================================
# LISTING
# ============================================================

class FilterCriteria(BaseModel):
    """What to list. An empty category means every category."""

    category: str = ""
    page: int = Field(1, ge=1)
    per_page: int = 9
    order_by: SortField = SortField.DATE
    order: SortDirection = SortDirection.DESC

    @field_validator("per_page")
    @classmethod
    def _valid_page_size(cls, value: int) -> int:
        if value != ALL_ITEMS and value < 1:
            raise ValueError("per_page must be positive or -1 (all)")
        return value

    @property
    def unbounded(self) -> bool:
        return self.per_page == ALL_ITEMS

    @property
    def offset(self) -> int:
        return 0 if self.unbounded else (self.page - 1) * self.per_page


class QueryResult(BaseModel):
    items: List[ContentItem] = Field(default_factory=list)
    found_posts: int = 0
    max_pages: int = 0
    page: int = 1
    per_page: int = 9

    @staticmethod
    def page_count(found_posts: int, per_page: int) -> int:
        """ceil(found / per_page); "all" is a single page when anything matched."""
        if per_page == ALL_ITEMS:
            return 1 if found_posts > 0 else 0
        return math.ceil(found_posts / per_page)


class NavigationState(BaseModel):
    """{category, page} as stored in browser history entries."""

    category: str = ""
    page: int = Field(1, ge=1)

    def to_query(self) -> str:
        """Query string: category only if non-empty, page only if > 1."""
        params = []
        if self.category:
            params.append((CATEGORY_PARAM, self.category))
        if self.page > 1:
            params.append((PAGE_PARAM, str(self.page)))
        return urlencode(params)

    @classmethod
    def from_query(cls, query: str) -> "NavigationState":
        parsed = parse_qs(query.lstrip("?"))
        category = (parsed.get(CATEGORY_PARAM) or [""])[0]
        try:
            page = max(1, int((parsed.get(PAGE_PARAM) or ["1"])[0]))
        except ValueError:
            page = 1
        return cls(category=category, page=page)


# ============================================================
# DEFINITIONS
# ============================================================

class DefinitionKind(str, Enum):
    POST_TYPE = "post_type"
    FIELD_GROUP = "field_group"


class FieldDefinition(BaseModel):
    """A single field of a field group (unknown settings are kept)."""

    model_config = ConfigDict(extra="allow")

    key: str
    label: str = ""
    name: str = ""
    type: str = "text"
    sub_fields: List["FieldDefinition"] = Field(default_factory=list)


class DefinitionDocument(BaseModel):
    """Common part of the on-disk JSON documents."""

    model_config = ConfigDict(extra="allow")

    key: str
    title: str = ""
    modified: int = Field(0, description="Unix timestamp of the last edit")


class PostTypeDefinition(DefinitionDocument):
    post_type: str


class FieldGroupDefinition(DefinitionDocument):
    fields: List[FieldDefinition] = Field(default_factory=list)


class RegistryEntry(BaseModel):
    """A live definition row."""

    id: int
    kind: DefinitionKind
    key: str
    title: str = ""
    modified: int = 0
    created_at: str
    updated_at: str
    document: Dict[str, Any] = Field(default_factory=dict)


class SyncStatus(str, Enum):
    COMPLETED = "completed"
    DEFERRED = "deferred"  # registry not ready
    SKIPPED = "skipped"    # another process holds the sync lock


class SyncReport(BaseModel):
    status: SyncStatus = SyncStatus.COMPLETED
    created: List[str] = Field(default_factory=list)
    updated: List[str] = Field(default_factory=list)
    deleted: List[int] = Field(default_factory=list, description="Registry ids removed as duplicates")
    unchanged: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)

    @property
    def mutations(self) -> int:
        return len(self.created) + len(self.updated) + len(self.deleted)
