"""
Filter request handler: the server side of the AJAX category filter.

verify nonce -> normalise input -> query -> render -> structured response.
The handler never lets an exception escape to the caller.
"""

import re
import traceback
from typing import Any, Mapping, Optional

from pydantic import BaseModel

from stories.config import StoriesConfig
from stories.log import EventType, log_error, log_event
from stories.models import FilterCriteria, SortDirection, SortField
from stories.query import StoryQuery
from stories.render import FragmentRenderer, clamp_columns
from stories.security import FILTER_NONCE_ACTION, NonceManager

SECURITY_FAILED_MESSAGE = "Security check failed"
GENERIC_FAILURE_MESSAGE = "Unable to load stories. Please try again."

_TAG_RE = re.compile(r"<[^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")


# ============================================================
# RESPONSE MODELS
# ============================================================

class FilterPayload(BaseModel):
    content: str
    found_posts: int
    max_pages: int


class FilterError(BaseModel):
    message: str


class FilterResponse(BaseModel):
    """wp_send_json_success / wp_send_json_error shape."""

    success: bool
    data: Any
    status_code: int = 200

    def body(self) -> dict:
        data = self.data.model_dump() if isinstance(self.data, BaseModel) else self.data
        return {"success": self.success, "data": data}


# ============================================================
# INPUT NORMALISATION
# ============================================================

def absint(value: Any, default: int) -> int:
    """Absolute integer value; default when not a number."""
    if value is None or isinstance(value, bool):
        return default
    try:
        return abs(int(str(value).strip()))
    except ValueError:
        return default


def sanitize_text(value: Any) -> str:
    """Strip tags and control whitespace, collapse runs of spaces."""
    if value is None:
        return ""
    text = _TAG_RE.sub("", str(value))
    return _WHITESPACE_RE.sub(" ", text).strip()


def normalize_page(value: Any) -> int:
    page = absint(value, 1)
    return page if page >= 1 else 1


def normalize_columns(value: Any, default: int = 3) -> int:
    return clamp_columns(absint(value, default), default)


# ============================================================
# HANDLER
# ============================================================

class FilterRequestHandler:
    """Stateless; safe to call concurrently."""

    def __init__(
        self,
        config: StoriesConfig,
        query: StoryQuery,
        renderer: FragmentRenderer,
        nonces: NonceManager,
    ):
        self.config = config
        self.query = query
        self.renderer = renderer
        self.nonces = nonces

    def handle(self, params: Mapping[str, Any]) -> FilterResponse:
        log_event(EventType.FILTER_REQUEST, "AJAX filter_posts called")

        nonce: Optional[str] = params.get("nonce")
        if not self.nonces.verify(nonce, FILTER_NONCE_ACTION):
            log_event(
                EventType.SECURITY_CHECK_FAILED,
                "AJAX security check failed - invalid nonce",
                level="warning",
            )
            return FilterResponse(
                success=False,
                data=FilterError(message=SECURITY_FAILED_MESSAGE),
                status_code=403,
            )

        try:
            category = sanitize_text(params.get("category"))
            page = normalize_page(params.get("paged"))
            columns = normalize_columns(params.get("columns"), self.config.default_columns)
            log_event(
                EventType.FILTER_REQUEST,
                f"AJAX parameters - category: {category or '(all)'}, page: {page}, columns: {columns}",
            )

            criteria = FilterCriteria(
                category=category,
                page=page,
                per_page=self.config.posts_per_page,
                order_by=SortField.DATE,
                order=SortDirection.DESC,
            )
            result = self.query.query(criteria)
            content = self.renderer.render_results(result, columns, category)
        except Exception as e:
            log_error(
                f"AJAX error: {e}",
                {"traceback": traceback.format_exc()},
            )
            return FilterResponse(
                success=False,
                data=FilterError(message=GENERIC_FAILURE_MESSAGE),
                status_code=500,
            )

        log_event(
            EventType.FILTER_REQUEST,
            f"AJAX sending success response ({result.found_posts} found, {len(content)} bytes)",
        )
        return FilterResponse(
            success=True,
            data=FilterPayload(
                content=content,
                found_posts=result.found_posts,
                max_pages=result.max_pages,
            ),
        )
