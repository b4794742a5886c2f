"""
Embed directives: shortcode-style tags expanded inside page content.

    [cpht_posts columns=3 category="" posts_per_page=9 orderby=date order=DESC]
    [cpht_breadcrumbs]

Attribute parsing follows WordPress shortcode_parse_atts(): double-quoted,
single-quoted and unquoted values; keys are lower-cased; bare positional
words are ignored. Tags nobody registered are left in the text verbatim.
"""

import re
from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping, Optional

from stories.config import StoriesConfig
from stories.handler import absint, normalize_page, sanitize_text
from stories.log import EventType, log_error, log_event
from stories.models import CATEGORY_PARAM, PAGE_PARAM, ContentItem, FilterCriteria, SortDirection, SortField
from stories.query import StoryQuery
from stories.render import FragmentRenderer, clamp_columns
from stories.security import FILTER_NONCE_ACTION, NonceManager

POSTS_TAG = "cpht_posts"
BREADCRUMBS_TAG = "cpht_breadcrumbs"

POSTS_DEFAULTS = {
    "columns": "3",
    "category": "",
    "posts_per_page": "9",
    "orderby": "date",
    "order": "DESC",
}

_ATTR_RE = re.compile(
    r'([\w-]+)\s*=\s*"([^"]*)"(?:\s|$)'
    r"|([\w-]+)\s*=\s*'([^']*)'(?:\s|$)"
    r'|([\w-]+)\s*=\s*([^\s\'"]+)(?:\s|$)'
    r'|"([^"]*)"(?:\s|$)'
    r"|'([^']*)'(?:\s|$)"
    r"|(\S+)(?:\s|$)"
)

# [[tag]] is an escaped, literal [tag]
_SHORTCODE_RE = re.compile(r"\[(\[?)([\w-]+)(?![\w-])([^\]]*?)(?:/)?\](\]?)")

ORDERBY_FIELDS = {
    "date": SortField.DATE,
    "post_date": SortField.DATE,
    "title": SortField.TITLE,
    "menu_order": SortField.MENU_ORDER,
    "rand": SortField.RANDOM,
}


@dataclass
class EmbedRequest:
    """Request state a directive may read."""

    query_params: Mapping[str, str] = field(default_factory=dict)
    path: Optional[str] = None
    current_story: Optional[ContentItem] = None


Handler = Callable[[Dict[str, str], EmbedRequest], str]


def parse_atts(text: str) -> Dict[str, str]:
    """Named attributes of a directive; positional values are dropped."""
    atts: Dict[str, str] = {}
    text = re.sub(r"[\u00a0\u200b]", " ", text or "")
    for m in _ATTR_RE.finditer(text):
        if m.group(1):
            atts[m.group(1).lower()] = m.group(2)
        elif m.group(3):
            atts[m.group(3).lower()] = m.group(4)
        elif m.group(5):
            atts[m.group(5).lower()] = m.group(6)
    return atts


def shortcode_atts(defaults: Mapping[str, str], atts: Mapping[str, str]) -> Dict[str, str]:
    """Known attributes only, defaults filled in."""
    return {name: atts.get(name, default) for name, default in defaults.items()}


class ShortcodeRegistry:
    def __init__(self):
        self._handlers: Dict[str, Handler] = {}

    def register(self, tag: str, handler: Handler) -> None:
        self._handlers[tag] = handler

    def has(self, tag: str) -> bool:
        return tag in self._handlers

    @property
    def tags(self):
        return sorted(self._handlers)

    def render_tag(self, tag: str, atts: Dict[str, str], request: Optional[EmbedRequest] = None) -> str:
        if tag not in self._handlers:
            raise KeyError(tag)
        return self._handlers[tag](atts, request or EmbedRequest())

    def render(self, content: str, request: Optional[EmbedRequest] = None) -> str:
        """Expand every registered directive in content."""
        request = request or EmbedRequest()

        def expand(m: "re.Match") -> str:
            tag = m.group(2)
            if m.group(1) == "[" and m.group(4) == "]":
                return m.group(0)[1:-1]
            if tag not in self._handlers:
                return m.group(0)
            return m.group(1) + self._handlers[tag](parse_atts(m.group(3)), request) + m.group(4)

        return _SHORTCODE_RE.sub(expand, content)


class StoryShortcodes:
    """The two directives of the story listing."""

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

    def posts(self, atts: Dict[str, str], request: EmbedRequest) -> str:
        a = shortcode_atts(POSTS_DEFAULTS, atts)

        columns = clamp_columns(absint(a["columns"], 3), 3)
        per_page = absint(a["posts_per_page"], 9)
        if per_page < 1:
            per_page = 9

        category = sanitize_text(request.query_params.get(CATEGORY_PARAM))
        if not category:
            category = sanitize_text(a["category"])
        page = normalize_page(request.query_params.get(PAGE_PARAM))

        order_by = ORDERBY_FIELDS.get(sanitize_text(a["orderby"]).lower(), SortField.DATE)
        order = SortDirection.ASC if a["order"].strip().upper() == "ASC" else SortDirection.DESC

        log_event(
            EventType.SHORTCODE,
            f"Rendering [{POSTS_TAG}] columns={columns} per_page={per_page} "
            f"category={category or '*'} page={page}",
        )
        try:
            result = self.query.query(
                FilterCriteria(
                    category=category,
                    page=page,
                    per_page=per_page,
                    order_by=order_by,
                    order=order,
                )
            )
            categories = self.query.categories_in_use()
        except Exception as e:
            log_error(f"[{POSTS_TAG}] query failed: {e}")
            return self.renderer.render_empty_state()

        return self.renderer.render_listing(
            result,
            columns,
            categories,
            category,
            self.nonces.create(FILTER_NONCE_ACTION),
            base_url=request.path,
        )

    def breadcrumbs(self, atts: Dict[str, str], request: EmbedRequest) -> str:
        title = request.current_story.title if request.current_story else None
        return self.renderer.render_breadcrumbs(title)


def register_embeds(registry: ShortcodeRegistry, shortcodes: StoryShortcodes) -> None:
    registry.register(POSTS_TAG, shortcodes.posts)
    registry.register(BREADCRUMBS_TAG, shortcodes.breadcrumbs)
    log_event(EventType.SHORTCODE, f"Registered embeds: {', '.join(registry.tags)}")
