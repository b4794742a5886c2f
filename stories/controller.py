"""
Client filter controller.

Python counterpart of assets/js/cpht-public.js. It drives the same
filter -> request -> swap -> history cycle against abstract page adapters,
so it can run headless (tests, smoke checks) with the in-memory adapters
below or against a live server through HttpxTransport.

Overlapping loads: the newest load wins. Every load takes a generation
number and a response whose generation is no longer current is dropped.
"""

import logging
import re
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union
from urllib.parse import parse_qs, urlsplit

import httpx

from stories.models import NavigationState

_log = logging.getLogger("stories.controller")

AJAX_ACTION = "cpht_filter_posts"
DEFAULT_COLUMNS = 3

_COLUMNS_RE = re.compile(r"cpht-columns-(\d)")
_PAGE_PATH_RE = re.compile(r"/page/(\d+)/?")


class ControllerState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    ERROR = "error"


class FilterRequestError(Exception):
    """Transport failure or a response that is not JSON."""


# ============================================================
# HELPERS
# ============================================================

def page_from_href(href: Optional[str]) -> Optional[int]:
    """Page number of a pagination link: ?paged=N, ?page=N or /page/N/."""
    if not href:
        return None
    parts = urlsplit(href)
    query = parse_qs(parts.query)
    for name in ("paged", "page"):
        values = query.get(name)
        if values:
            try:
                return max(1, int(values[0]))
            except ValueError:
                continue
    match = _PAGE_PATH_RE.search(parts.path)
    if match:
        return max(1, int(match.group(1)))
    return None


def history_url(path: str, state: NavigationState) -> str:
    query = state.to_query()
    return f"{path}?{query}" if query else path


def columns_from_markup(html: str, default: int = DEFAULT_COLUMNS) -> int:
    match = _COLUMNS_RE.search(html or "")
    return int(match.group(1)) if match else default


# ============================================================
# TRANSPORT
# ============================================================

class HttpxTransport:
    """Form POST to the AJAX endpoint; returns the decoded JSON body."""

    def __init__(self, ajax_url: str, client: Optional[httpx.AsyncClient] = None, timeout: float = 30.0):
        self.ajax_url = ajax_url
        self._client = client
        self.timeout = timeout

    async def post(self, data: Dict[str, Any]) -> Dict[str, Any]:
        form = {k: str(v) for k, v in data.items()}
        try:
            if self._client is not None:
                response = await self._client.post(self.ajax_url, data=form, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.ajax_url, data=form)
        except httpx.HTTPError as e:
            raise FilterRequestError(f"request failed: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise FilterRequestError(
                f"non-JSON response (HTTP {response.status_code})"
            ) from e
        if not isinstance(body, dict):
            raise FilterRequestError("unexpected response shape")
        return body


# ============================================================
# IN-MEMORY PAGE ADAPTERS
# ============================================================

class InMemoryRegion:
    """The .cpht-content-area element."""

    def __init__(self, html: str = "", columns: Optional[int] = None):
        self.html = html
        self._columns = columns
        self.loading = False
        self.loader_shown = 0
        self.scrolls = 0

    @property
    def columns(self) -> int:
        if self._columns is not None:
            return self._columns
        return columns_from_markup(self.html)

    def show_loader(self) -> None:
        self.loading = True
        self.loader_shown += 1

    def hide_loader(self) -> None:
        self.loading = False

    def replace(self, html: str) -> None:
        self.html = html

    def scroll_into_view(self) -> None:
        self.scrolls += 1


class InMemoryFilterControl:
    """The category <select>, carrying the page's anti-forgery token."""

    def __init__(self, nonce: str, value: str = ""):
        self.nonce = nonce
        self.value = value


class InMemoryHistory:
    def __init__(self, path: str = "/"):
        self.path = path
        self.entries: List[Tuple[NavigationState, str]] = []

    def push(self, state: NavigationState, url: str) -> None:
        self.entries.append((state, url))

    @property
    def current_url(self) -> Optional[str]:
        return self.entries[-1][1] if self.entries else None


# ============================================================
# CONTROLLER
# ============================================================

class FilterController:
    """
    Handles the three triggers of the listing page.

    Example:
        controller = FilterController(transport, region, control, history)
        await controller.on_filter_change("featured")
        await controller.on_pagination_click("/cphtstrong/?paged=2")
        await controller.on_popstate({"category": "", "page": 1})
    """

    def __init__(self, transport, region, control, history):
        self.transport = transport
        self.region = region
        self.control = control
        self.history = history
        self.state = ControllerState.IDLE
        self.last_error: Optional[str] = None
        self._generation = 0

    async def on_filter_change(self, value: Optional[str]) -> bool:
        category = value or ""
        self.control.value = category
        return await self.load(category, 1)

    async def on_pagination_click(self, href: str) -> bool:
        page = page_from_href(href) or 1
        loaded = await self.load(self.control.value or "", page)
        self.region.scroll_into_view()
        return loaded

    async def on_popstate(self, state: Union[NavigationState, Dict[str, Any], None]) -> bool:
        """Restore a history entry without pushing a new one."""
        if state is None:
            return False
        if not isinstance(state, NavigationState):
            state = NavigationState(
                category=state.get("category") or "",
                page=max(1, int(state.get("page") or 1)),
            )
        self.control.value = state.category
        return await self.load(state.category, state.page, push_history=False)

    async def load(self, category: str, page: int, push_history: bool = True) -> bool:
        self._generation += 1
        generation = self._generation
        self.state = ControllerState.LOADING
        self.region.show_loader()

        data = {
            "action": AJAX_ACTION,
            "category": category,
            "paged": page,
            "columns": self.region.columns,
            "nonce": self.control.nonce,
        }
        try:
            try:
                response: Optional[Dict[str, Any]] = await self.transport.post(data)
                error = None
            except FilterRequestError as e:
                response, error = None, str(e)
            except Exception as e:
                _log.exception("[FILTER] Unexpected transport failure")
                response, error = None, f"unexpected error: {e}"

            if generation != self._generation:
                _log.debug("[FILTER] Dropping superseded response (generation %s)", generation)
                return False

            payload = (response or {}).get("data") or {}
            content = payload.get("content") if isinstance(payload, dict) else None
            if error is None and not (response or {}).get("success"):
                error = (payload.get("message") if isinstance(payload, dict) else None) or "request rejected"
            elif error is None and not isinstance(content, str):
                error = "malformed response"
            if error is not None:
                _log.error("[FILTER] AJAX Error: %s", error)
                self.last_error = error
                self.state = ControllerState.ERROR
                return False

            self.region.replace(content)
            if push_history:
                nav = NavigationState(category=category, page=page)
                self.history.push(nav, history_url(self.history.path, nav))
            self.control.value = category
            self.last_error = None
            self.state = ControllerState.IDLE
            return True
        finally:
            # A newer load still owns the loader
            if generation == self._generation:
                self.region.hide_loader()
