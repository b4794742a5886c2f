"""
api.py - FastAPI endpoints for CPhT Stories
"""

import logging
from typing import Callable, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.staticfiles import StaticFiles

from interfaces.admin import get_ctx, router as admin_router
from stories.assets import LISTING, SINGLE, render_asset_tags
from stories.bootstrap import AppContext, build_context, startup
from stories.config import StoriesConfig
from stories.embeds import BREADCRUMBS_TAG, POSTS_TAG, EmbedRequest

_log = logging.getLogger("interfaces.api")

NOT_FOUND_TITLE = "Page not found"


# ============================================================
# PUBLIC ROUTES
# ============================================================

def build_public_router(config: StoriesConfig) -> APIRouter:
    """Listing, single story, embeds and the AJAX endpoint."""
    router = APIRouter()
    archive = "/" + config.archive_slug.strip("/")

    @router.get("/")
    async def root(ctx: AppContext = Depends(get_ctx)):
        """Health check endpoint"""
        return {
            "status": "ok",
            "service": "CPhT Stories",
            "version": ctx.config.version,
            "post_type_registered": ctx.definitions.post_type_registered(),
        }

    @router.post(config.ajax_url)
    async def filter_posts(request: Request, ctx: AppContext = Depends(get_ctx)):
        """AJAX category filter (form POST from the listing controller)."""
        form = await request.form()
        response = ctx.handler.handle(dict(form))
        return JSONResponse(response.body(), status_code=response.status_code)

    @router.get(archive, response_class=HTMLResponse)
    @router.get(archive + "/", response_class=HTMLResponse)
    async def listing(request: Request, ctx: AppContext = Depends(get_ctx)):
        embed = EmbedRequest(query_params=dict(request.query_params), path=request.url.path)
        body = ctx.embeds.render(f"[{BREADCRUMBS_TAG}]\n[{POSTS_TAG}]", embed)
        return ctx.renderer.render_page(
            ctx.config.archive_label,
            body,
            head=render_asset_tags(ctx.config, LISTING),
        )

    @router.get(archive + "/{slug}", response_class=HTMLResponse)
    @router.get(archive + "/{slug}/", response_class=HTMLResponse)
    async def single_story(slug: str, ctx: AppContext = Depends(get_ctx)):
        item = ctx.query.get_story(slug)
        if item is None:
            return HTMLResponse(
                ctx.renderer.render_page(
                    NOT_FOUND_TITLE,
                    ctx.renderer.render_breadcrumbs() + f"\n<h1>{NOT_FOUND_TITLE}</h1>",
                    head=render_asset_tags(ctx.config, SINGLE),
                ),
                status_code=404,
            )
        previous, following = ctx.query.adjacent(item)
        crumbs = ctx.embeds.render(f"[{BREADCRUMBS_TAG}]", EmbedRequest(current_story=item))
        return ctx.renderer.render_page(
            item.title,
            crumbs + "\n" + ctx.renderer.render_story(item, previous, following),
            head=render_asset_tags(ctx.config, SINGLE),
        )

    @router.get("/embed/{tag}", response_class=HTMLResponse)
    async def embed(tag: str, request: Request, ctx: AppContext = Depends(get_ctx)):
        """One directive as a fragment; query parameters double as attributes."""
        if not ctx.embeds.has(tag):
            raise HTTPException(status_code=404, detail=f"Unknown embed: {tag}")
        params = dict(request.query_params)
        embed_request = EmbedRequest(query_params=params, path=ctx.config.archive_url)
        return ctx.embeds.render_tag(tag, params, embed_request)

    return router


# ============================================================
# APP
# ============================================================

def create_app(
    config: Optional[StoriesConfig] = None,
    ready_check: Optional[Callable[[], bool]] = None,
) -> FastAPI:
    """Build the context, run the startup sequence and return the app."""
    ctx = build_context(config, ready_check=ready_check)

    app = FastAPI(
        title="CPhT Stories API",
        description="Filterable story listing service",
        version=ctx.config.version,
    )
    app.state.ctx = ctx

    def register_routes(ctx: AppContext) -> None:
        app.include_router(build_public_router(ctx.config))
        app.include_router(admin_router)
        app.mount(
            ctx.config.assets_url.rstrip("/"),
            StaticFiles(directory=ctx.config.assets_dir, check_dir=False),
            name="assets",
        )

    app.state.startup = startup(ctx, register_routes)
    _log.info("[API] CPhT Stories API ready (%s)", ", ".join(app.state.startup.steps))
    return app
