"""
Application context and the ordered startup sequence.

Components are built once by build_context() and passed explicitly; nothing
here is a module-level singleton.

Startup order (each step names what it needs):
    1. configure_logging        config
    2. ensure_storage_location  config
    3. reconcile_definitions    db (only when sync_on_startup)
    4. register_routes          handler
    5. register_embeds          query + renderer
    6. deferred sync retry      at most once, when step 3 was deferred;
       then the post_type_registered() check
"""

from dataclasses import dataclass, field
from typing import Callable, List, Optional

from stories.config import StoriesConfig, load_config
from stories.db import StoryDatabase
from stories.definitions import DefinitionStore
from stories.embeds import ShortcodeRegistry, StoryShortcodes, register_embeds
from stories.handler import FilterRequestHandler
from stories.log import EventType, configure_logging, log_event
from stories.models import SyncReport, SyncStatus
from stories.query import StoryQuery
from stories.registry import DefinitionRegistry
from stories.render import FragmentRenderer
from stories.security import NonceManager


@dataclass
class AppContext:
    config: StoriesConfig
    db: StoryDatabase
    registry: DefinitionRegistry
    definitions: DefinitionStore
    query: StoryQuery
    renderer: FragmentRenderer
    nonces: NonceManager
    handler: FilterRequestHandler
    shortcodes: StoryShortcodes
    embeds: ShortcodeRegistry


@dataclass
class StartupReport:
    steps: List[str] = field(default_factory=list)
    sync: Optional[SyncReport] = None
    retry: Optional[SyncReport] = None
    post_type_registered: bool = False


def build_context(
    config: Optional[StoriesConfig] = None,
    ready_check: Optional[Callable[[], bool]] = None,
) -> AppContext:
    config = config or load_config()
    db = StoryDatabase(config.db_path)
    registry = DefinitionRegistry(db, ready_check=ready_check)
    query = StoryQuery(db, config.post_type)
    renderer = FragmentRenderer(config)
    nonces = NonceManager(config.nonce_secret, config.nonce_lifetime_hours)
    return AppContext(
        config=config,
        db=db,
        registry=registry,
        definitions=DefinitionStore(config, registry),
        query=query,
        renderer=renderer,
        nonces=nonces,
        handler=FilterRequestHandler(config, query, renderer, nonces),
        shortcodes=StoryShortcodes(config, query, renderer, nonces),
        embeds=ShortcodeRegistry(),
    )


def startup(
    ctx: AppContext,
    register_routes: Optional[Callable[[AppContext], None]] = None,
) -> StartupReport:
    """Run the startup sequence once, in order."""
    report = StartupReport()

    trail = configure_logging(ctx.config.logs_dir, ctx.config.debug)
    report.steps.append("configure_logging")
    log_event(
        EventType.STARTUP,
        f"Starting CPhT Stories {ctx.config.version} (debug trail: {trail or 'off'})",
        level="info",
    )

    ctx.definitions.ensure_storage_location()
    report.steps.append("ensure_storage_location")

    if ctx.config.sync_on_startup:
        report.sync = ctx.definitions.reconcile_definitions()
        report.steps.append("reconcile_definitions")

    if register_routes is not None:
        register_routes(ctx)
        report.steps.append("register_routes")

    register_embeds(ctx.embeds, ctx.shortcodes)
    report.steps.append("register_embeds")

    if report.sync is not None and report.sync.status == SyncStatus.DEFERRED:
        log_event(EventType.SYNC_DEFERRED, "Retrying deferred definition sync", level="info")
        report.retry = ctx.definitions.reconcile_definitions()
        report.steps.append("retry_reconcile")
        if report.retry.status == SyncStatus.DEFERRED:
            log_event(
                EventType.SYNC_DEFERRED,
                "Registry still not ready; definition sync abandoned until triggered from /admin/sync",
                level="warning",
            )

    report.post_type_registered = ctx.definitions.post_type_registered()
    report.steps.append("post_type_check")

    log_event(
        EventType.STARTUP,
        f"Startup complete: {', '.join(report.steps)}",
        level="info",
    )
    return report
