"""
Tests for the startup sequence.

Run: pytest tests/test_bootstrap.py -v
"""

from stories.bootstrap import build_context, startup
from stories.embeds import BREADCRUMBS_TAG, POSTS_TAG
from stories.models import DefinitionKind, SyncStatus


def test_startup_runs_steps_in_order(ctx):
    seen = []
    report = startup(ctx, register_routes=lambda c: seen.append(c))

    assert report.steps == [
        "configure_logging",
        "ensure_storage_location",
        "reconcile_definitions",
        "register_routes",
        "register_embeds",
        "post_type_check",
    ]
    assert seen == [ctx]
    assert report.sync.status == SyncStatus.COMPLETED
    assert report.retry is None
    assert report.post_type_registered is True
    assert ctx.embeds.has(POSTS_TAG) and ctx.embeds.has(BREADCRUMBS_TAG)


def test_sync_disabled(ctx):
    ctx.config.sync_on_startup = False
    report = startup(ctx)
    assert "reconcile_definitions" not in report.steps
    assert report.sync is None
    assert report.post_type_registered is False


def test_deferred_sync_is_retried_once(config):
    calls = []

    def ready():
        calls.append(1)
        # not ready for the first sync attempt, ready afterwards
        return len(calls) > 1

    ctx = build_context(config, ready_check=ready)
    try:
        report = startup(ctx)
        assert report.sync.status == SyncStatus.DEFERRED
        assert report.retry.status == SyncStatus.COMPLETED
        assert report.steps.count("retry_reconcile") == 1
        assert report.steps.index("retry_reconcile") > report.steps.index("register_embeds")
        assert report.post_type_registered is True
        assert ctx.registry.get(DefinitionKind.POST_TYPE, "post_type_cpht_post") is not None
    finally:
        ctx.db.close()


def test_deferred_retry_still_not_ready(config):
    ctx = build_context(config, ready_check=lambda: False)
    try:
        report = startup(ctx)
        assert report.retry.status == SyncStatus.DEFERRED
        assert report.steps.count("retry_reconcile") == 1
        assert report.post_type_registered is False
    finally:
        ctx.db.close()


def test_storage_location_prepared(ctx):
    startup(ctx)
    assert (ctx.config.definitions_path / "index.html").exists()
    assert (ctx.config.definitions_path / ".htaccess").exists()
