"""
Shared fixtures: an isolated configuration per test (tmp_path database,
definitions copy and logs) and a seeded story database.
"""

import shutil
from datetime import datetime
from pathlib import Path

import pytest

from stories.bootstrap import build_context
from stories.config import load_config
from stories.models import Category, StoryImport

PROJECT_DIR = Path(__file__).resolve().parent.parent

FEATURED = Category(slug="featured", name="Featured")
NEWS = Category(slug="news", name="News")


def make_story(n: int, **overrides) -> StoryImport:
    """story-<n>, published 2024-01-<n>; odd numbers are featured, even are news."""
    data = dict(
        slug=f"story-{n}",
        title=f"Story {n}",
        published_at=datetime(2024, 1, n, 9, 0, 0),
        date=f"January {n}, 2024",
        excerpt=f"Excerpt {n}",
        image_url=f"/media/story-{n}.jpg",
        blocks=[f"<p>Body {n}</p>", "<blockquote>Stay strong</blockquote>"],
        categories=[FEATURED if n % 2 else NEWS],
    )
    data.update(overrides)
    return StoryImport(**data)


@pytest.fixture
def config(tmp_path):
    definitions = tmp_path / "definitions"
    shutil.copytree(PROJECT_DIR / "definitions", definitions)
    return load_config(
        db_path=str(tmp_path / "data" / "cpht.db"),
        logs_dir=str(tmp_path / "logs"),
        definitions_dir=str(definitions),
        nonce_secret="test-nonce-secret",
        admin_jwt_secret="",
        debug=False,
        sync_lock_timeout=1.0,
    )


@pytest.fixture
def ctx(config):
    context = build_context(config)
    yield context
    context.db.close()


@pytest.fixture
def seeded(ctx):
    """Nine published stories: five featured, four news."""
    for n in range(1, 10):
        ctx.db.upsert_story(make_story(n), ctx.config.post_type)
    return ctx
