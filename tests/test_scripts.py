"""
Tests for the operator scripts (story import, definition sync, admin token).

Run: pytest tests/test_scripts.py -v
"""

import json
import sys

import jwt
import pytest
from pydantic import ValidationError

from scripts import sync_definitions
from scripts.admin_token import make_token
from scripts.import_stories import import_stories, load_stories
from stories.models import FilterCriteria


def test_import_stories_from_json(ctx, tmp_path):
    source = tmp_path / "stories.json"
    source.write_text(json.dumps([
        {
            "slug": "first",
            "title": "First",
            "published_at": "2024-05-01T09:00:00",
            "blocks": ["<p>One</p>"],
            "categories": [{"slug": "featured", "name": "Featured"}],
        },
        {"slug": "second", "title": "Second", "published_at": "2024-05-02T09:00:00"},
    ]))

    ids = import_stories(ctx.db, load_stories(source), ctx.config.post_type)

    assert len(ids) == 2
    result = ctx.query.query(FilterCriteria())
    assert [i.slug for i in result.items] == ["second", "first"]
    assert ctx.query.query(FilterCriteria(category="featured")).found_posts == 1


def test_import_rejects_invalid_entries(tmp_path):
    source = tmp_path / "bad.json"
    source.write_text(json.dumps([{"slug": "no-title"}]))
    with pytest.raises(ValidationError):
        load_stories(source)


def test_admin_token_decodes():
    token = make_token("s3cret", days=1, subject="ops")
    assert jwt.decode(token, "s3cret", algorithms=["HS256"])["sub"] == "ops"


def test_sync_definitions_cli(config, monkeypatch, capsys):
    monkeypatch.setenv("CPHT_DEFINITIONS_DIR", config.definitions_dir)
    monkeypatch.setenv("CPHT_LOGS_DIR", config.logs_dir)
    monkeypatch.setenv("CPHT_NONCE_SECRET", "cli-secret")

    monkeypatch.setattr(sys, "argv", ["sync_definitions.py", "--db", config.db_path, "--check"])
    assert sync_definitions.main() == 2
    assert "group_cpht_post_fields" in capsys.readouterr().out

    monkeypatch.setattr(sys, "argv", ["sync_definitions.py", "--db", config.db_path])
    assert sync_definitions.main() == 0
    assert "Created:    post_type_cpht_post, group_cpht_post_fields" in capsys.readouterr().out

    monkeypatch.setattr(sys, "argv", ["sync_definitions.py", "--db", config.db_path, "--check"])
    assert sync_definitions.main() == 0
