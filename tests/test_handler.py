"""
Tests for the filter request handler (server side of the AJAX filter).

Run: pytest tests/test_handler.py -v
"""

from unittest.mock import patch

import pytest

from stories.handler import (
    GENERIC_FAILURE_MESSAGE,
    SECURITY_FAILED_MESSAGE,
    absint,
    normalize_columns,
    normalize_page,
    sanitize_text,
)
from stories.security import FILTER_NONCE_ACTION, SYNC_NONCE_ACTION


def _params(ctx, **overrides):
    params = {"nonce": ctx.nonces.create(FILTER_NONCE_ACTION), "category": "", "paged": "1", "columns": "3"}
    params.update(overrides)
    return params


def test_first_page_of_nine_stories(seeded):
    response = seeded.handler.handle(_params(seeded))
    body = response.body()
    assert response.status_code == 200
    assert body["success"] is True
    assert body["data"]["found_posts"] == 9
    assert body["data"]["max_pages"] == 1
    assert body["data"]["content"].count('class="cpht-grid-item"') == 9


def test_page_size_comes_from_config(seeded):
    seeded.config.posts_per_page = 4
    body = seeded.handler.handle(_params(seeded, paged="3")).body()
    assert body["data"]["max_pages"] == 3
    assert body["data"]["content"].count('class="cpht-grid-item"') == 1


def test_category_filter(seeded):
    body = seeded.handler.handle(_params(seeded, category="news")).body()
    assert body["data"]["found_posts"] == 4


def test_bad_nonce_fails_without_content(seeded):
    response = seeded.handler.handle(_params(seeded, nonce="forged"))
    assert response.status_code == 403
    assert response.body() == {"success": False, "data": {"message": SECURITY_FAILED_MESSAGE}}


def test_nonce_for_other_action_fails(seeded):
    response = seeded.handler.handle(_params(seeded, nonce=seeded.nonces.create(SYNC_NONCE_ACTION)))
    assert response.status_code == 403


def test_missing_nonce_fails(seeded):
    params = _params(seeded)
    del params["nonce"]
    assert seeded.handler.handle(params).status_code == 403


def test_invalid_inputs_are_normalised(seeded):
    body = seeded.handler.handle(_params(seeded, paged="abc", columns="9")).body()
    assert body["success"] is True
    assert "cpht-columns-3" in body["data"]["content"]


def test_page_past_the_end(seeded):
    body = seeded.handler.handle(_params(seeded, paged="5")).body()
    assert body["success"] is True
    assert body["data"]["found_posts"] == 9
    assert "No posts found." in body["data"]["content"]


def test_overflowing_page_number_is_an_empty_page(seeded):
    response = seeded.handler.handle(_params(seeded, paged="99999999999999999999"))
    body = response.body()
    assert response.status_code == 200
    assert body["success"] is True
    assert body["data"]["found_posts"] == 9
    assert "No posts found." in body["data"]["content"]


def test_internal_error_is_generic(seeded):
    with patch.object(seeded.query, "query", side_effect=RuntimeError("database is locked")):
        response = seeded.handler.handle(_params(seeded))
    assert response.status_code == 500
    assert response.body() == {"success": False, "data": {"message": GENERIC_FAILURE_MESSAGE}}
    assert "database" not in str(response.body())


@pytest.mark.parametrize(
    "value,expected",
    [("5", 5), ("-3", 3), ("abc", 1), (None, 1), ("", 1), (" 7 ", 7), (2, 2)],
)
def test_absint(value, expected):
    assert absint(value, 1) == expected


def test_normalize_page_and_columns():
    assert normalize_page("0") == 1
    assert normalize_page("4") == 4
    assert normalize_columns("0") == 3
    assert normalize_columns("4") == 4
    assert normalize_columns("x") == 3


def test_sanitize_text():
    assert sanitize_text("  <b>feat</b>ured \n ") == "featured"
    assert sanitize_text(None) == ""
