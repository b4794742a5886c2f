"""
Tests for anti-forgery tokens.

Run: pytest tests/test_security.py -v
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from stories.security import FILTER_NONCE_ACTION, SYNC_NONCE_ACTION, NonceError, NonceManager


@pytest.fixture
def nonces():
    return NonceManager("secret", lifetime_hours=1)


def test_roundtrip(nonces):
    assert nonces.verify(nonces.create(FILTER_NONCE_ACTION), FILTER_NONCE_ACTION) is True


def test_wrong_action_rejected(nonces):
    token = nonces.create(FILTER_NONCE_ACTION)
    assert nonces.verify(token, SYNC_NONCE_ACTION) is False


def test_expired_rejected(nonces):
    token = nonces.create(FILTER_NONCE_ACTION, now=datetime.now(timezone.utc) - timedelta(hours=2))
    assert nonces.verify(token, FILTER_NONCE_ACTION) is False


def test_foreign_signature_rejected(nonces):
    forged = jwt.encode({"act": FILTER_NONCE_ACTION}, "other-secret", algorithm="HS256")
    assert nonces.verify(forged, FILTER_NONCE_ACTION) is False


@pytest.mark.parametrize("token", [None, "", "garbage"])
def test_missing_or_garbage_rejected(nonces, token):
    assert nonces.verify(token, FILTER_NONCE_ACTION) is False


def test_require_raises(nonces):
    with pytest.raises(NonceError) as exc:
        nonces.require("garbage", SYNC_NONCE_ACTION)
    assert exc.value.action == SYNC_NONCE_ACTION
    nonces.require(nonces.create(SYNC_NONCE_ACTION), SYNC_NONCE_ACTION)


def test_empty_secret_refused():
    with pytest.raises(ValueError):
        NonceManager("")
