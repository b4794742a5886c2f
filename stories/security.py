"""
Anti-forgery tokens ("nonces").

A nonce is an HS256 JWT scoped to one action (e.g. "cpht_filter_nonce")
with an expiry. Pages embed it; the client echoes it back with each request.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from stories.log import EventType, log_event

ALGORITHM = "HS256"

FILTER_NONCE_ACTION = "cpht_filter_nonce"
SYNC_NONCE_ACTION = "cpht_sync_acf"


class NonceError(Exception):
    """A missing, expired, forged or wrong-action token."""

    def __init__(self, action: str):
        super().__init__(f"invalid nonce for {action}")
        self.action = action


class NonceManager:
    """Issues and verifies action-scoped tokens."""

    def __init__(self, secret: str, lifetime_hours: int = 24):
        if not secret:
            raise ValueError("nonce secret must not be empty")
        self._secret = secret
        self.lifetime = timedelta(hours=lifetime_hours)

    def create(self, action: str, now: Optional[datetime] = None) -> str:
        issued = now or datetime.now(timezone.utc)
        payload = {
            "act": action,
            "iat": issued,
            "exp": issued + self.lifetime,
        }
        token = jwt.encode(payload, self._secret, algorithm=ALGORITHM)
        if isinstance(token, bytes):
            token = token.decode("utf-8")
        return token

    def verify(self, token: Optional[str], action: str) -> bool:
        """True only for an unexpired token signed by us for this action."""
        if not token:
            return False
        try:
            payload = jwt.decode(token, self._secret, algorithms=[ALGORITHM])
        except jwt.PyJWTError as e:
            log_event(EventType.SECURITY_CHECK_FAILED, f"Invalid nonce for {action}: {e}")
            return False
        if payload.get("act") != action:
            log_event(
                EventType.SECURITY_CHECK_FAILED,
                f"Nonce action mismatch: expected {action}, got {payload.get('act')}",
            )
            return False
        return True

    def require(self, token: Optional[str], action: str) -> None:
        """verify() that raises NonceError instead of returning False."""
        if not self.verify(token, action):
            raise NonceError(action)
