"""
Admin router: definition sync status, manual sync, the audit trail and
the operator help page.

Bearer JWT (HS256) against CPHT_ADMIN_JWT_SECRET. With no secret configured
authentication is disabled and a warning is logged once.
"""

import logging
from typing import List, Optional

import jwt
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import HTMLResponse
from pydantic import BaseModel

from stories.bootstrap import AppContext
from stories.help import render_help_page
from stories.log import EventType, get_recent_logs, log_event
from stories.models import SyncReport
from stories.security import SYNC_NONCE_ACTION, NonceError

router = APIRouter(prefix="/admin", tags=["admin"])
_log = logging.getLogger("interfaces.admin")

_jwt_warning_logged = False


# ============================================================
# MODELS
# ============================================================

class SyncStatusResponse(BaseModel):
    sync_required: bool
    count: int
    field_groups: List[str] = []
    notice: Optional[str] = None
    sync_url: Optional[str] = None


class SyncResponse(BaseModel):
    sync: str
    count: int
    report: SyncReport


# ============================================================
# DEPENDENCIES
# ============================================================

def get_ctx(request: Request) -> AppContext:
    return request.app.state.ctx


async def verify_admin_jwt(request: Request):
    """
    When admin_jwt_secret is set, require a valid Authorization: Bearer <token>.
    When it is not set, auth is disabled.
    """
    global _jwt_warning_logged
    secret = get_ctx(request).config.admin_jwt_secret
    if not secret:
        if not _jwt_warning_logged:
            _log.warning(
                "[SECURITY] CPHT_ADMIN_JWT_SECRET is not set; admin API authentication is DISABLED. "
                "Set it for production deployments."
            )
            _jwt_warning_logged = True
        return None
    auth = request.headers.get("Authorization")
    if not auth or not auth.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing or invalid Authorization header")
    token = auth[7:].strip()
    try:
        return jwt.decode(token, secret, algorithms=["HS256"])
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")


def sync_notice(count: int) -> str:
    if count == 1:
        return f"There is {count} CPHT field group that requires synchronization."
    return f"There are {count} CPHT field groups that require synchronization."


# ============================================================
# ENDPOINTS
# ============================================================

@router.get("/sync-status", response_model=SyncStatusResponse)
async def sync_status(ctx: AppContext = Depends(get_ctx), _auth=Depends(verify_admin_jwt)):
    """Field groups whose live copy is missing or stale."""
    pending = ctx.definitions.check_sync_required()
    if not pending:
        return SyncStatusResponse(sync_required=False, count=0)
    nonce = ctx.nonces.create(SYNC_NONCE_ACTION)
    return SyncStatusResponse(
        sync_required=True,
        count=len(pending),
        field_groups=[doc.key for doc in pending],
        notice=sync_notice(len(pending)),
        sync_url=f"{router.prefix}/sync?_wpnonce={nonce}",
    )


@router.post("/sync", response_model=SyncResponse)
async def sync(
    wpnonce: str = Query("", alias="_wpnonce"),
    ctx: AppContext = Depends(get_ctx),
    _auth=Depends(verify_admin_jwt),
):
    """Manual reconciliation, as triggered from the sync notice."""
    try:
        ctx.nonces.require(wpnonce, SYNC_NONCE_ACTION)
    except NonceError:
        log_event(
            EventType.SECURITY_CHECK_FAILED,
            "Manual sync rejected - invalid nonce",
            level="warning",
        )
        raise HTTPException(status_code=403, detail="Security check failed.")

    log_event(EventType.SYNC_START, "Security checks passed, proceeding with manual sync", level="info")
    report = ctx.definitions.reconcile_definitions()
    return SyncResponse(sync="complete", count=report.mutations, report=report)


@router.get("/logs")
async def logs(limit: int = Query(50, ge=1, le=1000), _auth=Depends(verify_admin_jwt)):
    """Recent audit-trail entries (empty unless debug is on)."""
    return {"logs": get_recent_logs(limit=limit)}


@router.get("/help", response_class=HTMLResponse)
async def help_page(ctx: AppContext = Depends(get_ctx), _auth=Depends(verify_admin_jwt)):
    """Documentation for the embed directives and the sync workflow."""
    return render_help_page(ctx.config, ctx.renderer)
