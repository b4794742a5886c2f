"""
log.py - audit trail for the story service

Every event goes to the stdlib "stories" logger. With debug enabled, events
are also appended as JSON Lines (one JSON object per line) to
logs/debug.jsonl, which is easy to append, parse and grep.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional

# ============================================================
# CONFIGURATION
# ============================================================

_log = logging.getLogger("stories")

LOG_FILENAME = "debug.jsonl"

# Set by configure_logging(); None means the JSONL trail is off.
_log_file: Optional[Path] = None

HTACCESS_DENY_LOGS = (
    "# Deny access to all log files\n"
    "<Files ~ \"\\.(log|jsonl)$\">\n"
    "  Order Allow,Deny\n"
    "  Deny from all\n"
    "</Files>\n"
)


# ============================================================
# EVENT TYPES
# ============================================================

class EventType:
    STARTUP = "startup"
    STORAGE = "storage"
    SYNC_START = "sync_start"
    SYNC_END = "sync_end"
    SYNC_DEFERRED = "sync_deferred"
    DEFINITION_CREATED = "definition_created"
    DEFINITION_UPDATED = "definition_updated"
    DUPLICATE_DELETED = "duplicate_deleted"
    FILTER_REQUEST = "filter_request"
    SECURITY_CHECK_FAILED = "security_check_failed"
    QUERY = "query"
    SHORTCODE = "shortcode"
    ERROR = "error"


_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


# ============================================================
# SETUP
# ============================================================

def protect_directory(directory: Path, htaccess: str) -> None:
    """Drop the placeholder index and an .htaccess into a directory if missing."""
    index_file = directory / "index.html"
    if not index_file.exists():
        index_file.write_text("", encoding="utf-8")
    htaccess_file = directory / ".htaccess"
    if not htaccess_file.exists():
        htaccess_file.write_text(htaccess, encoding="utf-8")


def configure_logging(logs_dir: str, debug: bool) -> Optional[Path]:
    """
    Enable or disable the JSONL trail.

    Returns the trail path, or None when debug is off or the directory
    cannot be prepared.
    """
    global _log_file
    if not debug:
        _log_file = None
        return None
    directory = Path(logs_dir)
    try:
        directory.mkdir(parents=True, exist_ok=True)
        protect_directory(directory, HTACCESS_DENY_LOGS)
    except OSError as e:
        _log.error("[LOG] Cannot prepare log directory %s: %s", directory, e)
        _log_file = None
        return None
    _log_file = directory / LOG_FILENAME
    return _log_file


# ============================================================
# LOGGING FUNCTIONS
# ============================================================

def log_event(
    event_type: str,
    message: str,
    data: Optional[dict] = None,
    level: str = "debug",
) -> None:
    """
    Record an event.

    level: debug | info | warning | error (stdlib logger level).
    """
    _log.log(_LEVELS.get(level, logging.DEBUG), "[%s] %s", event_type, message)
    if _log_file is None:
        return
    entry = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": level.upper(),
        "event_type": event_type,
        "message": message,
        "data": data,
    }
    try:
        with _log_file.open("a", encoding="utf-8") as f:
            f.write(json.dumps(entry, ensure_ascii=False, default=str) + "\n")
    except OSError as e:
        _log.error("[LOG] Cannot write audit entry: %s", e)


def log_error(error: str, context: Optional[dict] = None) -> None:
    """Record an error."""
    log_event(EventType.ERROR, error, data=context, level="error")


# ============================================================
# READING
# ============================================================

def get_recent_logs(limit: int = 50) -> List[dict]:
    """Return the last N trail entries (empty when the trail is off)."""
    if _log_file is None or not _log_file.exists():
        return []

    entries: List[Any] = []
    try:
        lines = _log_file.read_text(encoding="utf-8").strip().split("\n")
        recent = lines[-limit:] if len(lines) > limit else lines
        for line in recent:
            if not line:
                continue
            try:
                entries.append(json.loads(line))
            except json.JSONDecodeError:
                continue
    except OSError as e:
        _log.error("[LOG] Cannot read audit trail: %s", e)
        return []
    return entries
