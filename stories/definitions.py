"""
Definition documents: the on-disk JSON schema of the story type and its
field group, and their reconciliation into the live registry.

Everything here is non-fatal. Unreadable documents, a missing registry or a
held sync lock are logged and reported; the service keeps running with
whatever subset was synced.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Union

import filelock
from pydantic import ValidationError

from stories.config import StoriesConfig
from stories.log import EventType, log_error, log_event, protect_directory
from stories.models import (
    DefinitionKind,
    FieldGroupDefinition,
    PostTypeDefinition,
    SyncReport,
    SyncStatus,
)
from stories.registry import DefinitionRegistry

IMPORT_SOURCE = "cpht-stories"

HTACCESS_DENY_JSON = (
    "# Protect JSON files from direct access\n"
    "<Files ~ \"\\.json$\">\n"
    "    <IfModule mod_authz_core.c>\n"
    "        Require all denied\n"
    "    </IfModule>\n"
    "    <IfModule !mod_authz_core.c>\n"
    "        Order deny,allow\n"
    "        Deny from all\n"
    "    </IfModule>\n"
    "</Files>"
)

Document = Union[PostTypeDefinition, FieldGroupDefinition]

# Reconciliation order: the post type first, then the fields attached to it.
SYNC_ORDER = (DefinitionKind.POST_TYPE, DefinitionKind.FIELD_GROUP)


class DefinitionStore:
    """
    Reads the JSON documents from the definitions directory and keeps the
    registry in line with them.

    Example:
        store = DefinitionStore(config, registry)
        store.ensure_storage_location()
        report = store.reconcile_definitions()
        if report.status == SyncStatus.DEFERRED:
            ...  # retry once later in startup
    """

    def __init__(self, config: StoriesConfig, registry: DefinitionRegistry):
        self.config = config
        self.registry = registry
        self.directory = config.definitions_path
        self._files: Dict[DefinitionKind, str] = {
            DefinitionKind.POST_TYPE: config.post_type_filename,
            DefinitionKind.FIELD_GROUP: config.field_group_filename,
        }
        self._keys: Dict[DefinitionKind, str] = {
            DefinitionKind.POST_TYPE: config.post_type_key,
            DefinitionKind.FIELD_GROUP: config.field_group_key,
        }

    # ============================================================
    # STORAGE
    # ============================================================

    def ensure_storage_location(self) -> bool:
        """Create the definitions directory and its access markers. Idempotent."""
        try:
            if not self.directory.exists():
                log_event(EventType.STORAGE, f"Creating definitions directory at {self.directory}")
            self.directory.mkdir(parents=True, exist_ok=True)
            protect_directory(self.directory, HTACCESS_DENY_JSON)
        except OSError as e:
            log_error(
                f"Failed to prepare definitions directory {self.directory}: {e}",
                {"path": str(self.directory)},
            )
            return False
        return True

    def document_path(self, kind: DefinitionKind) -> Path:
        return self.directory / self._files[kind]

    def load_document(self, kind: DefinitionKind) -> Optional[Document]:
        """Read and validate one document. None (logged) when unusable."""
        path = self.document_path(kind)
        if not path.exists():
            log_event(
                EventType.STORAGE,
                f"{kind.value} document not found: {path}",
                level="warning",
            )
            return None
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as e:
            log_error(f"Cannot read {path}: {e}")
            return None
        if not raw.strip():
            log_event(EventType.STORAGE, f"Empty definition file: {path}", level="warning")
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            log_error(f"JSON decode error in {path}: {e}", {"head": raw[:100]})
            return None
        if not isinstance(data, dict) or "key" not in data:
            log_error(f"Invalid definition structure in {path}: missing key")
            return None

        model = PostTypeDefinition if kind == DefinitionKind.POST_TYPE else FieldGroupDefinition
        try:
            return model.model_validate(data)
        except ValidationError as e:
            log_error(f"Definition {path} failed validation", {"errors": e.errors()})
            return None

    # ============================================================
    # SYNC
    # ============================================================

    def reconcile_definitions(self) -> SyncReport:
        """
        Mirror the on-disk documents into the registry.

        Per kind: collapse duplicates (earliest created wins), insert when
        missing, update in place when `modified` differs, otherwise leave
        alone. Running it twice with unchanged files mutates nothing the
        second time.
        """
        if not self.registry.is_ready():
            log_event(
                EventType.SYNC_DEFERRED,
                "Definition registry not ready, sync deferred",
                level="warning",
            )
            return SyncReport(status=SyncStatus.DEFERRED)

        lock = filelock.FileLock(str(self.config.sync_lock_path))
        try:
            self.config.sync_lock_path.parent.mkdir(parents=True, exist_ok=True)
            with lock.acquire(timeout=self.config.sync_lock_timeout):
                return self._reconcile_locked()
        except filelock.Timeout:
            log_event(
                EventType.SYNC_END,
                f"Sync lock held by another process for {self.config.sync_lock_timeout}s, skipping",
                level="warning",
            )
            return SyncReport(status=SyncStatus.SKIPPED)
        except OSError as e:
            log_error(f"Cannot acquire sync lock {self.config.sync_lock_path}: {e}")
            return SyncReport(status=SyncStatus.SKIPPED, errors=[f"lock: {e}"])

    def _reconcile_locked(self) -> SyncReport:
        report = SyncReport()
        log_event(EventType.SYNC_START, "Reconciling definitions")
        for kind in SYNC_ORDER:
            try:
                self._collapse_duplicates(kind, self._keys[kind], report)
                document = self.load_document(kind)
                if document is None:
                    report.errors.append(f"{kind.value}: document unavailable")
                    continue
                if document.key != self._keys[kind]:
                    # Duplicates of an unexpected key are collapsed too.
                    self._collapse_duplicates(kind, document.key, report)
                self._import(kind, document, report)
            except Exception as e:
                log_error(f"Error syncing {kind.value}: {e}", {"kind": kind.value})
                report.errors.append(f"{kind.value}: {e}")
        log_event(
            EventType.SYNC_END,
            f"Sync completed: {len(report.created)} created, {len(report.updated)} updated, "
            f"{len(report.deleted)} duplicates removed",
            data=report.model_dump(),
            level="info" if report.mutations else "debug",
        )
        return report

    def _collapse_duplicates(self, kind: DefinitionKind, key: str, report: SyncReport) -> None:
        entries = self.registry.find(kind, key)
        if len(entries) <= 1:
            return
        log_event(
            EventType.DUPLICATE_DELETED,
            f"Found {len(entries)} {kind.value} entries for {key}, cleaning up",
            level="warning",
        )
        for duplicate in entries[1:]:
            log_event(
                EventType.DUPLICATE_DELETED,
                f"Deleting duplicate {kind.value} ID: {duplicate.id}",
                data={"key": key, "created_at": duplicate.created_at},
                level="warning",
            )
            if self.registry.delete(duplicate.id):
                report.deleted.append(duplicate.id)

    def _import(self, kind: DefinitionKind, document: Document, report: SyncReport) -> None:
        payload = document.model_dump(mode="json")
        payload.pop("ID", None)
        payload["import_source"] = IMPORT_SOURCE
        payload["import_date"] = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")

        existing = self.registry.get(kind, document.key)
        if existing is None:
            self.registry.insert(kind, payload)
            report.created.append(document.key)
            log_event(
                EventType.DEFINITION_CREATED,
                f"Imported {kind.value}: {document.title or document.key}",
                level="info",
            )
        elif existing.modified != document.modified:
            self.registry.update(existing.id, payload)
            report.updated.append(document.key)
            log_event(
                EventType.DEFINITION_UPDATED,
                f"Updated {kind.value} {document.key} (modified {existing.modified} -> {document.modified})",
                level="info",
            )
        else:
            report.unchanged.append(document.key)

    # ============================================================
    # STATUS
    # ============================================================

    def check_sync_required(self) -> List[FieldGroupDefinition]:
        """Field-group documents whose live copy is missing or out of date."""
        if not self.registry.is_ready():
            log_event(EventType.SYNC_DEFERRED, "Registry not ready, cannot check sync status")
            return []

        document = self.load_document(DefinitionKind.FIELD_GROUP)
        if document is None:
            return []

        live = self.registry.get(DefinitionKind.FIELD_GROUP, document.key)
        if live is None:
            log_event(EventType.SYNC_START, f"Field group {document.key} not in registry, sync required")
            return [document]
        if live.modified != document.modified:
            log_event(
                EventType.SYNC_START,
                f"Field group modified time mismatch (file {document.modified}, registry {live.modified})",
            )
            return [document]
        return []

    def post_type_registered(self) -> bool:
        """Whether the configured story type has a live definition."""
        exists = False
        if self.registry.is_ready():
            for entry in self.registry.list(DefinitionKind.POST_TYPE):
                if entry.document.get("post_type") == self.config.post_type:
                    exists = True
                    break
        if not exists:
            log_event(
                EventType.STARTUP,
                f"Post type {self.config.post_type} is not registered yet, waiting for definition sync",
                level="warning",
            )
        return exists
