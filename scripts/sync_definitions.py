"""
Reconcile the on-disk definition documents into the registry.

Usage (from project root):
  python scripts/sync_definitions.py            # run a sync pass
  python scripts/sync_definitions.py --check    # only report what is out of date
  python scripts/sync_definitions.py --json     # print the report as JSON

Exit code: 0 on success, 1 when the sync was deferred/skipped or reported errors,
2 with --check when a sync is required.
"""

import argparse
import json
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from stories.bootstrap import build_context
from stories.config import load_config
from stories.log import configure_logging
from stories.models import SyncStatus


def main():
    parser = argparse.ArgumentParser(description="Sync CPhT definition documents")
    parser.add_argument("--check", action="store_true", help="Report pending field groups, change nothing")
    parser.add_argument("--json", action="store_true", help="Print the sync report as JSON")
    parser.add_argument("--db", default=None, help="Override CPHT_DB_PATH")
    args = parser.parse_args()

    overrides = {"db_path": args.db} if args.db else {}
    ctx = build_context(load_config(**overrides))
    configure_logging(ctx.config.logs_dir, ctx.config.debug)
    ctx.definitions.ensure_storage_location()

    if args.check:
        pending = ctx.definitions.check_sync_required()
        if not pending:
            print("Definitions are in sync.")
            return 0
        for doc in pending:
            print(f"  sync required: {doc.key} (modified {doc.modified})")
        return 2

    report = ctx.definitions.reconcile_definitions()
    if args.json:
        print(json.dumps(report.model_dump(mode="json"), indent=2))
    else:
        print(f"Status:     {report.status.value}")
        print(f"Created:    {', '.join(report.created) or '-'}")
        print(f"Updated:    {', '.join(report.updated) or '-'}")
        print(f"Duplicates: {', '.join(str(i) for i in report.deleted) or '-'}")
        print(f"Unchanged:  {', '.join(report.unchanged) or '-'}")
        for error in report.errors:
            print(f"  ERROR: {error}", file=sys.stderr)

    if report.status != SyncStatus.COMPLETED or report.errors:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
