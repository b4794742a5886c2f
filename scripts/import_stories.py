"""
Import stories from a JSON file into the story database.

The file holds a list of objects:
  [{"slug": "...", "title": "...", "published_at": "2024-05-01T09:00:00",
    "date": "May 1, 2024", "excerpt": "...", "image_url": "...",
    "blocks": ["<p>...</p>"], "categories": [{"slug": "featured", "name": "Featured"}]}]

Existing stories are matched by slug and replaced.

Usage: python scripts/import_stories.py stories.json [--dry-run] [--db PATH]
"""

import argparse
import json
import sys
from pathlib import Path
from typing import List

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from pydantic import TypeAdapter, ValidationError

from stories.config import load_config
from stories.db import StoryDatabase
from stories.models import StoryImport

_stories_adapter = TypeAdapter(List[StoryImport])


def load_stories(path: Path) -> List[StoryImport]:
    return _stories_adapter.validate_python(json.loads(path.read_text(encoding="utf-8")))


def import_stories(db: StoryDatabase, stories: List[StoryImport], post_type: str) -> List[int]:
    return [db.upsert_story(story, post_type) for story in stories]


def main():
    parser = argparse.ArgumentParser(description="Import CPhT stories from JSON")
    parser.add_argument("file", type=Path, help="JSON file with a list of stories")
    parser.add_argument("--dry-run", action="store_true", help="Validate only")
    parser.add_argument("--db", default=None, help="Override CPHT_DB_PATH")
    args = parser.parse_args()

    try:
        stories = load_stories(args.file)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        print(f"Cannot read {args.file}: {e}", file=sys.stderr)
        return 1

    if args.dry_run:
        print(f"{len(stories)} stories valid (dry run, nothing written)")
        return 0

    overrides = {"db_path": args.db} if args.db else {}
    config = load_config(**overrides)
    db = StoryDatabase(config.db_path)
    try:
        ids = import_stories(db, stories, config.post_type)
    finally:
        db.close()
    print(f"Imported {len(ids)} stories into {config.db_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
