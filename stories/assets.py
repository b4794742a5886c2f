"""
Browser assets: an explicit list, each entry naming the page contexts that
load it. Page shells ask for the tags of one context.
"""

import json
from dataclasses import dataclass
from html import escape
from pathlib import Path
from typing import FrozenSet, List

from stories.config import StoriesConfig

# Page contexts
LISTING = "listing"
SINGLE = "single"


@dataclass(frozen=True)
class Asset:
    handle: str
    path: str  # relative to assets_dir
    kind: str  # "script" | "style"
    contexts: FrozenSet[str]


ASSETS: List[Asset] = [
    Asset("cpht-public-css", "css/cpht-public.css", "style", frozenset({LISTING, SINGLE})),
    Asset("cpht-public-js", "js/cpht-public.js", "script", frozenset({LISTING})),
]


def asset_version(config: StoriesConfig, asset: Asset) -> str:
    """File mtime as cache-buster, else the service version."""
    try:
        return str(int((Path(config.assets_dir) / asset.path).stat().st_mtime))
    except OSError:
        return config.version


def assets_for(context: str) -> List[Asset]:
    return [a for a in ASSETS if context in a.contexts]


def render_asset_tags(config: StoriesConfig, context: str) -> str:
    """<link>/<script> tags for one context; scripts get cpht_params first."""
    base = config.assets_url.rstrip("/") + "/"
    tags: List[str] = []
    selected = assets_for(context)
    if any(a.kind == "script" for a in selected):
        params = json.dumps({"ajax_url": config.ajax_url})
        tags.append(f"<script>var cpht_params = {params};</script>")
    for asset in selected:
        url = escape(f"{base}{asset.path}?ver={asset_version(config, asset)}")
        if asset.kind == "style":
            tags.append(f'<link rel="stylesheet" id="{asset.handle}" href="{url}" media="all">')
        else:
            tags.append(f'<script id="{asset.handle}" src="{url}" defer></script>')
    return "\n".join(tags)
