"""
Operator help page: how to embed the listing and keep definitions in sync.

Attribute defaults are read from the embed directives themselves, so the
page always documents what the code does.
"""

from html import escape
from typing import List, Sequence, Tuple

from stories.config import StoriesConfig
from stories.embeds import BREADCRUMBS_TAG, ORDERBY_FIELDS, POSTS_DEFAULTS, POSTS_TAG
from stories.models import CATEGORY_PARAM, PAGE_PARAM
from stories.render import FragmentRenderer

HELP_TITLE = "CPhT Stories - Documentation"
EMPTY_DEFAULT = "''"

HELP_STYLES = """
.cpht-help-wrap { max-width: 1300px; margin: 20px auto; font-family: sans-serif; }
.cpht-help-header, .cpht-help-section { background: #fff; padding: 20px; margin-bottom: 20px; }
.cpht-help-header { border-left: 4px solid #0073aa; }
.cpht-help-section h2 { border-bottom: 1px solid #eee; padding-bottom: 10px; margin-top: 0; }
.cpht-help-section table { border-collapse: collapse; width: 100%; margin: 1em 0; }
.cpht-help-section th, .cpht-help-section td { text-align: left; padding: 8px; border: 1px solid #ddd; vertical-align: top; }
.cpht-help-section th { background-color: #f8f8f8; }
.cpht-help-section code { background: #f8f8f8; padding: 2px 6px; color: #0073aa; }
.cpht-shortcode-example { background: #f8f8f8; padding: 15px; border-left: 4px solid #0073aa; font-family: monospace; white-space: pre-wrap; }
"""

# (attribute, description, accepted values, example)
Row = Tuple[str, str, str, str]

DISPLAY_ATTRIBUTES: List[Row] = [
    ("columns", "Number of columns in the grid", "1-4 (anything else falls back to 3)", 'columns="2"'),
    (
        "posts_per_page",
        "Stories per page",
        "a number (negatives use their absolute value; 0 or text falls back to 9)",
        'posts_per_page="6"',
    ),
]

ORDERING_ATTRIBUTES: List[Row] = [
    ("order", "Sort direction", "ASC, DESC", 'order="ASC"'),
    ("orderby", "Field to order by", ", ".join(ORDERBY_FIELDS), 'orderby="title"'),
]

FILTERING_ATTRIBUTES: List[Row] = [
    (
        "category",
        f"Initial category; the {CATEGORY_PARAM} URL parameter takes precedence",
        "a category slug",
        'category="featured"',
    ),
]

EXAMPLES = [
    ("Basic grid with 3 columns:", f'[{POSTS_TAG} columns="3" posts_per_page="6"]'),
    ("Stories from a specific category:", f'[{POSTS_TAG} category="featured" posts_per_page="12"]'),
    ("A 2-column layout, ordered by title:", f'[{POSTS_TAG} columns="2" orderby="title" order="ASC"]'),
]


def _code(text: str) -> str:
    return f"<code>{escape(text)}</code>"


def _example(text: str) -> str:
    return f'<div class="cpht-shortcode-example">{escape(text)}</div>'


def _attribute_table(rows: Sequence[Row]) -> str:
    lines = [
        "<table>",
        "<tr><th>Parameter</th><th>Description</th><th>Default</th><th>Options</th><th>Example</th></tr>",
    ]
    for name, description, options, example in rows:
        default = POSTS_DEFAULTS.get(name) or EMPTY_DEFAULT
        lines.append(
            f"<tr><td>{_code(name)}</td><td>{escape(description)}</td>"
            f"<td>{_code(default)}</td>"
            f"<td>{escape(options)}</td><td>{_code(example)}</td></tr>"
        )
    lines.append("</table>")
    return "\n".join(lines)


def _section(title: str, *parts: str) -> str:
    return '<div class="cpht-help-section">\n' + f"<h2>{escape(title)}</h2>\n" + "\n".join(parts) + "\n</div>"


def render_help(config: StoriesConfig) -> str:
    """The help page body (no document shell)."""
    sections = [
        '<div class="cpht-help-header">'
        f"<h1>{escape(HELP_TITLE)}</h1>"
        "<p>How to embed the story listing and keep the content definitions in sync.</p>"
        "</div>",
        _section(
            "Overview",
            f"<p>Stories are listed at {_code(config.archive_url)} and can be embedded in any page "
            "with these directives:</p>",
            "<ul>"
            f"<li>{_code(f'[{POSTS_TAG}]')} - a filterable grid of stories</li>"
            f"<li>{_code(f'[{BREADCRUMBS_TAG}]')} - breadcrumb navigation</li>"
            "</ul>",
            f"<p>A single directive can also be fetched as a fragment from {_code('/embed/<tag>')}; "
            "query parameters become its attributes.</p>",
        ),
        _section(
            f"Directive: [{POSTS_TAG}]",
            "<h3>Basic usage</h3>",
            _example(f"[{POSTS_TAG}]"),
            "<h3>Display options</h3>",
            _attribute_table(DISPLAY_ATTRIBUTES),
            "<h3>Ordering</h3>",
            _attribute_table(ORDERING_ATTRIBUTES),
            "<h3>Filtering</h3>",
            _attribute_table(FILTERING_ATTRIBUTES),
            f"<p>The page number is read from the {_code(PAGE_PARAM)} URL parameter. "
            f"Filter and pagination requests from the page always use {config.posts_per_page} "
            "stories per page.</p>",
            "<h3>Examples</h3>",
            *[f"<p>{escape(label)}</p>\n{_example(code)}" for label, code in EXAMPLES],
        ),
        _section(
            f"Directive: [{BREADCRUMBS_TAG}]",
            _example(f"[{BREADCRUMBS_TAG}]"),
            "<ul>"
            f"<li>{escape(config.home_label)} &gt; {escape(config.archive_label)} (on the listing page)</li>"
            f"<li>{escape(config.home_label)} &gt; {escape(config.archive_label)} &gt; Story title "
            "(on a single story page)</li>"
            "</ul>",
        ),
        _section(
            "Field definitions and sync",
            f"<p>The post type and field group are defined by JSON documents in "
            f"{_code(config.definitions_dir)}. They are copied into the live registry at startup; "
            "a document whose <code>modified</code> stamp changed replaces its live copy in place.</p>",
            "<ol>"
            f"<li>Check {_code('GET /admin/sync-status')} for field groups that need synchronization.</li>"
            "<li>POST to the returned <code>sync_url</code> (it carries a signed, expiring security token) "
            "to run the sync.</li>"
            f"<li>Or, from a shell: {_code('python scripts/sync_definitions.py')} "
            f"({_code('--check')} only reports).</li>"
            "</ol>",
        ),
        _section(
            "Adding stories",
            f"<p>Import or update stories from a JSON file with "
            f"{_code('python scripts/import_stories.py stories.json')}. Each story needs a slug, "
            "a title and a publication date; the featured image is what the grid shows.</p>",
            f"<p>Admin endpoints need a bearer token when {_code('CPHT_ADMIN_JWT_SECRET')} is set; "
            f"mint one with {_code('python scripts/admin_token.py')}.</p>",
        ),
    ]
    return '<div class="cpht-help-wrap">\n' + "\n".join(sections) + "\n</div>"


def render_help_page(config: StoriesConfig, renderer: FragmentRenderer) -> str:
    return renderer.render_page(
        HELP_TITLE,
        render_help(config),
        head=f"<style>{HELP_STYLES}</style>",
    )
