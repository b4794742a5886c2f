"""
stories - engine for the CPhT story listing.

Modules:
- config: settings (.env / CPHT_* env vars)
- log: audit trail + stdlib logging
- models: pydantic types (stories, criteria, definitions)
- db / registry: SQLite content store and live definition registry
- definitions: on-disk definition documents and their sync into the registry
- query / render: listing engine and HTML fragments
- security / handler: anti-forgery tokens and the AJAX filter endpoint logic
- controller: reference client filter controller (history + AJAX)
- embeds / assets: shortcode-style directives and the explicit asset list
- bootstrap: component wiring and the ordered startup sequence
"""

__version__ = "1.0.0"
