"""
Configuration for CPhT Stories.

Uses Pydantic BaseSettings to load configuration from the .env file
or CPHT_* environment variables.
"""

import logging
import secrets
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


load_dotenv()

_log = logging.getLogger("stories.config")

BASE_DIR = Path(__file__).resolve().parent.parent


class StoriesConfig(BaseSettings):
    """
    Service configuration.

    Priority:
    1) CPHT_* environment variables (env_prefix)
    2) .env in the working directory
    3) defaults below
    """

    # === Runtime ===
    debug: bool = Field(default=False, description="Write the JSONL debug trail")
    version: str = Field(default="1.0.0", description="Asset fallback version")

    # === Paths ===
    db_path: str = Field(
        default=str(BASE_DIR / "data" / "cpht.db"),
        description="SQLite database with stories and the definition registry",
    )
    logs_dir: str = Field(default=str(BASE_DIR / "logs"), description="Debug trail directory")
    definitions_dir: str = Field(
        default=str(BASE_DIR / "definitions"),
        description="Directory holding the JSON definition documents",
    )
    assets_dir: str = Field(default=str(BASE_DIR / "assets"), description="Static assets")

    # === Content type ===
    post_type: str = Field(default="cpht_post", description="Fixed content type")
    post_type_key: str = Field(default="post_type_cpht_post")
    field_group_key: str = Field(default="group_cpht_post_fields")
    post_type_filename: str = Field(default="post_type_cpht_post.json")
    field_group_filename: str = Field(default="group_cpht_post_fields.json")

    # === Listing ===
    posts_per_page: int = Field(default=9, ge=1, description="Page size for AJAX requests")
    default_columns: int = Field(default=3, ge=1, le=4)

    # === Security ===
    nonce_secret: str = Field(
        default="",
        description="Signing secret for anti-forgery tokens (random per process if empty)",
    )
    nonce_lifetime_hours: int = Field(default=24, ge=1)
    admin_jwt_secret: str = Field(
        default="",
        description="Bearer JWT secret for /admin (auth disabled if empty)",
    )

    # === URLs & labels ===
    home_url: str = Field(default="/")
    home_label: str = Field(default="Home")
    archive_slug: str = Field(default="cphtstrong")
    archive_label: str = Field(default="CPhT Strong")
    assets_url: str = Field(default="/assets/")
    ajax_url: str = Field(default="/ajax/cpht_filter_posts")

    # === Definition sync ===
    sync_on_startup: bool = Field(default=True)
    sync_lock_timeout: float = Field(default=10.0, description="Seconds to wait for the sync lock")

    model_config = SettingsConfigDict(
        env_prefix="CPHT_",
        env_file=".env",
        extra="ignore",
    )

    @model_validator(mode="after")
    def _ensure_nonce_secret(self) -> "StoriesConfig":
        if not self.nonce_secret:
            _log.warning(
                "[SECURITY] CPHT_NONCE_SECRET is not set; using a random per-process secret. "
                "Tokens will not validate across workers or restarts."
            )
            self.nonce_secret = secrets.token_hex(32)
        return self

    @property
    def archive_url(self) -> str:
        """URL of the story listing page."""
        return self.home_url.rstrip("/") + "/" + self.archive_slug.strip("/") + "/"

    @property
    def definitions_path(self) -> Path:
        return Path(self.definitions_dir)

    @property
    def sync_lock_path(self) -> Path:
        """Lock file serialising definition sync passes across processes."""
        return Path(self.db_path).parent / ".definitions-sync.lock"

    def permalink(self, slug: str) -> str:
        """Public URL of a single story."""
        return f"{self.archive_url}{slug}/"


def load_config(**overrides) -> StoriesConfig:
    """Build a fresh configuration (env + .env, then explicit overrides)."""
    return StoriesConfig(**overrides)
