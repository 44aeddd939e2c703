"""Web application entry point for Inbox Digest."""

import os

from inbox_digest.core import configure_logging, load_app_settings

from .app import create_app

_settings = load_app_settings(env_file=os.environ.get("INBOX_DIGEST_DOTENV", ".env"))
configure_logging(_settings.logging)

app = create_app(_settings)

__all__ = ["create_app", "app"]
