"""Core utilities for configuration, logging, caching, and dependency wiring."""

from .cache import TTLCache
from .config import AppSettings, PipelineSettings, load_app_settings
from .container import ServiceContainer
from .logging import configure_logging

__all__ = [
    "AppSettings",
    "PipelineSettings",
    "ServiceContainer",
    "TTLCache",
    "configure_logging",
    "load_app_settings",
]
