"""Shared utilities for the clinic intake services."""

from .config import DEFAULT_APP_NAME, ServiceSettings, get_settings
from .instrumentation import build_app, instrument_app
from .logging import AUDIT_LOGGER_NAME, configure_logging

__all__ = [
    "ServiceSettings",
    "get_settings",
    "build_app",
    "instrument_app",
    "configure_logging",
    "AUDIT_LOGGER_NAME",
    "DEFAULT_APP_NAME",
]
