"""Configuration module for the authorization engine."""

from .logging_config import (
    bind_subject,
    configure_from_settings,
    configure_logging,
    get_logger,
)
from .settings import RbacSettings, get_settings, reset_settings

__all__ = [
    "RbacSettings",
    "get_settings",
    "reset_settings",
    "configure_logging",
    "configure_from_settings",
    "bind_subject",
    "get_logger",
]
