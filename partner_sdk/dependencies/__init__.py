"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_admin_client,
    get_oauth_session,
    get_user_client,
    get_webhook_handler,
)
from .config import SettingsDependency, get_sdk_settings

__all__ = [
    "SettingsDependency",
    "get_admin_client",
    "get_oauth_session",
    "get_sdk_settings",
    "get_user_client",
    "get_webhook_handler",
]
