"""
FastAPI dependency utilities for injecting SDK configuration.
"""

from fastapi import Depends

from partner_sdk.core.config import SDKSettings, get_settings


def get_sdk_settings() -> SDKSettings:
    """FastAPI dependency returning the process-wide SDK settings."""
    return get_settings()


SettingsDependency = Depends(get_sdk_settings)

__all__ = ["SettingsDependency", "get_sdk_settings"]
