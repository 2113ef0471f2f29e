"""
Configuration package for typfence

Provides application settings via environment variables using pydantic-settings.
"""

from .settings import appsettings, AppSettings, DEFAULT_PREAMBLE

__all__ = ["appsettings", "AppSettings", "DEFAULT_PREAMBLE"]
