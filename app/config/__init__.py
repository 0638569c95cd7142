"""
Configuration management module
"""

from .settings import Settings, get_settings, get_cors_origins, settings

__all__ = ["Settings", "get_settings", "get_cors_origins", "settings"]
