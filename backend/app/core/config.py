"""
Settings import path used across the app.
"""
from app.core.settings import Settings, get_settings, settings

__all__ = ["Settings", "get_settings", "settings"]
