"""
Module: config
Description: Package initialization for application settings.
"""

from .settings import Settings, settings

__all__ = ["Settings", "settings"]
