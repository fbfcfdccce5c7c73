"""
Configuration for the lead qualification engine.
"""

from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
