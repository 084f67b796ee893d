"""
Utility helpers for the settings service.
"""

from .path_access import DotPath

__all__ = ["DotPath"]
